from decimal import Decimal

import pytest

from ctam_core.assessments.api.serializers import ImpactScoreSerializer
from ctam_core.assessments.models import ApprovalHistory, Assessment, ImpactScore
from ctam_core.common.fiscal import fiscal_year_for
from ctam_core.scoring.calculator import ImpactScale

pytestmark = pytest.mark.django_db


def _create(client, unit, fiscal_year=2025):
    return client.post("/api/v1/assessments/", {"unit": str(unit.id), "fiscal_year": fiscal_year}, format="json")


def test_categories_are_listed_in_order(client_for, hospital_user, categories):
    res = client_for(hospital_user).get("/api/v1/categories/")
    assert res.status_code == 200
    assert [c["code"] for c in res.json()] == ["BACKUP", "ACCESS", "POLICY"]


def test_create_and_retrieve(client_for, hospital_user, unit, categories):
    c = client_for(hospital_user)

    res = _create(c, unit)
    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "draft"
    assert body["fiscal_year_display"] == 2568
    assert body["allowed_actions"] == ["submit"]

    res = c.get(f"/api/v1/assessments/{body['id']}/items/")
    assert res.status_code == 200
    assert len(res.json()) == 3


def test_duplicate_create_returns_conflict_envelope(client_for, hospital_user, unit, categories):
    c = client_for(hospital_user)
    assert _create(c, unit).status_code == 201

    res = _create(c, unit)
    assert res.status_code == 409
    err = res.json()["error"]
    assert err["code"] == "conflict"
    assert err["details"]["fiscal_year"] == "2025"
    assert err["request_id"]


def test_reviewer_cannot_create(client_for, provincial_user, unit, categories):
    res = _create(client_for(provincial_user), unit)
    assert res.status_code == 403
    assert res.json()["error"]["code"] == "permission_denied"


def test_list_is_scope_filtered(client_for, make_user, hospital_user, provincial_user, unit, far_unit, categories):
    far_user = make_user("hospital_it", unit=far_unit)
    assert _create(client_for(hospital_user), unit).status_code == 201
    assert _create(client_for(far_user), far_unit).status_code == 201

    res = client_for(provincial_user).get("/api/v1/assessments/")
    assert res.status_code == 200
    assert res.json()["count"] == 1
    assert res.json()["results"][0]["unit"] == str(unit.id)

    res = client_for(hospital_user).get("/api/v1/assessments/", {"status": "submitted"})
    assert res.json()["count"] == 0


def test_out_of_scope_retrieve_is_404(client_for, make_user, hospital_user, unit, far_unit, categories):
    a = _create(client_for(hospital_user), unit).json()
    stranger = make_user("hospital_it", unit=far_unit)

    res = client_for(stranger).get(f"/api/v1/assessments/{a['id']}/")
    assert res.status_code == 404


def test_answers_submit_and_review_over_http(client_for, hospital_user, provincial_user, unit, categories):
    c = client_for(hospital_user)
    a = _create(c, unit).json()

    res = c.put(
        f"/api/v1/assessments/{a['id']}/items/",
        {"items": [{"category": str(categories[0].id), "status": "pass"}]},
        format="json",
    )
    assert res.status_code == 200

    assert c.get(f"/api/v1/assessments/{a['id']}/impact/").status_code == 204
    res = c.put(
        f"/api/v1/assessments/{a['id']}/impact/",
        {"had_incident": True, "recovery_hours": 4},
        format="json",
    )
    assert res.status_code == 200
    assert res.json()["incident_penalty"] == -2

    res = c.put(f"/api/v1/assessments/{a['id']}/impact/", {"had_incident": True}, format="json")
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"

    res = c.post(f"/api/v1/assessments/{a['id']}/submit/", {}, format="json")
    assert res.status_code == 200
    assert res.json()["status"] == "submitted"

    # facility users never reach the review edges
    assert c.post(f"/api/v1/assessments/{a['id']}/approve/", {}, format="json").status_code == 403

    reviewer = client_for(provincial_user)
    res = reviewer.post(f"/api/v1/assessments/{a['id']}/return/", {}, format="json")
    assert res.status_code == 400

    res = reviewer.post(f"/api/v1/assessments/{a['id']}/return/", {"comment": "Attach policy"}, format="json")
    assert res.status_code == 200
    assert res.json()["status"] == "returned"

    res = reviewer.get(f"/api/v1/assessments/{a['id']}/history/")
    assert sorted(h["to_status"] for h in res.json()) == ["returned", "submitted"]
    assert ApprovalHistory.objects.filter(assessment_id=a["id"]).count() == 2


def test_stale_approval_returns_409(client_for, hospital_user, provincial_user, make_user, province, unit, categories):
    colleague = make_user("provincial", province=province)
    c = client_for(hospital_user)
    a = _create(c, unit).json()
    c.post(f"/api/v1/assessments/{a['id']}/submit/", {}, format="json")

    assert client_for(provincial_user).post(f"/api/v1/assessments/{a['id']}/approve/", {}, format="json").status_code == 200

    res = client_for(colleague).post(f"/api/v1/assessments/{a['id']}/approve/", {}, format="json")
    assert res.status_code == 409
    assert res.json()["error"]["details"]["current_status"] == "approved_provincial"


def test_create_defaults_to_current_fiscal_year(client_for, hospital_user, unit, categories):
    res = client_for(hospital_user).post("/api/v1/assessments/", {"unit": str(unit.id)}, format="json")
    assert res.status_code == 201
    assert res.json()["fiscal_year"] == fiscal_year_for()


def test_impact_level_reads_legacy_rows_on_percent_scale(hospital_user, unit, neighbour_unit):
    legacy = ImpactScore.objects.create(
        assessment=Assessment.objects.create(unit=unit, fiscal_year=2024, created_by=hospital_user),
        total_score=Decimal("15"),
        scale=ImpactScale.LEGACY,
    )
    assert ImpactScoreSerializer(legacy).data["level"] == 5

    legacy.total_score = Decimal("6")
    assert ImpactScoreSerializer(legacy).data["level"] == 1

    current = ImpactScore.objects.create(
        assessment=Assessment.objects.create(unit=neighbour_unit, fiscal_year=2025, created_by=hospital_user),
        total_score=Decimal("86"),
        scale=ImpactScale.PERCENT,
    )
    assert ImpactScoreSerializer(current).data["level"] == 5
