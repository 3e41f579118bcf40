from unittest import mock

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from ctam_core.assessments.models import AssessmentItem
from ctam_core.evidence.models import EvidenceFile
from ctam_core.evidence.services import EvidenceSync

pytestmark = pytest.mark.django_db


@pytest.fixture
def item(client_for, hospital_user, unit, categories):
    res = client_for(hospital_user).post(
        "/api/v1/assessments/", {"unit": str(unit.id), "fiscal_year": 2025}, format="json"
    )
    return AssessmentItem.objects.filter(assessment_id=res.json()["id"]).order_by("category__order_number").first()


def _upload(client, item, name="scan.pdf", content=b"%PDF-1.4 evidence"):
    return client.post(
        "/api/v1/evidence/",
        {
            "owner_kind": "item",
            "owner_id": str(item.id),
            "file": SimpleUploadedFile(name, content, content_type="application/pdf"),
        },
        format="multipart",
    )


def test_upload_list_download_delete(client_for, hospital_user, provincial_user, item):
    c = client_for(hospital_user)

    res = _upload(c, item, name="backup plan.pdf")
    assert res.status_code == 201
    file_id = res.json()["id"]
    assert res.json()["file_name"] == "backup plan.pdf"
    assert res.json()["extension"] == "pdf"

    res = client_for(provincial_user).get("/api/v1/evidence/", {"owner_kind": "item", "owner_id": str(item.id)})
    assert res.status_code == 200
    assert res.json()["available"] is True
    assert [f["id"] for f in res.json()["results"]] == [file_id]

    res = client_for(provincial_user).get(f"/api/v1/evidence/{file_id}/download/")
    assert res.status_code == 200
    assert res.content == b"%PDF-1.4 evidence"
    assert "backup_plan.pdf" in res["Content-Disposition"]

    # reviewers read, never delete
    assert client_for(provincial_user).delete(f"/api/v1/evidence/{file_id}/").status_code == 403

    assert c.delete(f"/api/v1/evidence/{file_id}/").status_code == 204
    assert not EvidenceFile.objects.filter(id=file_id).exists()


def test_out_of_scope_download_is_404(client_for, make_user, hospital_user, far_unit, item):
    file_id = _upload(client_for(hospital_user), item).json()["id"]
    stranger = make_user("hospital_it", unit=far_unit)

    res = client_for(stranger).get(f"/api/v1/evidence/{file_id}/download/")
    assert res.status_code == 404


def test_list_requires_owner(client_for, hospital_user):
    res = client_for(hospital_user).get("/api/v1/evidence/")
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"


def test_oversized_upload_is_rejected_before_reading(settings, client_for, hospital_user, item):
    settings.CTAM_EVIDENCE_MAX_FILE_SIZE_BYTES = 4

    with mock.patch.object(EvidenceSync, "upload") as upload:
        res = _upload(client_for(hospital_user), item, content=b"0123456789")

    assert res.status_code == 400
    upload.assert_not_called()
    assert not EvidenceFile.objects.exists()
