from decimal import Decimal

import pytest
from rest_framework.exceptions import PermissionDenied, ValidationError

from ctam_core.budgets.models import BudgetRecord
from ctam_core.budgets.services import BudgetService
from ctam_core.iam.selectors import access_policy_for

pytestmark = pytest.mark.django_db


def _replace(user, unit, lines, fiscal_year=2025):
    return BudgetService.replace_for_unit(
        policy=access_policy_for(user), actor=user, unit_id=unit.id, fiscal_year=fiscal_year, lines=lines
    )


def test_replace_swaps_whole_category_set(hospital_user, unit, categories):
    _replace(hospital_user, unit, [{"category": c.id, "amount": Decimal("100")} for c in categories])
    _replace(hospital_user, unit, [{"category": categories[0].id, "amount": Decimal("250.50")}])

    rows = list(BudgetRecord.objects.filter(unit=unit, fiscal_year=2025))
    assert len(rows) == 1
    assert rows[0].category_id == categories[0].id
    assert rows[0].amount == Decimal("250.50")


def test_other_years_are_untouched(hospital_user, unit, categories):
    _replace(hospital_user, unit, [{"category": categories[0].id, "amount": 10}], fiscal_year=2024)
    _replace(hospital_user, unit, [{"category": categories[0].id, "amount": 20}], fiscal_year=2025)

    assert BudgetRecord.objects.filter(unit=unit).count() == 2


def test_bad_lines_leave_existing_rows(hospital_user, unit, categories):
    _replace(hospital_user, unit, [{"category": categories[0].id, "amount": 10}])

    with pytest.raises(ValidationError):
        _replace(hospital_user, unit, [{"category": categories[0].id, "amount": 1}, {"category": categories[0].id, "amount": 2}])
    with pytest.raises(ValidationError):
        _replace(hospital_user, unit, [{"category": categories[1].id, "amount": -5}])
    with pytest.raises(ValidationError):
        _replace(hospital_user, unit, [{"category": unit.id, "amount": 5}])

    assert list(BudgetRecord.objects.filter(unit=unit).values_list("amount", flat=True)) == [Decimal("10.00")]


def test_only_managers_of_the_unit_may_replace(hospital_user, provincial_user, neighbour_unit, unit, categories):
    with pytest.raises(PermissionDenied):
        _replace(hospital_user, neighbour_unit, [])
    with pytest.raises(PermissionDenied):
        _replace(provincial_user, unit, [])


def test_replace_and_list_over_http(client_for, hospital_user, provincial_user, unit, categories):
    payload = {
        "unit": str(unit.id),
        "fiscal_year": 2025,
        "lines": [{"category": str(c.id), "amount": "1000.00"} for c in categories],
    }
    res = client_for(hospital_user).put("/api/v1/budgets/replace/", payload, format="json")
    assert res.status_code == 200
    assert [r["category_code"] for r in res.json()] == ["BACKUP", "ACCESS", "POLICY"]

    res = client_for(provincial_user).get("/api/v1/budgets/", {"fiscal_year": 2025})
    assert res.status_code == 200
    assert res.json()["count"] == 3

    assert client_for(provincial_user).put("/api/v1/budgets/replace/", payload, format="json").status_code == 403
