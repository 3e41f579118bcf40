from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from ctam_core.organizations.hierarchy import Hierarchy, ProvinceNode, RegionNode, UnitNode
from ctam_core.reports.aggregation import (
    AssessmentFact,
    FactRecord,
    average_over_assessed,
    fold,
    latest_per_unit,
    period_number,
)


def _region_with_three_provinces():
    region = RegionNode(id=uuid4(), name="Region 1", number=1)
    provinces = [ProvinceNode(id=uuid4(), name=f"P{i}", region_id=region.id) for i in range(3)]
    units = [UnitNode(id=uuid4(), name=f"U{i}{j}", province_id=p.id) for i, p in enumerate(provinces) for j in range(2)]
    return Hierarchy(regions=[region], provinces=provinces, units=units), region, provinces, units


def test_region_and_province_totals():
    h, region, provinces, units = _region_with_three_provinces()
    amounts = [10, 20, 30, 40, 50, 60]
    records = [FactRecord(unit_id=u.id, value=Decimal(a)) for u, a in zip(units, amounts)]

    rollup = fold(records, h)

    assert rollup.region(region.id).total == Decimal("210")
    assert [rollup.province(p.id).total for p in provinces] == [Decimal("30"), Decimal("70"), Decimal("110")]
    assert rollup.region(region.id).unit_count == 6
    assert rollup.overall.total == Decimal("210")


def test_unit_count_is_distinct_across_categories():
    h, region, provinces, units = _region_with_three_provinces()
    cat_a, cat_b = uuid4(), uuid4()
    records = [
        FactRecord(unit_id=units[0].id, value=Decimal("5"), category_id=cat_a),
        FactRecord(unit_id=units[0].id, value=Decimal("7"), category_id=cat_b),
    ]

    rollup = fold(records, h)

    assert rollup.province(provinces[0].id).unit_count == 1
    assert rollup.province(provinces[0].id).total == Decimal("12")
    assert rollup.unit_category(units[0].id, cat_b).total == Decimal("7")
    assert rollup.province(provinces[0].id).average == Decimal("12.00")


def test_fold_is_repeatable():
    h, region, provinces, units = _region_with_three_provinces()
    records = [FactRecord(unit_id=u.id, value=Decimal("1.5")) for u in units]

    assert fold(records, h) == fold(records, h)


def test_include_predicate_and_unknown_units_are_dropped():
    h, region, provinces, units = _region_with_three_provinces()
    records = [FactRecord(unit_id=u.id, value=Decimal("10")) for u in units]
    records.append(FactRecord(unit_id=uuid4(), value=Decimal("999")))

    visible = {units[0].id, units[1].id}
    rollup = fold(records, h, include=lambda uid: uid in visible)

    assert rollup.overall.total == Decimal("20")
    assert rollup.province(provinces[1].id).unit_count == 0
    assert rollup.province(provinces[1].id).average is None


def test_missing_buckets_are_empty():
    h, region, provinces, units = _region_with_three_provinces()
    rollup = fold([], h)
    assert rollup.region(region.id).total == Decimal("0")
    assert rollup.unit(units[0].id).unit_count == 0


def _fact(unit_id, fy, period, created=None, total="5"):
    return AssessmentFact(
        id=uuid4(),
        unit_id=unit_id,
        fiscal_year=fy,
        assessment_period=period,
        created_at=created,
        status="approved_regional",
        total_score=Decimal(total),
    )


def test_latest_prefers_fiscal_year_then_numeric_period():
    uid = uuid4()
    older_year = _fact(uid, 2024, "2")
    period_2 = _fact(uid, 2025, "2")
    period_10 = _fact(uid, 2025, "10")

    latest = latest_per_unit([older_year, period_10, period_2])

    assert latest[uid] is period_10
    assert period_number("10") == 10
    assert period_number("round-3") == 3
    assert period_number("") is None


def test_latest_falls_back_to_creation_time_and_keeps_first_on_tie():
    uid = uuid4()
    early = _fact(uid, 2025, "1", created=datetime(2025, 1, 1, tzinfo=timezone.utc))
    late = _fact(uid, 2025, "1", created=datetime(2025, 3, 1, tzinfo=timezone.utc))
    twin = _fact(uid, 2025, "1", created=datetime(2025, 3, 1, tzinfo=timezone.utc))

    assert latest_per_unit([early, late])[uid] is late
    assert latest_per_unit([late, twin])[uid] is late


def test_unassessed_units_are_left_out_of_average():
    a, b, c = uuid4(), uuid4(), uuid4()
    avg = average_over_assessed({a: Decimal("8"), b: Decimal("6")}, [a, b, c])

    assert avg.assessed == 2
    assert avg.not_assessed == 1
    assert avg.value == Decimal("7.00")


def test_average_of_nothing_is_none():
    avg = average_over_assessed({}, [uuid4()])
    assert avg.value is None
    assert avg.not_assessed == 1
