from decimal import Decimal
from uuid import uuid4

import pytest
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from ctam_core.iam.access import AccessPolicy, ActorScope, DrillLevel, DrillRules
from ctam_core.iam.models import DrillScope, Role
from ctam_core.organizations.hierarchy import Hierarchy, ProvinceNode, RegionNode, UnitNode
from ctam_core.reports.aggregation import FactRecord, fold
from ctam_core.reports.drilldown import (
    back,
    can_go_back,
    enter_province,
    enter_region,
    enter_unit,
    initial_state,
    navigate,
    rows_for,
)


@pytest.fixture
def tree():
    r1 = RegionNode(id=uuid4(), name="Region 1", number=1)
    r2 = RegionNode(id=uuid4(), name="Region 2", number=2)
    p1 = ProvinceNode(id=uuid4(), name="Alpha", region_id=r1.id)
    p2 = ProvinceNode(id=uuid4(), name="Beta", region_id=r1.id)
    p3 = ProvinceNode(id=uuid4(), name="Gamma", region_id=r2.id)
    u1 = UnitNode(id=uuid4(), name="Unit 1", province_id=p1.id)
    u2 = UnitNode(id=uuid4(), name="Unit 2", province_id=p1.id)
    u3 = UnitNode(id=uuid4(), name="Unit 3", province_id=p2.id)
    u4 = UnitNode(id=uuid4(), name="Unit 4", province_id=p3.id)
    h = Hierarchy(regions=[r1, r2], provinces=[p1, p2, p3], units=[u1, u2, u3, u4])
    return h, (r1, r2), (p1, p2, p3), (u1, u2, u3, u4)


def _policy(h, role, rules=None, **scope):
    return AccessPolicy(ActorScope.resolve(role=role, hierarchy=h, **scope), h, rules)


def test_central_walks_down_and_back_up(tree):
    h, (r1, _), (p1, _, _), (u1, _, _, _) = tree
    policy = _policy(h, Role.CENTRAL_ADMIN)

    s = initial_state(policy)
    assert s.level == DrillLevel.REGION
    assert not can_go_back(s)

    s = enter_region(s, policy, r1.id)
    s = enter_province(s, policy, p1.id)
    s = enter_unit(s, policy, u1.id)
    assert s.level == DrillLevel.CATEGORY
    assert (s.region_id, s.province_id, s.unit_id) == (r1.id, p1.id, u1.id)

    s = back(back(back(s)))
    assert s.level == DrillLevel.REGION
    assert s.region_id is None


def test_back_stops_at_pinned_level(tree):
    h, (r1, _), _, _ = tree
    policy = _policy(h, Role.REGIONAL, region_id=r1.id)

    s = initial_state(policy)
    assert s.level == DrillLevel.PROVINCE
    assert s.region_id == r1.id

    with pytest.raises(PermissionDenied):
        back(s)


def test_provincial_cannot_enter_other_province(tree):
    h, (r1, _), (p1, p2, _), (_, _, u3, _) = tree
    policy = _policy(h, Role.PROVINCIAL, province_id=p1.id)

    s = initial_state(policy)
    assert s.level == DrillLevel.UNIT

    with pytest.raises(PermissionDenied):
        navigate(policy, region_id=r1.id, province_id=p2.id)

    with pytest.raises(NotFound):
        enter_unit(s, policy, u3.id)


def test_navigate_replays_path_within_scope(tree):
    h, (r1, r2), (p1, _, p3), (u1, _, _, _) = tree
    policy = _policy(h, Role.REGIONAL, region_id=r1.id)

    s = navigate(policy, region_id=r1.id, province_id=p1.id, unit_id=u1.id)
    assert s.level == DrillLevel.CATEGORY

    with pytest.raises(PermissionDenied):
        navigate(policy, region_id=r2.id)

    with pytest.raises(NotFound):
        navigate(policy, province_id=p3.id)


def test_navigate_requires_parent_first(tree):
    h, _, (p1, _, _), _ = tree
    policy = _policy(h, Role.CENTRAL_ADMIN)

    with pytest.raises(ValidationError):
        navigate(policy, province_id=p1.id)


def test_drill_rules_can_close_province_level(tree):
    h, (r1, _), _, _ = tree
    rules = DrillRules(view_region=True, drill_to_province=DrillScope.NONE, drill_to_unit=DrillScope.NONE)
    policy = _policy(h, Role.CENTRAL_ADMIN, rules=rules)

    with pytest.raises(PermissionDenied):
        enter_region(initial_state(policy), policy, r1.id)


def test_facility_is_pinned_to_its_own_categories(tree):
    h, _, _, (u1, u2, _, _) = tree
    policy = _policy(h, Role.HOSPITAL_IT, unit_id=u1.id)

    s = initial_state(policy)
    assert s.level == DrillLevel.CATEGORY
    assert s.unit_id == u1.id
    assert navigate(policy, unit_id=u1.id) == s

    with pytest.raises(PermissionDenied):
        navigate(policy, unit_id=u2.id)



def test_facility_with_sibling_rule_starts_at_its_province(tree):
    h, _, (p1, p2, _), (u1, u2, u3, _) = tree
    rules = DrillRules(False, DrillScope.OWN_REGION, DrillScope.OWN_PROVINCE, view_same_province_units=True)
    policy = _policy(h, Role.HOSPITAL_IT, rules, unit_id=u1.id)

    s = initial_state(policy)
    assert s.level == DrillLevel.UNIT
    assert s.province_id == p1.id
    assert not can_go_back(s)

    s = navigate(policy, province_id=p1.id, unit_id=u2.id)
    assert s.level == DrillLevel.CATEGORY
    assert s.unit_id == u2.id

    with pytest.raises(NotFound):
        navigate(policy, unit_id=u3.id)
    with pytest.raises(PermissionDenied):
        navigate(policy, province_id=p2.id)


def test_facility_with_region_rule_starts_at_region_view(tree):
    h, (r1, r2), _, (u1, _, _, _) = tree
    rules = DrillRules(True, DrillScope.OWN_REGION, DrillScope.OWN_PROVINCE)
    policy = _policy(h, Role.HEALTH_OFFICE, rules, unit_id=u1.id)

    assert initial_state(policy).level == DrillLevel.REGION
    assert navigate(policy, region_id=r1.id).level == DrillLevel.PROVINCE
    with pytest.raises(PermissionDenied):
        navigate(policy, region_id=r2.id)


def test_rows_follow_level_and_scope(tree):
    h, (r1, r2), (p1, p2, _), (u1, u2, u3, u4) = tree
    records = [FactRecord(unit_id=u.id, value=Decimal(v)) for u, v in ((u1, 10), (u2, 20), (u3, 30), (u4, 40))]

    central = _policy(h, Role.CENTRAL_ADMIN)
    rows = rows_for(initial_state(central), fold(records, h), central)
    assert [(r.id, r.total) for r in rows] == [(r1.id, Decimal("60")), (r2.id, Decimal("40"))]
    assert all(r.drillable for r in rows)

    provincial = _policy(h, Role.PROVINCIAL, province_id=p1.id)
    rollup = fold(records, h, include=provincial.can_report_on_unit)
    rows = rows_for(initial_state(provincial), rollup, provincial)
    assert [r.id for r in rows] == [u1.id, u2.id]
    assert [r.average for r in rows] == [Decimal("10.00"), Decimal("20.00")]


def test_category_rows_use_given_names(tree):
    h, _, _, (u1, _, _, _) = tree
    policy = _policy(h, Role.HOSPITAL_IT, unit_id=u1.id)
    cat = uuid4()
    rollup = fold([FactRecord(unit_id=u1.id, value=Decimal("3"), category_id=cat)], h)

    rows = rows_for(initial_state(policy), rollup, policy, category_names={cat: "Backup"})

    assert len(rows) == 1
    assert rows[0].name == "Backup"
    assert rows[0].total == Decimal("3")
    assert rows[0].drillable is False
