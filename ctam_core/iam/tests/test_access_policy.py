from uuid import uuid4

import pytest
from rest_framework.exceptions import PermissionDenied

from ctam_core.iam.access import AccessPolicy, ActorScope, DrillLevel, DrillRules
from ctam_core.iam.models import DrillScope, ReportAccessPolicy, ReportType, Role
from ctam_core.iam.selectors import access_policy_for
from ctam_core.organizations.hierarchy import Hierarchy, ProvinceNode, RegionNode, UnitNode


@pytest.fixture
def tree():
    r1, r2 = RegionNode(id=uuid4(), name="R1", number=1), RegionNode(id=uuid4(), name="R2", number=2)
    p1 = ProvinceNode(id=uuid4(), name="P1", region_id=r1.id)
    p2 = ProvinceNode(id=uuid4(), name="P2", region_id=r1.id)
    p3 = ProvinceNode(id=uuid4(), name="P3", region_id=r2.id)
    u1 = UnitNode(id=uuid4(), name="U1", province_id=p1.id)
    u2 = UnitNode(id=uuid4(), name="U2", province_id=p1.id)
    u3 = UnitNode(id=uuid4(), name="U3", province_id=p2.id)
    u4 = UnitNode(id=uuid4(), name="U4", province_id=p3.id)
    return Hierarchy(regions=[r1, r2], provinces=[p1, p2, p3], units=[u1, u2, u3, u4]), (r1, r2), (p1, p2, p3), (u1, u2, u3, u4)


def _policy(h, role, **scope):
    return AccessPolicy(ActorScope.resolve(role=role, hierarchy=h, **scope), h)


def test_visibility_matrix(tree):
    h, (r1, _), (p1, _, _), (u1, u2, u3, u4) = tree

    central = _policy(h, Role.CENTRAL_ADMIN)
    regional = _policy(h, Role.REGIONAL, region_id=r1.id)
    supervisor = _policy(h, Role.SUPERVISOR, region_id=r1.id)
    provincial = _policy(h, Role.PROVINCIAL, province_id=p1.id)
    hospital = _policy(h, Role.HOSPITAL_IT, unit_id=u1.id)

    assert central.visible_unit_ids() == {u1.id, u2.id, u3.id, u4.id}
    assert regional.visible_unit_ids() == {u1.id, u2.id, u3.id}
    assert supervisor.visible_unit_ids() == {u1.id, u2.id, u3.id}
    assert provincial.visible_unit_ids() == {u1.id, u2.id}
    assert hospital.visible_unit_ids() == {u1.id}


def test_scope_is_resolved_up_the_tree(tree):
    h, (r1, _), (p1, _, _), (u1, _, _, _) = tree
    scope = ActorScope.resolve(role=Role.HOSPITAL_IT, hierarchy=h, unit_id=u1.id)
    assert scope.province_id == p1.id
    assert scope.region_id == r1.id


def test_manage_and_review_capabilities(tree):
    h, (r1, _), (p1, _, _), (u1, u2, _, _) = tree

    hospital = _policy(h, Role.HOSPITAL_IT, unit_id=u1.id)
    assert hospital.can_manage_unit(u1.id)
    assert not hospital.can_manage_unit(u2.id)
    assert not hospital.can_review_unit(u1.id)

    provincial = _policy(h, Role.PROVINCIAL, province_id=p1.id)
    assert provincial.can_review_unit(u2.id)
    assert not provincial.can_manage_unit(u2.id)

    supervisor = _policy(h, Role.SUPERVISOR, region_id=r1.id)
    assert supervisor.can_see_unit(u1.id)
    assert not supervisor.can_review_unit(u1.id)
    assert not supervisor.can_manage_unit(u1.id)


def test_pinned_levels(tree):
    h, (r1, _), (p1, _, _), (u1, _, _, _) = tree
    assert _policy(h, Role.CENTRAL_ADMIN).pinned_level() == DrillLevel.REGION
    assert _policy(h, Role.REGIONAL, region_id=r1.id).pinned_level() == DrillLevel.PROVINCE
    assert _policy(h, Role.PROVINCIAL, province_id=p1.id).pinned_level() == DrillLevel.UNIT
    assert _policy(h, Role.HEALTH_OFFICE, unit_id=u1.id).pinned_level() == DrillLevel.CATEGORY


@pytest.mark.parametrize(
    "view_region, same_province, expected",
    [
        (False, False, DrillLevel.CATEGORY),
        (True, False, DrillLevel.REGION),
        (False, True, DrillLevel.UNIT),
        (True, True, DrillLevel.UNIT),
    ],
)
def test_facility_pinned_level_follows_report_rules(tree, view_region, same_province, expected):
    h, _, _, (u1, _, _, _) = tree
    rules = DrillRules(view_region, DrillScope.OWN_REGION, DrillScope.OWN_PROVINCE, view_same_province_units=same_province)
    policy = AccessPolicy(ActorScope.resolve(role=Role.HOSPITAL_IT, hierarchy=h, unit_id=u1.id), h, rules)
    assert policy.pinned_level() == expected


def test_unknown_unit_is_never_visible(tree):
    h, (r1, _), _, _ = tree
    regional = _policy(h, Role.REGIONAL, region_id=r1.id)
    assert not regional.can_see_unit(uuid4())


@pytest.mark.django_db
def test_report_rule_row_overrides_role_default(hospital_user, unit, neighbour_unit):
    default = access_policy_for(hospital_user, report_type=ReportType.BUDGET)
    assert not default.can_report_on_unit(neighbour_unit.id)

    ReportAccessPolicy.objects.create(
        role=Role.HOSPITAL_IT,
        report_type=ReportType.BUDGET,
        view_region=False,
        drill_to_province=DrillScope.OWN_REGION,
        drill_to_unit=DrillScope.OWN_PROVINCE,
        view_same_province_units=True,
    )

    policy = access_policy_for(hospital_user, report_type=ReportType.BUDGET)
    assert policy.can_report_on_unit(neighbour_unit.id)
    # data visibility is not widened by report rules
    assert not policy.can_see_unit(neighbour_unit.id)

    other = access_policy_for(hospital_user, report_type=ReportType.IMPACT)
    assert not other.can_report_on_unit(neighbour_unit.id)


@pytest.mark.django_db
def test_user_without_profile_is_refused(django_user_model):
    user = django_user_model.objects.create_user(username="nobody", password="x")
    with pytest.raises(PermissionDenied):
        access_policy_for(user)


@pytest.mark.django_db
def test_superuser_without_profile_acts_nationally(django_user_model, unit):
    admin = django_user_model.objects.create_superuser(username="root", password="x", email="root@example.org")
    policy = access_policy_for(admin)
    assert policy.role == Role.CENTRAL_ADMIN
    assert policy.can_see_unit(unit.id)
