# ctam_core/iam/selectors.py
from __future__ import annotations

from typing import Optional

from rest_framework.exceptions import PermissionDenied

from ctam_core.iam.access import AccessPolicy, ActorScope, DrillRules
from ctam_core.iam.models import Profile, ReportAccessPolicy, Role
from ctam_core.organizations.hierarchy import Hierarchy
from ctam_core.organizations.selectors import load_hierarchy


def profile_for_user(user) -> Optional[Profile]:
    if not user or not getattr(user, "is_authenticated", False):
        return None
    return Profile.objects.filter(user_id=user.id, is_active=True).first()


def actor_scope_for_user(user, *, hierarchy: Hierarchy) -> ActorScope:
    """
    Superusers without a profile act with national scope.
    Anyone else needs an active profile.
    """
    profile = profile_for_user(user)
    if profile is None:
        if getattr(user, "is_superuser", False):
            return ActorScope(role=Role.CENTRAL_ADMIN)
        raise PermissionDenied("No active profile for this user.")

    return ActorScope.resolve(
        role=profile.role,
        hierarchy=hierarchy,
        unit_id=profile.unit_id,
        province_id=profile.province_id,
        region_id=profile.health_region_id,
    )


def report_rules(*, role: str, report_type: str) -> Optional[DrillRules]:
    row = ReportAccessPolicy.objects.filter(role=role, report_type=report_type).first()
    return DrillRules.from_row(row) if row else None


def access_policy_for(user, *, report_type: Optional[str] = None, hierarchy: Optional[Hierarchy] = None) -> AccessPolicy:
    hierarchy = hierarchy or load_hierarchy()
    scope = actor_scope_for_user(user, hierarchy=hierarchy)
    rules = report_rules(role=scope.role, report_type=report_type) if report_type else None
    return AccessPolicy(scope, hierarchy, rules)
