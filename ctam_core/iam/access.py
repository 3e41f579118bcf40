# ctam_core/iam/access.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

from ctam_core.iam.models import REGION_ROLES, UNIT_ROLES, DrillScope, Role
from ctam_core.organizations.hierarchy import Hierarchy


class DrillLevel(str, Enum):
    REGION = "region"
    PROVINCE = "province"
    UNIT = "unit"
    CATEGORY = "category"


DRILL_ORDER = (DrillLevel.REGION, DrillLevel.PROVINCE, DrillLevel.UNIT, DrillLevel.CATEGORY)


@dataclass(frozen=True)
class ActorScope:
    """
    Role + the organizational anchor it applies to. Province and region are
    filled in from the hierarchy for narrower roles so callers never have to
    walk the parent chain themselves.
    """
    role: Role
    unit_id: Optional[UUID] = None
    province_id: Optional[UUID] = None
    region_id: Optional[UUID] = None

    @classmethod
    def resolve(
        cls,
        *,
        role: str,
        hierarchy: Hierarchy,
        unit_id: Optional[UUID] = None,
        province_id: Optional[UUID] = None,
        region_id: Optional[UUID] = None,
    ) -> "ActorScope":
        role = Role(role)
        if role in UNIT_ROLES and unit_id:
            province_id = hierarchy.province_of_unit(unit_id)
        if province_id and not region_id:
            region_id = hierarchy.region_of_province(province_id)
        return cls(role=role, unit_id=unit_id, province_id=province_id, region_id=region_id)


@dataclass(frozen=True)
class DrillRules:
    view_region: bool
    drill_to_province: str
    drill_to_unit: str
    view_same_province_units: bool = False

    @classmethod
    def from_row(cls, row) -> "DrillRules":
        return cls(
            view_region=row.view_region,
            drill_to_province=row.drill_to_province,
            drill_to_unit=row.drill_to_unit,
            view_same_province_units=row.view_same_province_units,
        )


# Applied when no ReportAccessPolicy row exists for (role, report_type)
ROLE_DEFAULT_RULES: dict[Role, DrillRules] = {
    Role.CENTRAL_ADMIN: DrillRules(True, DrillScope.ALL, DrillScope.ALL),
    Role.REGIONAL: DrillRules(True, DrillScope.OWN_REGION, DrillScope.OWN_REGION),
    Role.SUPERVISOR: DrillRules(True, DrillScope.OWN_REGION, DrillScope.OWN_REGION),
    Role.PROVINCIAL: DrillRules(True, DrillScope.OWN_REGION, DrillScope.OWN_PROVINCE),
    Role.HOSPITAL_IT: DrillRules(False, DrillScope.OWN_REGION, DrillScope.OWN_PROVINCE),
    Role.HEALTH_OFFICE: DrillRules(False, DrillScope.OWN_REGION, DrillScope.OWN_PROVINCE),
}


class AccessPolicy:
    """
    Single authority for "who may see or touch which unit".

    Pure: everything is answered from the actor scope, the hierarchy snapshot
    and the drill rules. Callers load those once and ask as often as needed.
    """

    def __init__(self, scope: ActorScope, hierarchy: Hierarchy, rules: Optional[DrillRules] = None) -> None:
        self.scope = scope
        self.hierarchy = hierarchy
        self.rules = rules or ROLE_DEFAULT_RULES[scope.role]

    @property
    def role(self) -> Role:
        return self.scope.role

    def has_role(self, *roles: str) -> bool:
        return self.scope.role in roles

    # -------------------------
    # Data visibility
    # -------------------------
    def can_see_unit(self, unit_id: UUID) -> bool:
        role = self.scope.role
        if role == Role.CENTRAL_ADMIN:
            return True
        if role in REGION_ROLES:
            return self.scope.region_id is not None and self.hierarchy.region_of_unit(unit_id) == self.scope.region_id
        if role == Role.PROVINCIAL:
            return self.scope.province_id is not None and self.hierarchy.province_of_unit(unit_id) == self.scope.province_id
        if role in UNIT_ROLES:
            return self.scope.unit_id is not None and unit_id == self.scope.unit_id
        return False

    def visible_unit_ids(self) -> set[UUID]:
        return {uid for uid in self.hierarchy.unit_ids() if self.can_see_unit(uid)}

    def can_see_province(self, province_id: UUID) -> bool:
        role = self.scope.role
        if role == Role.CENTRAL_ADMIN:
            return True
        if role in REGION_ROLES:
            return self.hierarchy.region_of_province(province_id) == self.scope.region_id
        return province_id == self.scope.province_id

    def can_see_region(self, region_id: UUID) -> bool:
        return self.scope.role == Role.CENTRAL_ADMIN or region_id == self.scope.region_id

    # -------------------------
    # Write / review capabilities
    # -------------------------
    def can_manage_unit(self, unit_id: UUID) -> bool:
        """Create/edit assessments, upload evidence, record budgets."""
        return self.has_role(Role.HOSPITAL_IT, Role.HEALTH_OFFICE, Role.CENTRAL_ADMIN) and self.can_see_unit(unit_id)

    def can_review_unit(self, unit_id: UUID) -> bool:
        return self.has_role(Role.PROVINCIAL, Role.REGIONAL, Role.CENTRAL_ADMIN) and self.can_see_unit(unit_id)

    # -------------------------
    # Report scope + drill gates
    # -------------------------
    def can_report_on_unit(self, unit_id: UUID) -> bool:
        if self.can_see_unit(unit_id):
            return True
        if self.scope.role in UNIT_ROLES and self.rules.view_same_province_units:
            return self.hierarchy.province_of_unit(unit_id) == self.scope.province_id
        return False

    def can_drill_to_province(self, region_id: UUID) -> bool:
        mode = self.rules.drill_to_province
        if mode == DrillScope.ALL:
            return True
        if mode == DrillScope.OWN_REGION:
            return self.scope.region_id is not None and region_id == self.scope.region_id
        return False

    def can_drill_to_unit(self, province_id: UUID) -> bool:
        mode = self.rules.drill_to_unit
        if mode == DrillScope.ALL:
            return True
        if mode == DrillScope.OWN_PROVINCE:
            return self.scope.province_id is not None and province_id == self.scope.province_id
        if mode == DrillScope.OWN_REGION:
            return (
                self.scope.region_id is not None
                and self.hierarchy.region_of_province(province_id) == self.scope.region_id
            )
        return False

    def pinned_level(self) -> DrillLevel:
        """
        Highest level the role may navigate to; "back" stops here.

        Facility roles start at their own categories unless the report rules
        open more: sibling units put them on their province's unit view,
        region rows on the region view (drill gates still apply below).
        """
        role = self.scope.role
        if role == Role.CENTRAL_ADMIN:
            return DrillLevel.REGION
        if role in REGION_ROLES:
            return DrillLevel.PROVINCE
        if role == Role.PROVINCIAL:
            return DrillLevel.UNIT
        if self.rules.view_same_province_units:
            return DrillLevel.UNIT
        if self.rules.view_region:
            return DrillLevel.REGION
        return DrillLevel.CATEGORY
