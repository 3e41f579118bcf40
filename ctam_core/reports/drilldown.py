# ctam_core/reports/drilldown.py
from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Mapping, Optional
from uuid import UUID

from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from ctam_core.iam.access import DRILL_ORDER, AccessPolicy, DrillLevel
from ctam_core.reports.aggregation import Bucket, Rollup


@dataclass(frozen=True)
class DrillState:
    """
    Where a report view currently is. Transitions are pure functions below;
    each returns a new state and never mutates the old one.
    """
    level: DrillLevel
    pinned: DrillLevel
    region_id: Optional[UUID] = None
    province_id: Optional[UUID] = None
    unit_id: Optional[UUID] = None


def _depth(level: DrillLevel) -> int:
    return DRILL_ORDER.index(level)


def initial_state(policy: AccessPolicy) -> DrillState:
    pinned = policy.pinned_level()
    scope = policy.scope

    if pinned == DrillLevel.REGION:
        return DrillState(level=pinned, pinned=pinned)
    if pinned == DrillLevel.PROVINCE:
        return DrillState(level=pinned, pinned=pinned, region_id=scope.region_id)
    if pinned == DrillLevel.UNIT:
        return DrillState(level=pinned, pinned=pinned, region_id=scope.region_id, province_id=scope.province_id)
    return DrillState(
        level=pinned,
        pinned=pinned,
        region_id=scope.region_id,
        province_id=scope.province_id,
        unit_id=scope.unit_id,
    )


def _require_level(state: DrillState, level: DrillLevel) -> None:
    if state.level != level:
        raise ValidationError({"detail": f"Cannot drill from the {state.level.value} view here."})


def enter_region(state: DrillState, policy: AccessPolicy, region_id: UUID) -> DrillState:
    _require_level(state, DrillLevel.REGION)
    if policy.hierarchy.region(region_id) is None:
        raise NotFound("Health region not found.")
    if not policy.can_drill_to_province(region_id):
        raise PermissionDenied("You cannot view provinces of this health region.")
    return replace(state, level=DrillLevel.PROVINCE, region_id=region_id)


def enter_province(state: DrillState, policy: AccessPolicy, province_id: UUID) -> DrillState:
    _require_level(state, DrillLevel.PROVINCE)
    if policy.hierarchy.region_of_province(province_id) != state.region_id:
        raise NotFound("Province not found in this health region.")
    if not policy.can_drill_to_unit(province_id):
        raise PermissionDenied("You cannot view units of this province.")
    return replace(state, level=DrillLevel.UNIT, province_id=province_id)


def enter_unit(state: DrillState, policy: AccessPolicy, unit_id: UUID) -> DrillState:
    _require_level(state, DrillLevel.UNIT)
    if policy.hierarchy.province_of_unit(unit_id) != state.province_id:
        raise NotFound("Unit not found in this province.")
    if not policy.can_report_on_unit(unit_id):
        raise PermissionDenied("You cannot view this unit.")
    return replace(state, level=DrillLevel.CATEGORY, unit_id=unit_id)


def can_go_back(state: DrillState) -> bool:
    return _depth(state.level) > _depth(state.pinned)


def back(state: DrillState) -> DrillState:
    """Undo exactly one level; refused at the pinned level."""
    if not can_go_back(state):
        raise PermissionDenied("Already at the highest level available to your role.")

    if state.level == DrillLevel.CATEGORY:
        return replace(state, level=DrillLevel.UNIT, unit_id=None)
    if state.level == DrillLevel.UNIT:
        return replace(state, level=DrillLevel.PROVINCE, province_id=None)
    return replace(state, level=DrillLevel.REGION, region_id=None)


def navigate(
    policy: AccessPolicy,
    *,
    region_id: Optional[UUID] = None,
    province_id: Optional[UUID] = None,
    unit_id: Optional[UUID] = None,
) -> DrillState:
    """
    Replay a drill path from the role's initial state. Ids at or above the
    pinned level must match the caller's own scope.
    """
    state = initial_state(policy)

    steps = (
        (region_id, DrillLevel.REGION, "region_id", enter_region),
        (province_id, DrillLevel.PROVINCE, "province_id", enter_province),
        (unit_id, DrillLevel.UNIT, "unit_id", enter_unit),
    )
    for target, level, attr, enter in steps:
        if target is None:
            continue
        if state.level == level:
            state = enter(state, policy, target)
        elif _depth(state.level) > _depth(level) and getattr(state, attr) == target:
            continue
        elif _depth(state.level) > _depth(level):
            raise PermissionDenied("That part of the hierarchy is outside your scope.")
        else:
            raise ValidationError({"detail": f"Select a {state.level.value} first."})
    return state


# -------------------------------------------------------------------
# Rows for the current level
# -------------------------------------------------------------------

@dataclass(frozen=True)
class ReportRow:
    id: UUID
    name: str
    total: Decimal
    unit_count: int
    average: Optional[Decimal]
    drillable: bool


def _row(id_: UUID, name: str, bucket: Bucket, drillable: bool) -> ReportRow:
    return ReportRow(
        id=id_,
        name=name,
        total=bucket.total,
        unit_count=bucket.unit_count,
        average=bucket.average,
        drillable=drillable,
    )


def rows_for(
    state: DrillState,
    rollup: Rollup,
    policy: AccessPolicy,
    *,
    category_names: Optional[Mapping[UUID, str]] = None,
) -> list[ReportRow]:
    h = policy.hierarchy

    if state.level == DrillLevel.REGION:
        return [
            _row(r.id, r.name, rollup.region(r.id), policy.can_drill_to_province(r.id))
            for r in h.regions()
            if policy.rules.view_region or policy.can_see_region(r.id)
        ]

    if state.level == DrillLevel.PROVINCE:
        return [
            _row(p.id, p.name, rollup.province(p.id), policy.can_drill_to_unit(p.id))
            for p in h.provinces_in(state.region_id)
        ]

    if state.level == DrillLevel.UNIT:
        return [
            _row(u.id, u.name, rollup.unit(u.id), True)
            for u in h.units_in(state.province_id)
            if policy.can_report_on_unit(u.id)
        ]

    names = category_names or {}
    return [
        _row(cid, name, rollup.unit_category(state.unit_id, cid), False)
        for cid, name in names.items()
    ]
