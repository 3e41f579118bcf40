# ctam_core/reports/aggregation.py
"""
Hierarchical roll-ups for reports.

`fold` turns flat per-unit facts into immutable region/province/unit/
unit-category buckets using the hierarchy snapshot. Each bucket keeps the
set of contributing unit ids next to its running total so "units covered"
can never double count a unit that contributes several facts.

Nothing here touches the database; selectors load facts and hand them in.
Every report refresh folds from scratch.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional, TypeVar
from uuid import UUID

from ctam_core.organizations.hierarchy import Hierarchy


@dataclass(frozen=True)
class FactRecord:
    unit_id: UUID
    value: Decimal
    category_id: Optional[UUID] = None


@dataclass(frozen=True)
class Bucket:
    total: Decimal = Decimal("0")
    unit_ids: frozenset = frozenset()

    @property
    def unit_count(self) -> int:
        return len(self.unit_ids)

    @property
    def average(self) -> Optional[Decimal]:
        """total / units covered; None when no unit contributed."""
        if not self.unit_ids:
            return None
        return (self.total / Decimal(len(self.unit_ids))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


EMPTY_BUCKET = Bucket()


@dataclass(frozen=True)
class Rollup:
    by_region: Mapping[UUID, Bucket]
    by_province: Mapping[UUID, Bucket]
    by_unit: Mapping[UUID, Bucket]
    by_unit_category: Mapping[tuple, Bucket]
    overall: Bucket

    def region(self, region_id: UUID) -> Bucket:
        return self.by_region.get(region_id, EMPTY_BUCKET)

    def province(self, province_id: UUID) -> Bucket:
        return self.by_province.get(province_id, EMPTY_BUCKET)

    def unit(self, unit_id: UUID) -> Bucket:
        return self.by_unit.get(unit_id, EMPTY_BUCKET)

    def unit_category(self, unit_id: UUID, category_id: UUID) -> Bucket:
        return self.by_unit_category.get((unit_id, category_id), EMPTY_BUCKET)


class _Acc:
    __slots__ = ("total", "units")

    def __init__(self) -> None:
        self.total = Decimal("0")
        self.units: set = set()

    def add(self, unit_id: UUID, value: Decimal) -> None:
        self.total += value
        self.units.add(unit_id)

    def freeze(self) -> Bucket:
        return Bucket(total=self.total, unit_ids=frozenset(self.units))


def _freeze(acc: dict) -> Mapping:
    return MappingProxyType({k: v.freeze() for k, v in acc.items()})


def fold(
    records: Iterable[FactRecord],
    hierarchy: Hierarchy,
    *,
    include: Optional[Callable[[UUID], bool]] = None,
) -> Rollup:
    """
    Facts for units outside `include` or missing from the hierarchy
    (inactive, deleted) are dropped before any bucket sees them.
    """
    regions: dict[UUID, _Acc] = {}
    provinces: dict[UUID, _Acc] = {}
    units: dict[UUID, _Acc] = {}
    unit_categories: dict[tuple, _Acc] = {}
    overall = _Acc()

    for r in records:
        if include is not None and not include(r.unit_id):
            continue

        province_id = hierarchy.province_of_unit(r.unit_id)
        region_id = hierarchy.region_of_province(province_id) if province_id else None
        if province_id is None or region_id is None:
            continue

        value = Decimal(str(r.value))
        regions.setdefault(region_id, _Acc()).add(r.unit_id, value)
        provinces.setdefault(province_id, _Acc()).add(r.unit_id, value)
        units.setdefault(r.unit_id, _Acc()).add(r.unit_id, value)
        if r.category_id is not None:
            unit_categories.setdefault((r.unit_id, r.category_id), _Acc()).add(r.unit_id, value)
        overall.add(r.unit_id, value)

    return Rollup(
        by_region=_freeze(regions),
        by_province=_freeze(provinces),
        by_unit=_freeze(units),
        by_unit_category=_freeze(unit_categories),
        overall=overall.freeze(),
    )


# -------------------------------------------------------------------
# Latest assessment per unit
# -------------------------------------------------------------------

@dataclass(frozen=True)
class AssessmentFact:
    id: UUID
    unit_id: UUID
    fiscal_year: int
    assessment_period: str
    created_at: Optional[datetime]
    status: str
    total_score: Optional[Decimal] = None
    impact_percent: Optional[Decimal] = None


_PERIOD_NUMBER = re.compile(r"\d+")


def period_number(period: Optional[str]) -> Optional[int]:
    if not period:
        return None
    m = _PERIOD_NUMBER.search(period)
    return int(m.group()) if m else None


def is_newer(a: AssessmentFact, b: AssessmentFact) -> bool:
    """
    Recency: fiscal year, then numeric period, then period text, then
    creation time. Ties keep the row seen first.
    """
    if a.fiscal_year != b.fiscal_year:
        return a.fiscal_year > b.fiscal_year

    ap, bp = period_number(a.assessment_period), period_number(b.assessment_period)
    if ap is not None and bp is not None and ap != bp:
        return ap > bp

    if a.assessment_period and b.assessment_period and a.assessment_period != b.assessment_period:
        return a.assessment_period > b.assessment_period

    if a.created_at and b.created_at and a.created_at != b.created_at:
        return a.created_at > b.created_at

    return False


F = TypeVar("F", bound=AssessmentFact)


def latest_per_unit(facts: Iterable[F]) -> dict[UUID, F]:
    latest: dict[UUID, F] = {}
    for f in facts:
        current = latest.get(f.unit_id)
        if current is None or is_newer(f, current):
            latest[f.unit_id] = f
    return latest


# -------------------------------------------------------------------
# Averages over assessed units
# -------------------------------------------------------------------

@dataclass(frozen=True)
class Average:
    total: Decimal
    assessed: int
    not_assessed: int

    @property
    def value(self) -> Optional[Decimal]:
        if self.assessed == 0:
            return None
        return (self.total / Decimal(self.assessed)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def average_over_assessed(values_by_unit: Mapping[UUID, Optional[Decimal]], unit_ids: Iterable[UUID]) -> Average:
    """
    Units with no value are left out of numerator and denominator alike
    and only counted as not assessed.
    """
    total = Decimal("0")
    assessed = 0
    not_assessed = 0
    for uid in unit_ids:
        v = values_by_unit.get(uid)
        if v is None:
            not_assessed += 1
            continue
        total += Decimal(str(v))
        assessed += 1
    return Average(total=total, assessed=assessed, not_assessed=not_assessed)
