# ctam_core/scoring/calculator.py
"""
Deterministic scoring rules for one assessment cycle.

Everything here is a pure function of its arguments: no ORM access, no
clock, no randomness. Services call these on every commit and persist the
result next to the raw answers.

Scales
------
- Impact (system of record): 0-100 percentage, the sum of two 0-50
  components (incident recovery, data breach).
- Impact (legacy rows): 0-15 penalty scale, `max(0, 15 + penalties)`.
  Converted with `normalize_impact_total` before any aggregation.
- Qualitative: 0-15 (leadership <= 10, sustainability <= 10).
- Composite assessment total: 10 points = quantitative 7 + qualitative 1.5
  + impact 1.5.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from django.db import models

TWO_PLACES = Decimal("0.01")


def _q(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


# -------------------------------------------------------------------
# Impact score
# -------------------------------------------------------------------

class BreachSeverity(models.TextChoices):
    NONE = "none", "None"
    LOW = "low", "Low (1-100 records)"
    MEDIUM = "medium", "Medium (101-1,000 records)"
    HIGH = "high", "High (1,001-10,000 records)"
    CRITICAL = "critical", "Critical (>10,000 records)"


class ImpactScale(models.TextChoices):
    PERCENT = "percent_100", "Percentage (0-100)"
    LEGACY = "legacy_15", "Legacy penalty (0-15)"


# (max recovery hours inclusive, penalty)
INCIDENT_PENALTY_STEPS: tuple[tuple[int, int], ...] = ((4, -2), (24, -5), (72, -8))
INCIDENT_PENALTY_WORST = -15

BREACH_PENALTIES: dict[str, int] = {
    BreachSeverity.NONE: 0,
    BreachSeverity.LOW: -2,
    BreachSeverity.MEDIUM: -5,
    BreachSeverity.HIGH: -8,
    BreachSeverity.CRITICAL: -15,
}

LEGACY_MAX = 15
PERCENT_MAX = Decimal("100")
COMPONENT_MAX = Decimal("50")


@dataclass(frozen=True)
class ImpactInput:
    had_incident: bool = False
    recovery_hours: Optional[int] = None
    had_breach: bool = False
    breach_severity: str = BreachSeverity.NONE


@dataclass(frozen=True)
class ImpactResult:
    incident_penalty: int
    breach_penalty: int
    incident_score: Decimal  # 0-50 component
    breach_score: Decimal  # 0-50 component
    total: Decimal  # 0-100
    legacy_total: int  # 0-15, kept for side-by-side display


def incident_penalty(*, had_incident: bool, recovery_hours: Optional[int]) -> int:
    """
    Step function of recovery time. 0h with an incident scores in the
    <=4h bucket; only had_incident=False means "no incident".
    """
    if not had_incident:
        return 0

    hours = 0 if recovery_hours is None else int(recovery_hours)
    if hours < 0:
        raise ValueError("recovery_hours must be >= 0")

    for limit, penalty in INCIDENT_PENALTY_STEPS:
        if hours <= limit:
            return penalty
    return INCIDENT_PENALTY_WORST


def breach_penalty(*, had_breach: bool, severity: Optional[str]) -> int:
    if not had_breach:
        return 0
    try:
        return BREACH_PENALTIES[severity or BreachSeverity.NONE]
    except KeyError:
        raise ValueError(f"Unknown breach severity: {severity!r}")


def legacy_impact_total(*, incident: int, breach: int) -> int:
    return max(0, LEGACY_MAX + incident + breach)


def percent_component(penalty: int) -> Decimal:
    """
    Map a penalty option onto its 0-50 component. No adverse event keeps
    the component at its maximum; the worst option zeroes it.
    """
    remaining = Decimal(LEGACY_MAX + penalty) / Decimal(LEGACY_MAX)
    return _q(COMPONENT_MAX * max(Decimal(0), remaining))


def impact_score(data: ImpactInput) -> ImpactResult:
    ip = incident_penalty(had_incident=data.had_incident, recovery_hours=data.recovery_hours)
    bp = breach_penalty(had_breach=data.had_breach, severity=data.breach_severity)

    incident_component = percent_component(ip)
    breach_component = percent_component(bp)

    return ImpactResult(
        incident_penalty=ip,
        breach_penalty=bp,
        incident_score=incident_component,
        breach_score=breach_component,
        total=incident_component + breach_component,
        legacy_total=legacy_impact_total(incident=ip, breach=bp),
    )


def normalize_impact_total(total, scale: str) -> Decimal:
    """
    Any stored impact total -> canonical 0-100 percentage.
    """
    value = Decimal(str(total))
    if scale == ImpactScale.LEGACY:
        value = value * PERCENT_MAX / Decimal(LEGACY_MAX)
    elif scale != ImpactScale.PERCENT:
        raise ValueError(f"Unknown impact scale: {scale!r}")
    return _q(min(max(value, Decimal(0)), PERCENT_MAX))


# Impact level bands on the percentage scale (lower bound inclusive)
IMPACT_LEVEL_BANDS: tuple[tuple[Decimal, int], ...] = (
    (Decimal("86"), 5),
    (Decimal("71"), 4),
    (Decimal("56"), 3),
    (Decimal("41"), 2),
)


def impact_level(percent) -> Optional[int]:
    """1..5, or None for "not assessed"."""
    if percent is None:
        return None
    value = Decimal(str(percent))
    for floor, level in IMPACT_LEVEL_BANDS:
        if value >= floor:
            return level
    return 1


# -------------------------------------------------------------------
# Qualitative score
# -------------------------------------------------------------------

@dataclass(frozen=True)
class QualitativeInput:
    has_ciso: bool = False
    has_dpo: bool = False
    has_it_security_team: bool = False
    annual_training_count: int = 0
    uses_freeware: bool = False
    uses_opensource: bool = False


@dataclass(frozen=True)
class QualitativeResult:
    leadership_score: int
    sustainable_score: int
    total: int


def qualitative_score(data: QualitativeInput) -> QualitativeResult:
    leadership = 0
    if data.has_ciso:
        leadership += 3
    if data.has_dpo:
        leadership += 3
    if data.has_it_security_team:
        leadership += 4

    sustainable = 0
    trainings = max(0, int(data.annual_training_count or 0))
    if trainings >= 4:
        sustainable += 5
    elif trainings >= 2:
        sustainable += 3
    elif trainings >= 1:
        sustainable += 1

    if not data.uses_freeware and not data.uses_opensource:
        sustainable += 5
    elif not data.uses_freeware:
        sustainable += 3

    return QualitativeResult(
        leadership_score=min(leadership, 10),
        sustainable_score=min(sustainable, 10),
        total=min(leadership + sustainable, 15),
    )


# -------------------------------------------------------------------
# Quantitative + composite score
# -------------------------------------------------------------------

class ItemStatus(models.TextChoices):
    PASS = "pass", "Pass"
    PARTIAL = "partial", "Partial"
    FAIL = "fail", "Fail"
    NOT_APPLICABLE = "not_applicable", "Not applicable"


ITEM_STATUS_SCORES: dict[str, Decimal] = {
    ItemStatus.PASS: Decimal("1"),
    ItemStatus.PARTIAL: Decimal("0.5"),
    ItemStatus.FAIL: Decimal("0"),
}

QUANTITATIVE_MAX = Decimal("7")
QUALITATIVE_MAX = Decimal("1.5")
IMPACT_MAX = Decimal("1.5")
TOTAL_MAX = Decimal("10")

assert QUANTITATIVE_MAX + QUALITATIVE_MAX + IMPACT_MAX == TOTAL_MAX


def item_score(status: str) -> Optional[Decimal]:
    """None for not-applicable items (excluded from the denominator)."""
    if status == ItemStatus.NOT_APPLICABLE:
        return None
    try:
        return ITEM_STATUS_SCORES[status]
    except KeyError:
        raise ValueError(f"Unknown item status: {status!r}")


@dataclass(frozen=True)
class ItemInput:
    status: str
    weight: Decimal = Decimal("1")


def quantitative_score(items: Iterable[ItemInput]) -> Decimal:
    """
    Weighted share of applicable items, scaled to QUANTITATIVE_MAX.
    No applicable items -> 0.
    """
    earned = Decimal(0)
    possible = Decimal(0)
    for item in items:
        score = item_score(item.status)
        if score is None:
            continue
        weight = Decimal(str(item.weight))
        earned += weight * score
        possible += weight

    if possible == 0:
        return Decimal("0.00")
    return _q(QUANTITATIVE_MAX * earned / possible)


def qualitative_points(total: Optional[int]) -> Decimal:
    if total is None:
        return Decimal("0.00")
    return _q(min(Decimal(total) / Decimal(10), QUALITATIVE_MAX))


def impact_points(percent: Optional[Decimal]) -> Decimal:
    """
    No impact record yet counts as "no adverse events" (full marks).
    """
    if percent is None:
        return IMPACT_MAX
    return _q(IMPACT_MAX * Decimal(str(percent)) / PERCENT_MAX)


@dataclass(frozen=True)
class CompositeScore:
    quantitative: Decimal
    qualitative: Decimal
    impact: Decimal
    total: Decimal


def composite_score(
    *,
    items: Iterable[ItemInput],
    qualitative_total: Optional[int],
    impact_percent: Optional[Decimal],
) -> CompositeScore:
    quant = quantitative_score(items)
    qual = qualitative_points(qualitative_total)
    imp = impact_points(impact_percent)
    return CompositeScore(quantitative=quant, qualitative=qual, impact=imp, total=_q(quant + qual + imp))
