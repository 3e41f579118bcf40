# ctam_core/reports/selectors.py
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

from ctam_core.assessments.models import APPROVED_STATUSES, Assessment, AssessmentItem, ImpactScore
from ctam_core.assessments.selectors import active_categories
from ctam_core.budgets.selectors import budget_facts
from ctam_core.iam.access import AccessPolicy, DrillLevel
from ctam_core.iam.models import ReportType
from ctam_core.reports.aggregation import (
    AssessmentFact,
    FactRecord,
    average_over_assessed,
    fold,
    latest_per_unit,
)
from ctam_core.reports.drilldown import DrillState, ReportRow, can_go_back, rows_for
from ctam_core.scoring.calculator import impact_level, normalize_impact_total


@dataclass(frozen=True)
class Report:
    report_type: str
    fiscal_year: Optional[int]
    state: DrillState
    rows: list[ReportRow]
    total: Decimal
    unit_count: int
    average: Optional[Decimal]
    extra: dict = field(default_factory=dict)

    @property
    def can_go_back(self) -> bool:
        return can_go_back(self.state)


def _category_names() -> dict[UUID, str]:
    return {c.id: c.name_en for c in active_categories()}


def _units_in_view(state: DrillState, policy: AccessPolicy) -> list[UUID]:
    """Units the current view summarizes, already scope-filtered."""
    h = policy.hierarchy
    if state.level == DrillLevel.CATEGORY:
        candidates = [state.unit_id]
    elif state.level == DrillLevel.UNIT:
        candidates = [u.id for u in h.units_in(state.province_id)]
    elif state.level == DrillLevel.PROVINCE:
        candidates = [u.id for p in h.provinces_in(state.region_id) for u in h.units_in(p.id)]
    else:
        candidates = h.unit_ids()
    return [uid for uid in candidates if uid is not None and policy.can_report_on_unit(uid)]


# -------------------------------------------------------------------
# Facts
# -------------------------------------------------------------------

def approved_assessment_facts(*, fiscal_year: Optional[int] = None) -> list[AssessmentFact]:
    """
    Only approved cycles count towards official statistics. Legacy impact
    totals are normalized onto the percentage scale here, before any fold.
    """
    qs = Assessment.objects.filter(status__in=APPROVED_STATUSES)
    if fiscal_year:
        qs = qs.filter(fiscal_year=fiscal_year)

    impact_by_assessment = {
        row["assessment_id"]: normalize_impact_total(row["total_score"], row["scale"])
        for row in ImpactScore.objects.filter(assessment__in=qs).values("assessment_id", "total_score", "scale")
    }

    return [
        AssessmentFact(
            id=a["id"],
            unit_id=a["unit_id"],
            fiscal_year=a["fiscal_year"],
            assessment_period=a["assessment_period"],
            created_at=a["created_at"],
            status=a["status"],
            total_score=a["total_score"],
            impact_percent=impact_by_assessment.get(a["id"]),
        )
        for a in qs.values("id", "unit_id", "fiscal_year", "assessment_period", "created_at", "status", "total_score")
    ]


# -------------------------------------------------------------------
# Reports
# -------------------------------------------------------------------

def budget_report(*, policy: AccessPolicy, state: DrillState, fiscal_year: Optional[int]) -> Report:
    records = [
        FactRecord(unit_id=r["unit_id"], value=r["amount"], category_id=r["category_id"])
        for r in budget_facts(fiscal_year=fiscal_year)
    ]
    rollup = fold(records, policy.hierarchy, include=policy.can_report_on_unit)
    rows = rows_for(state, rollup, policy, category_names=_category_names())

    covered = rollup.overall
    view_units = set(_units_in_view(state, policy))
    view_total = sum((rollup.unit(uid).total for uid in view_units), Decimal("0"))
    view_count = len(view_units & covered.unit_ids)

    return Report(
        report_type=ReportType.BUDGET,
        fiscal_year=fiscal_year,
        state=state,
        rows=rows,
        total=view_total,
        unit_count=view_count,
        average=(view_total / view_count).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP) if view_count else None,
    )


def score_report(*, policy: AccessPolicy, state: DrillState, fiscal_year: Optional[int]) -> Report:
    latest = latest_per_unit(approved_assessment_facts(fiscal_year=fiscal_year))

    records = [
        FactRecord(unit_id=f.unit_id, value=f.total_score)
        for f in latest.values()
        if f.total_score is not None
    ]
    if state.level == DrillLevel.CATEGORY:
        latest_ids = [f.id for f in latest.values()]
        records += [
            FactRecord(unit_id=row["assessment__unit_id"], value=row["score"], category_id=row["category_id"])
            for row in AssessmentItem.objects.filter(
                assessment_id__in=latest_ids,
                assessment__unit_id=state.unit_id,
            ).values("assessment__unit_id", "category_id", "score")
        ]

    rollup = fold(records, policy.hierarchy, include=policy.can_report_on_unit)
    rows = rows_for(state, rollup, policy, category_names=_category_names())

    scores = {uid: f.total_score for uid, f in latest.items()}
    avg = average_over_assessed(scores, _units_in_view(state, policy))

    return Report(
        report_type=ReportType.QUANTITATIVE,
        fiscal_year=fiscal_year,
        state=state,
        rows=rows,
        total=avg.total,
        unit_count=avg.assessed,
        average=avg.value,
        extra={"not_assessed": avg.not_assessed},
    )


def impact_report(*, policy: AccessPolicy, state: DrillState, fiscal_year: Optional[int]) -> Report:
    latest = latest_per_unit(approved_assessment_facts(fiscal_year=fiscal_year))
    percents = {uid: f.impact_percent for uid, f in latest.items()}

    records = [FactRecord(unit_id=uid, value=p) for uid, p in percents.items() if p is not None]
    rollup = fold(records, policy.hierarchy, include=policy.can_report_on_unit)
    rows = rows_for(state, rollup, policy)

    view_units = _units_in_view(state, policy)
    avg = average_over_assessed(percents, view_units)

    levels = Counter(impact_level(percents.get(uid)) for uid in view_units)
    distribution = {str(level): levels.get(level, 0) for level in (5, 4, 3, 2, 1)}
    distribution["not_assessed"] = levels.get(None, 0)

    return Report(
        report_type=ReportType.IMPACT,
        fiscal_year=fiscal_year,
        state=state,
        rows=rows,
        total=avg.total,
        unit_count=avg.assessed,
        average=avg.value,
        extra={
            "not_assessed": avg.not_assessed,
            "level": impact_level(avg.value),
            "distribution": distribution,
        },
    )


def status_overview(*, policy: AccessPolicy, fiscal_year: Optional[int]) -> dict:
    """
    Assessment counts per status over every visible unit (all statuses,
    not only approved ones); for dashboards, not official statistics.
    """
    unit_ids = policy.visible_unit_ids()
    qs = Assessment.objects.filter(unit_id__in=unit_ids)
    if fiscal_year:
        qs = qs.filter(fiscal_year=fiscal_year)

    counts = Counter(qs.values_list("status", flat=True))
    with_assessment = set(qs.values_list("unit_id", flat=True))

    return {
        "fiscal_year": fiscal_year,
        "units_total": len(unit_ids),
        "units_with_assessment": len(with_assessment),
        "by_status": dict(counts),
    }
