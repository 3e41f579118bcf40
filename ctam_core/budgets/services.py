# ctam_core/budgets/services.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from django.db import transaction
from rest_framework.exceptions import PermissionDenied, ValidationError

from ctam_core.assessments.models import Category
from ctam_core.budgets.models import BudgetRecord
from ctam_core.iam.access import AccessPolicy

logger = logging.getLogger(__name__)


class BudgetService:
    @staticmethod
    @transaction.atomic
    def replace_for_unit(
        *,
        policy: AccessPolicy,
        actor,
        unit_id: UUID,
        fiscal_year: int,
        lines: Iterable[dict[str, Any]],
    ) -> list[BudgetRecord]:
        """
        Delete-then-insert of the unit's full category set for `fiscal_year`.

        Categories missing from `lines` end up with no record: callers always
        send the complete set. Both steps share one transaction, so readers
        never see the unit with zero rows half-way through.
        """
        if not policy.can_manage_unit(unit_id):
            raise PermissionDenied("You cannot record budgets for this unit.")

        lines = list(lines)
        seen: set[UUID] = set()
        for line in lines:
            cid = line["category"]
            if cid in seen:
                raise ValidationError({"lines": f"Category {cid} listed more than once."})
            seen.add(cid)
            if Decimal(str(line["amount"])) < 0:
                raise ValidationError({"lines": "Budget amounts cannot be negative."})

        known = set(Category.objects.filter(id__in=seen).values_list("id", flat=True))
        unknown = seen - known
        if unknown:
            raise ValidationError({"lines": f"Unknown categories: {sorted(str(u) for u in unknown)}"})

        deleted, _ = BudgetRecord.objects.filter(unit_id=unit_id, fiscal_year=fiscal_year).delete()

        records = BudgetRecord.objects.bulk_create(
            [
                BudgetRecord(
                    unit_id=unit_id,
                    fiscal_year=fiscal_year,
                    category_id=line["category"],
                    amount=Decimal(str(line["amount"])),
                    created_by=actor,
                )
                for line in lines
            ]
        )

        logger.info(
            "Budget replaced unit=%s fy=%s deleted=%d inserted=%d by user=%s",
            unit_id,
            fiscal_year,
            deleted,
            len(records),
            actor.id,
        )
        return records
