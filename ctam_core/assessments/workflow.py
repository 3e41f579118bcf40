# ctam_core/assessments/workflow.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db import models
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from ctam_core.assessments.models import ApprovalHistory, Assessment, AssessmentStatus
from ctam_core.common.api.exceptions import ConflictError, ReconciliationError
from ctam_core.iam.access import AccessPolicy
from ctam_core.iam.models import Role

logger = logging.getLogger(__name__)


class WorkflowAction(models.TextChoices):
    SUBMIT = "submit", "Submit"
    APPROVE_PROVINCIAL = "approve_provincial", "Provincial approve"
    RETURN_PROVINCIAL = "return_provincial", "Provincial return"
    APPROVE_REGIONAL = "approve_regional", "Regional approve"
    RETURN_REGIONAL = "return_regional", "Regional return"
    COMPLETE = "complete", "Complete"


@dataclass(frozen=True)
class Transition:
    action: str
    roles: frozenset
    from_statuses: tuple[str, ...]
    to_status: str
    requires_comment: bool = False


TRANSITIONS: dict[str, Transition] = {
    t.action: t
    for t in (
        Transition(
            action=WorkflowAction.SUBMIT,
            roles=frozenset({Role.HOSPITAL_IT, Role.HEALTH_OFFICE, Role.CENTRAL_ADMIN}),
            from_statuses=(AssessmentStatus.DRAFT, AssessmentStatus.RETURNED),
            to_status=AssessmentStatus.SUBMITTED,
        ),
        Transition(
            action=WorkflowAction.APPROVE_PROVINCIAL,
            roles=frozenset({Role.PROVINCIAL}),
            from_statuses=(AssessmentStatus.SUBMITTED,),
            to_status=AssessmentStatus.APPROVED_PROVINCIAL,
        ),
        Transition(
            action=WorkflowAction.RETURN_PROVINCIAL,
            roles=frozenset({Role.PROVINCIAL}),
            from_statuses=(AssessmentStatus.SUBMITTED,),
            to_status=AssessmentStatus.RETURNED,
            requires_comment=True,
        ),
        Transition(
            action=WorkflowAction.APPROVE_REGIONAL,
            roles=frozenset({Role.REGIONAL}),
            from_statuses=(AssessmentStatus.APPROVED_PROVINCIAL,),
            to_status=AssessmentStatus.APPROVED_REGIONAL,
        ),
        Transition(
            action=WorkflowAction.RETURN_REGIONAL,
            roles=frozenset({Role.REGIONAL}),
            from_statuses=(AssessmentStatus.APPROVED_PROVINCIAL,),
            to_status=AssessmentStatus.RETURNED,
            requires_comment=True,
        ),
        Transition(
            action=WorkflowAction.COMPLETE,
            roles=frozenset({Role.CENTRAL_ADMIN}),
            from_statuses=(AssessmentStatus.APPROVED_REGIONAL,),
            to_status=AssessmentStatus.COMPLETED,
        ),
    )
}

# Generic "approve"/"return" resolved by the actor's role
_APPROVE_BY_ROLE = {
    Role.PROVINCIAL: WorkflowAction.APPROVE_PROVINCIAL,
    Role.REGIONAL: WorkflowAction.APPROVE_REGIONAL,
    Role.CENTRAL_ADMIN: WorkflowAction.COMPLETE,
}
_RETURN_BY_ROLE = {
    Role.PROVINCIAL: WorkflowAction.RETURN_PROVINCIAL,
    Role.REGIONAL: WorkflowAction.RETURN_REGIONAL,
}


def get_transition(action: str) -> Transition:
    try:
        t = TRANSITIONS[action]
    except KeyError:
        raise ValidationError({"action": f"Unknown workflow action: {action}"})

    if t.action == WorkflowAction.APPROVE_REGIONAL and getattr(settings, "CTAM_REGIONAL_APPROVAL_COMPLETES", False):
        return Transition(
            action=t.action,
            roles=t.roles,
            from_statuses=t.from_statuses,
            to_status=AssessmentStatus.COMPLETED,
        )
    return t


def resolve_action(action: str, role: str) -> str:
    """
    Map role-agnostic "approve"/"return" onto the concrete edge for `role`.
    Roles without an edge fall back to the provincial one so the role
    guard rejects them. Concrete action names pass through untouched.
    """
    if action == "approve":
        return _APPROVE_BY_ROLE.get(role, WorkflowAction.APPROVE_PROVINCIAL)
    if action == "return":
        return _RETURN_BY_ROLE.get(role, WorkflowAction.RETURN_PROVINCIAL)
    return action


def _side_fields(t: Transition, *, actor_id: int, comment: str, at) -> dict:
    """
    Actor/timestamp columns written together with the status.
    """
    if t.action == WorkflowAction.SUBMIT:
        return {"submitted_by_id": actor_id, "submitted_at": at}

    if t.action == WorkflowAction.APPROVE_PROVINCIAL:
        return {"provincial_approved_by_id": actor_id, "provincial_approved_at": at, "provincial_comment": comment}

    if t.action == WorkflowAction.APPROVE_REGIONAL:
        fields = {"regional_approved_by_id": actor_id, "regional_approved_at": at, "regional_comment": comment}
        if t.to_status == AssessmentStatus.COMPLETED:
            fields["completed_at"] = at
        return fields

    if t.action == WorkflowAction.COMPLETE:
        return {"completed_at": at}

    # Returns restart the approval chain; history keeps the earlier approvals.
    comment_field = "provincial_comment" if t.action == WorkflowAction.RETURN_PROVINCIAL else "regional_comment"
    return {
        comment_field: comment,
        "provincial_approved_by_id": None,
        "provincial_approved_at": None,
        "regional_approved_by_id": None,
        "regional_approved_at": None,
    }


class StatusWorkflow:
    """
    Assessment lifecycle.

    Contract per transition:
      1) actor role must own the edge          -> PermissionDenied
      2) assessment unit must be in actor scope -> PermissionDenied
      3) current status must be a from-state   -> ConflictError (reload + retry)
      4) status + side fields + one ApprovalHistory row commit together;
         a failed history write rolls back the status and raises
         ReconciliationError (never retried automatically).

    The row is locked (SELECT ... FOR UPDATE) before the status is read, and
    the UPDATE is conditional on that status, so two racing approvers
    serialize on the row: exactly one sees rowcount 1 and the history row
    always records the status that was actually replaced.
    """

    @staticmethod
    def allowed_actions(*, assessment: Assessment, policy: AccessPolicy) -> list[str]:
        if not policy.can_see_unit(assessment.unit_id):
            return []
        out = []
        for action in TRANSITIONS:
            t = get_transition(action)
            if policy.role in t.roles and assessment.status in t.from_statuses:
                out.append(t.action)
        return out

    @staticmethod
    def transition(
        *,
        assessment_id: UUID,
        action: str,
        actor,
        policy: AccessPolicy,
        comment: Optional[str] = None,
    ) -> Assessment:
        t = get_transition(resolve_action(action, policy.role))
        comment = (comment or "").strip()

        with transaction.atomic():
            try:
                assessment = (
                    Assessment.objects.select_for_update()
                    .only("id", "unit_id", "status")
                    .get(id=assessment_id)
                )
            except Assessment.DoesNotExist:
                raise NotFound("Assessment not found.")

            if policy.role not in t.roles:
                logger.warning(
                    "Workflow denied action=%s role=%s assessment=%s", t.action, policy.role, assessment_id
                )
                raise PermissionDenied(f"Role {policy.role} cannot perform {t.action}.")

            if not policy.can_see_unit(assessment.unit_id):
                logger.warning(
                    "Workflow denied (out of scope) action=%s user=%s assessment=%s",
                    t.action,
                    getattr(actor, "id", None),
                    assessment_id,
                )
                raise PermissionDenied("Assessment is outside your organizational scope.")

            if t.requires_comment and not comment:
                raise ValidationError({"comment": "A comment is required when returning an assessment."})

            from_status = assessment.status
            now = timezone.now()

            updated = 0
            if from_status in t.from_statuses:
                updated = Assessment.objects.filter(id=assessment_id, status=from_status).update(
                    status=t.to_status,
                    updated_at=now,
                    **_side_fields(t, actor_id=actor.id, comment=comment, at=now),
                )

            if updated != 1:
                current = Assessment.objects.filter(id=assessment_id).values_list("status", flat=True).first()
                logger.warning(
                    "Workflow conflict action=%s assessment=%s expected=%s current=%s",
                    t.action,
                    assessment_id,
                    list(t.from_statuses),
                    current,
                )
                raise ConflictError(
                    {
                        "detail": f"Assessment is '{current}'; {t.action} requires one of {list(t.from_statuses)}.",
                        "current_status": current,
                    }
                )

            try:
                ApprovalHistory.objects.create(
                    assessment_id=assessment_id,
                    action=t.action,
                    from_status=from_status,
                    to_status=t.to_status,
                    comment=comment,
                    performed_by=actor,
                )
            except DatabaseError as exc:
                logger.error(
                    "Approval history write failed; status change rolled back action=%s assessment=%s",
                    t.action,
                    assessment_id,
                    exc_info=exc,
                )
                raise ReconciliationError() from exc

        logger.info(
            "Workflow %s assessment=%s %s -> %s by user=%s",
            t.action,
            assessment_id,
            from_status,
            t.to_status,
            actor.id,
        )
        return Assessment.objects.select_related("unit").get(id=assessment_id)
