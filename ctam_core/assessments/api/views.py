# ctam_core/assessments/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response

from ctam_core.assessments.api.serializers import (
    ApprovalHistorySerializer,
    AssessmentCreateSerializer,
    AssessmentItemSerializer,
    AssessmentSerializer,
    CategorySerializer,
    ImpactCommitSerializer,
    ImpactScoreSerializer,
    ItemsCommitSerializer,
    QualitativeCommitSerializer,
    QualitativeScoreSerializer,
    TransitionSerializer,
)
from ctam_core.assessments.filters import AssessmentFilter
from ctam_core.assessments.models import Assessment, Category, ImpactScore, QualitativeScore
from ctam_core.assessments.selectors import (
    active_categories,
    assessments_visible,
    get_assessment_scoped,
    history_for_assessment,
    items_for_assessment,
)
from ctam_core.assessments.services import AssessmentService
from ctam_core.assessments.workflow import StatusWorkflow, WorkflowAction
from ctam_core.common.api.pagination import paginate
from ctam_core.common.fiscal import fiscal_year_for
from ctam_core.iam.models import Role
from ctam_core.iam.permissions import ALL_ROLES, EDITOR_ROLES, BaseRolePermission, HasProfile
from ctam_core.iam.selectors import access_policy_for

REVIEWER_ROLES = frozenset({Role.PROVINCIAL, Role.REGIONAL, Role.CENTRAL_ADMIN})


class AssessmentPermission(BaseRolePermission):
    """
    Coarse gate only; StatusWorkflow re-checks the exact edge per role.
    """
    allowed_roles_per_action = {
        "list": ALL_ROLES,
        "retrieve": ALL_ROLES,
        "create": EDITOR_ROLES,
        "items": ALL_ROLES,
        "impact": ALL_ROLES,
        "qualitative": ALL_ROLES,
        "history": ALL_ROLES,
        "submit": EDITOR_ROLES,
        "approve": REVIEWER_ROLES,
        "return_for_revision": REVIEWER_ROLES,
        "complete": frozenset({Role.CENTRAL_ADMIN}),
    }


class CategoryViewSet(viewsets.GenericViewSet):
    serializer_class = CategorySerializer
    queryset = Category.objects.none()
    permission_classes = [HasProfile]

    @extend_schema(tags=["Assessments"], responses={200: CategorySerializer(many=True)})
    def list(self, request):
        return Response(CategorySerializer(active_categories(), many=True).data)


class AssessmentViewSet(viewsets.GenericViewSet):
    """
    Assessments:
    - list/retrieve (scope-filtered)
    - create (bulk items)
    - items / impact / qualitative: GET current answers, PUT commit
    - submit / approve / return / complete (StatusWorkflow)
    - history (append-only)
    """
    serializer_class = AssessmentSerializer
    queryset = Assessment.objects.none()
    permission_classes = [AssessmentPermission]
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    def _policy(self, request):
        # one hierarchy snapshot per request
        if getattr(self, "_access_policy", None) is None:
            self._access_policy = access_policy_for(request.user)
        return self._access_policy

    def _out(self, request, assessment, *, http_status=status.HTTP_200_OK) -> Response:
        ctx = {"request": request, "policy": self._policy(request)}
        return Response(AssessmentSerializer(assessment, context=ctx).data, status=http_status)

    # -------------------------
    # Read
    # -------------------------
    @extend_schema(
        tags=["Assessments"],
        responses={200: AssessmentSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="unit", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="province", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="region", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="fiscal_year", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        policy = self._policy(request)
        qs = assessments_visible(policy=policy).order_by("-fiscal_year", "-created_at")

        f = AssessmentFilter(request.query_params, queryset=qs)
        if not f.is_valid():
            raise DRFValidationError(f.errors)

        return paginate(request, f.qs, AssessmentSerializer, context={"policy": policy})

    @extend_schema(tags=["Assessments"], responses={200: AssessmentSerializer})
    def retrieve(self, request, pk=None):
        a = get_assessment_scoped(policy=self._policy(request), assessment_id=UUID(str(pk)))
        return self._out(request, a)

    # -------------------------
    # Create
    # -------------------------
    @extend_schema(tags=["Assessments"], request=AssessmentCreateSerializer, responses={201: AssessmentSerializer})
    def create(self, request):
        ser = AssessmentCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        a = AssessmentService.create(
            policy=self._policy(request),
            actor=request.user,
            unit_id=ser.validated_data["unit"],
            fiscal_year=ser.validated_data.get("fiscal_year") or fiscal_year_for(),
            assessment_period=ser.validated_data.get("assessment_period") or "1",
        )
        return self._out(request, a, http_status=status.HTTP_201_CREATED)

    # -------------------------
    # Answers (explicit commit)
    # -------------------------
    @extend_schema(
        tags=["Assessments"],
        request=ItemsCommitSerializer,
        responses={200: AssessmentItemSerializer(many=True)},
    )
    @action(detail=True, methods=["get", "put"], url_path="items")
    def items(self, request, pk=None):
        policy = self._policy(request)
        a = get_assessment_scoped(policy=policy, assessment_id=UUID(str(pk)))

        if request.method == "PUT":
            ser = ItemsCommitSerializer(data=request.data)
            ser.is_valid(raise_exception=True)
            AssessmentService.commit_items(
                policy=policy,
                actor=request.user,
                assessment_id=a.id,
                items=ser.validated_data["items"],
            )

        return Response(AssessmentItemSerializer(items_for_assessment(assessment_id=a.id), many=True).data)

    @extend_schema(tags=["Assessments"], request=ImpactCommitSerializer, responses={200: ImpactScoreSerializer})
    @action(detail=True, methods=["get", "put"], url_path="impact")
    def impact(self, request, pk=None):
        policy = self._policy(request)
        a = get_assessment_scoped(policy=policy, assessment_id=UUID(str(pk)))

        if request.method == "PUT":
            ser = ImpactCommitSerializer(data=request.data)
            ser.is_valid(raise_exception=True)
            impact = AssessmentService.commit_impact(
                policy=policy,
                actor=request.user,
                assessment_id=a.id,
                data=ser.to_input(),
                comment=ser.validated_data.get("comment"),
            )
            return Response(ImpactScoreSerializer(impact).data)

        impact = ImpactScore.objects.filter(assessment_id=a.id).first()
        if impact is None:
            return Response(None, status=status.HTTP_204_NO_CONTENT)
        return Response(ImpactScoreSerializer(impact).data)

    @extend_schema(tags=["Assessments"], request=QualitativeCommitSerializer, responses={200: QualitativeScoreSerializer})
    @action(detail=True, methods=["get", "put"], url_path="qualitative")
    def qualitative(self, request, pk=None):
        policy = self._policy(request)
        a = get_assessment_scoped(policy=policy, assessment_id=UUID(str(pk)))

        if request.method == "PUT":
            ser = QualitativeCommitSerializer(data=request.data)
            ser.is_valid(raise_exception=True)
            qual = AssessmentService.commit_qualitative(
                policy=policy,
                actor=request.user,
                assessment_id=a.id,
                data=ser.to_input(),
                comment=ser.validated_data.get("comment"),
            )
            return Response(QualitativeScoreSerializer(qual).data)

        qual = QualitativeScore.objects.filter(assessment_id=a.id).first()
        if qual is None:
            return Response(None, status=status.HTTP_204_NO_CONTENT)
        return Response(QualitativeScoreSerializer(qual).data)

    # -------------------------
    # Workflow
    # -------------------------
    def _transition(self, request, pk, action_name: str) -> Response:
        ser = TransitionSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        a = StatusWorkflow.transition(
            assessment_id=UUID(str(pk)),
            action=action_name,
            actor=request.user,
            policy=self._policy(request),
            comment=ser.validated_data.get("comment"),
        )
        return self._out(request, a)

    @extend_schema(tags=["Assessments"], request=TransitionSerializer, responses={200: AssessmentSerializer})
    @action(detail=True, methods=["post"], url_path="submit")
    def submit(self, request, pk=None):
        return self._transition(request, pk, WorkflowAction.SUBMIT)

    @extend_schema(tags=["Assessments"], request=TransitionSerializer, responses={200: AssessmentSerializer})
    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        # provincial / regional / central edge resolved from the caller's role
        return self._transition(request, pk, "approve")

    @extend_schema(tags=["Assessments"], request=TransitionSerializer, responses={200: AssessmentSerializer})
    @action(detail=True, methods=["post"], url_path="return")
    def return_for_revision(self, request, pk=None):
        return self._transition(request, pk, "return")

    @extend_schema(tags=["Assessments"], request=TransitionSerializer, responses={200: AssessmentSerializer})
    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, pk=None):
        return self._transition(request, pk, WorkflowAction.COMPLETE)

    @extend_schema(tags=["Assessments"], responses={200: ApprovalHistorySerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="history")
    def history(self, request, pk=None):
        a = get_assessment_scoped(policy=self._policy(request), assessment_id=UUID(str(pk)))
        return Response(ApprovalHistorySerializer(history_for_assessment(assessment_id=a.id), many=True).data)
