# ctam_core/api/urls.py
from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from ctam_core.assessments.api.views import AssessmentViewSet, CategoryViewSet
from ctam_core.budgets.api.views import BudgetRecordViewSet
from ctam_core.evidence.api.views import EvidenceFileViewSet
from ctam_core.iam.api.auth import LoginView, LogoutView, RefreshView
from ctam_core.iam.api.me import MeView
from ctam_core.organizations.api.views import HealthRegionViewSet, ProvinceViewSet, UnitViewSet
from ctam_core.reports.api.views import ReportViewSet

router = DefaultRouter()

# Organizations
router.register(r"organizations/regions", HealthRegionViewSet, basename="regions")
router.register(r"organizations/provinces", ProvinceViewSet, basename="provinces")
router.register(r"organizations/units", UnitViewSet, basename="units")

# Assessments + evidence
router.register(r"categories", CategoryViewSet, basename="categories")
router.register(r"assessments", AssessmentViewSet, basename="assessments")
router.register(r"evidence", EvidenceFileViewSet, basename="evidence")

# Budgets + reports
router.register(r"budgets", BudgetRecordViewSet, basename="budgets")
router.register(r"reports", ReportViewSet, basename="reports")

urlpatterns = [
    # Auth + /me
    path("auth/login/", LoginView.as_view(), name="login"),
    path("auth/refresh/", RefreshView.as_view(), name="refresh"),
    path("auth/logout/", LogoutView.as_view(), name="logout"),
    path("me/", MeView.as_view(), name="me"),

    *router.urls,
]
