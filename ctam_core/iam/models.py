# ctam_core/iam/models.py
from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from ctam_core.common.models import UUIDModel
from ctam_core.organizations.models import HealthRegion, Province, Unit, UnitKind


class Role(models.TextChoices):
    HOSPITAL_IT = "hospital_it", "Hospital IT"
    HEALTH_OFFICE = "health_office", "Health office IT"
    PROVINCIAL = "provincial", "Provincial approver"
    REGIONAL = "regional", "Regional approver"
    SUPERVISOR = "supervisor", "Regional supervisor"
    CENTRAL_ADMIN = "central_admin", "Central administrator"


UNIT_ROLES = frozenset({Role.HOSPITAL_IT, Role.HEALTH_OFFICE})
REGION_ROLES = frozenset({Role.REGIONAL, Role.SUPERVISOR})

# Unit kind each facility role must be attached to
UNIT_KIND_FOR_ROLE = {
    Role.HOSPITAL_IT: UnitKind.HOSPITAL,
    Role.HEALTH_OFFICE: UnitKind.HEALTH_OFFICE,
}


class Profile(UUIDModel):
    """
    Identity wrapper anchored to AUTH_USER_MODEL.

    Exactly the scope field matching the role is set:
      - hospital_it / health_office -> unit
      - provincial                  -> province
      - regional / supervisor       -> health_region
      - central_admin               -> none (national scope)
    """
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="ctam_profile")

    role = models.CharField(max_length=32, choices=Role.choices, db_index=True)

    unit = models.ForeignKey(Unit, on_delete=models.PROTECT, related_name="profiles", null=True, blank=True)
    province = models.ForeignKey(Province, on_delete=models.PROTECT, related_name="profiles", null=True, blank=True)
    health_region = models.ForeignKey(
        HealthRegion, on_delete=models.PROTECT, related_name="profiles", null=True, blank=True
    )

    full_name = models.CharField(max_length=255, blank=True, default="")
    position = models.CharField(max_length=255, blank=True, default="")
    phone = models.CharField(max_length=32, blank=True, default="")

    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "iam_profile"
        indexes = [
            models.Index(fields=["role", "is_active"]),
        ]
        constraints = [
            models.CheckConstraint(
                name="ck_profile_scope_matches_role",
                condition=(
                    Q(
                        role__in=[Role.HOSPITAL_IT, Role.HEALTH_OFFICE],
                        unit__isnull=False,
                        province__isnull=True,
                        health_region__isnull=True,
                    )
                    | Q(
                        role=Role.PROVINCIAL,
                        unit__isnull=True,
                        province__isnull=False,
                        health_region__isnull=True,
                    )
                    | Q(
                        role__in=[Role.REGIONAL, Role.SUPERVISOR],
                        unit__isnull=True,
                        province__isnull=True,
                        health_region__isnull=False,
                    )
                    | Q(
                        role=Role.CENTRAL_ADMIN,
                        unit__isnull=True,
                        province__isnull=True,
                        health_region__isnull=True,
                    )
                ),
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user} ({self.role})"

    def clean(self):
        super().clean()
        errors: dict[str, str] = {}

        expected = {
            "unit": self.role in UNIT_ROLES,
            "province": self.role == Role.PROVINCIAL,
            "health_region": self.role in REGION_ROLES,
        }
        for field, required in expected.items():
            is_set = getattr(self, f"{field}_id") is not None
            if required and not is_set:
                errors[field] = f"Required for role {self.role}."
            elif not required and is_set:
                errors[field] = f"Must be empty for role {self.role}."

        kind = UNIT_KIND_FOR_ROLE.get(self.role)
        if kind and self.unit_id and "unit" not in errors and self.unit.kind != kind:
            errors["unit"] = f"Role {self.role} must be attached to a {kind} unit."

        if errors:
            raise ValidationError(errors)


# -------------------------------------------------------------------
# Report access policy (configurable per role + report type)
# -------------------------------------------------------------------

class ReportType(models.TextChoices):
    OVERVIEW = "overview", "Overview"
    QUANTITATIVE = "quantitative", "Quantitative"
    IMPACT = "impact", "Impact"
    BUDGET = "budget", "Budget"


class DrillScope(models.TextChoices):
    ALL = "all", "All"
    OWN_REGION = "own_region", "Own region"
    OWN_PROVINCE = "own_province", "Own province"
    NONE = "none", "None"


class ReportAccessPolicy(UUIDModel):
    """
    Optional override of the role defaults in `ctam_core.iam.access`.
    No row for (role, report_type) means the role default applies.
    """
    role = models.CharField(max_length=32, choices=Role.choices)
    report_type = models.CharField(max_length=24, choices=ReportType.choices)

    view_region = models.BooleanField(default=True)
    drill_to_province = models.CharField(max_length=16, choices=DrillScope.choices, default=DrillScope.ALL)
    drill_to_unit = models.CharField(max_length=16, choices=DrillScope.choices, default=DrillScope.ALL)
    view_same_province_units = models.BooleanField(default=False)

    class Meta:
        db_table = "iam_report_access_policy"
        constraints = [
            models.UniqueConstraint(fields=["role", "report_type"], name="uq_report_policy_role_type"),
            models.CheckConstraint(
                name="ck_report_policy_drill_to_province",
                condition=Q(drill_to_province__in=["all", "own_region", "none"]),
            ),
        ]

    def __str__(self) -> str:
        return f"{self.role}/{self.report_type}"
