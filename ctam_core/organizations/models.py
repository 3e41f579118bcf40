# ctam_core/organizations/models.py
from __future__ import annotations

from django.db import models

from ctam_core.common.models import UUIDModel


class HealthRegion(UUIDModel):
    """
    Top of the hierarchy (health region 1..13 + the Bangkok region).
    """
    name = models.CharField(max_length=255)
    region_number = models.PositiveSmallIntegerField(unique=True)

    class Meta:
        db_table = "organizations_health_region"
        ordering = ["region_number"]

    def __str__(self) -> str:
        return self.name


class Province(UUIDModel):
    health_region = models.ForeignKey(HealthRegion, on_delete=models.PROTECT, related_name="provinces")

    code = models.CharField(max_length=16, unique=True)
    name = models.CharField(max_length=255)

    class Meta:
        db_table = "organizations_province"
        ordering = ["name"]
        indexes = [models.Index(fields=["health_region", "name"])]

    def __str__(self) -> str:
        return self.name


class UnitKind(models.TextChoices):
    HOSPITAL = "hospital", "Hospital"
    HEALTH_OFFICE = "health_office", "Health office"


class Unit(UUIDModel):
    """
    Leaf organizational node that owns assessments and budgets.

    Region is always derived through the province; a unit moves between
    regions only by being re-parented to another province.
    """
    province = models.ForeignKey(Province, on_delete=models.PROTECT, related_name="units")

    kind = models.CharField(max_length=24, choices=UnitKind.choices, default=UnitKind.HOSPITAL, db_index=True)
    code = models.CharField(max_length=32, unique=True)
    name = models.CharField(max_length=255)

    # Hospital-only metadata
    hospital_type = models.CharField(max_length=64, blank=True, default="")
    bed_count = models.PositiveIntegerField(null=True, blank=True)

    is_active = models.BooleanField(default=True, db_index=True)

    class Meta:
        db_table = "organizations_unit"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["province", "kind"]),
            models.Index(fields=["province", "is_active"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"

    @property
    def health_region_id(self):
        return self.province.health_region_id
