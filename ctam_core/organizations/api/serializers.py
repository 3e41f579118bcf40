# ctam_core/organizations/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from ctam_core.organizations.models import HealthRegion, Province, Unit


class HealthRegionSerializer(serializers.ModelSerializer):
    class Meta:
        model = HealthRegion
        fields = ["id", "name", "region_number"]
        read_only_fields = fields


class ProvinceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Province
        fields = ["id", "code", "name", "health_region"]
        read_only_fields = fields


class UnitSerializer(serializers.ModelSerializer):
    province_name = serializers.CharField(source="province.name", read_only=True)
    health_region_id = serializers.UUIDField(source="province.health_region_id", read_only=True)

    class Meta:
        model = Unit
        fields = [
            "id",
            "code",
            "name",
            "kind",
            "province",
            "province_name",
            "health_region_id",
            "hospital_type",
            "bed_count",
            "is_active",
        ]
        read_only_fields = fields
