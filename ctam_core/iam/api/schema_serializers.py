# ctam_core/iam/api/schema_serializers.py
from __future__ import annotations

from rest_framework import serializers

from ctam_core.iam.models import Role


class LoginRequestSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField()


class DetailResponseSerializer(serializers.Serializer):
    detail = serializers.CharField()


class MeUserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField(allow_null=True, required=False)
    email = serializers.EmailField(allow_null=True, required=False)
    is_superuser = serializers.BooleanField()


class MeScopeSerializer(serializers.Serializer):
    unit_id = serializers.UUIDField(allow_null=True)
    unit_name = serializers.CharField(allow_null=True)
    province_id = serializers.UUIDField(allow_null=True)
    province_name = serializers.CharField(allow_null=True)
    health_region_id = serializers.UUIDField(allow_null=True)
    health_region_name = serializers.CharField(allow_null=True)


class MeResponseSerializer(serializers.Serializer):
    user = MeUserSerializer()
    role = serializers.ChoiceField(choices=Role.choices, allow_null=True)
    full_name = serializers.CharField(allow_blank=True)
    scope = MeScopeSerializer()
    pinned_level = serializers.CharField(allow_null=True)
