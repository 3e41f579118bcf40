# ctam_core/budgets/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from ctam_core.budgets.models import BudgetRecord


class BudgetRecordSerializer(serializers.ModelSerializer):
    category_code = serializers.CharField(source="category.code", read_only=True)
    unit_name = serializers.CharField(source="unit.name", read_only=True)

    class Meta:
        model = BudgetRecord
        fields = ["id", "unit", "unit_name", "fiscal_year", "category", "category_code", "amount", "created_at"]
        read_only_fields = fields


class BudgetLineSerializer(serializers.Serializer):
    category = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)


class BudgetReplaceSerializer(serializers.Serializer):
    unit = serializers.UUIDField()
    fiscal_year = serializers.IntegerField(min_value=2000, max_value=2200)
    lines = BudgetLineSerializer(many=True)
