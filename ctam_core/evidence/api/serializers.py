# ctam_core/evidence/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from ctam_core.evidence.models import EvidenceFile, EvidenceOwnerKind
from ctam_core.evidence.services import EvidenceOwner, file_extension


class EvidenceFileSerializer(serializers.ModelSerializer):
    owner_kind = serializers.CharField(read_only=True)
    extension = serializers.SerializerMethodField()

    class Meta:
        model = EvidenceFile
        fields = [
            "id",
            "assessment",
            "owner_kind",
            "assessment_item",
            "impact_score",
            "qualitative_score",
            "field_name",
            "file_name",
            "file_size",
            "file_type",
            "extension",
            "uploaded_by",
            "created_at",
        ]
        read_only_fields = fields

    def get_extension(self, obj) -> str:
        return file_extension(obj.file_name).lower()


class EvidenceOwnerSerializer(serializers.Serializer):
    owner_kind = serializers.ChoiceField(choices=EvidenceOwnerKind.choices)
    owner_id = serializers.UUIDField()
    field_name = serializers.CharField(required=False, allow_blank=True, default="")

    def to_owner(self) -> EvidenceOwner:
        d = self.validated_data
        return EvidenceOwner(kind=d["owner_kind"], owner_id=d["owner_id"], field_name=d.get("field_name") or "")


class EvidenceUploadSerializer(EvidenceOwnerSerializer):
    file = serializers.FileField(allow_empty_file=True)


class EvidenceListingSerializer(serializers.Serializer):
    available = serializers.BooleanField()
    results = EvidenceFileSerializer(many=True)
