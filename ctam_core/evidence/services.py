# ctam_core/evidence/services.py
from __future__ import annotations

import logging
import os
import re
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import QuerySet
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from ctam_core.assessments.models import Assessment, AssessmentItem, ImpactScore, QualitativeScore
from ctam_core.common.api.exceptions import BackendUnavailable, EvidenceNotFound, EvidenceSaveError
from ctam_core.evidence.models import EvidenceFile, EvidenceOwnerKind
from ctam_core.evidence.retry import RetryCancelled, RetryExhausted, RetryPolicy
from ctam_core.evidence.session import SessionCheck, ensure_valid_session
from ctam_core.evidence.storage import BackendError, BlobNotFound, BlobStore
from ctam_core.iam.access import AccessPolicy

logger = logging.getLogger(__name__)

IMPACT_EVIDENCE_FIELDS = frozenset({"had_incident", "had_data_breach"})
QUALITATIVE_EVIDENCE_FIELDS = frozenset(
    {"has_ciso", "has_dpo", "has_it_security_team", "annual_training_count", "uses_freeware", "uses_opensource"}
)

_UNSAFE_CHARS = re.compile(r"[^\w.-]", re.ASCII)
_REPEATED_UNDERSCORES = re.compile(r"_+")


# -------------------------------------------------------------------
# Paths
# -------------------------------------------------------------------

def sanitize_file_name(name: str) -> str:
    """
    Storage-safe file name: ASCII letters, digits, "_", "-" and "." only,
    runs of "_" collapsed, extension (after the last dot) preserved.
    """
    base = os.path.basename((name or "").replace("\\", "/")).strip()
    stem, dot, ext = base.rpartition(".")
    if not dot:
        stem, ext = base, ""

    stem = _UNSAFE_CHARS.sub("_", stem.replace(" ", "_"))
    stem = _REPEATED_UNDERSCORES.sub("_", stem).strip("_.") or "file"
    ext = _UNSAFE_CHARS.sub("", ext)

    return f"{stem}.{ext}" if ext else stem


def file_extension(name: str) -> str:
    _, dot, ext = (name or "").rpartition(".")
    return ext if dot else ""


def build_blob_path(*, assessment_id: UUID, owner_segment: str, file_name: str, at: Optional[datetime] = None) -> str:
    """{assessment_id}/{owner}/{epoch_ms}_{sanitized_name}"""
    at = at or timezone.now()
    stamp = int(at.timestamp() * 1000)
    return f"{assessment_id}/{owner_segment}/{stamp}_{sanitize_file_name(file_name)}"


# -------------------------------------------------------------------
# Owner resolution
# -------------------------------------------------------------------

@dataclass(frozen=True)
class EvidenceOwner:
    kind: str
    owner_id: UUID
    field_name: str = ""


@dataclass(frozen=True)
class ResolvedOwner:
    assessment: Assessment
    filters: dict
    path_segment: str


def resolve_owner(owner: EvidenceOwner) -> ResolvedOwner:
    field = (owner.field_name or "").strip()

    if owner.kind == EvidenceOwnerKind.ITEM:
        item = AssessmentItem.objects.select_related("assessment").filter(id=owner.owner_id).first()
        if item is None:
            raise NotFound("Assessment item not found.")
        return ResolvedOwner(item.assessment, {"assessment_item_id": item.id}, str(item.id))

    if owner.kind == EvidenceOwnerKind.IMPACT:
        if field not in IMPACT_EVIDENCE_FIELDS:
            raise ValidationError({"field_name": f"Must be one of {sorted(IMPACT_EVIDENCE_FIELDS)}."})
        row = ImpactScore.objects.select_related("assessment").filter(id=owner.owner_id).first()
        if row is None:
            raise NotFound("Impact score not found.")
        return ResolvedOwner(row.assessment, {"impact_score_id": row.id, "field_name": field}, f"{row.id}/{field}")

    if owner.kind == EvidenceOwnerKind.QUALITATIVE:
        if field not in QUALITATIVE_EVIDENCE_FIELDS:
            raise ValidationError({"field_name": f"Must be one of {sorted(QUALITATIVE_EVIDENCE_FIELDS)}."})
        row = QualitativeScore.objects.select_related("assessment").filter(id=owner.owner_id).first()
        if row is None:
            raise NotFound("Qualitative score not found.")
        return ResolvedOwner(row.assessment, {"qualitative_score_id": row.id, "field_name": field}, f"{row.id}/{field}")

    raise ValidationError({"owner_kind": f"Unknown owner kind: {owner.kind}"})


@dataclass(frozen=True)
class EvidenceListing:
    """
    `available=False` means the backend stayed unavailable through every
    retry; `files` is then empty and the caller should offer a reload.
    """
    files: list
    available: bool = True


@dataclass(frozen=True)
class Download:
    file: EvidenceFile
    content: bytes
    session: SessionCheck


# -------------------------------------------------------------------
# EvidenceSync
# -------------------------------------------------------------------

class EvidenceSync:
    """
    Evidence blobs + metadata rows, kept one-to-one:
    - upload: validate -> blob -> metadata; failed metadata deletes the blob
    - download: session revalidated first; missing blob is EvidenceNotFound,
      other backend failures are BackendUnavailable
    - delete: blob first, row second; a failed blob delete keeps the row
    - list_for_owner: retried reads, degrading to available=False
    """

    def __init__(self, *, store: Optional[BlobStore] = None, retry: Optional[RetryPolicy] = None) -> None:
        self.store = store or BlobStore()
        self.retry = retry or RetryPolicy.from_settings()

    # ----------------------------
    # Helpers
    # ----------------------------
    @staticmethod
    def _max_size() -> int:
        return int(getattr(settings, "CTAM_EVIDENCE_MAX_FILE_SIZE_BYTES", 20 * 1024 * 1024))

    @staticmethod
    def _max_files() -> int:
        return int(getattr(settings, "CTAM_EVIDENCE_MAX_FILES_PER_OWNER", 2))

    @classmethod
    def check_size(cls, size: int) -> None:
        if size == 0:
            raise ValidationError({"file": "File is empty."})
        if size > cls._max_size():
            raise ValidationError({"file": f"File exceeds the {cls._max_size()} byte limit."})

    @staticmethod
    def _owner_qs(resolved: ResolvedOwner) -> QuerySet[EvidenceFile]:
        return EvidenceFile.objects.filter(**resolved.filters)

    @staticmethod
    def _get_file_scoped(*, policy: AccessPolicy, file_id: UUID) -> EvidenceFile:
        ef = EvidenceFile.objects.select_related("assessment").filter(id=file_id).first()
        if ef is None or not policy.can_see_unit(ef.assessment.unit_id):
            raise NotFound("Evidence file not found.")
        return ef

    # ----------------------------
    # Upload
    # ----------------------------
    def upload(
        self,
        *,
        policy: AccessPolicy,
        actor,
        owner: EvidenceOwner,
        file_name: str,
        content: bytes,
        content_type: str = "",
    ) -> EvidenceFile:
        resolved = resolve_owner(owner)
        assessment = resolved.assessment

        if not policy.can_manage_unit(assessment.unit_id):
            raise PermissionDenied("You cannot upload evidence for this unit.")
        if not assessment.is_editable:
            raise ValidationError({"detail": f"Assessment is '{assessment.status}'; evidence is read-only."})

        # all validation happens before any storage I/O
        size = len(content)
        self.check_size(size)
        if self._owner_qs(resolved).count() >= self._max_files():
            raise ValidationError({"file": f"At most {self._max_files()} files per field."})

        path = build_blob_path(
            assessment_id=assessment.id,
            owner_segment=resolved.path_segment,
            file_name=file_name,
        )

        try:
            self.store.put(path, content)
        except BackendError as e:
            logger.warning("Evidence blob write failed path=%s: %s", path, e)
            if e.is_retriable:
                raise BackendUnavailable()
            raise EvidenceSaveError()

        try:
            with transaction.atomic():
                ef = EvidenceFile.objects.create(
                    assessment=assessment,
                    file_name=(file_name or "")[:255] or sanitize_file_name(file_name),
                    file_path=path,
                    file_size=size,
                    file_type=content_type or "",
                    uploaded_by=actor,
                    **resolved.filters,
                )
        except DatabaseError as e:
            self._compensate(path, cause=e)
            raise EvidenceSaveError()

        logger.info("Evidence uploaded id=%s path=%s size=%d by user=%s", ef.id, path, size, actor.id)
        return ef

    def _compensate(self, path: str, *, cause: BaseException) -> None:
        logger.error("Evidence metadata write failed; removing blob path=%s: %s", path, cause)
        try:
            self.store.delete(path)
        except BackendError as e:
            # orphan left behind; path is logged for manual cleanup
            logger.error("Compensating blob delete failed path=%s: %s", path, e)

    # ----------------------------
    # Download
    # ----------------------------
    def download(self, *, policy: AccessPolicy, file_id: UUID, request=None) -> Download:
        ef = self._get_file_scoped(policy=policy, file_id=file_id)
        session = ensure_valid_session(request) if request is not None else SessionCheck(refreshed=False)
        try:
            data = self.store.get(ef.file_path)
        except BlobNotFound:
            logger.warning("Evidence blob missing id=%s path=%s", ef.id, ef.file_path)
            raise EvidenceNotFound()
        except BackendError as e:
            logger.warning("Evidence download failed id=%s: %s", ef.id, e)
            raise BackendUnavailable()
        return Download(file=ef, content=data, session=session)

    # ----------------------------
    # Delete
    # ----------------------------
    def delete(self, *, policy: AccessPolicy, actor, file_id: UUID) -> None:
        ef = self._get_file_scoped(policy=policy, file_id=file_id)
        if not policy.can_manage_unit(ef.assessment.unit_id):
            raise PermissionDenied("You cannot delete evidence for this unit.")
        if not ef.assessment.is_editable:
            raise ValidationError({"detail": f"Assessment is '{ef.assessment.status}'; evidence is read-only."})

        try:
            self.store.delete(ef.file_path)
        except BackendError as e:
            logger.warning("Evidence blob delete failed id=%s; metadata kept: %s", ef.id, e)
            raise BackendUnavailable() if e.is_retriable else EvidenceSaveError("Evidence file could not be deleted.")

        EvidenceFile.objects.filter(id=ef.id).delete()
        logger.info("Evidence deleted id=%s path=%s by user=%s", ef.id, ef.file_path, actor.id)

    # ----------------------------
    # List
    # ----------------------------
    def list_for_owner(
        self,
        *,
        policy: AccessPolicy,
        owner: EvidenceOwner,
        cancel: Optional[threading.Event] = None,
    ) -> EvidenceListing:
        resolved = resolve_owner(owner)
        if not policy.can_see_unit(resolved.assessment.unit_id):
            raise NotFound("Evidence owner not found.")

        def load() -> list[EvidenceFile]:
            return list(self._owner_qs(resolved).order_by("created_at"))

        try:
            files = self.retry.run(load, cancel=cancel, label=f"list evidence {resolved.path_segment}")
        except RetryExhausted:
            return EvidenceListing(files=[], available=False)
        except RetryCancelled:
            logger.info("Evidence listing cancelled owner=%s", resolved.path_segment)
            return EvidenceListing(files=[], available=False)

        return EvidenceListing(files=files)
