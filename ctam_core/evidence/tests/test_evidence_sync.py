import threading
from datetime import datetime, timezone
from unittest import mock

import pytest
from django.core.files.storage import InMemoryStorage
from django.db import DatabaseError, OperationalError
from rest_framework.exceptions import PermissionDenied, ValidationError

from ctam_core.assessments.models import AssessmentItem
from ctam_core.assessments.services import AssessmentService
from ctam_core.assessments.workflow import StatusWorkflow, WorkflowAction
from ctam_core.common.api.exceptions import BackendUnavailable, EvidenceNotFound, EvidenceSaveError
from ctam_core.evidence.models import EvidenceFile, EvidenceOwnerKind
from ctam_core.evidence.retry import RetryPolicy
from ctam_core.evidence.services import (
    EvidenceOwner,
    EvidenceSync,
    build_blob_path,
    file_extension,
    sanitize_file_name,
)
from ctam_core.evidence.storage import BackendError, BlobStore
from ctam_core.iam.selectors import access_policy_for
from ctam_core.scoring.calculator import ImpactInput


class RecordingStore(BlobStore):
    def __init__(self, *, put_error=None, delete_error=None):
        super().__init__(InMemoryStorage())
        self.put_error = put_error
        self.delete_error = delete_error
        self.puts = []

    def put(self, path, content):
        self.puts.append(path)
        if self.put_error is not None:
            raise self.put_error
        return super().put(path, content)

    def delete(self, path):
        if self.delete_error is not None:
            raise self.delete_error
        return super().delete(path)


# ----------------------------
# Paths
# ----------------------------

@pytest.mark.parametrize(
    "raw,expected",
    [
        ("scan.pdf", "scan.pdf"),
        ("รายงาน ปี 2567.pdf", "2567.pdf"),
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\it\\policy v2.docx", "policy_v2.docx"),
        ("my file (final).tar.gz", "my_file_final_.tar.gz"),
        ("", "file"),
        ("ภาพ.png", "file.png"),
    ],
)
def test_sanitize_file_name(raw, expected):
    assert sanitize_file_name(raw) == expected


@pytest.mark.parametrize("raw", ["scan.pdf", "รายงาน ปี 2567.xlsx", "policy v2.docx", "ภาพ.png", "no_extension"])
def test_sanitize_keeps_extension(raw):
    assert file_extension(sanitize_file_name(raw)) == file_extension(raw)


def test_blob_path_layout():
    at = datetime(2025, 1, 1, tzinfo=timezone.utc)
    path = build_blob_path(assessment_id="a1", owner_segment="i1", file_name="backup log.txt", at=at)
    assert path == "a1/i1/1735689600000_backup_log.txt"


# ----------------------------
# Service
# ----------------------------

@pytest.fixture
def assessment(db, hospital_user, unit, categories):
    return AssessmentService.create(
        policy=access_policy_for(hospital_user), actor=hospital_user, unit_id=unit.id, fiscal_year=2025
    )


@pytest.fixture
def item(assessment):
    return AssessmentItem.objects.filter(assessment=assessment).order_by("category__order_number").first()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_sync(sleeps):
    def _make(store=None, max_attempts=3):
        return EvidenceSync(
            store=store or RecordingStore(),
            retry=RetryPolicy(base_delay=0.8, max_delay=6.0, jitter=0.0, max_attempts=max_attempts, sleep=sleeps.append),
        )

    return _make


def _item_owner(item):
    return EvidenceOwner(kind=EvidenceOwnerKind.ITEM, owner_id=item.id)


def _upload(sync, user, item, content=b"evidence", name="scan.pdf"):
    return sync.upload(
        policy=access_policy_for(user),
        actor=user,
        owner=_item_owner(item),
        file_name=name,
        content=content,
        content_type="application/pdf",
    )


def test_upload_writes_blob_then_metadata(make_sync, hospital_user, assessment, item):
    store = RecordingStore()
    ef = _upload(make_sync(store), hospital_user, item)

    assert ef.file_path.startswith(f"{assessment.id}/{item.id}/")
    assert ef.file_path.endswith("_scan.pdf")
    assert ef.file_size == len(b"evidence")
    assert ef.owner_kind == EvidenceOwnerKind.ITEM
    assert store.get(ef.file_path) == b"evidence"


def test_failed_metadata_write_removes_blob(make_sync, hospital_user, item):
    store = RecordingStore()
    sync = make_sync(store)

    with mock.patch.object(EvidenceFile.objects, "create", side_effect=DatabaseError("insert failed")):
        with pytest.raises(EvidenceSaveError):
            _upload(sync, hospital_user, item)

    assert EvidenceFile.objects.count() == 0
    assert len(store.puts) == 1
    assert not store.exists(store.puts[0])


def test_validation_happens_before_storage(settings, make_sync, hospital_user, item):
    store = RecordingStore()
    sync = make_sync(store)

    with pytest.raises(ValidationError):
        _upload(sync, hospital_user, item, content=b"")

    settings.CTAM_EVIDENCE_MAX_FILE_SIZE_BYTES = 4
    with pytest.raises(ValidationError):
        _upload(sync, hospital_user, item, content=b"12345")

    assert store.puts == []


def test_file_count_limit_per_owner(make_sync, hospital_user, item):
    sync = make_sync()
    _upload(sync, hospital_user, item, name="a.pdf")
    _upload(sync, hospital_user, item, name="b.pdf")

    with pytest.raises(ValidationError):
        _upload(sync, hospital_user, item, name="c.pdf")
    assert EvidenceFile.objects.filter(assessment_item=item).count() == 2


def test_storage_failures_map_to_api_errors(make_sync, hospital_user, item):
    with pytest.raises(BackendUnavailable):
        _upload(make_sync(RecordingStore(put_error=BackendError(status=503))), hospital_user, item)

    with pytest.raises(EvidenceSaveError):
        _upload(make_sync(RecordingStore(put_error=BackendError(code="storage_error"))), hospital_user, item)

    assert EvidenceFile.objects.count() == 0


def test_reviewer_cannot_upload(make_sync, provincial_user, item):
    with pytest.raises(PermissionDenied):
        _upload(make_sync(), provincial_user, item)


def test_submitted_assessment_evidence_is_read_only(make_sync, hospital_user, assessment, item):
    sync = make_sync()
    ef = _upload(sync, hospital_user, item)
    StatusWorkflow.transition(
        assessment_id=assessment.id,
        action=WorkflowAction.SUBMIT,
        actor=hospital_user,
        policy=access_policy_for(hospital_user),
    )

    with pytest.raises(ValidationError):
        _upload(sync, hospital_user, item, name="late.pdf")
    with pytest.raises(ValidationError):
        sync.delete(policy=access_policy_for(hospital_user), actor=hospital_user, file_id=ef.id)
    assert EvidenceFile.objects.filter(id=ef.id).exists()


def test_download_and_missing_blob(make_sync, hospital_user, provincial_user, item):
    store = RecordingStore()
    sync = make_sync(store)
    ef = _upload(sync, hospital_user, item)

    result = sync.download(policy=access_policy_for(provincial_user), file_id=ef.id)
    assert result.content == b"evidence"
    assert result.session.refreshed is False

    store.storage.delete(ef.file_path)
    with pytest.raises(EvidenceNotFound):
        sync.download(policy=access_policy_for(hospital_user), file_id=ef.id)


def test_delete_removes_blob_before_row(make_sync, hospital_user, item):
    store = RecordingStore()
    sync = make_sync(store)
    ef = _upload(sync, hospital_user, item)

    sync.delete(policy=access_policy_for(hospital_user), actor=hospital_user, file_id=ef.id)

    assert not EvidenceFile.objects.filter(id=ef.id).exists()
    assert not store.exists(ef.file_path)


def test_failed_blob_delete_keeps_row(make_sync, hospital_user, item):
    store = RecordingStore()
    ef = _upload(make_sync(store), hospital_user, item)

    store.delete_error = BackendError(status=504)
    with pytest.raises(BackendUnavailable):
        make_sync(store).delete(policy=access_policy_for(hospital_user), actor=hospital_user, file_id=ef.id)

    assert EvidenceFile.objects.filter(id=ef.id).exists()
    assert store.exists(ef.file_path)


def test_listing_returns_owner_files(make_sync, hospital_user, provincial_user, item):
    sync = make_sync()
    _upload(sync, hospital_user, item, name="a.pdf")

    listing = sync.list_for_owner(policy=access_policy_for(provincial_user), owner=_item_owner(item))
    assert listing.available is True
    assert [f.file_name for f in listing.files] == ["a.pdf"]


def test_listing_degrades_after_retries(make_sync, sleeps, hospital_user, item):
    sync = make_sync(max_attempts=4)

    with mock.patch.object(EvidenceSync, "_owner_qs", side_effect=OperationalError("server closed the connection")):
        listing = sync.list_for_owner(policy=access_policy_for(hospital_user), owner=_item_owner(item))

    assert listing.available is False
    assert listing.files == []
    assert sleeps == [0.8, 1.6, 3.2]


def test_cancelled_listing_stops_retrying(make_sync, sleeps, hospital_user, item):
    cancel = threading.Event()
    cancel.set()

    listing = make_sync().list_for_owner(policy=access_policy_for(hospital_user), owner=_item_owner(item), cancel=cancel)

    assert listing.available is False
    assert sleeps == []


def test_impact_evidence_needs_known_field(make_sync, hospital_user, assessment):
    impact = AssessmentService.commit_impact(
        policy=access_policy_for(hospital_user),
        actor=hospital_user,
        assessment_id=assessment.id,
        data=ImpactInput(had_incident=True, recovery_hours=2),
    )
    sync = make_sync()
    policy = access_policy_for(hospital_user)

    with pytest.raises(ValidationError):
        sync.upload(
            policy=policy,
            actor=hospital_user,
            owner=EvidenceOwner(kind=EvidenceOwnerKind.IMPACT, owner_id=impact.id, field_name="total_score"),
            file_name="x.pdf",
            content=b"x",
        )

    ef = sync.upload(
        policy=policy,
        actor=hospital_user,
        owner=EvidenceOwner(kind=EvidenceOwnerKind.IMPACT, owner_id=impact.id, field_name="had_incident"),
        file_name="incident report.pdf",
        content=b"x",
    )
    assert ef.owner_kind == EvidenceOwnerKind.IMPACT
    assert f"/{impact.id}/had_incident/" in ef.file_path
