# ctam_core/evidence/storage.py
from __future__ import annotations

import logging
from typing import Optional

from django.core.files.base import ContentFile
from django.core.files.storage import Storage, storages

logger = logging.getLogger(__name__)

# Signals that a backend call may succeed if repeated
RETRIABLE_CODES = frozenset({"PGRST002"})  # backend not ready (schema cache loading)
RETRIABLE_STATUSES = frozenset({502, 503, 504})


class BackendError(Exception):
    """
    Failure reported by a storage/metadata backend.
    `status` is an HTTP-like status when the backend has one, `code` a
    backend-specific error code.
    """

    def __init__(self, message: str = "", *, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message or f"backend error status={status} code={code}")
        self.status = status
        self.code = code

    @property
    def is_retriable(self) -> bool:
        return self.code in RETRIABLE_CODES or self.status in RETRIABLE_STATUSES


class BlobNotFound(BackendError):
    def __init__(self, path: str):
        super().__init__(f"blob not found: {path}", status=404, code="not_found")
        self.path = path


class BlobStore:
    """
    Thin adapter over the Django storage registered as STORAGES["evidence"].

    Storage paths are caller-chosen and must be unique; `put` refuses to let
    the storage rename a colliding key, since metadata rows store the key.
    """

    def __init__(self, storage: Optional[Storage] = None) -> None:
        self.storage = storage if storage is not None else storages["evidence"]

    def put(self, path: str, content: bytes) -> str:
        if self.storage.exists(path):
            raise BackendError(f"blob already exists: {path}", status=409, code="duplicate")
        try:
            saved = self.storage.save(path, ContentFile(content))
        except OSError as e:
            raise BackendError(str(e), code="storage_error") from e
        if saved != path:
            self.storage.delete(saved)
            raise BackendError(f"storage renamed {path} to {saved}", status=409, code="duplicate")
        return saved

    def get(self, path: str) -> bytes:
        if not self.storage.exists(path):
            raise BlobNotFound(path)
        try:
            with self.storage.open(path, "rb") as fh:
                return fh.read()
        except FileNotFoundError as e:
            raise BlobNotFound(path) from e
        except OSError as e:
            raise BackendError(str(e), code="storage_error") from e

    def delete(self, path: str) -> None:
        """Missing blobs are treated as already deleted."""
        try:
            self.storage.delete(path)
        except FileNotFoundError:
            logger.info("Blob already absent path=%s", path)
        except OSError as e:
            raise BackendError(str(e), code="storage_error") from e

    def exists(self, path: str) -> bool:
        return self.storage.exists(path)
