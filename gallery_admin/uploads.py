"""
Upload orchestration: admission, preview handles, and fan-out uploads.

A browser session owns at most one ``UploadBatch``. Dropped files are admitted
(size and MIME checks) into the batch, each with a ``PreviewHandle`` that must
be released on every path that takes the file out of the batch. Submitting
the batch uploads every outstanding entry concurrently, one worker per file,
with the same shared metadata. A failed upload only marks its own entry.
"""
import atexit
import mimetypes
import os
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import structlog
from flask import copy_current_request_context, has_request_context, session

from gallery_admin.errors import ValidationError
from gallery_admin.extensions import UPLOADS_KEY
from gallery_admin.models import DroppedFile, MediaMetadata

logger = structlog.get_logger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024
ACCEPTED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/webp"})
UPLOAD_FAILED = "Upload failed"
EMPTY_BATCH = "Please select at least one file to upload"
BATCH_RUNNING = "Uploads are still running"
BATCH_SESSION_KEY = "upload_batch"
# Batches untouched for this long are released by the registry sweep
DEFAULT_MAX_IDLE = 2 * 3600


class UploadStatus(Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _format_size(num_bytes: int) -> str:
    if num_bytes % (1024 * 1024) == 0:
        return f"{num_bytes // (1024 * 1024)}MB"
    return f"{num_bytes} bytes"


def rejection_reason(
    file: DroppedFile,
    max_size: int = MAX_FILE_SIZE,
    accepted_types: frozenset[str] = ACCEPTED_MIME_TYPES,
) -> str | None:
    """Return the first reason ``file`` cannot enter a batch, or None."""
    if file.content_type not in accepted_types:
        return "File type must be one of " + ", ".join(sorted(accepted_types))
    if file.size > max_size:
        return f"File is larger than {_format_size(max_size)}"
    if file.size == 0:
        return "File is empty"
    return None


def admit_files(
    files: list[DroppedFile],
    max_size: int = MAX_FILE_SIZE,
    accepted_types: frozenset[str] = ACCEPTED_MIME_TYPES,
) -> tuple[list[DroppedFile], list[str]]:
    """Split dropped files into admitted files and rejection messages.

    Each rejected file yields exactly one message of the form
    ``"<filename>: <reason>"``.
    """
    accepted: list[DroppedFile] = []
    rejections: list[str] = []
    for file in files:
        reason = rejection_reason(file, max_size, accepted_types)
        if reason is None:
            accepted.append(file)
        else:
            rejections.append(f"{file.filename}: {reason}")
            logger.info(
                "upload_file_rejected",
                filename=file.filename,
                size=file.size,
                content_type=file.content_type,
                reason=reason,
            )
    return accepted, rejections


class PreviewHandle:
    """
    Temporary on-disk copy of a dropped image, served back as its preview.

    ``acquire()`` writes the file and ``release()`` deletes it. Release is
    idempotent so every removal path can call it unconditionally. Usable as a
    context manager.
    """

    def __init__(self, directory: str, file: DroppedFile):
        self.directory = directory
        self.content_type = file.content_type
        self._data = file.data
        extension = mimetypes.guess_extension(file.content_type) or ""
        self.path = os.path.join(directory, f"{uuid.uuid4().hex}{extension}")
        self.acquired = False
        self.released = False

    def acquire(self) -> "PreviewHandle":
        if self.released:
            raise RuntimeError("Preview handle already released")
        if not self.acquired:
            os.makedirs(self.directory, exist_ok=True)
            with open(self.path, "wb") as fh:
                fh.write(self._data)
            self.acquired = True
        return self

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        self._data = b""
        if self.acquired:
            try:
                os.remove(self.path)
            except FileNotFoundError:
                pass

    @property
    def active(self) -> bool:
        return self.acquired and not self.released

    def __enter__(self) -> "PreviewHandle":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


@dataclass(eq=False)
class UploadEntry:
    file: DroppedFile
    preview: PreviewHandle
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    progress: int = 0
    status: UploadStatus = UploadStatus.PENDING
    error: str | None = None

    def set_progress(self, percent: int) -> None:
        self.progress = max(0, min(100, int(percent)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "filename": self.file.filename,
            "size": self.file.size,
            "progress": self.progress,
            "status": self.status.value,
            "error": self.error,
        }


@dataclass
class BatchResult:
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


class UploadBatch:
    """Ordered set of admitted files awaiting upload."""

    def __init__(self, preview_dir: str, batch_id: str | None = None):
        self.id = batch_id or uuid.uuid4().hex
        self.preview_dir = preview_dir
        self.entries: list[UploadEntry] = []
        self.running = False
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.entries)

    def add(self, files: list[DroppedFile]) -> list[UploadEntry]:
        added = []
        for file in files:
            handle = PreviewHandle(self.preview_dir, file).acquire()
            added.append(UploadEntry(file=file, preview=handle))
        with self._lock:
            self.entries.extend(added)
        return added

    def get(self, entry_id: str) -> UploadEntry | None:
        with self._lock:
            return next((e for e in self.entries if e.id == entry_id), None)

    def remove(self, entry_id: str) -> bool:
        """Drop an entry before submission and release its preview."""
        with self._lock:
            if self.running:
                return False
            entry = next((e for e in self.entries if e.id == entry_id), None)
            if entry is None:
                return False
            self.entries.remove(entry)
        entry.preview.release()
        return True

    def _outstanding(self) -> list[UploadEntry]:
        return [
            e
            for e in self.entries
            if e.status in (UploadStatus.PENDING, UploadStatus.FAILED)
        ]

    def outstanding(self) -> list[UploadEntry]:
        with self._lock:
            return self._outstanding()

    def start(self) -> list[UploadEntry]:
        """Claim the batch for one run and return the entries it uploads.

        Raises:
            ValidationError: a run is already in progress, or nothing is left
        """
        with self._lock:
            if self.running:
                raise ValidationError({"files": [BATCH_RUNNING]})
            entries = self._outstanding()
            if not entries:
                raise ValidationError({"files": [EMPTY_BATCH]})
            for entry in entries:
                entry.status = UploadStatus.UPLOADING
            self.running = True
        return entries

    def finish(self) -> None:
        with self._lock:
            for entry in self.entries:
                # Never reached a worker
                if entry.status == UploadStatus.UPLOADING:
                    entry.status = UploadStatus.FAILED
                    entry.error = UPLOAD_FAILED
            self.running = False

    def prune_succeeded(self) -> None:
        with self._lock:
            done = [e for e in self.entries if e.status == UploadStatus.SUCCEEDED]
            self.entries = [
                e for e in self.entries if e.status != UploadStatus.SUCCEEDED
            ]
        for entry in done:
            entry.preview.release()

    def clear(self) -> None:
        with self._lock:
            entries, self.entries = self.entries, []
        for entry in entries:
            entry.preview.release()

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            entries = list(self.entries)
        return {
            "id": self.id,
            "running": self.running,
            "files": [e.to_dict() for e in entries],
        }


def _upload_entry(entry: UploadEntry, metadata: MediaMetadata, media_service) -> None:
    entry.status = UploadStatus.UPLOADING
    entry.progress = 0
    entry.error = None
    try:
        media_service.upload(entry.file, metadata, on_progress=entry.set_progress)
    except Exception as e:
        # Isolated per file: siblings keep running and the batch reports it
        entry.status = UploadStatus.FAILED
        entry.error = UPLOAD_FAILED
        logger.warning(
            "upload_failed",
            filename=entry.file.filename,
            error_type=type(e).__name__,
            error=str(e),
        )
        return
    entry.set_progress(100)
    entry.status = UploadStatus.SUCCEEDED


def run_batch(
    batch: UploadBatch, metadata: MediaMetadata, media_service
) -> BatchResult:
    """Upload every outstanding entry of ``batch`` concurrently.

    All uploads start together (one worker per file, no cap). Entries that
    succeed are removed from the batch and their previews released; failed
    entries stay in the batch flagged with an error for a manual retry.

    Raises:
        ValidationError: invalid metadata, nothing to upload, or a run of the
            same batch still in progress
    """
    metadata.validate()
    entries = batch.start()

    def _worker():
        # The media service reads the bearer token from the session, so each
        # thread gets its own copy of the request context
        if has_request_context():
            return copy_current_request_context(_upload_entry)
        return _upload_entry

    logger.info("upload_batch_started", batch_id=batch.id, files=len(entries))
    try:
        with ThreadPoolExecutor(max_workers=len(entries)) as pool:
            futures = [
                pool.submit(_worker(), entry, metadata, media_service)
                for entry in entries
            ]
            wait(futures)
    finally:
        batch.finish()

    result = BatchResult()
    for entry in entries:
        if entry.status == UploadStatus.SUCCEEDED:
            result.succeeded.append(entry.file.filename)
        else:
            result.failed.append(entry.file.filename)
    batch.prune_succeeded()
    logger.info(
        "upload_batch_finished",
        batch_id=batch.id,
        succeeded=len(result.succeeded),
        failed=len(result.failed),
    )
    return result


class UploadBatchRegistry:
    """Per-session upload batches, keyed by an id kept in the Flask session.

    Batches are released on sign-out, on an explicit clear, once a run leaves
    them empty, and by ``sweep`` when their session stops touching them for
    ``max_idle`` seconds. Batches with a run in progress are never swept.
    """

    def __init__(
        self,
        preview_dir: str,
        max_idle: float | None = DEFAULT_MAX_IDLE,
        clock=time.monotonic,
    ):
        self.preview_dir = preview_dir
        self.max_idle = max_idle
        self._clock = clock
        self._batches: dict[str, UploadBatch] = {}
        self._last_seen: dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._batches)

    def current(self, create: bool = True) -> UploadBatch | None:
        self.sweep()
        batch_id = session.get(BATCH_SESSION_KEY)
        with self._lock:
            batch = self._batches.get(batch_id) if batch_id else None
            if batch is None and create:
                batch = UploadBatch(self.preview_dir)
                self._batches[batch.id] = batch
                session[BATCH_SESSION_KEY] = batch.id
            if batch is not None:
                self._last_seen[batch.id] = self._clock()
        return batch

    def _forget(self, batch_id: str) -> UploadBatch | None:
        self._last_seen.pop(batch_id, None)
        return self._batches.pop(batch_id, None)

    def discard(self, batch_id: str | None = None) -> None:
        """Release and forget a batch (the session's own when no id given)."""
        if batch_id is None:
            batch_id = session.pop(BATCH_SESSION_KEY, None)
        with self._lock:
            batch = self._forget(batch_id) if batch_id else None
        if batch is not None:
            batch.clear()

    def discard_if_empty(self, batch: UploadBatch) -> bool:
        """Forget ``batch`` when nothing is left in it and no run is active."""
        with self._lock:
            if len(batch) or batch.running:
                return False
            if self._batches.get(batch.id) is not batch:
                return False
            self._forget(batch.id)
        if session.get(BATCH_SESSION_KEY) == batch.id:
            session.pop(BATCH_SESSION_KEY)
        return True

    def sweep(self) -> int:
        """Release batches idle for longer than ``max_idle`` seconds."""
        if not self.max_idle:
            return 0
        cutoff = self._clock() - self.max_idle
        with self._lock:
            stale = [
                batch
                for batch_id, batch in self._batches.items()
                if self._last_seen.get(batch_id, 0) < cutoff and not batch.running
            ]
            for batch in stale:
                self._forget(batch.id)
        for batch in stale:
            batch.clear()
        if stale:
            logger.info("upload_batches_swept", count=len(stale))
        return len(stale)

    def close(self) -> None:
        with self._lock:
            batches, self._batches = list(self._batches.values()), {}
            self._last_seen = {}
        for batch in batches:
            batch.clear()


def init_uploads(app) -> UploadBatchRegistry:
    preview_dir = app.config.get("PREVIEW_FOLDER") or "previews"
    if not os.path.isabs(preview_dir):
        preview_dir = os.path.join(app.instance_path, preview_dir)
    registry = UploadBatchRegistry(
        preview_dir,
        max_idle=app.config.get("UPLOAD_BATCH_MAX_IDLE", DEFAULT_MAX_IDLE),
    )
    app.extensions[UPLOADS_KEY] = registry
    atexit.register(registry.close)
    return registry
