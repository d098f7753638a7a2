"""
Media uploads and listings against ``/admin/media``.

Uploads are multipart: a ``file`` part with the image bytes and a
``metadata`` part holding the JSON metadata. Progress is reported as the
request body is read by the transport.
"""
import io
import json
from collections.abc import Callable
from typing import Any

import structlog
from urllib3 import encode_multipart_formdata
from urllib3.fields import RequestField

from gallery_admin.models import DroppedFile, MediaMetadata
from gallery_admin.services.client import ApiClient

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[int], None]


class ProgressReader:
    """
    Read-only body that reports how much of itself has been consumed.

    ``requests`` sizes the body with ``len()`` and the HTTP connection pulls it
    through ``read()`` in blocks; each non-empty block reports an integer
    percentage of the whole body to ``callback``.
    """

    def __init__(self, data: bytes, callback: ProgressCallback | None = None):
        self._buffer = io.BytesIO(data)
        self._total = len(data)
        self._callback = callback

    def __len__(self) -> int:
        return self._total

    def read(self, size: int = -1) -> bytes:
        chunk = self._buffer.read(size)
        if chunk and self._callback and self._total:
            self._callback(round(self._buffer.tell() * 100 / self._total))
        return chunk


def build_multipart(file: DroppedFile, metadata: dict[str, Any]) -> tuple[bytes, str]:
    """Encode the file and its JSON metadata as ``multipart/form-data``."""
    file_part = RequestField(name="file", data=file.data, filename=file.filename)
    file_part.make_multipart(content_type=file.content_type)
    metadata_part = RequestField(name="metadata", data=json.dumps(metadata))
    metadata_part.make_multipart(content_type="application/json")
    return encode_multipart_formdata([file_part, metadata_part])


class MediaService:
    """Uploads images and lists media per category. No admin pre-check."""

    path = "/admin/media"

    def __init__(self, client: ApiClient):
        self.client = client

    def upload(
        self,
        file: DroppedFile,
        metadata: MediaMetadata,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        body, content_type = build_multipart(
            file, metadata.to_payload(filename=file.filename)
        )
        self.client.request(
            "POST",
            self.path,
            data=ProgressReader(body, on_progress),
            headers={"Content-Type": content_type},
        )
        logger.info(
            "media_uploaded",
            filename=file.filename,
            category_id=metadata.category_id,
            size=file.size,
        )

    def list_by_category(self, category_id: str) -> list[dict[str, Any]]:
        return self.client.get_json(f"{self.path}/{category_id}") or []
