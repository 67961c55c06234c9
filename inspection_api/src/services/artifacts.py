from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import quote

from googleapiclient.http import MediaIoBaseUpload

from src.core.config import PipelineConfig
from src.core.errors import ArtifactUploadError, ImageDecodeError
from src.services.base import BaseService
from src.services.google_clients import build_drive_service, build_storage_client
from src.services.images import DecodedImage, decode_image, extension_for

logger = logging.getLogger(__name__)

REASON_CONFIGURATION_MISSING = "configuration missing"
REASON_NO_IMAGE = "no image data"
REASON_DISABLED = "artifact storage disabled"
REASON_PREVIEW = "preview only, not uploaded"

PUBLIC_STORAGE_HOST = "https://storage.googleapis.com"


@dataclass(frozen=True)
class UploadOutcome:
    """
    Tagged result of one artifact upload: `ok` with a URL, or not `ok` with a reason.

    Consumers turn this into display text only when they write a cell or a PDF line.
    """
    ok: bool
    url: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, url: str) -> "UploadOutcome":
        return cls(ok=True, url=url)

    @classmethod
    def failure(cls, reason: str) -> "UploadOutcome":
        return cls(ok=False, reason=reason)


# PUBLIC_INTERFACE
def signature_key(inspection_id: str, role: str, image: Optional[str] = None) -> str:
    """Object key for a signature: signatures/<id>/<role>.<ext>."""
    return f"signatures/{inspection_id}/{role}.{extension_for(image)}"


# PUBLIC_INTERFACE
def evidence_key(inspection_id: str, position: int, image: Optional[str] = None) -> str:
    """Object key for an item photo: evidence/<id>/item-<n>.<ext> (1-based position)."""
    return f"evidence/{inspection_id}/item-{position}.{extension_for(image)}"


# PUBLIC_INTERFACE
def public_url(bucket: str, object_key: str) -> str:
    """Deterministic public URL of a Cloud Storage object."""
    return f"{PUBLIC_STORAGE_HOST}/{bucket}/{quote(object_key, safe='/')}"


def describe_error(exc: BaseException) -> str:
    """Most specific human-readable message carried by a client exception."""
    for attr in ("message", "reason"):
        value = getattr(exc, attr, None)
        if isinstance(value, str) and value.strip():
            return value.strip()
    text = str(exc).strip()
    return text or exc.__class__.__name__


class ArtifactUploader(Protocol):
    """Uploads one embedded image and never raises."""

    def upload(self, image: Optional[str], object_key: str) -> UploadOutcome:  # pragma: no cover - protocol
        ...


class _TransferUploader(BaseService):
    """
    Shared flow for uploaders that actually transfer bytes.

    Subclasses implement `_is_configured` and `_transfer`; this class turns every
    failure into an UploadOutcome so no exception crosses the boundary.
    """

    backend = "storage"

    # PUBLIC_INTERFACE
    def upload(self, image: Optional[str], object_key: str) -> UploadOutcome:
        if not self._is_configured():
            logger.warning("%s upload skipped for %s: configuration missing", self.backend, object_key)
            return UploadOutcome.failure(REASON_CONFIGURATION_MISSING)

        try:
            decoded = decode_image(image)
        except ImageDecodeError as exc:
            logger.warning("Cannot upload %s: %s", object_key, exc)
            return UploadOutcome.failure(str(exc))
        if decoded is None:
            return UploadOutcome.failure(REASON_NO_IMAGE)

        logger.info("Uploading %s to %s (%d bytes)", object_key, self.backend, len(decoded.data))
        try:
            url = self._transfer(decoded, object_key)
        except Exception as exc:
            reason = describe_error(exc)
            logger.error("Upload of %s to %s failed: %s", object_key, self.backend, reason)
            return UploadOutcome.failure(reason)

        logger.info("Upload of %s completed", object_key)
        return UploadOutcome.success(url)

    def _is_configured(self) -> bool:
        raise NotImplementedError

    def _transfer(self, image: DecodedImage, object_key: str) -> str:
        raise NotImplementedError


class GcsArtifactUploader(_TransferUploader):
    """Stores artifacts as objects in a Cloud Storage bucket and links their public URL."""

    backend = "gcs"

    def __init__(self, config: PipelineConfig, client=None, credentials=None) -> None:
        super().__init__(config)
        self._client = client
        self._credentials = credentials

    def _is_configured(self) -> bool:
        return bool(self.config.storage_bucket and self.config.storage_project_id)

    def _storage_client(self):
        if self._client is None:
            self._client = build_storage_client(self.config, self._credentials)
        return self._client

    def _transfer(self, image: DecodedImage, object_key: str) -> str:
        bucket = self._storage_client().bucket(self.config.storage_bucket)
        blob = bucket.blob(object_key)
        blob.upload_from_string(image.data, content_type=image.media_type)
        return public_url(self.config.storage_bucket, object_key)


class DriveArtifactUploader(_TransferUploader):
    """Stores artifacts as files in a Drive folder and links their webViewLink."""

    backend = "drive"

    def __init__(self, config: PipelineConfig, service=None, credentials=None) -> None:
        super().__init__(config)
        self._service = service
        self._credentials = credentials

    def _is_configured(self) -> bool:
        return bool(self.config.drive_folder_id)

    def _drive(self):
        if self._service is None:
            self._service = build_drive_service(self._credentials)
        return self._service

    def _transfer(self, image: DecodedImage, object_key: str) -> str:
        # Drive has no key hierarchy; the flattened key keeps the inspection id in the name.
        name = object_key.replace("/", "_")
        media = MediaIoBaseUpload(io.BytesIO(image.data), mimetype=image.media_type, resumable=False)
        created = (
            self._drive()
            .files()
            .create(
                body={"name": name, "parents": [self.config.drive_folder_id]},
                media_body=media,
                fields="id, webViewLink",
            )
            .execute()
        )
        link = (created or {}).get("webViewLink")
        if not link:
            raise ArtifactUploadError("Drive did not return a link for the uploaded file")
        return link


class StaticOutcomeUploader:
    """Uploader that never transfers anything and reports a fixed reason."""

    def __init__(self, reason: str) -> None:
        self.reason = reason

    def upload(self, image: Optional[str], object_key: str) -> UploadOutcome:
        return UploadOutcome.failure(self.reason)


# PUBLIC_INTERFACE
def build_uploader(config: PipelineConfig, credentials=None) -> ArtifactUploader:
    """Pick the uploader for the configured artifact backend."""
    if config.artifact_backend == "gcs":
        return GcsArtifactUploader(config, credentials=credentials)
    if config.artifact_backend == "drive":
        return DriveArtifactUploader(config, credentials=credentials)
    return StaticOutcomeUploader(REASON_DISABLED)
