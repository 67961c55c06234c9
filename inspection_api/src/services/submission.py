from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple
from uuid import uuid4

from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from src.core.config import PipelineConfig
from src.core.errors import ConfigurationError, RenderError, StoreAppendError
from src.core.logging import inspection_id_var
from src.core.settings import AppSettings
from src.schemas.inspection import InspectionSubmission, SubmissionResponse
from src.services.artifacts import ArtifactUploader, UploadOutcome, build_uploader, evidence_key, signature_key
from src.services.base import BaseService
from src.services.document import render_pdf
from src.services.google_clients import build_credentials
from src.services.images import BlankClassifier, BytePatternBlankClassifier, is_embedded_image
from src.services.notifier import EmailNotifier
from src.services.rows import build_rows
from src.services.sheets import SheetsStore

logger = logging.getLogger(__name__)

SIGNATURE_ROLES = ("inspector", "unit")


class TabularStore(Protocol):
    def append_rows(self, rows: Sequence[Sequence[str]]) -> Dict[str, Any]:  # pragma: no cover - protocol
        ...


class Notifier(Protocol):
    def notify(self, recipient: str, document: bytes, inspection_id: str) -> bool:  # pragma: no cover - protocol
        ...


# PUBLIC_INTERFACE
def new_inspection_id(prefix: str = "INSPEC") -> str:
    """Epoch milliseconds plus a short random suffix so concurrent submissions never share an id."""
    return f"{prefix}-{int(time.time() * 1000)}-{uuid4().hex[:6].upper()}"


@dataclass
class PipelineComponents:
    """External collaborators for one submission, built per request."""
    uploader: ArtifactUploader
    store: TabularStore
    notifier: Optional[Notifier] = None
    classifier: BlankClassifier = field(default_factory=BytePatternBlankClassifier)


@dataclass(frozen=True)
class ResolvedArtifacts:
    """
    Upload outcomes of one submission.

    signatures: (inspector, unit responsible); None means classified blank.
    evidence: item index -> outcome; None means the item carried no photo.
    """
    signatures: Tuple[Optional[UploadOutcome], Optional[UploadOutcome]]
    evidence: Dict[int, Optional[UploadOutcome]]


# PUBLIC_INTERFACE
def build_components(config: PipelineConfig) -> PipelineComponents:
    """
    Construct the Google-backed collaborators selected by the config capabilities.

    Raises:
        ConfigurationError: the private key cannot be parsed into credentials.
    """
    try:
        credentials = build_credentials(config)
    except ValueError as exc:
        raise ConfigurationError(
            ["GOOGLE_PRIVATE_KEY"], detail="GOOGLE_PRIVATE_KEY is not a valid service account key"
        ) from exc
    return PipelineComponents(
        uploader=build_uploader(config, credentials=credentials),
        store=SheetsStore(config, credentials=credentials),
        notifier=EmailNotifier(config) if config.notify_enabled else None,
    )


async def _skip() -> None:
    return None


# PUBLIC_INTERFACE
async def resolve_artifacts(
    submission: InspectionSubmission,
    inspection_id: str,
    uploader: ArtifactUploader,
    classifier: BlankClassifier,
) -> ResolvedArtifacts:
    """
    Classify both signatures and upload every non-blank signature and every item
    photo concurrently; returns once all uploads have finished.

    Blank signatures are never uploaded.
    """

    async def _upload(image: Optional[str], key: str) -> UploadOutcome:
        return await run_in_threadpool(uploader.upload, image, key)

    signature_images = (submission.signatures.inspector, submission.signatures.unit_responsible)
    jobs = []
    blank = await asyncio.gather(
        *(run_in_threadpool(classifier.is_blank, image) for image in signature_images)
    )
    for role, image, is_blank in zip(SIGNATURE_ROLES, signature_images, blank):
        if is_blank:
            logger.info("Signature %s is blank; not uploading", role)
            jobs.append(_skip())
        else:
            jobs.append(_upload(image, signature_key(inspection_id, role, image)))

    for index, item in enumerate(submission.items):
        if is_embedded_image(item.photo):
            jobs.append(_upload(item.photo, evidence_key(inspection_id, index + 1, item.photo)))
        else:
            jobs.append(_skip())

    results: List[Optional[UploadOutcome]] = await asyncio.gather(*jobs)
    return ResolvedArtifacts(
        signatures=(results[0], results[1]),
        evidence={index: outcome for index, outcome in enumerate(results[2:])},
    )


class SubmissionService(BaseService):
    """
    Runs one submission through the pipeline.

    Upload, render and notification failures degrade to visible fallback text;
    only the spreadsheet append can fail the submission.
    """

    def __init__(
        self,
        config: PipelineConfig,
        components: PipelineComponents,
        id_factory: Callable[[], str] = new_inspection_id,
    ) -> None:
        super().__init__(config)
        self.components = components
        self.id_factory = id_factory

    async def _render(self, submission: InspectionSubmission, inspection_id: str, artifacts: ResolvedArtifacts) -> Optional[bytes]:
        if not self.config.document_enabled:
            return None
        try:
            return await run_in_threadpool(
                render_pdf, submission, inspection_id, artifacts.signatures, artifacts.evidence
            )
        except RenderError:
            logger.exception("Inspection report could not be rendered; continuing without it")
            return None

    async def _notify(self, submission: InspectionSubmission, inspection_id: str, document: Optional[bytes]) -> bool:
        recipient = (submission.header.notification_email or "").strip()
        notifier = self.components.notifier
        if not recipient or notifier is None:
            return False
        if document is None:
            logger.warning("No rendered report available; skipping notification to %s", recipient)
            return False
        try:
            return await run_in_threadpool(notifier.notify, recipient, document, inspection_id)
        except Exception:
            logger.exception("Notifier failed for %s; continuing without notification", inspection_id)
            return False

    # PUBLIC_INTERFACE
    async def submit(self, submission: InspectionSubmission) -> SubmissionResponse:
        """
        Resolve artifacts, build rows, render, notify, then append.

        Raises:
            StoreAppendError: the spreadsheet append failed.
        """
        inspection_id = self.id_factory()
        token = inspection_id_var.set(inspection_id)
        try:
            logger.info(
                "Processing submission: %d participant(s), %d item(s)",
                len(submission.participants),
                len(submission.items),
            )
            artifacts = await resolve_artifacts(
                submission, inspection_id, self.components.uploader, self.components.classifier
            )
            rows = build_rows(submission, inspection_id, artifacts.evidence, artifacts.signatures)
            document = await self._render(submission, inspection_id, artifacts)
            notified = await self._notify(submission, inspection_id, document)
            updates = await run_in_threadpool(self.components.store.append_rows, rows)
            logger.info("Submission recorded: %d row(s)", len(rows))
        finally:
            inspection_id_var.reset(token)

        return SubmissionResponse(
            success=True,
            message="Inspection report saved successfully.",
            inspection_id=inspection_id,
            rows_appended=len(rows),
            document_generated=document is not None,
            notification_sent=notified,
            updated_range=updates.get("updatedRange") if isinstance(updates, dict) else None,
        )


def _validation_summary(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors()[:5]:
        location = ".".join(str(part) for part in error.get("loc", ())) or "body"
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


# PUBLIC_INTERFACE
async def handle_submission(
    payload: Any,
    settings: AppSettings,
    components_factory: Callable[[PipelineConfig], PipelineComponents] = build_components,
    id_factory: Callable[[], str] = new_inspection_id,
) -> Tuple[int, SubmissionResponse]:
    """
    Entry point of the submission flow: validate payload and configuration, run
    the pipeline and map the result to (HTTP status, response envelope).
    """
    try:
        submission = InspectionSubmission.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Rejected invalid inspection payload")
        return 400, SubmissionResponse(
            success=False, message="Invalid inspection payload.", error=_validation_summary(exc)
        )

    try:
        config = PipelineConfig.from_settings(settings)
        components = components_factory(config)
    except ConfigurationError as exc:
        logger.error("Submission rejected: %s", exc)
        return 500, SubmissionResponse(
            success=False, message="Server configuration error.", error=str(exc)
        )

    service = SubmissionService(config, components, id_factory=id_factory)
    try:
        response = await service.submit(submission)
    except StoreAppendError as exc:
        logger.error("Submission failed: %s", exc)
        return 500, SubmissionResponse(
            success=False, message="Failed to save the inspection report.", error=str(exc)
        )
    return 200, response
