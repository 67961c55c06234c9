import asyncio
import re
import threading
import time

import pytest

from conftest import (
    INSPECTION_ID,
    FakeNotifier,
    FakeStore,
    FakeUploader,
    blank_image,
    photo_image,
    signed_image,
)
from src.schemas.inspection import InspectionSubmission
from src.services import submission as submission_module
from src.services.images import BytePatternBlankClassifier
from src.services.notifier import EmailNotifier
from src.services.rows import COLUMNS
from src.services.submission import PipelineComponents, handle_submission, new_inspection_id, resolve_artifacts

EVIDENCE = COLUMNS.index("Evidence")
INSPECTOR = COLUMNS.index("Inspector Signature")
UNIT = COLUMNS.index("Unit Signature")


def _submit(payload, settings, components):
    return asyncio.run(
        handle_submission(
            payload,
            settings,
            components_factory=lambda config: components,
            id_factory=lambda: INSPECTION_ID,
        )
    )


def _items(*photos):
    return [
        {"id": n, "fato": f"Finding {n}", "foto": photo}
        for n, photo in enumerate(photos, start=1)
    ]


def test_minimal_submission_records_one_row(minimal_payload, settings, components, uploader, store, notifier):
    status, response = _submit(minimal_payload, settings, components)

    assert status == 200
    assert response.success is True
    assert response.inspection_id == INSPECTION_ID
    assert response.rows_appended == 1
    assert response.document_generated is True
    assert response.notification_sent is False
    assert uploader.calls == []
    assert notifier.calls == []

    [row] = store.batches[0]
    assert row[0] == INSPECTION_ID
    assert row[EVIDENCE] == "none"
    assert row[INSPECTOR] == "not signed"
    assert row[UNIT] == "not signed"


def test_blank_signatures_are_never_uploaded(minimal_payload, settings, components, uploader, store):
    payload = {
        **minimal_payload,
        "signatures": {"responsavelInspecao": blank_image(), "responsavelUnidade": "data:image/png;base64,AAAA"},
    }

    status, _ = _submit(payload, settings, components)

    assert status == 200
    assert uploader.calls == []
    [row] = store.batches[0]
    assert row[INSPECTOR] == row[UNIT] == "not signed"


def test_signed_signature_url_lands_in_hyperlink(minimal_payload, settings, components, uploader, store):
    payload = {**minimal_payload, "signatures": {"responsavelInspecao": signed_image(), "responsavelUnidade": ""}}

    _submit(payload, settings, components)

    assert uploader.calls == [f"signatures/{INSPECTION_ID}/inspector.png"]
    [row] = store.batches[0]
    url = f"https://storage.googleapis.com/test-bucket/signatures/{INSPECTION_ID}/inspector.png"
    assert row[INSPECTOR] == f'=HYPERLINK("{url}", "View signature")'
    assert row[UNIT] == "not signed"


def test_one_row_per_item_with_independent_evidence(minimal_payload, settings, components, uploader, store):
    payload = {**minimal_payload, "inspectionItems": _items(photo_image(), "Nenhuma", photo_image())}

    status, response = _submit(payload, settings, components)

    assert status == 200
    assert response.rows_appended == 3
    assert sorted(uploader.calls) == [
        f"evidence/{INSPECTION_ID}/item-1.jpg",
        f"evidence/{INSPECTION_ID}/item-3.jpg",
    ]
    rows = store.batches[0]
    assert [row[12] for row in rows] == ["1", "2", "3"]
    assert rows[0][EVIDENCE].startswith("=HYPERLINK(")
    assert rows[1][EVIDENCE] == "none"
    assert "item-3.jpg" in rows[2][EVIDENCE]


def test_failed_evidence_upload_does_not_fail_submission(minimal_payload, settings, store):
    uploader = FakeUploader(fail={f"evidence/{INSPECTION_ID}/item-1": "bucket unreachable"})
    components = PipelineComponents(uploader=uploader, store=store)
    payload = {**minimal_payload, "inspectionItems": _items(photo_image(), photo_image())}

    status, response = _submit(payload, settings, components)

    assert status == 200
    assert response.success is True
    rows = store.batches[0]
    assert rows[0][EVIDENCE] == "Upload failed: bucket unreachable"
    assert rows[1][EVIDENCE].startswith("=HYPERLINK(")


def test_store_failure_fails_submission(minimal_payload, settings, uploader, notifier):
    components = PipelineComponents(uploader=uploader, store=FakeStore(error="quota exceeded"), notifier=notifier)

    status, response = _submit(minimal_payload, settings, components)

    assert status == 500
    assert response.success is False
    assert response.message == "Failed to save the inspection report."
    assert "quota exceeded" in response.error


def test_recipient_receives_rendered_document(minimal_payload, settings, components, notifier):
    payload = {**minimal_payload, "headerData": {**minimal_payload["headerData"], "email": "manager@example.com"}}

    status, response = _submit(payload, settings, components)

    assert status == 200
    assert response.notification_sent is True
    [(recipient, document, inspection_id)] = notifier.calls
    assert recipient == "manager@example.com"
    assert document.startswith(b"%PDF")
    assert inspection_id == INSPECTION_ID


def test_notification_failure_keeps_submission_successful(minimal_payload, settings, uploader, store):
    components = PipelineComponents(uploader=uploader, store=store, notifier=FakeNotifier(result=False))
    payload = {**minimal_payload, "headerData": {**minimal_payload["headerData"], "email": "manager@example.com"}}

    status, response = _submit(payload, settings, components)

    assert status == 200
    assert response.success is True
    assert response.notification_sent is False
    assert len(store.batches) == 1


def test_render_failure_skips_document_and_notification(minimal_payload, settings, components, notifier, store, monkeypatch):
    def broken(*args, **kwargs):
        raise submission_module.RenderError("font missing")

    monkeypatch.setattr(submission_module, "render_pdf", broken)
    payload = {**minimal_payload, "headerData": {**minimal_payload["headerData"], "email": "manager@example.com"}}

    status, response = _submit(payload, settings, components)

    assert status == 200
    assert response.document_generated is False
    assert response.notification_sent is False
    assert notifier.calls == []
    assert len(store.batches) == 1


def test_document_disabled(minimal_payload, settings, components):
    settings = settings.model_copy(update={"DOCUMENT_ENABLED": False})

    status, response = _submit(minimal_payload, settings, components)

    assert status == 200
    assert response.document_generated is False


def test_missing_configuration_is_server_error(minimal_payload, settings, components, store):
    settings = settings.model_copy(update={"GOOGLE_SHEET_ID": None})

    status, response = _submit(minimal_payload, settings, components)

    assert status == 500
    assert response.success is False
    assert response.message == "Server configuration error."
    assert "GOOGLE_SHEET_ID" in response.error
    assert store.batches == []


def test_invalid_payload_is_client_error(settings, components, store):
    status, response = _submit({"inspectionItems": "not a list"}, settings, components)

    assert status == 400
    assert response.success is False
    assert "inspectionItems" in response.error or "items" in response.error
    assert store.batches == []


@pytest.mark.parametrize("payload", [[], "text", 42])
def test_non_object_payload_is_client_error(payload, settings, components):
    status, response = _submit(payload, settings, components)

    assert status == 400
    assert response.success is False


def test_inspection_ids_are_unique_and_prefixed():
    ids = {new_inspection_id() for _ in range(50)}

    assert len(ids) == 50
    assert all(re.fullmatch(r"INSPEC-\d{13}-[0-9A-F]{6}", value) for value in ids)
    assert new_inspection_id(prefix="PREVIEW").startswith("PREVIEW-")


def test_non_string_image_values_are_treated_as_absent(minimal_payload, settings, components, uploader, store):
    payload = {
        **minimal_payload,
        "inspectionItems": [{"id": 1, "fato": "Finding", "foto": False}, {"id": 2, "foto": {}}],
        "signatures": {"responsavelInspecao": 0, "responsavelUnidade": {}},
    }

    status, response = _submit(payload, settings, components)

    assert status == 200
    assert response.success is True
    assert uploader.calls == []
    rows = store.batches[0]
    assert [row[EVIDENCE] for row in rows] == ["none", "none"]
    assert rows[0][INSPECTOR] == rows[0][UNIT] == "not signed"


class _RefusingSMTP:
    def __init__(self, host, port):
        raise AssertionError("no connection expected")


def test_header_injection_in_recipient_does_not_lose_record(minimal_payload, settings, config, uploader, store):
    components = PipelineComponents(
        uploader=uploader,
        store=store,
        notifier=EmailNotifier(config, smtp_factory=_RefusingSMTP),
    )
    payload = {
        **minimal_payload,
        "headerData": {**minimal_payload["headerData"], "email": "a@example.com\r\nBcc: x@evil.com"},
    }

    status, response = _submit(payload, settings, components)

    assert status == 200
    assert response.notification_sent is False
    assert len(store.batches) == 1


class _ExplodingNotifier:
    def notify(self, recipient, document, inspection_id):
        raise RuntimeError("relay client crashed")


def test_notifier_exception_is_contained(minimal_payload, settings, uploader, store):
    components = PipelineComponents(uploader=uploader, store=store, notifier=_ExplodingNotifier())
    payload = {**minimal_payload, "headerData": {**minimal_payload["headerData"], "email": "manager@example.com"}}

    status, response = _submit(payload, settings, components)

    assert status == 200
    assert response.success is True
    assert response.notification_sent is False
    assert len(store.batches) == 1


class _SlowUploader(FakeUploader):
    """Sleeps inside each upload and tracks how many run at the same time."""

    def __init__(self):
        super().__init__()
        self._lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def upload(self, image, object_key):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(0.1)
        with self._lock:
            self.active -= 1
        return super().upload(image, object_key)


def test_uploads_are_issued_concurrently(minimal_payload):
    payload = {
        **minimal_payload,
        "inspectionItems": _items(photo_image(), photo_image(), photo_image()),
        "signatures": {"responsavelInspecao": signed_image(), "responsavelUnidade": signed_image()},
    }
    submission = InspectionSubmission.model_validate(payload)
    uploader = _SlowUploader()

    artifacts = asyncio.run(
        resolve_artifacts(submission, INSPECTION_ID, uploader, BytePatternBlankClassifier())
    )

    assert len(uploader.calls) == 5
    assert uploader.peak > 1
    assert all(outcome.ok for outcome in artifacts.signatures)
    assert all(outcome.ok for outcome in artifacts.evidence.values())


class _ThreadRecordingClassifier(BytePatternBlankClassifier):
    def __init__(self):
        super().__init__()
        self.threads = []

    def is_blank(self, image):
        self.threads.append(threading.get_ident())
        return super().is_blank(image)


def test_blank_classification_runs_off_the_event_loop(minimal_payload):
    submission = InspectionSubmission.model_validate(
        {**minimal_payload, "signatures": {"responsavelInspecao": blank_image(), "responsavelUnidade": signed_image()}}
    )
    classifier = _ThreadRecordingClassifier()

    async def run():
        loop_thread = threading.get_ident()
        artifacts = await resolve_artifacts(submission, INSPECTION_ID, FakeUploader(), classifier)
        return loop_thread, artifacts

    loop_thread, artifacts = asyncio.run(run())

    assert len(classifier.threads) == 2
    assert loop_thread not in classifier.threads
    assert artifacts.signatures[0] is None
    assert artifacts.signatures[1].ok
