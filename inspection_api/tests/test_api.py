import io

import pandas as pd
import pytest
from fastapi.testclient import TestClient

from conftest import signed_image
from src.api.main import app
from src.core.deps import get_components_factory
from src.core.settings import get_app_settings
from src.services.rows import COLUMNS


@pytest.fixture
def client(settings, components):
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_components_factory] = lambda: (lambda config: components)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["message"] == "Healthy"


@pytest.mark.parametrize("path", ["/api/submit", "/api/v1/submit"])
def test_submit_records_inspection(client, minimal_payload, store, path):
    response = client.post(path, json=minimal_payload)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["inspectionId"].startswith("INSPEC-")
    assert body["rowsAppended"] == 1
    assert "error" not in body
    assert len(store.batches) == 1


def test_submit_rejects_invalid_json(client, store):
    response = client.post("/api/submit", content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]
    assert store.batches == []


def test_submit_reports_store_failure(client, minimal_payload, store):
    store.error = "quota exceeded"

    response = client.post("/api/submit", json=minimal_payload)

    assert response.status_code == 500
    assert response.json()["success"] is False


def test_submit_reports_missing_configuration(client, settings, minimal_payload):
    app.dependency_overrides[get_app_settings] = lambda: settings.model_copy(
        update={"GOOGLE_CLIENT_EMAIL": None}
    )

    response = client.post("/api/submit", json=minimal_payload)

    assert response.status_code == 500
    body = response.json()
    assert body["message"] == "Server configuration error."
    assert "GOOGLE_CLIENT_EMAIL" in body["error"]
    assert "PRIVATE KEY" not in body["error"]


def test_correlation_id_is_echoed(client):
    response = client.get("/api/v1/health", headers={"X-Correlation-ID": "corr-123"})

    assert response.headers["X-Correlation-ID"] == "corr-123"


def test_preview_pdf_does_not_touch_external_services(client, minimal_payload, uploader, store):
    payload = {**minimal_payload, "signatures": {"responsavelInspecao": signed_image(), "responsavelUnidade": ""}}

    response = client.post("/api/v1/reports/preview", json=payload)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert uploader.calls == []
    assert store.batches == []


def test_preview_csv_lists_rows(client, minimal_payload):
    response = client.post("/api/v1/reports/preview?export_format=csv", json=minimal_payload)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    frame = pd.read_csv(io.StringIO(response.text), dtype=str, keep_default_na=False)
    assert list(frame.columns) == list(COLUMNS)
    assert frame.loc[0, "Inspection ID"].startswith("PREVIEW-")
    assert frame.loc[0, "Evidence"] == "none"
    assert frame.loc[0, "Inspector Signature"] == "not signed"


def test_preview_rejects_unknown_format(client, minimal_payload):
    response = client.post("/api/v1/reports/preview?export_format=docx", json=minimal_payload)

    assert response.status_code == 422
    assert response.json()["error"]["type"] == "validation_error"


def test_preview_rejects_invalid_json(client):
    response = client.post(
        "/api/v1/reports/preview", content=b"[", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["error"]["type"] == "invalid_json"
