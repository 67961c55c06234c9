from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.core.config import PipelineConfig
from src.core.deps import InvalidJSONBody, get_components_factory, read_json_body
from src.core.settings import AppSettings, get_app_settings
from src.schemas.inspection import SubmissionResponse
from src.services.submission import PipelineComponents, handle_submission

router = APIRouter(tags=["Submissions"])


def _envelope(status_code: int, response: SubmissionResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


# PUBLIC_INTERFACE
@router.post(
    "/submit",
    response_model=SubmissionResponse,
    summary="Submit inspection report",
    description=(
        "Record a completed inspection: uploads signatures and evidence photos, renders "
        "a PDF summary, emails it when a notification address is given, and appends one "
        "spreadsheet row per inspection item."
    ),
    responses={
        400: {"model": SubmissionResponse, "description": "Invalid JSON or payload shape"},
        500: {"model": SubmissionResponse, "description": "Configuration or spreadsheet failure"},
    },
)
async def submit_inspection(
    request: Request,
    settings: AppSettings = Depends(get_app_settings),
    components_factory: Callable[[PipelineConfig], PipelineComponents] = Depends(get_components_factory),
) -> JSONResponse:
    """
    Process one inspection submission.

    Returns:
        200 with {success: true, inspectionId, ...} once the rows are appended;
        400/500 with {success: false, error} otherwise. Upload, PDF and email
        failures do not fail the request.
    """
    try:
        payload = await read_json_body(request)
    except InvalidJSONBody as exc:
        return _envelope(
            400, SubmissionResponse(success=False, message="Invalid inspection payload.", error=str(exc))
        )

    status_code, response = await handle_submission(payload, settings, components_factory)
    return _envelope(status_code, response)
