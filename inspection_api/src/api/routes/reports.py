from __future__ import annotations

import io
import logging
from typing import List

import pandas as pd
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from src.core.deps import InvalidJSONBody, read_json_body
from src.core.errors import RenderError
from src.schemas.inspection import InspectionSubmission
from src.services.artifacts import REASON_PREVIEW, StaticOutcomeUploader
from src.services.document import render_pdf
from src.services.images import BytePatternBlankClassifier
from src.services.rows import COLUMNS, build_rows
from src.services.submission import new_inspection_id, resolve_artifacts

logger = logging.getLogger(__name__)

# PUBLIC_INTERFACE
router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
)


def _export_rows(rows: List[List[str]], filename_base: str, export_format: str) -> StreamingResponse:
    """
    Convert spreadsheet rows to the requested format and return a StreamingResponse.

    Supported formats:
      - csv: text/csv
      - xlsx: application/vnd.openxmlformats-officedocument.spreadsheetml.sheet
    """
    df = pd.DataFrame(rows, columns=list(COLUMNS))
    if export_format == "xlsx":
        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            df.to_excel(writer, index=False, sheet_name="Inspection")
        buffer.seek(0)
        headers = {
            "Content-Disposition": f'attachment; filename="{filename_base}.xlsx"'
        }
        return StreamingResponse(
            buffer,
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers=headers,
        )

    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    buffer.seek(0)
    headers = {
        "Content-Disposition": f'attachment; filename="{filename_base}.csv"'
    }
    return StreamingResponse(buffer, media_type="text/csv", headers=headers)


# PUBLIC_INTERFACE
@router.post(
    "/preview",
    summary="Preview an inspection report",
    description=(
        "Dry run of a submission: renders the PDF summary (pdf) or the spreadsheet rows "
        "(csv/xlsx) that would be recorded. Nothing is uploaded, appended or emailed; "
        "artifact cells show that uploads were skipped."
    ),
    response_class=StreamingResponse,
)
async def preview_report(
    export_format: str = Query("pdf", pattern="^(pdf|csv|xlsx)$", description="pdf, csv or xlsx"),
    payload=Depends(read_json_body),
) -> StreamingResponse:
    try:
        submission = InspectionSubmission.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        )

    inspection_id = new_inspection_id(prefix="PREVIEW")
    artifacts = await resolve_artifacts(
        submission,
        inspection_id,
        StaticOutcomeUploader(REASON_PREVIEW),
        BytePatternBlankClassifier(),
    )
    filename_base = f"inspection-preview-{inspection_id}"

    if export_format == "pdf":
        try:
            pdf_bytes = render_pdf(submission, inspection_id, artifacts.signatures, artifacts.evidence)
        except RenderError as exc:
            logger.exception("Preview rendering failed")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
        headers = {
            "Content-Disposition": f'attachment; filename="{filename_base}.pdf"'
        }
        return StreamingResponse(io.BytesIO(pdf_bytes), media_type="application/pdf", headers=headers)

    rows = build_rows(submission, inspection_id, artifacts.evidence, artifacts.signatures)
    return _export_rows(rows, filename_base, export_format)
