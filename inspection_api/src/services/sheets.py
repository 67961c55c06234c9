from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from src.core.config import PipelineConfig
from src.core.errors import StoreAppendError
from src.services.artifacts import describe_error
from src.services.base import BaseService
from src.services.google_clients import build_sheets_service

logger = logging.getLogger(__name__)


class SheetsStore(BaseService):
    """Append-only tabular store backed by a Google Sheets range."""

    def __init__(self, config: PipelineConfig, service=None, credentials=None) -> None:
        super().__init__(config)
        self._service = service
        self._credentials = credentials

    def _sheets(self):
        if self._service is None:
            self._service = build_sheets_service(self._credentials)
        return self._service

    # PUBLIC_INTERFACE
    def append_rows(self, rows: Sequence[Sequence[str]]) -> Dict[str, Any]:
        """
        Append all rows of one submission in a single batch call.

        Values are sent USER_ENTERED so HYPERLINK formulas become links.

        Returns:
            The API `updates` payload (may be empty).
        Raises:
            StoreAppendError: on any client or transport failure.
        """
        values: List[List[str]] = [list(row) for row in rows]
        logger.info("Appending %d row(s) to %s", len(values), self.config.sheet_range)
        try:
            response = (
                self._sheets()
                .spreadsheets()
                .values()
                .append(
                    spreadsheetId=self.config.spreadsheet_id,
                    range=self.config.sheet_range,
                    valueInputOption="USER_ENTERED",
                    insertDataOption="INSERT_ROWS",
                    body={"values": values},
                )
                .execute()
            )
        except Exception as exc:
            raise StoreAppendError(f"Failed to append rows to the spreadsheet: {describe_error(exc)}") from exc

        updates = (response or {}).get("updates") or {}
        logger.info("Spreadsheet updated: %s", updates.get("updatedRange", "-"))
        return updates
