from __future__ import annotations

from typing import Iterable, Optional


class InspectionError(Exception):
    """Base class for failures raised by the submission pipeline."""


class ConfigurationError(InspectionError):
    """
    Required external configuration is missing.

    Only the variable names are carried, never their values.
    """

    def __init__(self, missing: Iterable[str], detail: Optional[str] = None) -> None:
        self.missing = sorted(set(missing))
        super().__init__(detail or f"Missing required configuration: {', '.join(self.missing)}")


class ImageDecodeError(InspectionError):
    """An embedded image has the data-URL prefix but its payload cannot be decoded."""


class ArtifactUploadError(InspectionError):
    """A single artifact transfer failed. Uploaders convert this into an UploadOutcome."""


class RenderError(InspectionError):
    """The PDF summary could not be produced."""


class NotificationError(InspectionError):
    """The email relay rejected or failed to deliver the summary."""


class StoreAppendError(InspectionError):
    """The spreadsheet append failed. This is the one failure that fails a submission."""
