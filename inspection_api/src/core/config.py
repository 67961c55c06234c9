from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from src.core.errors import ConfigurationError
from src.core.settings import AppSettings


@dataclass(frozen=True)
class PipelineConfig:
    """
    Configuration for one submission, resolved once at request entry.

    Every pipeline component receives this object explicitly instead of reading
    the environment. The capability flags select which side effects run:

      - artifact_backend: "gcs" (Cloud Storage), "drive" (Drive folder) or "none"
      - document_enabled: render the PDF summary
      - notify_enabled: email the PDF when the submission names a recipient
    """

    client_email: str
    private_key: str
    spreadsheet_id: str
    sheet_range: str
    artifact_backend: str = "gcs"
    storage_project_id: Optional[str] = None
    storage_bucket: Optional[str] = None
    drive_folder_id: Optional[str] = None
    document_enabled: bool = True
    notify_enabled: bool = True
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    mail_from: Optional[str] = None
    mail_from_name: str = "Inspection Reports"

    # PUBLIC_INTERFACE
    @classmethod
    def from_settings(cls, settings: AppSettings) -> "PipelineConfig":
        """
        Validate presence of required values and build the config.

        Raises:
            ConfigurationError: naming every missing variable (never its value).
        """
        required = {
            "GOOGLE_CLIENT_EMAIL": settings.GOOGLE_CLIENT_EMAIL,
            "GOOGLE_PRIVATE_KEY": settings.GOOGLE_PRIVATE_KEY,
            "GOOGLE_SHEET_ID": settings.GOOGLE_SHEET_ID,
        }
        if settings.ARTIFACT_BACKEND == "gcs":
            required["GOOGLE_CLOUD_PROJECT_ID"] = settings.GOOGLE_CLOUD_PROJECT_ID
            required["GOOGLE_CLOUD_BUCKET_NAME"] = settings.GOOGLE_CLOUD_BUCKET_NAME
        elif settings.ARTIFACT_BACKEND == "drive":
            required["GOOGLE_DRIVE_FOLDER_ID"] = settings.GOOGLE_DRIVE_FOLDER_ID

        missing = [name for name, value in required.items() if not (value or "").strip()]
        if missing:
            raise ConfigurationError(missing)

        return cls(
            client_email=settings.GOOGLE_CLIENT_EMAIL,
            private_key=settings.GOOGLE_PRIVATE_KEY,
            spreadsheet_id=settings.GOOGLE_SHEET_ID,
            sheet_range=settings.GOOGLE_SHEET_RANGE,
            artifact_backend=settings.ARTIFACT_BACKEND,
            storage_project_id=settings.GOOGLE_CLOUD_PROJECT_ID,
            storage_bucket=settings.GOOGLE_CLOUD_BUCKET_NAME,
            drive_folder_id=settings.GOOGLE_DRIVE_FOLDER_ID,
            document_enabled=settings.DOCUMENT_ENABLED,
            notify_enabled=settings.NOTIFY_ENABLED,
            smtp_host=settings.SMTP_HOST,
            smtp_port=settings.SMTP_PORT,
            smtp_user=settings.SMTP_USER,
            smtp_password=settings.SMTP_PASSWORD,
            mail_from=settings.MAIL_FROM or settings.SMTP_USER,
            mail_from_name=settings.MAIL_FROM_NAME,
        )

    @property
    def mail_configured(self) -> bool:
        """True when SMTP credentials and a sender address are available."""
        return bool(self.smtp_user and self.smtp_password and self.mail_from)

    def __repr__(self) -> str:
        # Keep the private key and SMTP password out of logs and tracebacks.
        return (
            f"PipelineConfig(client_email={self.client_email!r}, spreadsheet_id={self.spreadsheet_id!r}, "
            f"artifact_backend={self.artifact_backend!r}, document_enabled={self.document_enabled}, "
            f"notify_enabled={self.notify_enabled})"
        )
