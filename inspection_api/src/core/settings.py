from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the inspection submission service.

    Values are read from environment variables (or .env). Google and SMTP values
    are optional here; which of them are actually required depends on the enabled
    capabilities and is checked once per request by PipelineConfig.from_settings.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="Inspection API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Backend API for field-inspection reports. Records submissions in a "
            "spreadsheet, stores signature and evidence images, renders a PDF summary "
            "and emails it to a stakeholder."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    LOG_LEVEL: str = Field(default="INFO", description="Root log level name")

    # Google service account
    GOOGLE_CLIENT_EMAIL: Optional[str] = Field(default=None, description="Service account email")
    GOOGLE_PRIVATE_KEY: Optional[str] = Field(
        default=None,
        description="Service account private key (PEM). Escaped \\n sequences are accepted.",
    )

    # Spreadsheet
    GOOGLE_SHEET_ID: Optional[str] = Field(default=None, description="Target spreadsheet id")
    GOOGLE_SHEET_RANGE: str = Field(
        default="Mapa de Controle!A:V",
        description="A1 range rows are appended to",
    )

    # Artifact storage
    ARTIFACT_BACKEND: Literal["gcs", "drive", "none"] = Field(
        default="gcs", description="Where signature and evidence images are stored"
    )
    GOOGLE_CLOUD_PROJECT_ID: Optional[str] = Field(default=None)
    GOOGLE_CLOUD_BUCKET_NAME: Optional[str] = Field(default=None)
    GOOGLE_DRIVE_FOLDER_ID: Optional[str] = Field(default=None)

    # Document + notification
    DOCUMENT_ENABLED: bool = Field(default=True, description="Render a PDF summary per submission")
    NOTIFY_ENABLED: bool = Field(default=True, description="Email the PDF when a recipient is given")
    SMTP_HOST: str = Field(default="smtp.gmail.com")
    SMTP_PORT: int = Field(default=587)
    SMTP_USER: Optional[str] = Field(default=None)
    SMTP_PASSWORD: Optional[str] = Field(default=None)
    MAIL_FROM: Optional[str] = Field(default=None, description="Sender address; defaults to SMTP_USER")
    MAIL_FROM_NAME: str = Field(default="Inspection Reports")

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]

    @field_validator("GOOGLE_PRIVATE_KEY", mode="after")
    @classmethod
    def _unescape_private_key(cls, v: Optional[str]) -> Optional[str]:
        # Keys pasted into env files usually carry literal "\n" sequences.
        if v is None:
            return None
        return v.replace("\\n", "\n")


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    A fresh instance per call keeps configuration request-scoped; the submit route
    resolves it exactly once per request.
    """
    return AppSettings()
