from __future__ import annotations

import logging

from google.cloud import storage
from google.oauth2 import service_account
from googleapiclient.discovery import build

from src.core.config import PipelineConfig

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/devstorage.read_write",
]
TOKEN_URI = "https://oauth2.googleapis.com/token"


# PUBLIC_INTERFACE
def build_credentials(config: PipelineConfig) -> service_account.Credentials:
    """Service-account credentials from the configured email and private key."""
    info = {
        "type": "service_account",
        "client_email": config.client_email,
        "private_key": config.private_key,
        "token_uri": TOKEN_URI,
    }
    logger.info("Google credentials configured for %s", config.client_email)
    return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)


# PUBLIC_INTERFACE
def build_sheets_service(credentials):
    """Sheets v4 API resource. Discovery cache is disabled for service-account use."""
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


# PUBLIC_INTERFACE
def build_drive_service(credentials):
    """Drive v3 API resource."""
    return build("drive", "v3", credentials=credentials, cache_discovery=False)


# PUBLIC_INTERFACE
def build_storage_client(config: PipelineConfig, credentials) -> storage.Client:
    """Cloud Storage client bound to the configured project."""
    return storage.Client(project=config.storage_project_id, credentials=credentials)
