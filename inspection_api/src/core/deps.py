from __future__ import annotations

import logging
from typing import Any, Callable

from fastapi import Request

from src.core.config import PipelineConfig
from src.services.submission import PipelineComponents, build_components

logger = logging.getLogger(__name__)


class InvalidJSONBody(ValueError):
    """The request body could not be decoded as JSON."""


# PUBLIC_INTERFACE
def get_components_factory() -> Callable[[PipelineConfig], PipelineComponents]:
    """
    Return the factory that builds external collaborators for a submission.

    Tests override this dependency to inject fake storage, spreadsheet and mail clients.
    """
    return build_components


# PUBLIC_INTERFACE
async def read_json_body(request: Request) -> Any:
    """
    Decode the raw request body as JSON.

    Raises:
        InvalidJSONBody: when the body is empty or not valid JSON.
    """
    try:
        return await request.json()
    except ValueError as exc:
        logger.warning("Request body is not valid JSON: %s", exc)
        raise InvalidJSONBody("Request body is not valid JSON.") from exc
