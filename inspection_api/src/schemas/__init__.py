"""
Public Pydantic schemas used by FastAPI routes, services, and tests.

Schemas cover the inspection submission payload, the submit response envelope,
and common reusable models such as standard message and error responses.
"""

from .common import MessageResponse  # noqa: F401
from .inspection import InspectionSubmission, SubmissionResponse  # noqa: F401
