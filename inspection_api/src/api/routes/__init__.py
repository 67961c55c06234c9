"""
API route modules for inspection submissions.

This package contains subrouters for:
- Submissions: the submit endpoint used by the inspection form
- Reports: dry-run PDF/CSV/Excel previews of a submission

Routers are included from src.api.main (under the /api/v1 prefix).
"""
