from __future__ import annotations

from typing import List, Mapping, Optional, Sequence

from src.schemas.inspection import InspectionItem, InspectionSubmission
from src.services.artifacts import UploadOutcome

# Spreadsheet column order. Every row, the no-items placeholder included, has exactly
# these cells in this order.
COLUMNS: Sequence[str] = (
    "Inspection ID",
    "Date",
    "Time",
    "Department",
    "Supervisor",
    "QSMS Responsible",
    "Contract Manager",
    "Unit",
    "Location",
    "Notification Email",
    "Participants",
    "Participant Roles",
    "Item",
    "Observed Fact",
    "Recommendations",
    "Due Date",
    "Responsible",
    "Item Conclusion",
    "Evidence",
    "Overall Conclusion",
    "Inspector Signature",
    "Unit Signature",
)

NO_EVIDENCE = "none"
NOT_SIGNED = "not signed"
NO_ITEMS_SEQUENCE = "N/A"
NO_ITEMS_FACT = "No inspection items were added."
EVIDENCE_LABEL = "View evidence"
SIGNATURE_LABEL = "View signature"
UPLOAD_FAILED_PREFIX = "Upload failed"

Row = List[str]


def _escape(value: str) -> str:
    return value.replace('"', '""')


# PUBLIC_INTERFACE
def hyperlink(url: str, label: str) -> str:
    """Sheets HYPERLINK formula; embedded double quotes are doubled as the formula syntax requires."""
    return f'=HYPERLINK("{_escape(url)}", "{_escape(label)}")'


# PUBLIC_INTERFACE
def failure_marker(reason: Optional[str]) -> str:
    """Visible cell text for an artifact that was supplied but has no link."""
    return f"{UPLOAD_FAILED_PREFIX}: {reason or 'unknown error'}"


# PUBLIC_INTERFACE
def evidence_cell(outcome: Optional[UploadOutcome]) -> str:
    """None means the item carried no photo."""
    if outcome is None:
        return NO_EVIDENCE
    if outcome.ok:
        return hyperlink(outcome.url, EVIDENCE_LABEL)
    return failure_marker(outcome.reason)


# PUBLIC_INTERFACE
def signature_cell(outcome: Optional[UploadOutcome]) -> str:
    """None means the signature was classified blank and never uploaded."""
    if outcome is None:
        return NOT_SIGNED
    if outcome.ok:
        return hyperlink(outcome.url, SIGNATURE_LABEL)
    return failure_marker(outcome.reason)


def _item_cells(item: InspectionItem, evidence: str) -> Row:
    return [
        str(item.sequence_number),
        item.observed_fact,
        item.recommendations,
        item.due_date,
        item.responsible,
        item.conclusion_note,
        evidence,
    ]


# PUBLIC_INTERFACE
def build_rows(
    submission: InspectionSubmission,
    inspection_id: str,
    evidence_outcomes: Mapping[int, Optional[UploadOutcome]],
    signature_outcomes: Sequence[Optional[UploadOutcome]],
) -> List[Row]:
    """
    Flatten one submission into spreadsheet rows.

    Parameters:
        submission: validated submission
        inspection_id: id shared by every row and artifact of the submission
        evidence_outcomes: upload outcome per item index (0-based); missing or None
            means the item had no photo
        signature_outcomes: (inspector, unit responsible); None means not signed
    Returns:
        One row per item, or a single placeholder row when there are no items.
    """
    header = submission.header
    participant_names = ", ".join(p.name for p in submission.participants)
    participant_roles = ", ".join(p.role for p in submission.participants)

    # One outcome per signature for the whole submission, shared by every row.
    inspector_cell = signature_cell(signature_outcomes[0])
    unit_cell = signature_cell(signature_outcomes[1])

    leading = [
        inspection_id,
        header.date,
        header.time,
        header.department,
        header.supervisor,
        header.qsms_responsible,
        header.contract_manager,
        header.unit,
        header.location,
        header.notification_email or "",
        participant_names,
        participant_roles,
    ]

    def _row(item_cells: Row) -> Row:
        return [*leading, *item_cells, submission.conclusion.overall, inspector_cell, unit_cell]

    if not submission.items:
        placeholder = [NO_ITEMS_SEQUENCE, NO_ITEMS_FACT, "", "", "", "", NO_EVIDENCE]
        return [_row(placeholder)]

    rows: List[Row] = []
    for index, item in enumerate(submission.items):
        evidence = evidence_cell(evidence_outcomes.get(index))
        rows.append(_row(_item_cells(item, evidence)))
    return rows
