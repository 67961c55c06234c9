from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Mapping, Optional, Sequence, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas as pdf_canvas

from src.core.errors import RenderError
from src.schemas.inspection import InspectionSubmission
from src.services.artifacts import UploadOutcome

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 20 * mm
LINE_FACTOR = 1.25
BLOCK_GAP = 4 * mm
SECTION_GAP = 3 * mm

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
TEXT_COLOR = (0, 0, 0)
LINK_COLOR = (0, 0, 1)

TITLE_SIZE = 16
SECTION_SIZE = 13
ITEM_SIZE = 12
BODY_SIZE = 10


@dataclass
class Block:
    """One placed line of text. `y` is the baseline measured from the top edge of the page."""
    text: str
    x: float
    y: float
    font: str
    size: float
    url: Optional[str] = None


@dataclass
class LinkRegion:
    """Clickable rectangle (top-based coordinates) pointing at url."""
    url: str
    x1: float
    top: float
    x2: float
    bottom: float


@dataclass
class Page:
    blocks: List[Block] = field(default_factory=list)
    links: List[LinkRegion] = field(default_factory=list)


@dataclass
class RenderedDocument:
    """Paginated rendition of one submission; serialise with to_pdf()."""
    title: str
    pages: List[Page]
    page_width: float = PAGE_WIDTH
    page_height: float = PAGE_HEIGHT

    # PUBLIC_INTERFACE
    def to_pdf(self) -> bytes:
        """Draw every page onto a reportlab canvas and return the PDF bytes."""
        buffer = io.BytesIO()
        pdf = pdf_canvas.Canvas(buffer, pagesize=(self.page_width, self.page_height))
        pdf.setTitle(self.title)
        for page in self.pages:
            for block in page.blocks:
                pdf.setFont(block.font, block.size)
                if block.url:
                    pdf.setFillColorRGB(*LINK_COLOR)
                pdf.drawString(block.x, self.page_height - block.y, block.text)
                if block.url:
                    pdf.setFillColorRGB(*TEXT_COLOR)
            for link in page.links:
                rect = (link.x1, self.page_height - link.bottom, link.x2, self.page_height - link.top)
                pdf.linkURL(link.url, rect, relative=0)
            pdf.showPage()
        pdf.save()
        return buffer.getvalue()


class DocumentLayout:
    """
    Running-cursor layout with automatic pagination.

    Every wrapped line is checked against the printable height before it is
    placed; a line that would overflow starts a new page first.
    """

    def __init__(
        self,
        page_width: float = PAGE_WIDTH,
        page_height: float = PAGE_HEIGHT,
        margin: float = MARGIN,
    ) -> None:
        self.page_width = page_width
        self.page_height = page_height
        self.margin = margin
        self.pages: List[Page] = [Page()]
        self.cursor = margin

    @property
    def printable_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def page(self) -> Page:
        return self.pages[-1]

    def new_page(self) -> None:
        self.pages.append(Page())
        self.cursor = self.margin

    def _fits(self, height: float) -> bool:
        return self.cursor + height <= self.page_height - self.margin

    def _wrap(self, text: str, font: str, size: float) -> List[str]:
        normalized = (text or "").replace("\r\n", "\n").replace("\r", "\n")
        lines = []
        for line in simpleSplit(normalized, font, size, self.printable_width) or [""]:
            lines.extend(self._break_long(line, font, size))
        return lines

    def _break_long(self, line: str, font: str, size: float) -> List[str]:
        """simpleSplit only breaks at spaces; cut runs wider than the page by character."""
        if stringWidth(line, font, size) <= self.printable_width:
            return [line]
        pieces, current = [], ""
        for ch in line:
            if current and stringWidth(current + ch, font, size) > self.printable_width:
                pieces.append(current)
                current = ch
            else:
                current += ch
        pieces.append(current)
        return pieces

    def _place_lines(self, text: str, font: str, size: float, url: Optional[str]) -> List[Tuple[Page, float, float]]:
        """Place wrapped lines, returning (page, top, bottom) for each placed line."""
        line_height = size * LINE_FACTOR
        placed = []
        for line in self._wrap(text, font, size):
            if not self._fits(line_height):
                self.new_page()
            top = self.cursor
            self.page.blocks.append(
                Block(text=line, x=self.margin, y=top + size, font=font, size=size, url=url)
            )
            self.cursor += line_height
            placed.append((self.page, top, self.cursor))
        return placed

    # PUBLIC_INTERFACE
    def add_text(self, text: str, size: float = BODY_SIZE, bold: bool = False, gap: float = BLOCK_GAP) -> None:
        self._place_lines(text, FONT_BOLD if bold else FONT, size, None)
        self.cursor += gap

    # PUBLIC_INTERFACE
    def add_link(self, text: str, url: str, size: float = BODY_SIZE, gap: float = BLOCK_GAP) -> None:
        """Blue text plus one clickable region per page the wrapped block occupies."""
        placed = self._place_lines(text, FONT, size, url)
        regions = {}
        for page, top, bottom in placed:
            key = id(page)
            if key in regions:
                regions[key].bottom = bottom
            else:
                regions[key] = LinkRegion(url=url, x1=self.margin, top=top, x2=self.margin + self.printable_width, bottom=bottom)
                page.links.append(regions[key])
        self.cursor += gap

    def add_space(self, amount: float) -> None:
        self.cursor += amount

    def build(self, title: str) -> RenderedDocument:
        return RenderedDocument(title=title, pages=self.pages, page_width=self.page_width, page_height=self.page_height)


# PUBLIC_INTERFACE
def document_filename(inspection_id: str) -> str:
    return f"inspection-report-{inspection_id}.pdf"


def _artifact(layout: DocumentLayout, label: str, outcome: Optional[UploadOutcome], link_text: str, missing: str) -> None:
    """Link for a successful upload; plain annotated text otherwise, so no dead links."""
    if outcome is not None and outcome.ok and outcome.url:
        layout.add_text(f"{label}:", gap=0)
        layout.add_link(link_text, outcome.url)
    elif outcome is None:
        layout.add_text(f"{label}: {missing}")
    else:
        layout.add_text(f"{label}: upload failed ({outcome.reason or 'unknown error'})")


# PUBLIC_INTERFACE
def render_document(
    submission: InspectionSubmission,
    inspection_id: str,
    signature_outcomes: Sequence[Optional[UploadOutcome]],
    evidence_outcomes: Mapping[int, Optional[UploadOutcome]],
    generated_at: Optional[datetime] = None,
    layout: Optional[DocumentLayout] = None,
) -> RenderedDocument:
    """
    Lay out the full submission.

    Section order: title/id/timestamp, inspection details, participants, items,
    overall conclusion, signatures.
    """
    layout = layout or DocumentLayout()
    generated_at = generated_at or datetime.now(tz=timezone.utc)
    header = submission.header

    layout.add_text("INSPECTION REPORT", size=TITLE_SIZE, bold=True)
    layout.add_text(f"Inspection ID: {inspection_id}", gap=0)
    layout.add_text(f"Generated at: {generated_at.strftime('%Y-%m-%d %H:%M UTC')}")
    layout.add_space(SECTION_GAP)

    layout.add_text("Inspection Details", size=SECTION_SIZE, bold=True)
    details = [
        ("Date", header.date),
        ("Time", header.time),
        ("Department", header.department),
        ("Supervisor", header.supervisor),
        ("QSMS Responsible", header.qsms_responsible),
        ("Contract Manager", header.contract_manager),
        ("Unit", header.unit),
        ("Location", header.location),
    ]
    if header.notification_email:
        details.append(("Notification Email", header.notification_email))
    for label, value in details:
        layout.add_text(f"{label}: {value}", gap=0)
    layout.add_space(BLOCK_GAP + SECTION_GAP)

    layout.add_text("Participants", size=SECTION_SIZE, bold=True)
    if submission.participants:
        for number, participant in enumerate(submission.participants, start=1):
            layout.add_text(f"{number}. {participant.name} - {participant.role}", gap=0)
        layout.add_space(BLOCK_GAP)
    else:
        layout.add_text("No participants listed.")
    layout.add_space(SECTION_GAP)

    layout.add_text("Inspection Items", size=SECTION_SIZE, bold=True)
    if not submission.items:
        layout.add_text("No inspection items were added.")
    for index, item in enumerate(submission.items):
        layout.add_text(f"Item {item.sequence_number}", size=ITEM_SIZE, bold=True, gap=0)
        layout.add_text(f"Observed fact: {item.observed_fact}")
        _artifact(layout, "Evidence", evidence_outcomes.get(index), "View evidence", "none")
        layout.add_text(f"Recommendations: {item.recommendations}")
        layout.add_text(f"Due date: {item.due_date}", gap=0)
        layout.add_text(f"Responsible: {item.responsible}")
        layout.add_text(f"Conclusion: {item.conclusion_note}")
    layout.add_space(SECTION_GAP)

    layout.add_text("Overall Conclusion", size=SECTION_SIZE, bold=True)
    layout.add_text(submission.conclusion.overall or "-")
    layout.add_space(SECTION_GAP)

    layout.add_text("Signatures", size=SECTION_SIZE, bold=True)
    _artifact(layout, "Inspection responsible", signature_outcomes[0], "View signature", "not signed")
    _artifact(layout, "Unit responsible", signature_outcomes[1], "View signature", "not signed")

    return layout.build(title=f"Inspection Report {inspection_id}")


# PUBLIC_INTERFACE
def render_pdf(
    submission: InspectionSubmission,
    inspection_id: str,
    signature_outcomes: Sequence[Optional[UploadOutcome]],
    evidence_outcomes: Mapping[int, Optional[UploadOutcome]],
    generated_at: Optional[datetime] = None,
) -> bytes:
    """
    Render and serialise the summary.

    Raises:
        RenderError: wrapping whatever layout or reportlab raised.
    """
    try:
        document = render_document(submission, inspection_id, signature_outcomes, evidence_outcomes, generated_at)
        pdf_bytes = document.to_pdf()
    except Exception as exc:
        raise RenderError(f"Could not render inspection report: {exc}") from exc
    logger.info("Rendered inspection report: %d page(s), %d bytes", len(document.pages), len(pdf_bytes))
    return pdf_bytes
