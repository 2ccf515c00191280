"""
Award form output for a cohort.

Two layouts share the 10-rows-per-page grid of the paper form:

- the print view lists every cadet (pass or not) for administrative review;
- the PDF export fills the official form and lists passers only, since the
  form is what gets sent off for award issue.
"""
from __future__ import annotations

import io
import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

from werkzeug.utils import secure_filename

from app.squadron.errors import NotFoundError, ValidationError
from app.squadron.modules.assessments.models import CRITERIA_KEYS, AssessmentStatus

if TYPE_CHECKING:
    from app.squadron.modules.assessments.models import AssessmentCohort, RadioAssessment

logger = logging.getLogger(__name__)

ROWS_PER_PAGE = 10

PASS_MARK = "✔"
FAIL_MARK = "✖"
PDF_MARK = "X"

# Form geometry, in points from the top-left corner of the template page.
START_Y = 228.0
ROW_HEIGHT = 27.8
CHECKBOX_START_X = 399.5
CHECKBOX_SPACING = 22.5
CHECK_Y_OFFSET = 2.5
SERIAL_X, SQN_X, RANK_X, NAME_X = 39.0, 84.0, 144.0, 210.0
ROW_FONT_SIZE = 9
# Helvetica is a standard Type1 font; reportlab draws it with WinAnsi (cp1252).
PDF_FONT = "Helvetica"
PDF_TEXT_ENCODING = "cp1252"
MARK_FONT_SIZE = 10
FOOTER_FIELDS = (
    ("instructor_name", 205.0, 483.0),
    ("instructor_sqn", 385.0, 483.0),
    ("assessor_name", 205.0, 508.0),
    ("assessor_sqn", 385.0, 508.0),
)


def paginate(items: Sequence, per_page: int = ROWS_PER_PAGE) -> list[list]:
    return [list(items[i : i + per_page]) for i in range(0, len(items), per_page)]


@dataclass(frozen=True)
class PrintRow:
    serial: int
    assessment: "RadioAssessment"
    marks: list[str]


@dataclass(frozen=True)
class PrintPage:
    number: int
    rows: list[PrintRow] = field(default_factory=list)

    @property
    def blank_rows(self) -> int:
        return ROWS_PER_PAGE - len(self.rows)


def _print_marks(assessment: "RadioAssessment") -> list[str]:
    marks = []
    for key in CRITERIA_KEYS:
        status = getattr(assessment, key)
        if status == AssessmentStatus.PASS:
            marks.append(PASS_MARK)
        elif status == AssessmentStatus.FAIL:
            marks.append(FAIL_MARK)
        else:
            marks.append("")
    marks.append(PASS_MARK if assessment.pass_fail else FAIL_MARK)
    return marks


def paginate_for_print(assessments: Sequence["RadioAssessment"]) -> list[PrintPage]:
    """Every cadet, in the given order, 10 per page; serials run on across pages."""
    pages = []
    for page_index, chunk in enumerate(paginate(assessments)):
        rows = [
            PrintRow(serial=page_index * ROWS_PER_PAGE + i + 1, assessment=a, marks=_print_marks(a))
            for i, a in enumerate(chunk)
        ]
        pages.append(PrintPage(number=page_index + 1, rows=rows))
    return pages


@dataclass(frozen=True)
class PdfRow:
    serial: int
    page_index: int
    row_index: int
    y: float
    sqn: str
    rank: str
    full_name: str
    mark_xs: tuple[float, ...]


def _mark_xs(assessment: "RadioAssessment") -> tuple[float, ...]:
    xs = [
        CHECKBOX_START_X + index * CHECKBOX_SPACING
        for index, key in enumerate(CRITERIA_KEYS)
        if getattr(assessment, key) == AssessmentStatus.PASS
    ]
    if assessment.pass_fail:
        xs.append(CHECKBOX_START_X + len(CRITERIA_KEYS) * CHECKBOX_SPACING)
    return tuple(xs)


def layout_pdf_rows(assessments: Sequence["RadioAssessment"], page_count: int) -> list[PdfRow]:
    """
    Place passers on the form. Row i goes to page i // 10, slot i % 10.
    Passers beyond the template's last page are dropped.
    """
    passers = [a for a in assessments if a.pass_fail]
    rows = []
    for i, assessment in enumerate(passers):
        page_index, row_index = divmod(i, ROWS_PER_PAGE)
        if page_index >= page_count:
            logger.warning(
                "Award form has %s page(s); %s passing cadet(s) not exported",
                page_count,
                len(passers) - i,
            )
            break
        cadet = assessment.cadet
        rows.append(
            PdfRow(
                serial=i + 1,
                page_index=page_index,
                row_index=row_index,
                y=START_Y + row_index * ROW_HEIGHT,
                sqn=cadet.sqn,
                rank=cadet.rank,
                full_name=cadet.full_name,
                mark_xs=_mark_xs(assessment),
            )
        )
    return rows


def pdf_filename(cohort: "AssessmentCohort") -> str:
    return secure_filename(f"BRO_Assessment_{cohort.name.replace(' ', '_')}.pdf") or "BRO_Assessment.pdf"


def load_template_bytes(template_path: str, root_path: str) -> bytes:
    p = Path(template_path)
    if not p.is_absolute():
        p = Path(root_path) / p
    if not p.is_file():
        raise NotFoundError("The award form template is not installed.")
    return p.read_bytes()


def ensure_printable(text: str, label: str) -> None:
    """Reject text the form font cannot draw instead of printing blanks in its place."""
    try:
        text.encode(PDF_TEXT_ENCODING)
    except UnicodeEncodeError:
        raise ValidationError(f"{label} '{text}' contains characters that cannot be printed on the award form.") from None


def _overlay_page(width: float, height: float, draws: list[tuple[str, float, float, int]]):
    from PyPDF2 import PdfReader
    from reportlab.lib.colors import black
    from reportlab.pdfgen import canvas

    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    c.setFillColor(black)
    for text, x, y, size in draws:
        if not text:
            continue
        c.setFont(PDF_FONT, size)
        # Form coordinates are top-left based; PDF space is bottom-left.
        c.drawString(x, height - y, text)
    c.showPage()
    c.save()
    buf.seek(0)
    return PdfReader(buf).pages[0]


def render_assessment_pdf(
    cohort: "AssessmentCohort",
    assessments: Sequence["RadioAssessment"],
    template_bytes: bytes,
) -> bytes:
    """Fill the award form template; only pages holding passers are kept."""
    from PyPDF2 import PdfReader, PdfWriter

    if not any(a.pass_fail for a in assessments):
        raise ValidationError("No cadets have been marked as 'Pass'. PDF will not be generated.")

    reader = PdfReader(io.BytesIO(template_bytes))
    template_pages = list(reader.pages)
    rows = layout_pdf_rows(assessments, len(template_pages))
    used_pages = max(1, math.ceil(len(rows) / ROWS_PER_PAGE))

    by_page: dict[int, list[PdfRow]] = defaultdict(list)
    for row in rows:
        by_page[row.page_index].append(row)

    for row in rows:
        ensure_printable(row.sqn, "Squadron")
        ensure_printable(row.rank, "Rank")
        ensure_printable(row.full_name, "Cadet name")
    footer = [(getattr(cohort, attr) or "", x, y, ROW_FONT_SIZE) for attr, x, y in FOOTER_FIELDS]
    for (text, _, _, _), (attr, _, _) in zip(footer, FOOTER_FIELDS):
        ensure_printable(text, attr.replace("_", " ").capitalize())
    writer = PdfWriter()
    for page_index, page in enumerate(template_pages[:used_pages]):
        width = float(page.mediabox.width)
        height = float(page.mediabox.height)
        draws: list[tuple[str, float, float, int]] = []
        for row in by_page[page_index]:
            draws.extend(
                [
                    (str(row.serial), SERIAL_X, row.y, ROW_FONT_SIZE),
                    (row.sqn, SQN_X, row.y, ROW_FONT_SIZE),
                    (row.rank, RANK_X, row.y, ROW_FONT_SIZE),
                    (row.full_name, NAME_X, row.y, ROW_FONT_SIZE),
                ]
            )
            draws.extend((PDF_MARK, x, row.y + CHECK_Y_OFFSET, MARK_FONT_SIZE) for x in row.mark_xs)
        draws.extend(footer)
        page.merge_page(_overlay_page(width, height, draws))
        writer.add_page(page)

    out = io.BytesIO()
    writer.write(out)
    logger.info("Rendered award form for cohort %s: %s row(s) on %s page(s)", cohort.id, len(rows), used_pages)
    return out.getvalue()
