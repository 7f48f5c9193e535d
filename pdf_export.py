"""Story export (PDF) with reportlab.

Cover page with a derived title, then every section with heading / prose /
option styles. Page breaks are inserted when the running content height
would pass ``PAGE_CONTENT_THRESHOLD``; every page gets a numbered footer.
"""

import io
import logging
import re

from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import (
    BaseDocTemplate, Frame, HRFlowable, PageBreak, PageTemplate, Paragraph, Spacer,
)

from story_parser import extract_title, section_parts, split_sections

log = logging.getLogger("story")

PAGE_CONTENT_THRESHOLD = 230 * mm
PDF_FILENAME = "histoire.pdf"

# --- PDF styling constants ---
_PDF_COLOR_DARK = HexColor("#2d2a4a")
_PDF_COLOR_ACCENT = HexColor("#e07a5f")
_PDF_COLOR_OPTION = HexColor("#3d5a80")
_PDF_COLOR_MUTED = HexColor("#777777")
_PDF_COLOR_RULE = HexColor("#cccccc")


def _pdf_styles():
    """Build paragraph styles for the story PDF."""
    base = getSampleStyleSheet()
    _add = base.add
    _add(ParagraphStyle("CoverTitle", fontName="Helvetica-Bold", fontSize=28,
                        leading=34, alignment=TA_CENTER,
                        textColor=_PDF_COLOR_DARK, spaceAfter=10))
    _add(ParagraphStyle("CoverSubtitle", fontName="Helvetica-Oblique", fontSize=14,
                        leading=20, alignment=TA_CENTER,
                        textColor=_PDF_COLOR_ACCENT, spaceAfter=6))
    _add(ParagraphStyle("PageHeading", fontName="Helvetica-Bold", fontSize=16,
                        leading=22, textColor=_PDF_COLOR_ACCENT,
                        spaceBefore=12, spaceAfter=8))
    _add(ParagraphStyle("StoryProse", fontName="Times-Roman", fontSize=12,
                        leading=18, alignment=TA_JUSTIFY,
                        textColor=_PDF_COLOR_DARK, spaceAfter=10))
    _add(ParagraphStyle("StoryOption", fontName="Helvetica-Bold", fontSize=11,
                        leading=16, leftIndent=10 * mm,
                        textColor=_PDF_COLOR_OPTION, spaceAfter=4))
    return base


def _pdf_escape(text: str) -> str:
    """Escape text for ReportLab XML paragraphs."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _page_footer(canvas, doc):
    """Running page number centred at the bottom of every page."""
    canvas.saveState()
    w = A4[0]
    canvas.setStrokeColor(_PDF_COLOR_RULE)
    canvas.setLineWidth(0.5)
    canvas.line(20 * mm, 15 * mm, w - 20 * mm, 15 * mm)
    canvas.setFont("Helvetica", 9)
    canvas.setFillColor(_PDF_COLOR_MUTED)
    canvas.drawCentredString(w / 2, 10 * mm, f"Page {doc.page}")
    canvas.restoreState()


def layout_blocks(story_text: str) -> list[tuple[str, str]]:
    """Ordered ``(kind, text)`` blocks: "heading", "prose", "option".

    Per section: at most one heading, at most one prose block, then one
    entry per option line. Surrounding whitespace does not change the result.
    """
    blocks: list[tuple[str, str]] = []
    for heading, body in split_sections(story_text):
        prose, options = section_parts(body)
        if heading:
            blocks.append(("heading", heading))
        if prose:
            blocks.append(("prose", prose))
        for letter, label in options:
            blocks.append(("option", f"Option {letter} : {label}"))
    return blocks


def _flowables_for(kind: str, text: str, styles) -> list:
    if kind == "heading":
        return [Paragraph(_pdf_escape(text), styles["PageHeading"])]
    if kind == "option":
        return [Paragraph("• " + _pdf_escape(text), styles["StoryOption"])]
    paras = [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]
    return [Paragraph(_pdf_escape(p).replace("\n", "<br/>"), styles["StoryProse"]) for p in paras]


def paginate(flowables: list, width: float, threshold: float = PAGE_CONTENT_THRESHOLD) -> list:
    """Insert PageBreaks once the cumulative height would exceed ``threshold``."""
    out: list = []
    used = 0.0
    for fl in flowables:
        _, h = fl.wrap(width, threshold)
        h += fl.getSpaceBefore() + fl.getSpaceAfter()
        if used > 0 and used + h > threshold:
            out.append(PageBreak())
            used = 0.0
        out.append(fl)
        used += h
    return out


def export_story_pdf(story_text: str, title: str | None = None, subtitle: str = "") -> bytes:
    """Build the PDF for an assembled story text. Returns PDF bytes."""
    styles = _pdf_styles()
    buf = io.BytesIO()

    doc = BaseDocTemplate(buf, pagesize=A4,
                          leftMargin=20 * mm, rightMargin=20 * mm,
                          topMargin=20 * mm, bottomMargin=22 * mm,
                          title=title or "")
    frame = Frame(doc.leftMargin, doc.bottomMargin, doc.width, doc.height, id="normal")
    doc.addPageTemplates([PageTemplate(id="story", frames=frame, onPage=_page_footer)])

    blocks = layout_blocks(story_text)
    if not title:
        intro = next((text for kind, text in blocks if kind == "prose"), "")
        title = extract_title(intro)

    # ── Cover page ──────────────────────────────────────────
    elements: list = [Spacer(1, 70 * mm), Paragraph(_pdf_escape(title), styles["CoverTitle"])]
    if subtitle:
        elements.append(Paragraph(_pdf_escape(subtitle), styles["CoverSubtitle"]))
    elements.append(Spacer(1, 8 * mm))
    elements.append(HRFlowable(width="40%", thickness=1, color=_PDF_COLOR_ACCENT,
                               spaceBefore=4, spaceAfter=4))
    elements.append(PageBreak())

    # ── Sections ────────────────────────────────────────────
    body: list = []
    for kind, text in blocks:
        body.extend(_flowables_for(kind, text, styles))
    elements.extend(paginate(body, doc.width))

    doc.build(elements)
    pdf = buf.getvalue()
    log.info("pdf_export: built %d bytes blocks=%d title=%s", len(pdf), len(blocks), title[:40])
    return pdf
