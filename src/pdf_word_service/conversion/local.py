"""
Client-only PDF -> DOCX conversion.

Extracts plain text page by page with PyMuPDF and lays it out in a minimal
Word document with python-docx: a short header (title, source filename,
conversion date) followed by one section per paragraph. Layout, images and
tables are not preserved; this path trades fidelity for needing no server.
"""

from __future__ import annotations

import io
import re
from datetime import date
from typing import Callable

import fitz  # PyMuPDF
from docx import Document
from docx.enum.section import WD_SECTION
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

PAGE_SEPARATOR = "\n\n"

ProgressCallback = Callable[[int, int], None]


def extract_text(pdf_bytes: bytes, progress: ProgressCallback | None = None) -> str:
    """Return the text of every page, pages separated by a blank line.

    Within a page, lines are joined with single spaces so each page forms
    one run of text. ``progress`` is called with (page number, page count)
    as each page is read.
    """
    parts: list[str] = []
    with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
        total = doc.page_count
        for number, page in enumerate(doc, start=1):
            if progress is not None:
                progress(number, total)
            lines = (line.strip() for line in page.get_text("text").splitlines())
            parts.append(" ".join(line for line in lines if line))
    return "".join(p + PAGE_SEPARATOR for p in parts)


def split_paragraphs(text: str) -> list[str]:
    return [p for p in text.split(PAGE_SEPARATOR) if p.strip()]


def _centered(document, text: str, *, size: float, bold: bool = False, italic: bool = False) -> None:
    para = document.add_paragraph()
    para.alignment = WD_ALIGN_PARAGRAPH.CENTER
    run = para.add_run(text)
    run.bold = bold
    run.italic = italic
    run.font.size = Pt(size)


def build_document(text: str, source_name: str, *, converted_on: date | None = None) -> bytes:
    """Lay out extracted text as a DOCX and return the serialized bytes."""
    day = converted_on or date.today()
    document = Document()

    _centered(document, "Converted from PDF", size=14, bold=True)
    _centered(document, f"Original PDF: {source_name}", size=10, italic=True)
    _centered(document, f"Converted on: {day.isoformat()}", size=10)
    document.add_paragraph("")
    document.add_paragraph().add_run("--- Start of Content ---").bold = True
    document.add_paragraph("")

    for paragraph in split_paragraphs(text):
        document.add_section(WD_SECTION.CONTINUOUS)
        document.add_paragraph().add_run(paragraph).font.size = Pt(12)

    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


def docx_name(pdf_name: str) -> str:
    name = re.sub(r"\.pdf$", ".docx", pdf_name, flags=re.IGNORECASE)
    return name if name != pdf_name else f"{pdf_name}.docx"


def convert_pdf_bytes(
    pdf_bytes: bytes,
    source_name: str,
    *,
    converted_on: date | None = None,
    progress: ProgressCallback | None = None,
) -> bytes:
    return build_document(extract_text(pdf_bytes, progress), source_name, converted_on=converted_on)
