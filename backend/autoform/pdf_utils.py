"""
Low-level PDF collaborators backed by pypdf and PyMuPDF.

pypdf reads the AcroForm (field inspection) and writes native field values;
PyMuPDF burns painted text into pages after the form pass and rasterizes
pages for the editor.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import fitz  # PyMuPDF
from pypdf import PdfReader, PdfWriter

from .collaborators import RenderedPage
from .errors import DocumentParseError, FieldWriteError

logger = logging.getLogger(__name__)

PAINT_FONT = "helv"  # Helvetica, one of the PDF base-14 fonts
TEXT_FIELD_TYPE = "/Tx"


def _open_reader(document_bytes: bytes) -> PdfReader:
    try:
        reader = PdfReader(io.BytesIO(document_bytes), strict=False)
        len(reader.pages)  # forces the page tree to be parsed
    except Exception as exc:
        raise DocumentParseError(f"Not a readable PDF document: {exc}") from exc
    return reader


def _terminal_fields(reader: PdfReader) -> Dict[str, Dict]:
    """Fully qualified name -> field dict, without pure parent nodes."""
    try:
        fields = reader.get_fields() or {}
    except Exception as exc:
        raise DocumentParseError(f"Unreadable form dictionary: {exc}") from exc

    terminal: Dict[str, Dict] = {}
    for name, field in fields.items():
        kids = field.get("/Kids") or []
        # kids carrying their own /T are child fields; kids without are widgets
        if any("/T" in kid.get_object() for kid in kids):
            continue
        terminal[name] = field
    return terminal


class PdfFormInspector:
    """Lists the interactive fields of a PDF."""

    def list_fields(self, document_bytes: bytes) -> List[str]:
        reader = _open_reader(document_bytes)
        names = list(_terminal_fields(reader).keys())
        logger.debug("Inspector found %d form fields", len(names))
        return names


@dataclass
class _PendingText:
    page_index: int
    x: float
    y: float
    text: str
    font_size: float


def clip_text(text: str, font_size: float, max_width: Optional[float]) -> str:
    """Drop trailing characters until the rendered width fits `max_width`."""
    if not max_width or max_width <= 0:
        return text
    while text and fitz.get_text_length(text, fontname=PAINT_FONT, fontsize=font_size) > max_width:
        text = text[:-1]
    return text


class PdfFillSession:
    """One opened document: form writer plus page text painter.

    Field values go through pypdf immediately; painted text is queued and
    applied with PyMuPDF when the document is saved.
    """

    def __init__(self, document_bytes: bytes):
        self._reader = _open_reader(document_bytes)
        self._fields = _terminal_fields(self._reader)
        try:
            self._writer = PdfWriter(clone_from=self._reader)
        except Exception as exc:
            raise DocumentParseError(f"Cannot clone PDF document: {exc}") from exc
        self._pending_text: List[_PendingText] = []

    @property
    def page_count(self) -> int:
        return len(self._reader.pages)

    def page_height(self, page_index: int) -> float:
        # the visible page; matches PyMuPDF's page.rect used for rendering and painting
        return float(self._reader.pages[page_index].cropbox.height)

    def set_field_value(self, field_name: str, value: str) -> None:
        field = self._fields.get(field_name)
        if field is None:
            raise FieldWriteError(field_name, "no such field in the document")
        field_type = field.get("/FT")
        if field_type is not None and field_type != TEXT_FIELD_TYPE:
            raise FieldWriteError(field_name, f"unsupported field type {field_type}")

        try:
            for page in self._writer.pages:
                if "/Annots" in page:
                    self._writer.update_page_form_field_values(page, {field_name: value})
        except Exception as exc:
            raise FieldWriteError(field_name, str(exc)) from exc

    def draw_text(
        self,
        page_index: int,
        x: float,
        y: float,
        text: str,
        font_size: float,
        max_width: Optional[float] = None,
    ) -> None:
        if not 0 <= page_index < self.page_count:
            raise IndexError(f"Page {page_index} out of range (0..{self.page_count - 1})")
        text = clip_text(text, font_size, max_width)
        if text:
            self._pending_text.append(_PendingText(page_index, x, y, text, font_size))

    def save(self) -> bytes:
        buffer = io.BytesIO()
        try:
            self._writer.write(buffer)
        except Exception as exc:
            raise DocumentParseError(f"Cannot serialize PDF document: {exc}") from exc
        result = buffer.getvalue()
        if self._pending_text:
            result = self._paint(result)
        return result

    def _paint(self, pdf_bytes: bytes) -> bytes:
        try:
            doc = fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as exc:
            raise DocumentParseError(f"Cannot reopen filled PDF for painting: {exc}") from exc
        try:
            for item in self._pending_text:
                page = doc[item.page_index]
                # PyMuPDF measures y from the top of the page
                baseline = fitz.Point(item.x, page.rect.height - item.y)
                page.insert_text(
                    baseline,
                    item.text,
                    fontsize=item.font_size,
                    fontname=PAINT_FONT,
                    color=(0, 0, 0),
                )
            return doc.tobytes()
        except Exception as exc:
            raise DocumentParseError(f"Cannot paint text into PDF: {exc}") from exc
        finally:
            doc.close()


def open_fill_session(document_bytes: bytes) -> PdfFillSession:
    return PdfFillSession(document_bytes)


def count_pages(document_bytes: bytes) -> int:
    return len(_open_reader(document_bytes).pages)


class PdfPageRenderer:
    """Rasterizes one page to PNG at a caller-chosen pixel width."""

    def render_page(self, document_bytes: bytes, page_index: int, target_width_px: float) -> RenderedPage:
        try:
            doc = fitz.open(stream=document_bytes, filetype="pdf")
        except Exception as exc:
            raise DocumentParseError(f"Not a readable PDF document: {exc}") from exc

        try:
            if not 0 <= page_index < doc.page_count:
                raise IndexError(f"Page {page_index} out of range (0..{doc.page_count - 1})")
            page = doc[page_index]
            scale = target_width_px / page.rect.width
            pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            return RenderedPage(
                image=pix.tobytes("png"),
                width_px=pix.width,
                height_px=pix.height,
                page_count=doc.page_count,
                page_width=page.rect.width,
                page_height=page.rect.height,
            )
        finally:
            doc.close()
