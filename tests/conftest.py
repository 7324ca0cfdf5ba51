from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import fitz
import pytest

from autoform.collaborators import RenderedPage
from autoform.errors import DocumentParseError, FieldWriteError
from autoform.models import Mapping, Template, TemplateField
from autoform.record_store import TEMPLATES, RecordStore

LETTER = (612.0, 792.0)


def make_pdf(
    pages: int = 1,
    size=LETTER,
    text_fields: Sequence[str] = (),
    checkbox_fields: Sequence[str] = (),
    crop: Optional[fitz.Rect] = None,
) -> bytes:
    """Small PDF built with PyMuPDF; form widgets go on the first page.

    `crop` is a visible area in top-down page coordinates applied to every page.
    """
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page(width=size[0], height=size[1])
    page = doc[0]
    top = 100
    for name in text_fields:
        widget = fitz.Widget()
        widget.field_type = fitz.PDF_WIDGET_TYPE_TEXT
        widget.field_name = name
        widget.rect = fitz.Rect(50, top, 300, top + 20)
        page.add_widget(widget)
        top += 40
    for name in checkbox_fields:
        widget = fitz.Widget()
        widget.field_type = fitz.PDF_WIDGET_TYPE_CHECKBOX
        widget.field_name = name
        widget.rect = fitz.Rect(50, top, 65, top + 15)
        page.add_widget(widget)
        top += 40
    if crop is not None:
        for cropped in doc:
            cropped.set_cropbox(crop)
    data = doc.tobytes()
    doc.close()
    return data


class FakeDocument:
    """Records form writes and painted text instead of touching a PDF."""

    def __init__(self, fields: Sequence[str] = (), page_heights: Sequence[float] = (792.0,)):
        self.fields = set(fields)
        self.page_heights = list(page_heights)
        self.written: List[tuple] = []
        self.painted: List[tuple] = []
        self.saved = False

    @property
    def page_count(self) -> int:
        return len(self.page_heights)

    def page_height(self, page_index: int) -> float:
        return self.page_heights[page_index]

    def set_field_value(self, field_name: str, value: str) -> None:
        if field_name not in self.fields:
            raise FieldWriteError(field_name, "no such field in the document")
        self.written.append((field_name, value))

    def draw_text(self, page_index, x, y, text, font_size, max_width=None) -> None:
        self.painted.append((page_index, x, y, text, font_size, max_width))

    def save(self) -> bytes:
        self.saved = True
        return b"%PDF-fake"


class FakeInspector:
    def __init__(self, names: Sequence[str] = (), fail: bool = False):
        self.names = list(names)
        self.fail = fail
        self.calls = 0

    def list_fields(self, document_bytes: bytes) -> List[str]:
        self.calls += 1
        if self.fail:
            raise DocumentParseError("broken")
        return list(self.names)


class FakeRenderer:
    def __init__(self, page_width: float = 612.0, page_height: float = 792.0, page_count: int = 2):
        self.page_width = page_width
        self.page_height = page_height
        self.page_count = page_count
        self.calls: List[tuple] = []

    def render_page(self, document_bytes: bytes, page_index: int, target_width_px: float) -> RenderedPage:
        self.calls.append((page_index, target_width_px))
        scale = target_width_px / self.page_width
        return RenderedPage(
            image=b"\x89PNG",
            width_px=int(target_width_px),
            height_px=int(self.page_height * scale),
            page_count=self.page_count,
            page_width=self.page_width,
            page_height=self.page_height,
        )


def manual_field(field_id: str = "custom_1", page_index: int = 0, **geometry) -> TemplateField:
    box = {"x": 50.0, "y": 50.0, "width": 150.0, "height": 30.0, "font_size": 12.0}
    box.update(geometry)
    return TemplateField(id=field_id, name=field_id, is_manual=True, page_index=page_index, **box)


def native_field(field_id: str) -> TemplateField:
    return TemplateField(id=field_id, name=field_id, is_manual=False)


@pytest.fixture
def store() -> RecordStore:
    return RecordStore()


@pytest.fixture
def make_template(store):
    def _make(
        fields: Sequence[TemplateField] = (),
        mappings: Sequence[Mapping] = (),
        document_bytes: bytes = b"%PDF-1.7",
        name: str = "Form",
    ) -> Template:
        template = Template(
            name=name,
            document_bytes=document_bytes,
            fields=list(fields),
            mappings=list(mappings),
        )
        template.id = store.add(TEMPLATES, template.to_record())
        return template

    return _make


def stored_fields(store: RecordStore, template_id: int) -> Dict[str, Dict]:
    return {f["id"]: f for f in store.get(TEMPLATES, template_id)["fields"]}


def stored_mappings(store: RecordStore, template_id: int) -> List[Dict]:
    return store.get(TEMPLATES, template_id)["mappings"]
