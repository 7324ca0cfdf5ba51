"""
Interfaces of the document collaborators the core depends on.

Concrete pypdf / PyMuPDF implementations live in `pdf_utils`; tests and
other front ends may pass anything that satisfies these protocols.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol


class FormInspector(Protocol):
    def list_fields(self, document_bytes: bytes) -> List[str]:
        """Names of the interactive fields; raises DocumentParseError."""
        ...


class FormWriter(Protocol):
    def set_field_value(self, field_name: str, value: str) -> None:
        """Set a native field's value; raises FieldWriteError."""
        ...


class PageTextPainter(Protocol):
    def draw_text(
        self,
        page_index: int,
        x: float,
        y: float,
        text: str,
        font_size: float,
        max_width: Optional[float] = None,
    ) -> None:
        """Burn text into a page. `x`/`y` are bottom-up document points."""
        ...


class FillableDocument(FormWriter, PageTextPainter, Protocol):
    """An opened document that can be filled, then serialized."""

    @property
    def page_count(self) -> int: ...

    def page_height(self, page_index: int) -> float: ...

    def save(self) -> bytes: ...


# Opens document bytes for filling; raises DocumentParseError.
DocumentOpener = Callable[[bytes], FillableDocument]


@dataclass
class RenderedPage:
    image: bytes  # PNG
    width_px: int
    height_px: int
    page_count: int
    page_width: float
    page_height: float


class DocumentRenderer(Protocol):
    def render_page(self, document_bytes: bytes, page_index: int, target_width_px: float) -> RenderedPage:
        ...
