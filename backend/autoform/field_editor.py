"""
Interactive editing of manual template fields.

The editor keeps every geometry in document space. Pointer input arrives in
viewport pixels and is converted with the current zoom before it touches a
field, so the same physical movement yields the same document displacement
at any zoom. Intermediate drag/resize positions live only in memory; the
field list is written once when the pointer is released.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from .collaborators import DocumentRenderer, RenderedPage
from .coordinates import (
    DEFAULT_CONTAINER_WIDTH,
    DEFAULT_PADDING,
    Box,
    box_to_viewport,
    fit_scale,
    to_document,
)
from .errors import UnknownFieldError
from .models import DEFAULT_FONT_SIZE, FieldType, Template, TemplateField, now_millis
from .record_store import TEMPLATES, RecordStore

logger = logging.getLogger(__name__)

DRAG_THRESHOLD = 3.0  # viewport px
RESIZE_HANDLE_SIZE = 16.0  # viewport px, bottom-right corner
MIN_WIDTH = 20.0
MIN_HEIGHT = 10.0
MIN_FONT_SIZE = 6.0
MAX_FONT_SIZE = 72.0
DEFAULT_BOX: Box = (50.0, 50.0, 150.0, 30.0)
DEFAULT_FIELD_NAME = "New Field"


class FieldState(str, Enum):
    IDLE = "idle"
    SELECTED = "selected"
    DRAGGING = "dragging"
    RESIZING = "resizing"


def field_box(field: TemplateField) -> Box:
    """Document-space box of a field, with display fallbacks for gaps."""
    return (
        field.x if field.x is not None else 0.0,
        field.y if field.y is not None else 0.0,
        field.width if field.width is not None else 100.0,
        field.height if field.height is not None else 20.0,
    )


@dataclass
class PointerGesture:
    """Pointer-move capture for one interaction, released on pointer-up."""

    field_id: str
    mode: FieldState
    start_x: float
    start_y: float
    origin: Box
    moved: bool = False

    def travelled(self, vx: float, vy: float) -> float:
        return math.hypot(vx - self.start_x, vy - self.start_y)

    def document_delta(self, vx: float, vy: float, scale: float) -> Tuple[float, float]:
        return to_document(vx - self.start_x, scale), to_document(vy - self.start_y, scale)


class FieldEditor:
    def __init__(
        self,
        template: Template,
        store: RecordStore,
        renderer: Optional[DocumentRenderer] = None,
        scale: float = 1.0,
        page_index: int = 0,
        page_count: Optional[int] = None,
    ):
        self.template = template
        self.store = store
        self.renderer = renderer
        self.scale = scale
        self.page_count = page_count
        self._check_page(page_index)
        self.page_index = page_index

        self.state = FieldState.IDLE
        self.selected_field_id: Optional[str] = None
        self._gesture: Optional[PointerGesture] = None

    # ------------------------------------------------------------------
    # Viewport
    # ------------------------------------------------------------------
    def set_viewport(self, container_width: float, page_width: float, padding: float = DEFAULT_PADDING) -> float:
        self.scale = fit_scale(container_width, page_width, padding)
        return self.scale

    def render_current_page(self, container_width: float, padding: float = DEFAULT_PADDING) -> RenderedPage:
        """Render the current page to fit the container and adopt its zoom."""
        if self.renderer is None:
            raise RuntimeError("FieldEditor has no document renderer")
        effective_width = container_width if container_width > 0 else DEFAULT_CONTAINER_WIDTH
        page = self.renderer.render_page(
            self.template.document_bytes, self.page_index, effective_width - padding
        )
        self.page_count = page.page_count
        self.set_viewport(effective_width, page.page_width, padding)
        return page

    def set_page(self, page_index: int) -> None:
        self._check_page(page_index)
        if page_index != self.page_index:
            self.deselect()
            self.page_index = page_index

    def visible_fields(self) -> List[TemplateField]:
        return self.template.fields_on_page(self.page_index)

    def viewport_box(self, field: TemplateField) -> Box:
        return box_to_viewport(field_box(field), self.scale)

    def hit_test(self, vx: float, vy: float) -> Optional[Tuple[TemplateField, bool]]:
        """Field under a viewport point and whether the point is on its resize handle."""
        candidates = list(reversed(self.visible_fields()))
        # the selected field is drawn above the others
        candidates.sort(key=lambda f: f.id != self.selected_field_id)
        for field in candidates:
            left, top, width, height = self.viewport_box(field)
            if not (left <= vx <= left + width and top <= vy <= top + height):
                continue
            on_handle = (
                field.id == self.selected_field_id
                and vx >= left + width - RESIZE_HANDLE_SIZE
                and vy >= top + height - RESIZE_HANDLE_SIZE
            )
            return field, on_handle
        return None

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    def select(self, field_id: str) -> TemplateField:
        field = self._require(field_id)
        self.selected_field_id = field.id
        self.state = FieldState.SELECTED
        return field

    def deselect(self) -> None:
        self._gesture = None
        self.selected_field_id = None
        self.state = FieldState.IDLE

    @property
    def selected_field(self) -> Optional[TemplateField]:
        if self.selected_field_id is None:
            return None
        return self.template.field_by_id(self.selected_field_id)

    # ------------------------------------------------------------------
    # Pointer gestures
    # ------------------------------------------------------------------
    def pointer_down(self, vx: float, vy: float) -> Optional[TemplateField]:
        hit = self.hit_test(vx, vy)
        if hit is None:
            self.deselect()
            return None

        field, on_handle = hit
        if on_handle:
            self._gesture = PointerGesture(field.id, FieldState.RESIZING, vx, vy, field_box(field))
            self.state = FieldState.RESIZING
        else:
            self.select(field.id)
            # armed; becomes a drag once the pointer leaves the threshold
            self._gesture = PointerGesture(field.id, FieldState.DRAGGING, vx, vy, field_box(field))
        return field

    def pointer_move(self, vx: float, vy: float) -> None:
        gesture = self._gesture
        if gesture is None:
            return
        field = self.template.field_by_id(gesture.field_id)
        if field is None:
            self._gesture = None
            return

        x0, y0, w0, h0 = gesture.origin
        if gesture.mode == FieldState.DRAGGING:
            if not gesture.moved:
                if gesture.travelled(vx, vy) <= DRAG_THRESHOLD:
                    return
                gesture.moved = True
                self.state = FieldState.DRAGGING
            dx, dy = gesture.document_delta(vx, vy, self.scale)
            field.x = x0 + dx
            field.y = y0 + dy
        else:
            gesture.moved = True
            dx, dy = gesture.document_delta(vx, vy, self.scale)
            field.width = max(MIN_WIDTH, w0 + dx)
            field.height = max(MIN_HEIGHT, h0 + dy)

    def pointer_up(self) -> bool:
        """Release the gesture. Returns True when a settled geometry was written."""
        gesture, self._gesture = self._gesture, None
        if self.state in (FieldState.DRAGGING, FieldState.RESIZING):
            self.state = FieldState.SELECTED
        if gesture is None or not gesture.moved:
            return False
        self._persist_fields()
        logger.debug("Settled field '%s' after %s", gesture.field_id, gesture.mode.value)
        return True

    # ------------------------------------------------------------------
    # Field operations
    # ------------------------------------------------------------------
    def add_manual_field(self) -> TemplateField:
        x, y, width, height = DEFAULT_BOX
        field = TemplateField(
            id=self._new_field_id(),
            name=DEFAULT_FIELD_NAME,
            type=FieldType.TEXT,
            is_manual=True,
            page_index=self.page_index,
            x=x,
            y=y,
            width=width,
            height=height,
            font_size=DEFAULT_FONT_SIZE,
        )
        self.template.fields.append(field)
        self._persist_fields()
        self.select(field.id)
        logger.info("Added manual field '%s' on page %d", field.id, field.page_index)
        return field

    def delete_field(self, field_id: str) -> None:
        field = self._require(field_id)
        self.template.fields = [f for f in self.template.fields if f.id != field.id]
        self.template.mappings = [m for m in self.template.mappings if m.template_field_id != field.id]
        if self.template.id is not None:
            self.store.update(
                TEMPLATES,
                self.template.id,
                {
                    "fields": self.template.fields_record(),
                    "mappings": self.template.mappings_record(),
                },
            )
        if self.selected_field_id == field.id:
            self.deselect()
        logger.info("Deleted field '%s'", field.id)

    def update_field(
        self,
        field_id: str,
        name: Optional[str] = None,
        font_size: Optional[float] = None,
    ) -> TemplateField:
        return self.edit_field(field_id, name=name, font_size=font_size)

    def commit_geometry(
        self,
        field_id: str,
        x: Optional[float] = None,
        y: Optional[float] = None,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> TemplateField:
        """Store a settled document-space geometry computed by the front end."""
        return self.edit_field(field_id, x=x, y=y, width=width, height=height)

    def edit_field(
        self,
        field_id: str,
        name: Optional[str] = None,
        font_size: Optional[float] = None,
        x: Optional[float] = None,
        y: Optional[float] = None,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> TemplateField:
        """Apply a label, font and geometry change as a single write.

        Nothing is changed when geometry is given for a form field.
        """
        field = self._require(field_id)
        geometry = (x, y, width, height)
        if not field.is_manual and any(value is not None for value in geometry):
            raise ValueError(f"Field '{field_id}' is a form field; its geometry is not editable")
        if name is not None:
            field.name = name
        if font_size is not None:
            field.font_size = min(MAX_FONT_SIZE, max(MIN_FONT_SIZE, float(font_size)))
        if x is not None:
            field.x = float(x)
        if y is not None:
            field.y = float(y)
        if width is not None:
            field.width = max(MIN_WIDTH, float(width))
        if height is not None:
            field.height = max(MIN_HEIGHT, float(height))
        self._persist_fields()
        return field

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _check_page(self, page_index: int) -> None:
        if page_index < 0 or (self.page_count is not None and page_index >= self.page_count):
            raise ValueError(f"Page {page_index} out of range")

    def _require(self, field_id: str) -> TemplateField:
        field = self.template.field_by_id(field_id)
        if field is None:
            raise UnknownFieldError(field_id)
        return field

    def _new_field_id(self) -> str:
        base = f"custom_{now_millis()}"
        candidate, suffix = base, 1
        while self.template.field_by_id(candidate) is not None:
            candidate = f"{base}_{suffix}"
            suffix += 1
        return candidate

    def _persist_fields(self) -> None:
        if self.template.id is not None:
            self.store.update(TEMPLATES, self.template.id, {"fields": self.template.fields_record()})
