"""
Conversions between viewport pixels and document points.

Document space: points, origin at the top-left of the page, y downward.
Viewport space: pixels of the rendered bitmap at zoom `scale`, same
orientation. The only bottom-up space is the painter's, reached through
`paint_y` at generation time.
"""

from __future__ import annotations

from typing import Tuple

Box = Tuple[float, float, float, float]

DEFAULT_PADDING = 48.0
DEFAULT_CONTAINER_WIDTH = 800.0
BASELINE_CORRECTION = 4.0


def _check_scale(scale: float) -> None:
    if scale <= 0:
        raise ValueError(f"Zoom factor must be positive, got {scale}")


def to_viewport(value: float, scale: float) -> float:
    _check_scale(scale)
    return value * scale


def to_document(value: float, scale: float) -> float:
    _check_scale(scale)
    return value / scale


def fit_scale(container_width: float, page_width: float, padding: float = DEFAULT_PADDING) -> float:
    """Zoom factor that fits a page of `page_width` points into the container."""
    if page_width <= 0:
        raise ValueError(f"Page width must be positive, got {page_width}")
    if container_width <= 0:
        container_width = DEFAULT_CONTAINER_WIDTH
    scale = (container_width - padding) / page_width
    _check_scale(scale)
    return scale


def box_to_viewport(box: Box, scale: float) -> Box:
    return tuple(to_viewport(v, scale) for v in box)  # type: ignore[return-value]


def box_to_document(box: Box, scale: float) -> Box:
    return tuple(to_document(v, scale) for v in box)  # type: ignore[return-value]


def paint_y(
    page_height: float,
    y: float,
    height: float,
    baseline_correction: float = BASELINE_CORRECTION,
) -> float:
    """Bottom-up baseline y for text placed in a top-down box.

    The correction lifts the baseline a few points above the bottom edge so
    the glyphs sit inside the box.
    """
    return page_height - y - height + baseline_correction
