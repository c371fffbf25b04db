"""Coordinate transforms between normalized detection space and output space.

Detection boxes are normalized with the origin at the bottom-left. Output
surfaces (PyMuPDF pages, pixmaps, previews) put the origin at the top-left and
measure in points or pixels.
"""

from __future__ import annotations

from typing import Tuple

import fitz

from .models import NormalizedRect

MIN_NORMALIZED_SIZE = 0.01

Size = Tuple[float, float]


def clamp_normalized(rect: NormalizedRect, min_size: float = MIN_NORMALIZED_SIZE) -> NormalizedRect:
    return rect.clamped(min_size)


def minimal_rect(min_size: float = MIN_NORMALIZED_SIZE) -> NormalizedRect:
    return NormalizedRect(0.0, 0.0, min_size, min_size)


def to_output_rect(rect: NormalizedRect, width: float, height: float) -> fitz.Rect:
    """Normalized rect -> top-left-origin rect on a ``width`` x ``height`` surface."""

    width = max(width, 0.0)
    height = max(height, 0.0)
    x0 = rect.x * width
    y0 = (1.0 - rect.y - rect.height) * height
    return fitz.Rect(x0, y0, x0 + rect.width * width, y0 + rect.height * height)


def from_output_rect(rect: fitz.Rect, width: float, height: float) -> NormalizedRect:
    """Inverse of :func:`to_output_rect`; degenerate surfaces give a minimal rect."""

    if width <= 0 or height <= 0:
        return minimal_rect()
    norm_width = rect.width / width
    norm_height = rect.height / height
    x = rect.x0 / width
    y = 1.0 - rect.y0 / height - norm_height
    return NormalizedRect(x, y, norm_width, norm_height)


def to_output_point(x: float, y: float, width: float, height: float) -> fitz.Point:
    """Normalized point (bottom-left origin) -> output point (top-left origin)."""

    return fitz.Point(x * max(width, 0.0), (1.0 - y) * max(height, 0.0))


def aspect_fit_rect(image_size: Size, container_size: Size) -> fitz.Rect:
    """Where an image lands when scaled to fit inside a container, centred."""

    image_width, image_height = image_size
    container_width, container_height = (max(value, 0.0) for value in container_size)
    if image_width <= 0 or image_height <= 0:
        return fitz.Rect(0, 0, container_width, container_height)
    scale = min(container_width / image_width, container_height / image_height)
    display_width = image_width * scale
    display_height = image_height * scale
    offset_x = (container_width - display_width) / 2.0
    offset_y = (container_height - display_height) / 2.0
    return fitz.Rect(offset_x, offset_y, offset_x + display_width, offset_y + display_height)


def normalized_to_overlay(rect: NormalizedRect, fitted: fitz.Rect) -> fitz.Rect:
    """Place a normalized box over an image drawn inside ``fitted``."""

    local = to_output_rect(rect, fitted.width, fitted.height)
    return fitz.Rect(local.x0 + fitted.x0, local.y0 + fitted.y0, local.x1 + fitted.x0, local.y1 + fitted.y0)


def overlay_to_normalized(rect: fitz.Rect, fitted: fitz.Rect) -> NormalizedRect:
    """Inverse of :func:`normalized_to_overlay`, e.g. for a dragged value box."""

    local = fitz.Rect(rect.x0 - fitted.x0, rect.y0 - fitted.y0, rect.x1 - fitted.x0, rect.y1 - fitted.y0)
    return from_output_rect(local, fitted.width, fitted.height)


__all__ = [
    "MIN_NORMALIZED_SIZE",
    "aspect_fit_rect",
    "clamp_normalized",
    "from_output_rect",
    "minimal_rect",
    "normalized_to_overlay",
    "overlay_to_normalized",
    "to_output_point",
    "to_output_rect",
]
