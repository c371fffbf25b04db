"""Draw filled values, checkmarks and a signature back onto the scanned page."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import fitz

from .geometry import to_output_rect
from .models import CheckboxGroup, Field, FieldType, NormalizedRect
from .utils import get_logger

logger = get_logger(__name__)

Color = Tuple[float, float, float]

_CAPTION_MAX_LENGTH = 20
_BLANK_MARKERS = ("__", "--")


@dataclass(frozen=True)
class RenderStyle:
    text_color: Color = (0.05, 0.1, 0.55)
    check_color: Color = (0.05, 0.1, 0.55)
    font_name: str = "helv"
    font_scale: float = 0.75
    min_font_size: float = 6.0
    max_font_size: float = 36.0
    gap: float = 0.005
    value_width: float = 0.35
    min_below_width: float = 0.2
    signature_width: float = 0.25
    fallback_signature_box: NormalizedRect = NormalizedRect(0.6, 0.04, 0.3, 0.08)


DEFAULT_STYLE = RenderStyle()


def is_standalone_caption(field: Field) -> bool:
    """Short captions without a colon or blank line take their value underneath."""

    text = (field.raw_label or field.label).strip()
    if ":" in text or any(marker in text for marker in _BLANK_MARKERS):
        return False
    return len(text) < _CAPTION_MAX_LENGTH


def default_value_box(field: Field, style: RenderStyle = DEFAULT_STYLE) -> NormalizedRect:
    label = field.label_box
    if is_standalone_caption(field):
        width = max(label.width, style.min_below_width)
        box = NormalizedRect(label.x, label.y - label.height - style.gap, width, label.height)
    else:
        x = label.max_x + style.gap
        box = NormalizedRect(x, label.y, max(min(style.value_width, 1.0 - x), 0.0), label.height)
    return box.clamped()


def value_box_for(field: Field, style: RenderStyle = DEFAULT_STYLE) -> NormalizedRect:
    """Where a field's value is drawn; a manual adjustment always wins."""

    if field.adjusted_value_box is not None:
        return field.adjusted_value_box
    return default_value_box(field, style)


SIGNATURE_MANUAL = "manual position"
SIGNATURE_BESIDE_FIELD = "beside signature field"
SIGNATURE_DEFAULT_CORNER = "default corner"


def signature_placement(
    fields: Sequence[Field],
    manual_position: Optional[NormalizedRect] = None,
    page_index: int = 0,
    style: RenderStyle = DEFAULT_STYLE,
) -> Tuple[Optional[NormalizedRect], Optional[str]]:
    """Signature box on ``page_index`` and how it was placed, or ``(None, None)``."""

    if manual_position is not None:
        return (manual_position.clamped(), SIGNATURE_MANUAL) if page_index == 0 else (None, None)
    for field in fields:
        if field.field_type is FieldType.SIGNATURE:
            if field.page_index != page_index:
                return None, None
            label = field.label_box
            height = max(label.height * 2.0, 0.03)
            box = NormalizedRect(label.max_x + style.gap, label.mid_y - height / 2.0, style.signature_width, height)
            return box.clamped(), SIGNATURE_BESIDE_FIELD
    if page_index == 0:
        return style.fallback_signature_box, SIGNATURE_DEFAULT_CORNER
    return None, None


def resolve_signature_box(
    fields: Sequence[Field],
    manual_position: Optional[NormalizedRect] = None,
    page_index: int = 0,
    style: RenderStyle = DEFAULT_STYLE,
) -> Optional[NormalizedRect]:
    """Manual position, else beside the first signature field, else a corner of page 0."""

    return signature_placement(fields, manual_position, page_index, style)[0]


def _font_size(rect: fitz.Rect, style: RenderStyle) -> float:
    return min(max(rect.height * style.font_scale, style.min_font_size), style.max_font_size)


def _draw_text(page: fitz.Page, rect: fitz.Rect, text: str, style: RenderStyle) -> None:
    fontsize = _font_size(rect, style)
    baseline = fitz.Point(rect.x0, rect.y1 - max(rect.height - fontsize, 0.0) / 2.0 - fontsize * 0.2)
    page.insert_text(baseline, text, fontsize=fontsize, fontname=style.font_name, color=style.text_color)


def _draw_checkmark(page: fitz.Page, rect: fitz.Rect, style: RenderStyle) -> None:
    size = max(min(rect.width, rect.height) * 0.9, 6.0)
    center_x = (rect.x0 + rect.x1) / 2.0
    center_y = (rect.y0 + rect.y1) / 2.0
    points = [
        fitz.Point(center_x - size / 2.0, center_y),
        fitz.Point(center_x - size / 6.0, center_y + size / 3.0),
        fitz.Point(center_x + size / 2.0, center_y - size / 2.0),
    ]
    page.draw_polyline(points, color=style.check_color, width=max(size / 8.0, 1.0))


def _open_page_image(page_image: bytes) -> Tuple[int, int]:
    try:
        pixmap = fitz.Pixmap(page_image)
    except Exception as exc:
        raise ValueError(f"Could not decode page image: {exc}") from exc
    return pixmap.width, pixmap.height


class FormRenderer:
    """Compose the filled page on a PyMuPDF surface the size of the scan."""

    def __init__(self, style: RenderStyle = DEFAULT_STYLE) -> None:
        self.style = style

    def render(
        self,
        page_image: bytes,
        fields: Sequence[Field],
        groups: Sequence[CheckboxGroup] = (),
        signature_image: Optional[bytes] = None,
        signature_position: Optional[NormalizedRect] = None,
        page_index: int = 0,
    ) -> fitz.Document:
        """Return a one-page document holding the scan with everything drawn on it.

        Parameters
        ----------
        page_image:
            Encoded image (PNG/JPEG) of the scanned page.
        fields:
            Session fields; only filled text/date fields on ``page_index`` draw.
        groups:
            Checkbox groups; every checked option gets a checkmark.
        signature_image:
            Encoded signature image, drawn when given.
        signature_position:
            Manual normalized placement overriding the default.
        """

        width, height = _open_page_image(page_image)
        document = fitz.open()
        page = document.new_page(width=width, height=height)
        page.insert_image(page.rect, stream=page_image)

        drawn = 0
        for field in fields:
            if field.page_index != page_index or not field.value:
                continue
            if field.field_type in (FieldType.CHECKBOX, FieldType.SIGNATURE):
                continue
            rect = to_output_rect(value_box_for(field, self.style), width, height)
            _draw_text(page, rect, field.value, self.style)
            drawn += 1
            logger.debug("Drew %r for field %r at %s", field.value, field.label, rect)

        checks = 0
        for group in groups:
            if group.page_index != page_index:
                continue
            for option in group.checked_options:
                _draw_checkmark(page, to_output_rect(option.bounding_box, width, height), self.style)
                checks += 1

        if signature_image:
            box = resolve_signature_box(fields, signature_position, page_index, self.style)
            if box is not None:
                page.insert_image(to_output_rect(box, width, height), stream=signature_image, keep_proportion=True)
                logger.debug("Placed signature at %s", box)

        logger.info("Rendered page %d: %d value(s), %d checkmark(s)", page_index, drawn, checks)
        return document

    def render_pdf(self, page_image: bytes, fields: Sequence[Field], groups: Sequence[CheckboxGroup] = (), **kwargs) -> bytes:
        document = self.render(page_image, fields, groups, **kwargs)
        try:
            return document.tobytes(deflate=True)
        finally:
            document.close()

    def render_png(self, page_image: bytes, fields: Sequence[Field], groups: Sequence[CheckboxGroup] = (), **kwargs) -> bytes:
        document = self.render(page_image, fields, groups, **kwargs)
        try:
            return document[0].get_pixmap().tobytes("png")
        finally:
            document.close()


__all__ = [
    "DEFAULT_STYLE",
    "FormRenderer",
    "RenderStyle",
    "default_value_box",
    "is_standalone_caption",
    "resolve_signature_box",
    "signature_placement",
    "value_box_for",
]
