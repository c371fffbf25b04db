"""Label candidate extraction from recognized text lines."""

from __future__ import annotations

import re
from typing import AbstractSet, Iterable, List, Optional, Sequence, Set, Tuple

from .checkboxes import has_checkbox_marks
from .config import DEFAULT_SETTINGS, AutofillSettings
from .models import CheckboxGroup, Field, FieldType, RecognizedLine
from .tables import FORM_LABEL_KEYWORDS, SECTION_HEADINGS
from .utils import collapse_whitespace, get_logger, normalize_label

logger = get_logger(__name__)

MIN_LABEL_LENGTH = 2
MAX_LABEL_LENGTH = 50
_CAPS_HEADING_RANGE = (10, 50)
_WIDE_LINE_FRACTION = 0.6
_WIDE_LINE_MIN_CHARS = 30

_BLANK_RUN_PATTERN = re.compile(r"_{2,}|-{2,}")
_UNDERSCORE_DASH_PATTERN = re.compile(r"[_\-–—]+")
_KEYWORD_BOUNDARY_CHARS = (" ", "/", "(")
_DATE_WORDS = frozenset({"date", "dob", "birthdate", "birthday", "dated"})
_SIGNATURE_PHRASES = ("signature", "sign here", "signed by")


def _has_letter(text: str) -> bool:
    return any(ch.isalpha() for ch in text)


def _matches_heading_phrase(text: str, headings: AbstractSet[str]) -> bool:
    lowered = collapse_whitespace(text.lower())
    for phrase in headings:
        if lowered == phrase or lowered.rstrip(" :-") == phrase:
            return True
        if lowered.startswith(phrase) and lowered[len(phrase):].lstrip().startswith((":", "-")):
            return True
    return False


def _is_caps_heading(text: str) -> bool:
    stripped = text.strip()
    low, high = _CAPS_HEADING_RANGE
    # Digits mean a filled-in value ("DOB: 03/14/1980"), not a heading.
    return (
        low <= len(stripped) <= high
        and " " in stripped
        and _has_letter(stripped)
        and not any(ch.isdigit() for ch in stripped)
        and stripped == stripped.upper()
    )


def is_section_heading(line: RecognizedLine, headings: AbstractSet[str] = SECTION_HEADINGS) -> bool:
    """True when a line reads as a section heading or page title, not a label."""

    text = line.text.strip()
    if _matches_heading_phrase(text, headings):
        return True
    if _is_caps_heading(text):
        return True
    return line.bounding_box.width > _WIDE_LINE_FRACTION and len(text) > _WIDE_LINE_MIN_CHARS


def _clean_label(text: str) -> str:
    return collapse_whitespace(text).strip(" .:;-–—")


def _is_valid_label(label: str, headings: AbstractSet[str]) -> bool:
    if not MIN_LABEL_LENGTH <= len(label) <= MAX_LABEL_LENGTH:
        return False
    if not _has_letter(label):
        return False
    return not _matches_heading_phrase(label, headings)


def _strip_blanks(text: str) -> str:
    without_runs = _BLANK_RUN_PATTERN.sub(" ", text.replace("_", " "))
    return collapse_whitespace(without_runs).strip(" -–—")


def split_colon_label(text: str, headings: AbstractSet[str] = SECTION_HEADINGS) -> Optional[Tuple[str, Optional[str]]]:
    """``"DOB: 03/14/1980"`` -> ``("DOB", "03/14/1980")``; blanks give ``None`` value."""

    if ":" not in text:
        return None
    before, after = text.split(":", 1)
    label = _clean_label(before)
    if not _is_valid_label(label, headings):
        return None
    remainder = _strip_blanks(after)
    non_blank = sum(1 for ch in remainder if not ch.isspace())
    return label, (remainder if non_blank >= 2 else None)


def split_blank_fill_label(text: str, headings: AbstractSet[str] = SECTION_HEADINGS) -> Optional[str]:
    """``"Phone ________"`` -> ``"Phone"``."""

    stripped = text.strip()
    has_underscores = "__" in stripped
    dash_index = stripped.find("--")
    if not has_underscores and dash_index <= 0:
        return None
    match = _BLANK_RUN_PATTERN.search(stripped)
    if match is not None and match.start() > 0:
        label = _clean_label(stripped[: match.start()])
        if _is_valid_label(label, headings):
            return label
    fallback = _clean_label(_UNDERSCORE_DASH_PATTERN.sub(" ", stripped))
    if _is_valid_label(fallback, headings):
        return fallback
    return None


def match_label_keyword(text: str, keywords: AbstractSet[str] = FORM_LABEL_KEYWORDS) -> Optional[str]:
    """Return the line as a label when it equals, starts or ends with a keyword."""

    label = _clean_label(text)
    if not MIN_LABEL_LENGTH <= len(label) <= MAX_LABEL_LENGTH:
        return None
    lowered = label.lower()
    for keyword in keywords:
        if lowered == keyword:
            return label
        if lowered.startswith(keyword) and lowered[len(keyword)] in _KEYWORD_BOUNDARY_CHARS:
            return label
        if lowered.endswith(keyword) and lowered[-len(keyword) - 1] == " ":
            return label
    return None


def _label_from_line(
    line: RecognizedLine,
    keywords: AbstractSet[str],
    headings: AbstractSet[str],
) -> Optional[Tuple[str, Optional[str]]]:
    text = line.text.strip()
    colon = split_colon_label(text, headings)
    if colon is not None:
        return colon
    blank = split_blank_fill_label(text, headings)
    if blank is not None:
        return blank, None
    keyword = match_label_keyword(text, keywords)
    if keyword is not None:
        return keyword, None
    return None


def line_label(
    line: RecognizedLine,
    keywords: AbstractSet[str] = FORM_LABEL_KEYWORDS,
    headings: AbstractSet[str] = SECTION_HEADINGS,
) -> Optional[str]:
    """Label text the extractor reads from ``line``, or None for headings and non-labels."""

    if not line.text.strip() or is_section_heading(line, headings):
        return None
    extracted = _label_from_line(line, keywords, headings)
    return extracted[0] if extracted is not None else None


def extract_label_fields(
    lines: Iterable[RecognizedLine],
    settings: AutofillSettings = DEFAULT_SETTINGS,
    keywords: AbstractSet[str] = FORM_LABEL_KEYWORDS,
    headings: AbstractSet[str] = SECTION_HEADINGS,
) -> List[Field]:
    """Turn recognized lines into unmatched label fields.

    Strategies run per line in order (colon split, blank-fill, keyword) after
    the heading filter. Labels repeated on the same page are kept once.
    """

    fields: List[Field] = []
    seen: Set[Tuple[int, str]] = set()
    for line in lines:
        if line.confidence < settings.label_min_confidence or not line.text.strip():
            continue
        if is_section_heading(line, headings):
            logger.debug("Rejected heading line %r", line.text)
            continue
        extracted = _label_from_line(line, keywords, headings)
        if extracted is None:
            continue
        label, detected_value = extracted
        key = (line.page_index, normalize_label(label))
        if not key[1] or key in seen:
            continue
        seen.add(key)
        fields.append(
            Field(
                label=label,
                label_box=line.bounding_box,
                detected_value=detected_value,
                raw_label=line.text.strip(),
                page_index=line.page_index,
            )
        )
    logger.info("Extracted %d label field(s)", len(fields))
    return fields


def classify_field_type(field: Field, groups: Sequence[CheckboxGroup] = ()) -> FieldType:
    """Decide a field's type from its label and the checkbox groups around it."""

    normalized = normalize_label(field.label)
    if has_checkbox_marks(field.raw_label):
        return FieldType.CHECKBOX
    for group in groups:
        if group.page_index == field.page_index and group.group_label:
            if normalize_label(group.group_label) == normalized:
                return FieldType.CHECKBOX
    if _DATE_WORDS.intersection(normalized.split()) or "date of birth" in normalized:
        return FieldType.DATE
    if any(phrase in normalized for phrase in _SIGNATURE_PHRASES):
        return FieldType.SIGNATURE
    return FieldType.TEXT


def classify_field_types(fields: Sequence[Field], groups: Sequence[CheckboxGroup] = ()) -> List[Field]:
    for field in fields:
        field_type = classify_field_type(field, groups)
        if field_type is FieldType.CHECKBOX and field.field_type is not FieldType.CHECKBOX:
            field.detected_value = None
            field.value_box = None
        field.field_type = field_type
    return list(fields)


__all__ = [
    "MAX_LABEL_LENGTH",
    "MIN_LABEL_LENGTH",
    "classify_field_type",
    "classify_field_types",
    "extract_label_fields",
    "is_section_heading",
    "line_label",
    "match_label_keyword",
    "split_blank_fill_label",
    "split_colon_label",
]
