"""Checkbox detection, grouping and option selection."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from rapidfuzz import fuzz

from .config import DEFAULT_SETTINGS, AutofillSettings
from .models import Checkbox, CheckboxGroup, NormalizedRect, PatientData, RecognizedLine
from .tables import CHECKED_GLYPHS, GROUP_PATTERNS, OPTION_TOKENS, UNCHECKED_GLYPHS, GroupPattern
from .utils import get_logger

logger = get_logger(__name__)

_BRACKET_PATTERN = re.compile(
    r"\[\s{0,2}(?P<square>[^\s\]])?\s{0,2}\]|\(\s{0,2}(?P<round>[^\s)])?\s{0,2}\)"
)
_IMPLICIT_OPTION_PATTERN = re.compile(r"\b(?:fe)?male\b", re.IGNORECASE)
_WORD_PUNCTUATION = ".,;:!?/()[]"
_FUZZY_OPTION_THRESHOLD = 85.0


@dataclass(frozen=True)
class _Mark:
    start: int
    end: int
    checked: bool


def _find_marks(text: str) -> List[_Mark]:
    marks: List[_Mark] = []
    for match in _BRACKET_PATTERN.finditer(text):
        inner = match.group("square") or match.group("round")
        checked = bool(inner) and inner not in UNCHECKED_GLYPHS
        marks.append(_Mark(match.start(), match.end(), checked))
    # A glyph inside brackets is that bracket's mark, not a second box.
    bracketed = [(mark.start, mark.end) for mark in marks]
    for index, ch in enumerate(text):
        if any(start <= index < end for start, end in bracketed):
            continue
        if ch in CHECKED_GLYPHS:
            marks.append(_Mark(index, index + 1, True))
        elif ch in UNCHECKED_GLYPHS:
            marks.append(_Mark(index, index + 1, False))
    marks.sort(key=lambda mark: mark.start)
    return marks


def has_checkbox_marks(text: str) -> bool:
    return bool(_find_marks(text or ""))


def _span_box(box: NormalizedRect, text: str, start: int, end: int) -> NormalizedRect:
    """Approximate the box of ``text[start:end]`` by character share."""

    length = max(len(text), 1)
    x = box.x + box.width * (start / length)
    width = box.width * (max(end - start, 1) / length)
    return NormalizedRect(x, box.y, width, box.height)


def _associated_text(trailing: str) -> Optional[str]:
    text = trailing.strip()
    if not text:
        return None
    first_word = text.split()[0].strip(_WORD_PUNCTUATION)
    if first_word.lower() in OPTION_TOKENS:
        return first_word
    return text


def detect_checkboxes(lines: Iterable[RecognizedLine]) -> List[Checkbox]:
    """Find checkbox glyphs and bracket marks in every line.

    Lines mentioning male/female without any mark get one unchecked checkbox
    per occurrence.
    """

    checkboxes: List[Checkbox] = []
    for line in lines:
        text = line.text
        if not text.strip():
            continue
        marks = _find_marks(text)
        if marks:
            for index, mark in enumerate(marks):
                next_start = marks[index + 1].start if index + 1 < len(marks) else len(text)
                checkboxes.append(
                    Checkbox(
                        bounding_box=_span_box(line.bounding_box, text, mark.start, mark.end),
                        is_checked=mark.checked,
                        associated_text=_associated_text(text[mark.end:next_start]),
                        page_index=line.page_index,
                    )
                )
            continue
        for match in _IMPLICIT_OPTION_PATTERN.finditer(text):
            checkboxes.append(
                Checkbox(
                    bounding_box=_span_box(line.bounding_box, text, match.start(), match.end()),
                    is_checked=False,
                    associated_text=match.group(0),
                    page_index=line.page_index,
                )
            )
    logger.debug("Detected %d checkbox(es)", len(checkboxes))
    return checkboxes


def _leading_label(text: str) -> str:
    """Text before the first checkbox mark or implicit option on a line."""

    marks = _find_marks(text)
    cut = marks[0].start if marks else None
    if cut is None:
        match = _IMPLICIT_OPTION_PATTERN.search(text)
        cut = match.start() if match else len(text)
    return text[:cut]


def _clean_group_label(text: str) -> Optional[str]:
    cleaned = " ".join(text.split()).rstrip(":").strip()
    if not any(ch.isalpha() for ch in cleaned):
        return None
    return cleaned


def resolve_group_label(
    group_box: NormalizedRect,
    page_index: int,
    lines: Sequence[RecognizedLine],
    settings: AutofillSettings = DEFAULT_SETTINGS,
) -> Optional[str]:
    """Find caption text level with the group and to its left."""

    best: Optional[Tuple[float, str]] = None
    for line in lines:
        if line.page_index != page_index or not line.text.strip():
            continue
        box = line.bounding_box
        tolerance = max(box.height, group_box.height) * 0.5
        if abs(box.mid_y - group_box.mid_y) >= tolerance:
            continue
        if box.max_x <= group_box.min_x + 1e-6:
            if has_checkbox_marks(line.text) or line.text.strip().lower() in OPTION_TOKENS:
                continue
            gap = group_box.min_x - box.max_x
            if gap >= settings.group_label_max_gap:
                continue
            candidate = _clean_group_label(line.text)
        elif box.min_x < group_box.min_x:
            gap = 0.0
            candidate = _clean_group_label(_leading_label(line.text))
        else:
            continue
        if candidate and (best is None or gap < best[0]):
            best = (gap, candidate)
    return best[1] if best else None


def _option_tokens(options: Sequence[Checkbox]) -> List[str]:
    return [(option.associated_text or "").strip().lower() for option in options if option.associated_text]


def infer_label_from_options(options: Sequence[Checkbox]) -> Optional[str]:
    tokens = set(_option_tokens(options))
    for pattern in GROUP_PATTERNS:
        if tokens & pattern.option_terms:
            return pattern.label
    return None


def find_group_pattern(group: CheckboxGroup) -> Optional[GroupPattern]:
    """Pattern whose label terms appear in the group label, or which most options fit."""

    label = (group.group_label or "").lower()
    if label:
        for pattern in GROUP_PATTERNS:
            if any(term in label for term in pattern.label_terms):
                return pattern
    tokens = _option_tokens(group.options)
    if not tokens:
        return None
    for pattern in GROUP_PATTERNS:
        hits = sum(1 for token in tokens if token in pattern.option_terms)
        if hits * 2 > len(tokens):
            return pattern
    return None


def infer_group_keypath(group: CheckboxGroup) -> Optional[str]:
    pattern = find_group_pattern(group)
    return pattern.keypath if pattern else None


def _bucket_by_row(checkboxes: Sequence[Checkbox]) -> List[List[Checkbox]]:
    ordered = sorted(checkboxes, key=lambda cb: (cb.page_index, -cb.bounding_box.mid_y, cb.bounding_box.x))
    buckets: List[List[Checkbox]] = []
    for checkbox in ordered:
        if buckets:
            anchor = buckets[-1][0]
            tolerance = max(anchor.bounding_box.height, checkbox.bounding_box.height, 0.01) * 0.5
            if (
                anchor.page_index == checkbox.page_index
                and abs(anchor.bounding_box.mid_y - checkbox.bounding_box.mid_y) < tolerance
            ):
                buckets[-1].append(checkbox)
                continue
        buckets.append([checkbox])
    for bucket in buckets:
        bucket.sort(key=lambda cb: cb.bounding_box.x)
    return buckets


def _build_group(options: List[Checkbox], lines: Sequence[RecognizedLine], settings: AutofillSettings) -> CheckboxGroup:
    box = NormalizedRect.union_all(option.bounding_box for option in options)
    page_index = options[0].page_index
    group = CheckboxGroup(bounding_box=box, options=options, page_index=page_index)
    for option in options:
        option.group_id = group.id
    label = resolve_group_label(box, page_index, lines, settings)
    if label is None:
        label = infer_label_from_options(options) if group.is_exclusive else options[0].associated_text
    group.group_label = label

    checked = [index for index, option in enumerate(options) if option.is_checked]
    if checked:
        if len(checked) > 1:
            logger.debug("Group %r had %d checked options; keeping the first", label, len(checked))
        group.select(checked[0])
    group.mapped_keypath = infer_group_keypath(group)
    return group


def group_checkboxes(
    checkboxes: Sequence[Checkbox],
    lines: Sequence[RecognizedLine],
    settings: AutofillSettings = DEFAULT_SETTINGS,
) -> List[CheckboxGroup]:
    """Group checkboxes sharing a row into exclusive option sets.

    Rows with two or more checkboxes form one group each; every other
    checkbox becomes a single-option group.
    """

    groups: List[CheckboxGroup] = []
    singles: List[Checkbox] = []
    for bucket in _bucket_by_row(checkboxes):
        if len(bucket) >= 2:
            groups.append(_build_group(bucket, lines, settings))
        else:
            singles.extend(bucket)
    for checkbox in singles:
        groups.append(_build_group([checkbox], lines, settings))
    logger.info("Formed %d checkbox group(s) from %d checkbox(es)", len(groups), len(checkboxes))
    return groups


def _canonical_option(text: str, pattern: Optional[GroupPattern]) -> str:
    if pattern is None:
        return text
    return pattern.option_values.get(text, text).lower()


def find_option_for_value(group: CheckboxGroup, value: str) -> Optional[int]:
    """Index of the option that spells ``value``, or ``None``.

    Exact text wins over prefix matches (``"F"`` -> ``"Female"``), which win
    over the option-value table and finally a fuzzy ratio.
    """

    wanted = value.strip().lower()
    if not wanted:
        return None
    texts = [(option.associated_text or "").strip().lower() for option in group.options]

    for index, text in enumerate(texts):
        if text and text == wanted:
            return index
    for index, text in enumerate(texts):
        if text and (text.startswith(wanted) or wanted.startswith(text)):
            return index

    pattern = find_group_pattern(group)
    canonical_wanted = _canonical_option(wanted, pattern)
    for index, text in enumerate(texts):
        if text and _canonical_option(text, pattern) == canonical_wanted:
            return index

    best: Optional[Tuple[float, int]] = None
    for index, text in enumerate(texts):
        if not text:
            continue
        score = fuzz.ratio(text, wanted)
        if score >= _FUZZY_OPTION_THRESHOLD and (best is None or score > best[0]):
            best = (score, index)
    return best[1] if best else None


def auto_select_option(group: CheckboxGroup, data: PatientData) -> Optional[int]:
    """Check the option matching the data value at the group's keypath."""

    if not group.mapped_keypath:
        return None
    value = data.get(group.mapped_keypath)
    if not value:
        return None
    index = find_option_for_value(group, value)
    if index is None:
        logger.debug("No option of group %r matches %r", group.group_label, value)
        return None
    group.select(index)
    logger.debug("Auto-selected option %d of group %r", index, group.group_label)
    return index


__all__ = [
    "auto_select_option",
    "detect_checkboxes",
    "find_group_pattern",
    "find_option_for_value",
    "group_checkboxes",
    "has_checkbox_marks",
    "infer_group_keypath",
    "infer_label_from_options",
    "resolve_group_label",
]
