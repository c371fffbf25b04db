"""Data models for formautofill."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

PatientData = Dict[str, str]


def _new_id() -> str:
    return uuid.uuid4().hex


def _finite_or(value: float, fallback: float) -> float:
    return value if math.isfinite(value) else fallback


@dataclass(frozen=True)
class NormalizedRect:
    """Unit-square rectangle with its origin at the bottom-left of the page."""

    x: float
    y: float
    width: float
    height: float

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def mid_x(self) -> float:
        return self.x + self.width / 2.0

    @property
    def mid_y(self) -> float:
        return self.y + self.height / 2.0

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def union(self, other: "NormalizedRect") -> "NormalizedRect":
        min_x = min(self.min_x, other.min_x)
        min_y = min(self.min_y, other.min_y)
        max_x = max(self.max_x, other.max_x)
        max_y = max(self.max_y, other.max_y)
        return NormalizedRect(min_x, min_y, max_x - min_x, max_y - min_y)

    def clamped(self, min_size: float = 0.01) -> "NormalizedRect":
        """Return a copy that lies inside the unit square with a minimum size.

        NaN and infinite components fall back to the origin or the minimum size.
        """

        width = min(max(_finite_or(self.width, min_size), min_size), 1.0)
        height = min(max(_finite_or(self.height, min_size), min_size), 1.0)
        x = min(max(_finite_or(self.x, 0.0), 0.0), 1.0 - width)
        y = min(max(_finite_or(self.y, 0.0), 0.0), 1.0 - height)
        return NormalizedRect(x, y, width, height)

    @staticmethod
    def union_all(rects: Iterable["NormalizedRect"]) -> Optional["NormalizedRect"]:
        result: Optional[NormalizedRect] = None
        for rect in rects:
            result = rect if result is None else result.union(rect)
        return result


@dataclass(frozen=True)
class RecognizedLine:
    """One line of text produced by the OCR collaborator."""

    text: str
    bounding_box: NormalizedRect
    confidence: float = 1.0
    page_index: int = 0


class FieldType(str, Enum):
    """Kinds of form fields the engine distinguishes."""

    TEXT = "text"
    CHECKBOX = "checkbox"
    SIGNATURE = "signature"
    DATE = "date"


class MatchMethod(str, Enum):
    """Strategy that produced a keypath match, strongest first."""

    SYNONYM_EXACT = "synonym-exact"
    SYNONYM_CONTAINS = "synonym-contains"
    SYNONYM_PARTIAL = "synonym-partial"
    SYNONYM_REVERSE = "synonym-reverse"
    TOKEN = "token"
    EMBEDDING = "embedding"


@dataclass(frozen=True)
class MatchResult:
    keypath: str
    value: str
    confidence: float
    method: MatchMethod


@dataclass
class Field:
    """A detected form field and everything learned about it so far."""

    label: str
    label_box: NormalizedRect
    field_type: FieldType = FieldType.TEXT
    mapped_keypath: Optional[str] = None
    value: str = ""
    match_confidence: float = 0.0
    match_method: Optional[MatchMethod] = None
    detected_value: Optional[str] = None
    value_box: Optional[NormalizedRect] = None
    is_checked: Optional[bool] = None
    adjusted_value_box: Optional[NormalizedRect] = None
    raw_label: str = ""
    page_index: int = 0
    id: str = field(default_factory=_new_id)

    @property
    def is_matched(self) -> bool:
        return self.mapped_keypath is not None

    def apply_match(self, match: Optional[MatchResult]) -> None:
        if match is None:
            self.mapped_keypath = None
            self.value = ""
            self.match_confidence = 0.0
            self.match_method = None
            return
        self.mapped_keypath = match.keypath
        self.value = match.value
        self.match_confidence = match.confidence
        self.match_method = match.method


@dataclass
class Checkbox:
    bounding_box: NormalizedRect
    is_checked: bool = False
    associated_text: Optional[str] = None
    group_id: Optional[str] = None
    page_index: int = 0


@dataclass
class CheckboxGroup:
    """Checkbox options that answer one question.

    With more than one option, at most one is checked and it is the option at
    ``selected_index``. A single option behaves as an independent toggle.
    """

    bounding_box: NormalizedRect
    options: List[Checkbox]
    group_label: Optional[str] = None
    mapped_keypath: Optional[str] = None
    selected_index: Optional[int] = None
    page_index: int = 0
    id: str = field(default_factory=_new_id)

    @property
    def is_exclusive(self) -> bool:
        return len(self.options) > 1

    def select(self, index: Optional[int]) -> None:
        """Check exactly the option at ``index`` (or none)."""

        if index is not None and not 0 <= index < len(self.options):
            raise IndexError(f"option index {index} out of range for group {self.id}")
        for option_index, option in enumerate(self.options):
            option.is_checked = option_index == index
        self.selected_index = index

    @property
    def checked_options(self) -> List[Checkbox]:
        return [option for option in self.options if option.is_checked]


__all__ = [
    "Checkbox",
    "CheckboxGroup",
    "Field",
    "FieldType",
    "MatchMethod",
    "MatchResult",
    "NormalizedRect",
    "PatientData",
    "RecognizedLine",
]
