"""Autofill session state: phase machine, fields, checkbox groups and manual edits."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence

from .config import DEFAULT_SETTINGS, AutofillSettings
from .matching import FuzzyMatcher
from .models import CheckboxGroup, Field, FieldType, NormalizedRect, PatientData, RecognizedLine
from .parser import classify_field_type
from .utils import get_logger

logger = get_logger(__name__)


class PhaseKind(str, Enum):
    LANDING = "landing"
    SCANNING = "scanning"
    ANALYZING = "analyzing"
    EDITING = "editing"
    ERROR = "error"


@dataclass(frozen=True)
class Phase:
    """Current step of a session; ``message`` is only set for ``error``."""

    kind: PhaseKind
    message: Optional[str] = None

    @classmethod
    def landing(cls) -> "Phase":
        return cls(PhaseKind.LANDING)

    @classmethod
    def scanning(cls) -> "Phase":
        return cls(PhaseKind.SCANNING)

    @classmethod
    def analyzing(cls) -> "Phase":
        return cls(PhaseKind.ANALYZING)

    @classmethod
    def editing(cls) -> "Phase":
        return cls(PhaseKind.EDITING)

    @classmethod
    def error(cls, message: str) -> "Phase":
        return cls(PhaseKind.ERROR, message)

    @property
    def is_busy(self) -> bool:
        return self.kind in (PhaseKind.SCANNING, PhaseKind.ANALYZING)


_TRANSITIONS: Dict[PhaseKind, FrozenSet[PhaseKind]] = {
    PhaseKind.LANDING: frozenset({PhaseKind.SCANNING}),
    PhaseKind.SCANNING: frozenset({PhaseKind.ANALYZING, PhaseKind.LANDING, PhaseKind.ERROR}),
    PhaseKind.ANALYZING: frozenset({PhaseKind.EDITING, PhaseKind.LANDING, PhaseKind.ERROR}),
    PhaseKind.EDITING: frozenset({PhaseKind.SCANNING, PhaseKind.LANDING}),
    PhaseKind.ERROR: frozenset({PhaseKind.LANDING}),
}


class InvalidPhaseTransition(RuntimeError):
    """Raised when a session is asked to move to a phase it cannot reach."""


class AutofillSession:
    """Owns the authoritative fields and checkbox groups of one autofill session.

    Every mutation goes through a named operation so that invariants (clamped
    boxes, one checked option per exclusive group) hold after each call. The
    background pipeline only touches the session through :meth:`publish`, which
    drops results from a scan that has since been cancelled.
    """

    def __init__(
        self,
        matcher: Optional[FuzzyMatcher] = None,
        settings: AutofillSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.settings = settings
        self.matcher = matcher or FuzzyMatcher(settings=settings)
        self.phase = Phase.landing()
        self.pages: List[bytes] = []
        self.recognized_lines: List[RecognizedLine] = []
        self.fields: List[Field] = []
        self.groups: List[CheckboxGroup] = []
        self.patient_data: PatientData = {}
        self.signature_image: Optional[bytes] = None
        self.signature_position: Optional[NormalizedRect] = None
        self._generation = 0
        self._lock = threading.RLock()

    # Phase transitions

    def _transition(self, target: Phase) -> None:
        allowed = _TRANSITIONS[self.phase.kind]
        if target.kind not in allowed:
            raise InvalidPhaseTransition(f"Cannot move from {self.phase.kind.value} to {target.kind.value}")
        logger.debug("Phase %s -> %s", self.phase.kind.value, target.kind.value)
        self.phase = target

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def begin_scan(self, pages: Sequence[bytes] = ()) -> int:
        """Enter ``scanning`` and return the generation token for this scan."""

        with self._lock:
            if self.phase.is_busy:
                raise InvalidPhaseTransition("A scan is already in progress; cancel it first")
            self._transition(Phase.scanning())
            self._generation += 1
            self.pages = list(pages)
            return self._generation

    def begin_analysis(self, generation: int) -> bool:
        with self._lock:
            if not self.is_current(generation):
                return False
            self._transition(Phase.analyzing())
            return True

    def publish(
        self,
        generation: int,
        lines: Sequence[RecognizedLine],
        fields: Sequence[Field],
        groups: Sequence[CheckboxGroup],
        data: PatientData,
    ) -> bool:
        """Install pipeline results and enter ``editing``; stale scans are ignored."""

        with self._lock:
            if not self.is_current(generation) or self.phase.kind is not PhaseKind.ANALYZING:
                logger.info("Discarding results of superseded scan %d", generation)
                return False
            self.recognized_lines = list(lines)
            self.fields = list(fields)
            self.groups = list(groups)
            self.patient_data = dict(data)
            self._transition(Phase.editing())
            return True

    def fail(self, generation: int, message: str) -> bool:
        with self._lock:
            if not self.is_current(generation) or not self.phase.is_busy:
                return False
            logger.error("Scan failed: %s", message)
            self._transition(Phase.error(message))
            return True

    def abandon(self, generation: int) -> bool:
        """Return to ``landing`` because the scan produced nothing to analyze."""

        with self._lock:
            if not self.is_current(generation) or not self.phase.is_busy:
                return False
            self._transition(Phase.landing())
            return True

    def cancel(self) -> None:
        """Leave ``scanning``/``analyzing`` so a fresh scan can start."""

        with self._lock:
            if self.phase.is_busy:
                self._generation += 1
                self._transition(Phase.landing())

    def return_to_landing(self) -> None:
        with self._lock:
            if self.phase.kind is not PhaseKind.LANDING:
                if self.phase.is_busy:
                    self._generation += 1
                self._transition(Phase.landing())

    def start_over(self) -> None:
        with self._lock:
            self.return_to_landing()
            self.pages = []
            self.recognized_lines = []
            self.fields = []
            self.groups = []
            self.signature_image = None
            self.signature_position = None

    # Queries

    @property
    def line_count(self) -> int:
        return len(self.recognized_lines)

    @property
    def field_count(self) -> int:
        return len(self.fields)

    @property
    def matched_count(self) -> int:
        return sum(1 for field in self.fields if field.is_matched)

    @property
    def sorted_keypaths(self) -> List[str]:
        return sorted(self.patient_data)

    @property
    def signature_field(self) -> Optional[Field]:
        for field in self.fields:
            if field.field_type is FieldType.SIGNATURE:
                return field
        return None

    def field(self, field_id: str) -> Field:
        for field in self.fields:
            if field.id == field_id:
                return field
        raise KeyError(f"No field with id {field_id!r}")

    # Manual edits

    def update_field_keypath(self, field_id: str, new_keypath: Optional[str]) -> Field:
        """Bind a field to ``new_keypath`` (or unbind with ``None``) and copy its value."""

        with self._lock:
            field = self.field(field_id)
            field.mapped_keypath = new_keypath
            field.match_method = None
            if new_keypath is None:
                field.value = ""
                field.match_confidence = 0.0
            else:
                field.value = self.patient_data.get(new_keypath, "")
                field.match_confidence = 1.0
            return field

    def update_field_value(self, field_id: str, value: str) -> Field:
        with self._lock:
            field = self.field(field_id)
            field.value = value
            return field

    def reset_field(self, field_id: str) -> Field:
        """Restore the value from patient data for the field's current keypath."""

        with self._lock:
            field = self.field(field_id)
            if field.mapped_keypath is not None:
                field.value = self.patient_data.get(field.mapped_keypath, "")
            return field

    def update_field_value_box(self, field_id: str, box: NormalizedRect) -> Field:
        with self._lock:
            field = self.field(field_id)
            field.adjusted_value_box = box.clamped(self.settings.min_box_size)
            return field

    def toggle_checkbox(self, group_index: int, option_index: int) -> CheckboxGroup:
        """Flip one option; in exclusive groups checking it unchecks its siblings."""

        with self._lock:
            if not 0 <= group_index < len(self.groups):
                raise IndexError(f"group index {group_index} out of range")
            group = self.groups[group_index]
            if not 0 <= option_index < len(group.options):
                raise IndexError(f"option index {option_index} out of range for group {group.id}")
            option = group.options[option_index]
            if not group.is_exclusive:
                option.is_checked = not option.is_checked
                group.selected_index = 0 if option.is_checked else None
            elif option.is_checked:
                group.select(None)
            else:
                group.select(option_index)
            return group

    def add_manual_field(
        self,
        label: str,
        label_box: NormalizedRect,
        input_box: Optional[NormalizedRect] = None,
        page_index: int = 0,
    ) -> Field:
        """Create a field the detector missed and try one match against the data."""

        with self._lock:
            min_size = self.settings.min_box_size
            field = Field(
                label=label.strip(),
                label_box=label_box.clamped(min_size),
                adjusted_value_box=input_box.clamped(min_size) if input_box is not None else None,
                raw_label=label.strip(),
                page_index=page_index,
            )
            field.field_type = classify_field_type(field, self.groups)
            self.matcher.match_field(field, self.patient_data)
            self.fields.append(field)
            logger.info("Added manual field %r (mapped to %s)", field.label, field.mapped_keypath)
            return field

    def set_signature(self, image: Optional[bytes]) -> None:
        with self._lock:
            self.signature_image = image
            if image is None:
                self.signature_position = None

    def update_signature_normalized_position(self, position: Optional[NormalizedRect]) -> Optional[NormalizedRect]:
        with self._lock:
            self.signature_position = position.clamped(self.settings.min_box_size) if position is not None else None
            return self.signature_position


__all__ = ["AutofillSession", "InvalidPhaseTransition", "Phase", "PhaseKind"]
