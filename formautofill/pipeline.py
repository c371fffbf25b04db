"""High level orchestration of the scan -> analyze -> edit flow."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence

from .checkboxes import detect_checkboxes, group_checkboxes
from .config import DEFAULT_SETTINGS, AutofillSettings
from .matching import FuzzyMatcher
from .models import CheckboxGroup, Field, PatientData, RecognizedLine
from .parser import classify_field_types, extract_label_fields
from .patient_data import flatten_patient_data
from .session import AutofillSession, Phase
from .spatial import associate_values
from .utils import get_logger

logger = get_logger(__name__)

Recognizer = Callable[[Sequence[bytes]], Sequence[RecognizedLine]]


class RecognitionError(RuntimeError):
    """The OCR collaborator failed for a scan."""


@dataclass
class AnalysisResult:
    fields: List[Field] = field(default_factory=list)
    groups: List[CheckboxGroup] = field(default_factory=list)
    patient_data: PatientData = field(default_factory=dict)


def _lines_by_page(lines: Sequence[RecognizedLine]) -> Dict[int, List[RecognizedLine]]:
    pages: Dict[int, List[RecognizedLine]] = {}
    for line in lines:
        pages.setdefault(line.page_index, []).append(line)
    return dict(sorted(pages.items()))


def analyze_lines(
    lines: Sequence[RecognizedLine],
    patient_record: Any,
    matcher: Optional[FuzzyMatcher] = None,
    settings: AutofillSettings = DEFAULT_SETTINGS,
    today: Optional[date] = None,
) -> AnalysisResult:
    """Run extraction, checkbox grouping, value association and matching.

    Each page is processed on its own; matching then runs once against the
    flattened patient record. Malformed input degrades to partial results.
    """

    matcher = matcher or FuzzyMatcher(settings=settings)
    result = AnalysisResult()
    for page_index, page_lines in _lines_by_page(lines).items():
        fields = extract_label_fields(page_lines, settings)
        groups = group_checkboxes(detect_checkboxes(page_lines), page_lines, settings)
        associate_values(fields, page_lines, settings)
        classify_field_types(fields, groups)
        logger.info("Page %d: %d field(s), %d checkbox group(s)", page_index, len(fields), len(groups))
        result.fields.extend(fields)
        result.groups.extend(groups)

    result.patient_data = flatten_patient_data(patient_record, today=today)
    matcher.match_fields(result.fields, result.patient_data)
    matcher.match_groups(result.groups, result.patient_data)
    return result


class StaticRecognizer:
    """Recognizer that replays OCR lines computed elsewhere."""

    def __init__(self, lines: Sequence[RecognizedLine]) -> None:
        self._lines = list(lines)

    def __call__(self, pages: Sequence[bytes]) -> List[RecognizedLine]:
        return list(self._lines)


class AutofillPipeline:
    """Coordinate OCR -> analysis -> publish for one session.

    :meth:`run` does the whole scan on the calling thread; :meth:`submit`
    does it on a single background worker. Only the final publish touches the
    session's collections.
    """

    def __init__(
        self,
        recognizer: Recognizer,
        session: Optional[AutofillSession] = None,
        matcher: Optional[FuzzyMatcher] = None,
        settings: AutofillSettings = DEFAULT_SETTINGS,
    ) -> None:
        self.recognizer = recognizer
        self.settings = settings
        self.matcher = matcher or (session.matcher if session else FuzzyMatcher(settings=settings))
        self.session = session or AutofillSession(matcher=self.matcher, settings=settings)
        self._executor: Optional[ThreadPoolExecutor] = None

    def _recognize(self, pages: Sequence[bytes]) -> List[RecognizedLine]:
        try:
            return list(self.recognizer(pages))
        except Exception as exc:
            raise RecognitionError(f"Text recognition failed: {exc}") from exc

    def run(self, pages: Sequence[bytes], patient_record: Any, today: Optional[date] = None) -> Phase:
        session = self.session
        generation = session.begin_scan(pages)
        if not pages:
            logger.info("No pages scanned; returning to landing")
            session.abandon(generation)
            return session.phase

        try:
            lines = self._recognize(pages)
        except RecognitionError as exc:
            session.fail(generation, str(exc))
            return session.phase

        if not lines:
            logger.info("No text recognized; returning to landing")
            session.abandon(generation)
            return session.phase

        if not session.begin_analysis(generation):
            return session.phase
        logger.info("Analyzing %d recognized line(s) from %d page(s)", len(lines), len(pages))
        try:
            result = analyze_lines(lines, patient_record, self.matcher, self.settings, today=today)
        except Exception as exc:
            logger.exception("Analysis failed")
            session.fail(generation, f"Analysis failed: {exc}")
            return session.phase
        session.publish(generation, lines, result.fields, result.groups, result.patient_data)
        return session.phase

    def submit(self, pages: Sequence[bytes], patient_record: Any, today: Optional[date] = None) -> "Future[Phase]":
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="formautofill-scan")
        return self._executor.submit(self.run, list(pages), patient_record, today)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


__all__ = [
    "AnalysisResult",
    "AutofillPipeline",
    "RecognitionError",
    "Recognizer",
    "StaticRecognizer",
    "analyze_lines",
]
