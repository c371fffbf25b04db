"""Geometric association of label fields with nearby value lines."""

from __future__ import annotations

from typing import List, Optional, Sequence, Set, Tuple

from .config import DEFAULT_SETTINGS, AutofillSettings
from .models import Field, NormalizedRect, RecognizedLine
from .parser import line_label
from .utils import get_logger, normalize_label

logger = get_logger(__name__)


def same_line_right_score(
    label_box: NormalizedRect,
    candidate_box: NormalizedRect,
    settings: AutofillSettings = DEFAULT_SETTINGS,
) -> float:
    if label_box.height <= 0:
        return 0.0
    vertical_limit = settings.same_line_vertical_factor * label_box.height
    vertical_distance = abs(candidate_box.mid_y - label_box.mid_y)
    if vertical_distance >= vertical_limit:
        return 0.0
    gap = candidate_box.min_x - label_box.max_x
    if not 0 < gap < settings.same_line_max_gap:
        return 0.0
    return (
        (1 - gap / settings.same_line_max_gap)
        * (1 - 0.5 * vertical_distance / vertical_limit)
        * settings.same_line_weight
    )


def below_aligned_score(
    label_box: NormalizedRect,
    candidate_box: NormalizedRect,
    settings: AutofillSettings = DEFAULT_SETTINGS,
) -> float:
    # Origin is bottom-left: "below" means smaller y.
    if label_box.width <= 0 or candidate_box.max_y >= label_box.min_y:
        return 0.0
    horizontal_limit = settings.below_horizontal_factor * label_box.width
    horizontal_distance = abs(candidate_box.mid_x - label_box.mid_x)
    if horizontal_distance >= horizontal_limit:
        return 0.0
    gap = label_box.min_y - candidate_box.max_y
    if gap >= settings.below_max_gap:
        return 0.0
    return (
        (1 - gap / settings.below_max_gap)
        * (1 - 0.5 * horizontal_distance / horizontal_limit)
        * settings.below_weight
    )


def spatial_score(
    label_box: NormalizedRect,
    candidate_box: NormalizedRect,
    settings: AutofillSettings = DEFAULT_SETTINGS,
) -> float:
    """Affinity of a candidate value box to a label box; 0 means unrelated."""

    return max(
        same_line_right_score(label_box, candidate_box, settings),
        below_aligned_score(label_box, candidate_box, settings),
    )


def _is_value_candidate(line: RecognizedLine, settings: AutofillSettings) -> bool:
    return line.confidence >= settings.value_min_confidence and len(line.text.strip()) >= settings.min_value_length


def _repeats_label(line: RecognizedLine, label_keys: Set[Tuple[int, str]]) -> bool:
    """True for a second caption of a label already extracted on the same page."""

    label = line_label(line)
    return label is not None and (line.page_index, normalize_label(label)) in label_keys


def best_value_candidate(
    field: Field,
    candidates: Sequence[RecognizedLine],
    settings: AutofillSettings = DEFAULT_SETTINGS,
) -> Optional[Tuple[RecognizedLine, float]]:
    best: Optional[Tuple[RecognizedLine, float]] = None
    for line in candidates:
        if line.page_index != field.page_index:
            continue
        score = spatial_score(field.label_box, line.bounding_box, settings)
        if score > 0 and (best is None or score > best[1]):
            best = (line, score)
    return best


def associate_values(
    fields: Sequence[Field],
    lines: Sequence[RecognizedLine],
    settings: AutofillSettings = DEFAULT_SETTINGS,
) -> List[Field]:
    """Attach the best-placed non-label line to each field as its detected value.

    Fields that already carry an inline value (``"DOB: 03/14/1980"``) keep it.
    """

    label_lines: Set[Tuple[int, NormalizedRect]] = {(field.page_index, field.label_box) for field in fields}
    label_keys: Set[Tuple[int, str]] = {(field.page_index, normalize_label(field.label)) for field in fields}
    candidates = [
        line
        for line in lines
        if (line.page_index, line.bounding_box) not in label_lines
        and not _repeats_label(line, label_keys)
        and _is_value_candidate(line, settings)
    ]
    associated = 0
    for field in fields:
        if field.detected_value:
            continue
        best = best_value_candidate(field, candidates, settings)
        if best is None:
            continue
        line, score = best
        field.detected_value = line.text.strip()
        field.value_box = line.bounding_box
        associated += 1
        logger.debug("Field %r <- %r (score %.3f)", field.label, field.detected_value, score)
    logger.info("Associated values for %d of %d field(s)", associated, len(fields))
    return list(fields)


__all__ = [
    "associate_values",
    "below_aligned_score",
    "best_value_candidate",
    "same_line_right_score",
    "spatial_score",
]
