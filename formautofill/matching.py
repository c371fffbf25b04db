"""Map form labels onto patient-data keypaths."""

from __future__ import annotations

from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from rapidfuzz import fuzz, process

from .checkboxes import auto_select_option
from .config import DEFAULT_SETTINGS, AutofillSettings
from .embeddings import WordEmbedding
from .models import CheckboxGroup, Field, MatchMethod, MatchResult, PatientData
from .tables import SYNONYM_TABLE
from .utils import get_logger, keypath_words, normalize_label

logger = get_logger(__name__)

CONFIDENCE_BY_METHOD: Dict[MatchMethod, float] = {
    MatchMethod.SYNONYM_EXACT: 1.0,
    MatchMethod.SYNONYM_CONTAINS: 0.9,
    MatchMethod.SYNONYM_PARTIAL: 0.8,
    MatchMethod.SYNONYM_REVERSE: 0.75,
}
_CONTAINS_MIN_LENGTH = 3
_PARTIAL_MIN_LENGTH = 4
_REVERSE_MIN_LENGTH = 3


def jaccard(first: set, second: set) -> float:
    union = first | second
    if not union:
        return 0.0
    return len(first & second) / len(union)


class FuzzyMatcher:
    """Cascade of matching strategies from exact synonyms down to word vectors.

    The first strategy that finds a keypath present in the data wins; its
    confidence reflects how strong that strategy is, not how likely the
    mapping is to be right.
    """

    def __init__(
        self,
        synonyms: Mapping[str, Sequence[str]] = SYNONYM_TABLE,
        embedding: Optional[WordEmbedding] = None,
        settings: AutofillSettings = DEFAULT_SETTINGS,
    ) -> None:
        self._synonyms: List[Tuple[str, Tuple[str, ...]]] = [
            (keypath, tuple(p for p in (normalize_label(pattern) for pattern in patterns) if p))
            for keypath, patterns in synonyms.items()
        ]
        self.embedding = embedding
        self.settings = settings

    def match(self, label: str, data: PatientData) -> Optional[MatchResult]:
        normalized = normalize_label(label)
        if not normalized or not data:
            return None
        result = (
            self._match_synonyms(normalized, data)
            or self._match_tokens(normalized, data)
            or self._match_embedding(normalized, data)
        )
        if result is None:
            logger.debug("No keypath for label %r", label)
        else:
            logger.debug(
                "Label %r -> %s via %s (%.2f)", label, result.keypath, result.method.value, result.confidence
            )
        return result

    def _live_patterns(self, data: PatientData) -> Iterator[Tuple[str, str]]:
        for keypath, patterns in self._synonyms:
            if keypath not in data:
                continue
            for pattern in patterns:
                yield keypath, pattern

    def _result(self, keypath: str, data: PatientData, method: MatchMethod, confidence: Optional[float] = None) -> MatchResult:
        if confidence is None:
            confidence = CONFIDENCE_BY_METHOD[method]
        return MatchResult(keypath=keypath, value=data[keypath], confidence=confidence, method=method)

    def _match_synonyms(self, label: str, data: PatientData) -> Optional[MatchResult]:
        live = list(self._live_patterns(data))

        for keypath, pattern in live:
            if pattern == label:
                return self._result(keypath, data, MatchMethod.SYNONYM_EXACT)

        # Longest pattern wins so "emergency contact phone" beats "phone".
        padded = f" {label} "
        contains = [(k, p) for k, p in live if len(p) >= _CONTAINS_MIN_LENGTH and f" {p} " in padded]
        if contains:
            keypath, _ = max(contains, key=lambda item: len(item[1]))
            return self._result(keypath, data, MatchMethod.SYNONYM_CONTAINS)

        partial = [(k, p) for k, p in live if len(p) >= _PARTIAL_MIN_LENGTH and p in label]
        if partial:
            keypath, _ = max(partial, key=lambda item: len(item[1]))
            return self._result(keypath, data, MatchMethod.SYNONYM_PARTIAL)

        if len(label) >= _REVERSE_MIN_LENGTH:
            reverse = [(k, p) for k, p in live if label in p]
            if reverse:
                # Whole-word hits first: "name" -> "full name" rather than "surname".
                keypath, _ = min(reverse, key=lambda item: (f" {label} " not in f" {item[1]} ", len(item[1])))
                return self._result(keypath, data, MatchMethod.SYNONYM_REVERSE)
        return None

    def _match_tokens(self, label: str, data: PatientData) -> Optional[MatchResult]:
        label_tokens = set(label.split())
        best_keypath: Optional[str] = None
        best_score = 0.0
        for keypath in sorted(data):
            score = jaccard(label_tokens, set(keypath_words(keypath)))
            if score > best_score:
                best_keypath, best_score = keypath, score
        if best_keypath is None or best_score < self.settings.token_threshold:
            return None
        return self._result(best_keypath, data, MatchMethod.TOKEN, best_score * self.settings.token_weight)

    def _distance(self, first: str, second: str) -> Optional[float]:
        try:
            return self.embedding.distance(first, second)
        except Exception as exc:
            logger.debug("Embedding lookup failed for %r/%r: %s", first, second, exc)
            return None

    def _match_embedding(self, label: str, data: PatientData) -> Optional[MatchResult]:
        if self.embedding is None:
            return None
        min_length = self.settings.embedding_min_word_length
        label_words = [word for word in label.split() if len(word) >= min_length]
        if not label_words:
            return None
        best_keypath: Optional[str] = None
        best_distance: Optional[float] = None
        for keypath in sorted(data):
            for key_word in keypath_words(keypath):
                if len(key_word) < min_length:
                    continue
                for label_word in label_words:
                    distance = self._distance(label_word, key_word)
                    if distance is None:
                        continue
                    if best_distance is None or distance < best_distance:
                        best_keypath, best_distance = keypath, distance
        threshold = self.settings.embedding_threshold
        if best_keypath is None or best_distance is None or best_distance >= threshold:
            return None
        confidence = max(0.0, (threshold - best_distance) / threshold) * self.settings.embedding_weight
        return self._result(best_keypath, data, MatchMethod.EMBEDDING, confidence)

    def match_field(self, field: Field, data: PatientData) -> Optional[MatchResult]:
        result = self.match(field.label, data)
        field.apply_match(result)
        return result

    def match_fields(self, fields: Sequence[Field], data: PatientData) -> List[Field]:
        matched = sum(1 for field in fields if self.match_field(field, data) is not None)
        logger.info("Matched %d of %d field(s) to patient data", matched, len(fields))
        return list(fields)

    def match_group(self, group: CheckboxGroup, data: PatientData) -> Optional[int]:
        """Resolve the group's keypath (pattern table first) and check the matching option."""

        if (group.mapped_keypath is None or group.mapped_keypath not in data) and group.group_label:
            result = self.match(group.group_label, data)
            if result is not None:
                group.mapped_keypath = result.keypath
        return auto_select_option(group, data)

    def match_groups(self, groups: Sequence[CheckboxGroup], data: PatientData) -> List[CheckboxGroup]:
        selected = sum(1 for group in groups if self.match_group(group, data) is not None)
        logger.info("Auto-selected options in %d of %d checkbox group(s)", selected, len(groups))
        return list(groups)

    def suggest_keypaths(self, label: str, data: PatientData, limit: int = 5) -> List[Tuple[str, float]]:
        """Keypaths ranked by fuzzy similarity to ``label`` for manual remapping."""

        query = normalize_label(label)
        if not query or not data:
            return []
        choices = {keypath: " ".join(keypath_words(keypath)) for keypath in data}
        ranked = process.extract(query, choices, scorer=fuzz.token_set_ratio, limit=limit)
        return [(keypath, float(score)) for _, score, keypath in ranked]


__all__ = ["CONFIDENCE_BY_METHOD", "FuzzyMatcher", "jaccard"]
