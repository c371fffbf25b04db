"""Word-embedding semantic distance backed by spaCy word vectors."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Protocol, Tuple

import spacy

from .utils import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "en_core_web_md"


class WordEmbedding(Protocol):
    """Anything that can tell how far apart two words are.

    ``distance`` returns 0 for identical meaning up to about 2 for opposite
    vectors, or ``None`` when either word is unknown.
    """

    def distance(self, first: str, second: str) -> Optional[float]:
        ...


class SpacyWordEmbedding:
    """Cosine distance between spaCy lexeme vectors.

    The model loads lazily on first use. A model that cannot be loaded is
    reported once and every later lookup returns ``None``.
    """

    def __init__(self, model_name: str = DEFAULT_MODEL) -> None:
        self.model_name = model_name
        self._nlp = None
        self._load_failed = False
        self._lock = threading.Lock()
        self._cache: Dict[Tuple[str, str], Optional[float]] = {}

    @property
    def available(self) -> bool:
        return self._ensure_loaded() is not None

    def _ensure_loaded(self):
        if self._nlp is not None or self._load_failed:
            return self._nlp
        with self._lock:
            if self._nlp is None and not self._load_failed:
                try:
                    self._nlp = spacy.load(self.model_name)
                    logger.info("Loaded spaCy model '%s' for semantic matching", self.model_name)
                except OSError as exc:
                    self._load_failed = True
                    logger.warning("spaCy model '%s' unavailable; semantic matching disabled: %s", self.model_name, exc)
        return self._nlp

    def distance(self, first: str, second: str) -> Optional[float]:
        key = (first.lower(), second.lower())
        if key in self._cache:
            return self._cache[key]
        nlp = self._ensure_loaded()
        if nlp is None:
            return None
        result: Optional[float] = None
        left = nlp.vocab[key[0]]
        right = nlp.vocab[key[1]]
        if left.has_vector and right.has_vector:
            result = 1.0 - float(left.similarity(right))
        else:
            logger.debug("No vector for %r or %r", first, second)
        self._cache[key] = result
        return result


__all__ = ["DEFAULT_MODEL", "SpacyWordEmbedding", "WordEmbedding"]
