"""Utility helpers for formautofill."""

from __future__ import annotations

import logging
import os
import re
from typing import List

_LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"
_NON_ALNUM_PATTERN = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_CAMEL_BOUNDARY_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")
_INDEX_SUFFIX_PATTERN = re.compile(r"\[\d+\]$")


def get_logger(name: str) -> logging.Logger:
    """Return a module logger whose level follows ``FORMAUTOFILL_LOG``."""

    logger = logging.getLogger(name)
    level_name = os.getenv("FORMAUTOFILL_LOG", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def normalize_label(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace.

    ``"D.O.B.:"`` becomes ``"dob"`` and ``"Pt. Given  Name"`` becomes
    ``"pt given name"``.
    """

    lowered = (text or "").lower()
    return collapse_whitespace(_NON_ALNUM_PATTERN.sub("", lowered))


def split_camel_case(segment: str) -> List[str]:
    """Split ``dateOfBirth`` into ``["date", "of", "birth"]``."""

    words = _CAMEL_BOUNDARY_PATTERN.findall(segment or "")
    return [word.lower() for word in words if word]


def keypath_words(keypath: str) -> List[str]:
    """Words of the final segment of a keypath, array indices dropped."""

    final_segment = keypath.rsplit(".", 1)[-1]
    final_segment = _INDEX_SUFFIX_PATTERN.sub("", final_segment)
    return split_camel_case(final_segment)


__all__ = [
    "collapse_whitespace",
    "get_logger",
    "keypath_words",
    "normalize_label",
    "split_camel_case",
]
