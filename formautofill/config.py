"""Tunable heuristics for the autofill engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Optional

from dotenv import load_dotenv

from .utils import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "FORMAUTOFILL_"


@dataclass(frozen=True)
class AutofillSettings:
    """Thresholds and weights used across extraction, association and matching.

    The spatial weights and the embedding threshold were tuned by hand on a
    handful of intake forms; they are settings rather than constants so they
    can be adjusted per deployment.
    """

    label_min_confidence: float = 0.3
    value_min_confidence: float = 0.5
    min_value_length: int = 2

    same_line_max_gap: float = 0.3
    same_line_vertical_factor: float = 1.5
    same_line_weight: float = 1.0
    below_max_gap: float = 0.1
    below_horizontal_factor: float = 2.0
    below_weight: float = 0.8

    group_label_max_gap: float = 0.2

    token_threshold: float = 0.3
    token_weight: float = 0.7
    embedding_threshold: float = 0.8
    embedding_weight: float = 0.7
    embedding_min_word_length: int = 3
    embedding_model: str = "en_core_web_md"

    min_box_size: float = 0.01

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "AutofillSettings":
        """Build settings from ``FORMAUTOFILL_*`` variables (and a .env file)."""

        load_dotenv(env_file)
        settings = cls()
        overrides = {}
        for setting in fields(cls):
            raw = os.getenv(ENV_PREFIX + setting.name.upper())
            if raw is None or raw.strip() == "":
                continue
            default = getattr(settings, setting.name)
            try:
                if isinstance(default, str):
                    overrides[setting.name] = raw.strip()
                elif isinstance(default, int):
                    overrides[setting.name] = int(raw)
                else:
                    overrides[setting.name] = float(raw)
            except ValueError:
                logger.warning(
                    "Ignoring %s%s=%r; using default %r",
                    ENV_PREFIX,
                    setting.name.upper(),
                    raw,
                    default,
                )
        if overrides:
            logger.debug("Settings overrides from environment: %s", sorted(overrides))
        return replace(settings, **overrides)


DEFAULT_SETTINGS = AutofillSettings()

__all__ = ["AutofillSettings", "DEFAULT_SETTINGS", "ENV_PREFIX"]
