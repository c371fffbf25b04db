"""Flatten nested patient records into keypath -> string maps."""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .models import PatientData
from .utils import get_logger

logger = get_logger(__name__)

JsonValue = Union[str, int, float, bool, None, List[Any], Dict[str, Any]]

COMPUTED_PREFIX = "_computed"
DISPLAY_DATE_FORMAT = "%m/%d/%Y"
ISO_DATE_FORMAT = "%Y-%m-%d"
ADDRESS_PARTS = ("line1", "line2", "city", "state", "postalCode")


class PatientDataError(ValueError):
    """Raised when raw patient data cannot be decoded at all."""


def read_patient_record(source: Union[str, bytes, Path]) -> Any:
    """Decode a JSON document (path, text or bytes) without flattening it."""

    try:
        if isinstance(source, Path):
            return json.loads(source.read_text(encoding="utf-8"))
        return json.loads(source)
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise PatientDataError(f"Could not read patient data: {exc}") from exc


def load_patient_data(source: Union[str, bytes, Path], today: Optional[date] = None) -> PatientData:
    """Decode a JSON document (path, text or bytes) and flatten it."""

    return flatten_patient_data(read_patient_record(source), today=today)


def stringify_value(value: Any) -> Optional[str]:
    """String form of a terminal JSON value; ``None`` for null."""

    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def _flatten_into(value: JsonValue, prefix: str, out: PatientData) -> None:
    if isinstance(value, Mapping):
        for key, child in value.items():
            child_prefix = f"{prefix}.{key}" if prefix else str(key)
            _flatten_into(child, child_prefix, out)
        return
    if isinstance(value, (list, tuple)):
        for index, child in enumerate(value):
            _flatten_into(child, f"{prefix}[{index}]", out)
        return
    try:
        text = stringify_value(value)
    except Exception:
        logger.warning("Skipping value at %s that could not be converted to text", prefix or "<root>")
        return
    if text is None or not prefix:
        return
    out[prefix] = text


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.strptime(value.strip()[:10], ISO_DATE_FORMAT).date()
    except ValueError:
        return None


def whole_years_between(start: date, end: date) -> int:
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return years


def _add_computed_fields(data: PatientData, today: date) -> None:
    data[f"{COMPUTED_PREFIX}.todayDate"] = today.strftime(DISPLAY_DATE_FORMAT)

    birth_date = parse_iso_date(data.get("patient.dateOfBirth"))
    if birth_date is not None:
        data[f"{COMPUTED_PREFIX}.patientAge"] = str(whole_years_between(birth_date, today))
        data[f"{COMPUTED_PREFIX}.dobFormatted"] = birth_date.strftime(DISPLAY_DATE_FORMAT)
    elif "patient.dateOfBirth" in data:
        logger.debug("Unparseable patient.dateOfBirth %r; age and formatted DOB skipped", data["patient.dateOfBirth"])

    first_name = data.get("patient.firstName", "").strip()
    last_name = data.get("patient.lastName", "").strip()
    if first_name and last_name:
        data["patient.fullName"] = f"{first_name} {last_name}"

    parts = [data.get(f"patient.address.{part}", "").strip() for part in ADDRESS_PARTS]
    parts = [part for part in parts if part]
    if parts:
        data["patient.fullAddress"] = ", ".join(parts)


def flatten_patient_data(raw: Any, today: Optional[date] = None) -> PatientData:
    """Flatten ``raw`` and add the derived ``_computed.*`` and composed fields.

    Objects contribute ``prefix.key`` paths and arrays ``prefix[index]``.
    Nulls are left out. A derived field whose source is missing or cannot be
    parsed is skipped; this function does not raise.
    """

    flattened: PatientData = {}
    _flatten_into(raw, "", flattened)
    _add_computed_fields(flattened, today or date.today())
    logger.debug("Flattened patient data into %d keypaths", len(flattened))
    return flattened


def sorted_keypaths(data: PatientData) -> List[str]:
    return sorted(data)


__all__ = [
    "COMPUTED_PREFIX",
    "PatientDataError",
    "flatten_patient_data",
    "load_patient_data",
    "parse_iso_date",
    "read_patient_record",
    "sorted_keypaths",
    "stringify_value",
    "whole_years_between",
]
