"""Shared fixtures for the formautofill test-suite."""

from datetime import date
from typing import Dict, Optional, Tuple

import fitz
import pytest

from formautofill.models import NormalizedRect, RecognizedLine
from formautofill.patient_data import flatten_patient_data


class FakeEmbedding:
    """Word distances from a fixed table; identical words are distance 0."""

    def __init__(self, distances: Dict[Tuple[str, str], float]):
        self.distances = distances
        self.calls = 0

    def distance(self, first: str, second: str) -> Optional[float]:
        self.calls += 1
        if first == second:
            return 0.0
        if (first, second) in self.distances:
            return self.distances[(first, second)]
        return self.distances.get((second, first))


@pytest.fixture
def make_line():
    def _make(text, x=0.1, y=0.5, width=0.3, height=0.02, confidence=0.95, page_index=0):
        return RecognizedLine(
            text=text,
            bounding_box=NormalizedRect(x, y, width, height),
            confidence=confidence,
            page_index=page_index,
        )

    return _make


@pytest.fixture
def today():
    return date(2024, 6, 1)


@pytest.fixture
def patient_record():
    return {
        "patient": {
            "firstName": "Jane",
            "lastName": "Doe",
            "dateOfBirth": "1980-03-14",
            "sex": "F",
            "maritalStatus": "Married",
            "phone": "555-0100",
            "email": "jane.doe@example.com",
            "address": {
                "line1": "12 Main St",
                "line2": "",
                "city": "Springfield",
                "state": "IL",
                "postalCode": "62701",
            },
        },
        "insurance": {"provider": "Acme Health", "memberId": "XJ-1234"},
        "allergies": ["Penicillin", "Latex"],
    }


@pytest.fixture
def patient_data(patient_record, today):
    return flatten_patient_data(patient_record, today=today)


@pytest.fixture
def fake_embedding():
    return FakeEmbedding


@pytest.fixture
def make_png():
    def _make(width=200, height=100):
        pixmap = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, width, height), False)
        pixmap.clear_with(255)
        return pixmap.tobytes("png")

    return _make
