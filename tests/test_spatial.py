"""Tests for spatial scoring and value association."""

import pytest

from formautofill.models import Field, NormalizedRect
from formautofill.parser import extract_label_fields
from formautofill.spatial import (
    associate_values,
    below_aligned_score,
    same_line_right_score,
    spatial_score,
)

LABEL = NormalizedRect(0.1, 0.5, 0.1, 0.02)


class TestSpatialScore:
    def test_same_line_right(self):
        candidate = NormalizedRect(0.25, 0.5, 0.2, 0.02)
        assert same_line_right_score(LABEL, candidate) == pytest.approx(1 - 0.05 / 0.3)
        assert spatial_score(LABEL, candidate) == pytest.approx(1 - 0.05 / 0.3)

    def test_below_aligned(self):
        candidate = NormalizedRect(0.1, 0.45, 0.1, 0.02)
        assert below_aligned_score(LABEL, candidate) == pytest.approx((1 - 0.03 / 0.1) * 0.8)
        assert same_line_right_score(LABEL, candidate) == 0.0

    def test_same_line_beats_below(self):
        right = NormalizedRect(0.25, 0.5, 0.2, 0.02)
        below = NormalizedRect(0.1, 0.45, 0.1, 0.02)
        assert spatial_score(LABEL, right) > spatial_score(LABEL, below)

    @pytest.mark.parametrize(
        "candidate",
        [
            NormalizedRect(0.0, 0.5, 0.05, 0.02),
            NormalizedRect(0.55, 0.5, 0.2, 0.02),
            NormalizedRect(0.1, 0.3, 0.1, 0.02),
            NormalizedRect(0.25, 0.54, 0.2, 0.02),
            NormalizedRect(0.1, 0.6, 0.1, 0.02),
            NormalizedRect(0.6, 0.45, 0.1, 0.02),
        ],
        ids=["left", "too-far-right", "too-far-below", "off-line", "above", "below-misaligned"],
    )
    def test_unrelated_positions_score_zero(self, candidate):
        assert spatial_score(LABEL, candidate) == 0.0

    def test_zero_size_label(self):
        flat = NormalizedRect(0.1, 0.5, 0.0, 0.0)
        assert spatial_score(flat, NormalizedRect(0.2, 0.5, 0.1, 0.02)) == 0.0

    def test_score_is_bounded(self):
        touching = NormalizedRect(0.2001, 0.5, 0.1, 0.02)
        assert 0.0 < spatial_score(LABEL, touching) <= 1.0


class TestAssociateValues:
    def _field(self, label="Name", box=LABEL):
        return Field(label=label, label_box=box, raw_label=f"{label}:")

    def test_picks_best_candidate(self, make_line):
        field = self._field()
        lines = [
            make_line("Jane Doe", x=0.25, y=0.5, width=0.2),
            make_line("Springfield", x=0.1, y=0.45, width=0.1),
        ]
        associate_values([field], lines)
        assert field.detected_value == "Jane Doe"
        assert field.value_box == lines[0].bounding_box

    def test_low_confidence_candidate_is_ignored(self, make_line):
        field = self._field()
        associate_values([field], [make_line("Jane Doe", x=0.25, y=0.5, width=0.2, confidence=0.4)])
        assert field.detected_value is None

    def test_short_candidate_is_ignored(self, make_line):
        field = self._field()
        associate_values([field], [make_line("x", x=0.25, y=0.5, width=0.02)])
        assert field.detected_value is None

    def test_label_lines_are_not_values(self, make_line):
        name_line = make_line("Name:", x=0.1, y=0.5, width=0.1)
        dob_line = make_line("DOB:", x=0.3, y=0.5, width=0.08)
        name = Field(label="Name", label_box=name_line.bounding_box, raw_label="Name:")
        dob = Field(label="DOB", label_box=dob_line.bounding_box, raw_label="DOB:")
        associate_values([name, dob], [name_line, dob_line])
        assert name.detected_value is None
        assert dob.detected_value is None

    def test_repeated_caption_is_not_a_value(self, make_line):
        lines = [
            make_line("Name:", x=0.1, y=0.5, width=0.08),
            make_line("Name:", x=0.25, y=0.5, width=0.08),
        ]
        fields = extract_label_fields(lines)
        assert len(fields) == 1
        associate_values(fields, lines)
        assert fields[0].detected_value is None

    def test_repeated_caption_does_not_hide_real_value(self, make_line):
        lines = [
            make_line("Name:", x=0.1, y=0.5, width=0.08),
            make_line("Name:", x=0.6, y=0.5, width=0.08),
            make_line("Jane Doe", x=0.25, y=0.5, width=0.2),
        ]
        fields = associate_values(extract_label_fields(lines), lines)
        assert fields[0].detected_value == "Jane Doe"

    def test_inline_value_is_kept(self, make_line):
        field = self._field()
        field.detected_value = "03/14/1980"
        associate_values([field], [make_line("Jane Doe", x=0.25, y=0.5, width=0.2)])
        assert field.detected_value == "03/14/1980"

    def test_other_pages_are_ignored(self, make_line):
        field = self._field()
        associate_values([field], [make_line("Jane Doe", x=0.25, y=0.5, width=0.2, page_index=1)])
        assert field.detected_value is None
