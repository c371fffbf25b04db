"""Tests for the plain-text session summary."""

from formautofill.export import build_summary
from formautofill.models import Checkbox, CheckboxGroup, Field, MatchMethod, NormalizedRect

BOX = NormalizedRect(0.1, 0.5, 0.1, 0.02)


class TestBuildSummary:
    def test_sections(self):
        fields = [
            Field(
                "Phone",
                BOX,
                mapped_keypath="patient.phone",
                value="555-0100",
                match_confidence=1.0,
                match_method=MatchMethod.SYNONYM_EXACT,
            ),
            Field("Employer", BOX),
            Field("Notes", BOX, value="Bring insurance card"),
        ]
        option = Checkbox(BOX, is_checked=True, associated_text="Female")
        group = CheckboxGroup(BOX, [Checkbox(BOX, associated_text="Male"), option], group_label="Sex", selected_index=1)

        summary = build_summary(fields, [group], signature_provided=True, signature_location="default corner")

        assert summary.startswith("Form autofill summary\n")
        assert "Fields: 3 (2 filled, 1 without a value)" in summary
        assert "Phone -> patient.phone = 555-0100 [synonym-exact, 1.00]" in summary
        assert "Notes: Bring insurance card (entered manually)" in summary
        assert "Employer (no mapping yet)" in summary
        assert "Sex: Female" in summary
        assert "Male" not in summary
        assert summary.rstrip().endswith("Signature: placed (default corner)")

    def test_empty_session(self):
        summary = build_summary([])
        assert summary.count("(none)") == 3
        assert "Signature: not provided" in summary

    def test_signature_not_drawn(self):
        summary = build_summary([], signature_provided=True, signature_drawn=False)
        assert summary.rstrip().endswith("Signature: provided, not drawn on this page")

    def test_mapped_field_without_value(self):
        field = Field("SSN", BOX, mapped_keypath="patient.ssn")
        assert "SSN (patient.ssn has no value)" in build_summary([field])

    def test_manual_binding_is_labelled(self):
        field = Field("Contact", BOX, mapped_keypath="patient.phone", value="555-0100", match_confidence=1.0)
        assert "[manual, 1.00]" in build_summary([field])
