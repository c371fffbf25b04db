"""Tests for the session phase machine and manual edit operations."""

import itertools

import pytest

from formautofill.models import Checkbox, CheckboxGroup, Field, FieldType, NormalizedRect
from formautofill.session import AutofillSession, InvalidPhaseTransition, Phase, PhaseKind

BOX = NormalizedRect(0.1, 0.5, 0.1, 0.02)


def _group(count):
    return CheckboxGroup(bounding_box=BOX, options=[Checkbox(BOX, associated_text=str(i)) for i in range(count)])


@pytest.fixture
def session(patient_data):
    session = AutofillSession()
    session.patient_data = patient_data
    return session


class TestPhases:
    def test_starts_on_landing(self):
        assert AutofillSession().phase == Phase.landing()

    def test_happy_path(self):
        session = AutofillSession()
        generation = session.begin_scan([b"page"])
        assert session.phase.kind is PhaseKind.SCANNING
        assert session.begin_analysis(generation)
        assert session.phase.kind is PhaseKind.ANALYZING
        assert session.publish(generation, [], [], [], {"patient.sex": "F"})
        assert session.phase.kind is PhaseKind.EDITING
        assert session.patient_data == {"patient.sex": "F"}

    def test_cannot_start_second_scan_while_busy(self):
        session = AutofillSession()
        session.begin_scan([b"page"])
        with pytest.raises(InvalidPhaseTransition):
            session.begin_scan([b"page"])

    def test_cancelled_scan_results_are_dropped(self):
        session = AutofillSession()
        generation = session.begin_scan([b"page"])
        session.cancel()
        assert session.phase.kind is PhaseKind.LANDING
        assert not session.begin_analysis(generation)
        assert not session.publish(generation, [], [Field("Name", BOX)], [], {})
        assert session.fields == []

    def test_superseded_scan_cannot_fail_the_new_one(self):
        session = AutofillSession()
        old = session.begin_scan([b"page"])
        session.cancel()
        session.begin_scan([b"page"])
        assert not session.fail(old, "boom")
        assert session.phase.kind is PhaseKind.SCANNING

    def test_error_returns_to_landing(self):
        session = AutofillSession()
        generation = session.begin_scan([b"page"])
        assert session.fail(generation, "Text recognition failed: camera")
        assert session.phase == Phase.error("Text recognition failed: camera")
        with pytest.raises(InvalidPhaseTransition):
            session.begin_scan([b"page"])
        session.return_to_landing()
        assert session.phase.kind is PhaseKind.LANDING

    def test_rescan_from_editing(self):
        session = AutofillSession()
        generation = session.begin_scan([b"page"])
        session.begin_analysis(generation)
        session.publish(generation, [], [], [], {})
        assert session.begin_scan([b"page 2"]) == generation + 1

    def test_start_over_clears_state(self, session):
        session.fields = [Field("Name", BOX)]
        session.groups = [_group(2)]
        session.set_signature(b"sig")
        session.start_over()
        assert session.phase.kind is PhaseKind.LANDING
        assert session.fields == [] and session.groups == []
        assert session.signature_image is None


class TestFieldEdits:
    def test_update_keypath_copies_value(self, session):
        field = Field("Contact", BOX)
        session.fields = [field]
        session.update_field_keypath(field.id, "patient.phone")
        assert field.mapped_keypath == "patient.phone"
        assert field.value == "555-0100"
        assert field.match_confidence == 1.0
        assert field.match_method is None

    def test_clear_keypath(self, session):
        field = Field("Contact", BOX, mapped_keypath="patient.phone", value="555-0100", match_confidence=0.9)
        session.fields = [field]
        session.update_field_keypath(field.id, None)
        assert field.mapped_keypath is None
        assert field.value == ""
        assert field.match_confidence == 0.0

    def test_edit_and_reset_value(self, session):
        field = Field("Phone", BOX, mapped_keypath="patient.phone", value="555-0100")
        session.fields = [field]
        session.update_field_value(field.id, "555-9999")
        assert field.value == "555-9999"
        session.reset_field(field.id)
        assert field.value == "555-0100"

    def test_unknown_field(self, session):
        with pytest.raises(KeyError):
            session.update_field_value("missing", "x")

    def test_value_box_is_clamped(self, session):
        field = Field("Phone", BOX)
        session.fields = [field]
        session.update_field_value_box(field.id, NormalizedRect(0.9, -0.2, 0.5, 0.0))
        box = field.adjusted_value_box
        assert box.x == pytest.approx(0.5)
        assert box.y == pytest.approx(0.0)
        assert box.height == pytest.approx(0.01)

    @pytest.mark.parametrize(
        "box",
        [
            NormalizedRect(float("nan"), 0.2, float("nan"), 0.1),
            NormalizedRect(0.2, float("nan"), 0.1, float("nan")),
            NormalizedRect(float("inf"), -float("inf"), float("inf"), -float("inf")),
            NormalizedRect(-float("inf"), float("inf"), -float("inf"), float("inf")),
        ],
    )
    def test_value_box_stays_on_page_for_any_input(self, session, box):
        field = Field("Phone", BOX)
        session.fields = [field]
        session.update_field_value_box(field.id, box)
        stored = field.adjusted_value_box
        assert 0.0 <= stored.x and stored.max_x <= 1.0
        assert 0.0 <= stored.y and stored.max_y <= 1.0
        assert stored.width >= 0.01 and stored.height >= 0.01

    def test_add_manual_field(self, session):
        field = session.add_manual_field(
            " Phone ",
            NormalizedRect(0.1, 0.1, 0.1, 0.02),
            input_box=NormalizedRect(0.9, 0.9, 0.5, 0.5),
        )
        assert session.fields[-1] is field
        assert field.label == "Phone"
        assert field.mapped_keypath == "patient.phone"
        assert field.value == "555-0100"
        assert (field.adjusted_value_box.x, field.adjusted_value_box.y) == pytest.approx((0.5, 0.5))

    def test_add_manual_signature_field(self, session):
        field = session.add_manual_field("Patient Signature", BOX)
        assert field.field_type is FieldType.SIGNATURE
        assert session.signature_field is field

    def test_counts(self, session):
        session.fields = [Field("Phone", BOX, mapped_keypath="patient.phone"), Field("Other", BOX)]
        assert session.field_count == 2
        assert session.matched_count == 1
        assert session.sorted_keypaths == sorted(session.patient_data)


class TestCheckboxToggles:
    @pytest.mark.parametrize("sequence", list(itertools.product(range(3), repeat=4)))
    def test_exclusive_groups_keep_one_selection(self, session, sequence):
        group = _group(3)
        session.groups = [group]
        for option_index in sequence:
            session.toggle_checkbox(0, option_index)
            checked = [index for index, option in enumerate(group.options) if option.is_checked]
            assert len(checked) <= 1
            assert group.selected_index == (checked[0] if checked else None)

    def test_toggle_checked_option_clears_group(self, session):
        group = _group(2)
        session.groups = [group]
        session.toggle_checkbox(0, 1)
        session.toggle_checkbox(0, 1)
        assert group.selected_index is None
        assert group.checked_options == []

    def test_single_option_toggles_independently(self, session):
        group = _group(1)
        session.groups = [group]
        session.toggle_checkbox(0, 0)
        assert group.options[0].is_checked and group.selected_index == 0
        session.toggle_checkbox(0, 0)
        assert not group.options[0].is_checked and group.selected_index is None

    def test_out_of_range(self, session):
        session.groups = [_group(2)]
        with pytest.raises(IndexError):
            session.toggle_checkbox(0, 5)

    def test_negative_indices_are_rejected(self, session):
        group = _group(1)
        session.groups = [group]
        with pytest.raises(IndexError):
            session.toggle_checkbox(0, -1)
        with pytest.raises(IndexError):
            session.toggle_checkbox(-1, 0)
        assert not group.options[0].is_checked
        assert group.selected_index is None


class TestSignature:
    def test_position_is_clamped(self, session):
        position = session.update_signature_normalized_position(NormalizedRect(0.95, 0.5, 0.3, 0.1))
        assert position.max_x == pytest.approx(1.0)
        assert session.signature_position == position

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), -float("inf")])
    def test_position_stays_on_page_for_any_input(self, session, value):
        position = session.update_signature_normalized_position(NormalizedRect(value, value, value, value))
        assert 0.0 <= position.x and position.max_x <= 1.0
        assert 0.0 <= position.y and position.max_y <= 1.0
        assert position.width >= 0.01 and position.height >= 0.01

    def test_clearing_signature_clears_position(self, session):
        session.set_signature(b"sig")
        session.update_signature_normalized_position(NormalizedRect(0.1, 0.1, 0.2, 0.1))
        session.set_signature(None)
        assert session.signature_position is None
