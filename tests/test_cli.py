"""Tests for the command-line entry point."""

import json

import fitz
import pytest

from formautofill.cli import main, parse_recognized_lines
from formautofill.models import NormalizedRect
from formautofill.pipeline import AutofillPipeline


@pytest.fixture
def ocr_payload():
    return [
        {"text": "Name:", "boundingBox": {"x": 0.1, "y": 0.8, "width": 0.08, "height": 0.02}, "confidence": 0.98},
        {"text": "DOB: 03/14/1980", "boundingBox": {"x": 0.1, "y": 0.7, "width": 0.25, "height": 0.02}},
        {"text": "Patient Signature", "bounding_box": [0.1, 0.2, 0.2, 0.02], "page_index": 0},
    ]


@pytest.fixture
def inputs(tmp_path, ocr_payload, patient_record, make_png):
    ocr = tmp_path / "lines.json"
    ocr.write_text(json.dumps(ocr_payload), encoding="utf-8")
    patient = tmp_path / "patient.json"
    patient.write_text(json.dumps(patient_record), encoding="utf-8")
    image = tmp_path / "page.png"
    image.write_bytes(make_png(400, 300))
    signature = tmp_path / "signature.png"
    signature.write_bytes(make_png(60, 20))
    return tmp_path, ocr, patient, image, signature


class TestParseRecognizedLines:
    def test_both_key_styles(self, ocr_payload):
        lines = parse_recognized_lines(ocr_payload)
        assert [line.text for line in lines] == ["Name:", "DOB: 03/14/1980", "Patient Signature"]
        assert lines[0].confidence == pytest.approx(0.98)
        assert lines[1].confidence == 1.0
        assert lines[2].bounding_box == NormalizedRect(0.1, 0.2, 0.2, 0.02)

    def test_wrapped_payload(self, ocr_payload):
        assert len(parse_recognized_lines({"lines": ocr_payload})) == 3

    def test_malformed_lines_are_skipped(self):
        payload = [
            {"text": "Phone:"},
            {"boundingBox": {"x": 0, "y": 0, "width": 1, "height": 1}},
            {"text": "Email:", "boundingBox": [0.1, 0.5, 0.2, 0.02], "pageIndex": 2},
        ]
        lines = parse_recognized_lines(payload)
        assert [(line.text, line.page_index) for line in lines] == [("Email:", 2)]


class TestMain:
    def test_fills_form(self, inputs):
        tmp_path, ocr, patient, image, signature = inputs
        output = tmp_path / "filled.pdf"
        summary = tmp_path / "summary.txt"

        code = main(
            [
                "--ocr", str(ocr),
                "--patient", str(patient),
                "--image", str(image),
                "--signature", str(signature),
                "--output", str(output),
                "--summary", str(summary),
                "--no-embeddings",
            ]
        )

        assert code == 0
        with fitz.open(str(output)) as document:
            assert document[0].rect.width == pytest.approx(400)
        text = summary.read_text(encoding="utf-8")
        assert "Name -> patient.fullName = Jane Doe" in text
        assert "Signature: placed (beside signature field)" in text

    def test_pipeline_receives_nested_record(self, inputs, monkeypatch):
        _, ocr, patient, image, _ = inputs
        records = []
        original_run = AutofillPipeline.run

        def run(self, pages, patient_record, today=None):
            records.append(patient_record)
            return original_run(self, pages, patient_record, today)

        monkeypatch.setattr(AutofillPipeline, "run", run)
        assert main(["--ocr", str(ocr), "--patient", str(patient), "--image", str(image), "--no-embeddings"]) == 0
        assert records[0]["patient"]["firstName"] == "Jane"

    def test_signature_field_on_another_page(self, inputs, ocr_payload):
        tmp_path, _, patient, image, signature = inputs
        ocr_payload[2]["page_index"] = 1
        ocr = tmp_path / "two_pages.json"
        ocr.write_text(json.dumps(ocr_payload), encoding="utf-8")
        summary = tmp_path / "summary.txt"

        code = main(
            [
                "--ocr", str(ocr),
                "--patient", str(patient),
                "--image", str(image),
                "--signature", str(signature),
                "--output", str(tmp_path / "filled.pdf"),
                "--summary", str(summary),
                "--no-embeddings",
            ]
        )

        assert code == 0
        text = summary.read_text(encoding="utf-8")
        assert "beside signature field" not in text
        assert "Signature: provided, not drawn on this page" in text

    def test_png_output(self, inputs):
        tmp_path, ocr, patient, image, _ = inputs
        output = tmp_path / "filled.png"
        code = main(["--ocr", str(ocr), "--patient", str(patient), "--image", str(image), "--output", str(output), "--no-embeddings"])
        assert code == 0
        assert fitz.Pixmap(output.read_bytes()).width == 400

    def test_summary_to_stdout(self, inputs, capsys):
        _, ocr, patient, image, _ = inputs
        assert main(["--ocr", str(ocr), "--patient", str(patient), "--image", str(image), "--no-embeddings"]) == 0
        assert "Signature: not provided" in capsys.readouterr().out

    def test_unreadable_patient(self, inputs):
        tmp_path, ocr, _, image, _ = inputs
        bad = tmp_path / "bad.json"
        bad.write_text("{oops", encoding="utf-8")
        assert main(["--ocr", str(ocr), "--patient", str(bad), "--image", str(image), "--no-embeddings"]) == 2

    def test_nothing_recognized(self, inputs):
        tmp_path, _, patient, image, _ = inputs
        empty = tmp_path / "empty.json"
        empty.write_text("[]", encoding="utf-8")
        assert main(["--ocr", str(empty), "--patient", str(patient), "--image", str(image), "--no-embeddings"]) == 1
