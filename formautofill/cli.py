"""Command-line entry point: fill a scanned form from OCR lines and patient JSON."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from .config import AutofillSettings
from .embeddings import SpacyWordEmbedding
from .export import build_summary
from .matching import FuzzyMatcher
from .models import NormalizedRect, RecognizedLine
from .patient_data import PatientDataError, read_patient_record
from .pipeline import AutofillPipeline, StaticRecognizer
from .renderer import FormRenderer, signature_placement
from .session import PhaseKind
from .utils import get_logger

logger = get_logger(__name__)


def _parse_box(raw: Any) -> NormalizedRect:
    if isinstance(raw, Mapping):
        return NormalizedRect(float(raw["x"]), float(raw["y"]), float(raw["width"]), float(raw["height"]))
    x, y, width, height = (float(value) for value in raw)
    return NormalizedRect(x, y, width, height)


def parse_recognized_lines(payload: Any) -> List[RecognizedLine]:
    """Read OCR lines from ``[{text, boundingBox, confidence, pageIndex}, ...]``."""

    if isinstance(payload, Mapping):
        payload = payload.get("lines", [])
    lines: List[RecognizedLine] = []
    for index, item in enumerate(payload or []):
        try:
            lines.append(
                RecognizedLine(
                    text=str(item["text"]),
                    bounding_box=_parse_box(item.get("boundingBox", item.get("bounding_box"))),
                    confidence=float(item.get("confidence", 1.0)),
                    page_index=int(item.get("pageIndex", item.get("page_index", 0))),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed OCR line %d: %s", index, exc)
    return lines


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="formautofill",
        description="Fill a scanned paper form from OCR output and a patient record.",
    )
    parser.add_argument("--ocr", required=True, type=Path, help="JSON file with recognized lines")
    parser.add_argument("--patient", required=True, type=Path, help="JSON file with the patient record")
    parser.add_argument("--image", required=True, type=Path, help="Scanned page image (PNG/JPEG)")
    parser.add_argument("--signature", type=Path, help="Signature image to place on the form")
    parser.add_argument("--output", type=Path, help="Filled page output (.pdf or .png)")
    parser.add_argument("--summary", type=Path, help="Write the plain-text summary here instead of stdout")
    parser.add_argument("--page", type=int, default=0, help="Page index to render (default: 0)")
    parser.add_argument("--no-embeddings", action="store_true", help="Skip the word-vector matching strategy")
    parser.add_argument("--env-file", help="Optional .env file with FORMAUTOFILL_* settings")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        for name in list(logging.root.manager.loggerDict):
            if name.startswith("formautofill"):
                logging.getLogger(name).setLevel(logging.DEBUG)

    settings = AutofillSettings.from_env(args.env_file)
    embedding = None if args.no_embeddings else SpacyWordEmbedding(settings.embedding_model)
    matcher = FuzzyMatcher(embedding=embedding, settings=settings)

    try:
        lines = parse_recognized_lines(json.loads(args.ocr.read_text(encoding="utf-8")))
        patient_record = read_patient_record(args.patient)
        page_image = args.image.read_bytes()
        signature = args.signature.read_bytes() if args.signature else None
    except (OSError, json.JSONDecodeError, PatientDataError) as exc:
        logger.error("Could not read inputs: %s", exc)
        return 2

    pipeline = AutofillPipeline(StaticRecognizer(lines), matcher=matcher, settings=settings)
    phase = pipeline.run([page_image], patient_record)
    session = pipeline.session
    if phase.kind is PhaseKind.ERROR:
        logger.error("%s", phase.message)
        return 1
    if phase.kind is not PhaseKind.EDITING:
        logger.error("Nothing to fill: no text was recognized on the page")
        return 1

    session.set_signature(signature)
    if args.output:
        renderer = FormRenderer()
        render = renderer.render_png if args.output.suffix.lower() == ".png" else renderer.render_pdf
        args.output.write_bytes(
            render(
                page_image,
                session.fields,
                session.groups,
                signature_image=session.signature_image,
                signature_position=session.signature_position,
                page_index=args.page,
            )
        )
        logger.info("Wrote filled form to %s", args.output)

    signature_location = None
    if signature:
        _, signature_location = signature_placement(session.fields, session.signature_position, args.page)
        if signature_location is None:
            logger.warning("Signature is not drawn on page %d", args.page)
    summary = build_summary(
        session.fields,
        session.groups,
        bool(signature),
        signature_location,
        signature_drawn=signature_location is not None,
    )
    if args.summary:
        args.summary.write_text(summary, encoding="utf-8")
    else:
        sys.stdout.write(summary)
    return 0


__all__ = ["build_parser", "main", "parse_recognized_lines"]
