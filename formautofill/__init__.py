"""formautofill package."""

from .checkboxes import auto_select_option, detect_checkboxes, group_checkboxes
from .config import AutofillSettings
from .embeddings import SpacyWordEmbedding, WordEmbedding
from .export import build_summary
from .matching import FuzzyMatcher
from .models import (
	Checkbox,
	CheckboxGroup,
	Field,
	FieldType,
	MatchMethod,
	MatchResult,
	NormalizedRect,
	PatientData,
	RecognizedLine,
)
from .parser import classify_field_types, extract_label_fields
from .patient_data import PatientDataError, flatten_patient_data, load_patient_data
from .pipeline import AnalysisResult, AutofillPipeline, RecognitionError, StaticRecognizer, analyze_lines
from .renderer import FormRenderer, RenderStyle
from .session import AutofillSession, InvalidPhaseTransition, Phase, PhaseKind
from .spatial import associate_values, spatial_score

__all__ = [
	"AnalysisResult",
	"AutofillPipeline",
	"AutofillSession",
	"AutofillSettings",
	"Checkbox",
	"CheckboxGroup",
	"Field",
	"FieldType",
	"FormRenderer",
	"FuzzyMatcher",
	"InvalidPhaseTransition",
	"MatchMethod",
	"MatchResult",
	"NormalizedRect",
	"PatientData",
	"PatientDataError",
	"Phase",
	"PhaseKind",
	"RecognitionError",
	"RecognizedLine",
	"RenderStyle",
	"SpacyWordEmbedding",
	"StaticRecognizer",
	"WordEmbedding",
	"analyze_lines",
	"associate_values",
	"auto_select_option",
	"build_summary",
	"classify_field_types",
	"detect_checkboxes",
	"extract_label_fields",
	"flatten_patient_data",
	"group_checkboxes",
	"load_patient_data",
	"spatial_score",
]
