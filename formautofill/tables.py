"""Static lookup tables for label extraction, matching and checkbox grouping.

Patterns are stored already normalized (lowercase, no punctuation, single
spaces). Tables are versioned together; bump ``TABLES_VERSION`` whenever an
entry changes so stored mappings can be re-evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Tuple

TABLES_VERSION = "2024.1"

# Canonical keypath -> label phrasings. Order matters: when two keypaths
# match a label equally well, the earlier entry wins.
SYNONYM_TABLE: Dict[str, Tuple[str, ...]] = {
    "patient.fullName": (
        "patient name",
        "full name",
        "name of patient",
        "patients name",
        "legal name",
        "patient full name",
    ),
    "patient.firstName": ("first name", "forename", "patient first name"),
    "patient.lastName": ("last name", "surname", "family name", "patient last name"),
    "patient.middleName": ("middle name", "middle initial"),
    "_computed.dobFormatted": (
        "dob",
        "d o b",
        "date of birth",
        "birth date",
        "birthdate",
        "birthday",
        "patient dob",
    ),
    "patient.dateOfBirth": ("dob", "date of birth", "birth date", "birthdate"),
    "_computed.patientAge": ("age", "patient age", "age in years"),
    "patient.sex": ("sex", "gender", "birth sex", "sex at birth"),
    "patient.maritalStatus": ("marital status", "marital"),
    "patient.phone": (
        "phone",
        "phone number",
        "telephone",
        "tel",
        "cell",
        "cell phone",
        "mobile",
        "home phone",
        "contact number",
    ),
    "patient.email": ("email", "email address"),
    "patient.fullAddress": (
        "address",
        "home address",
        "street address",
        "mailing address",
        "patient address",
        "residence",
    ),
    "patient.address.line1": ("address line 1", "address 1", "street"),
    "patient.address.line2": ("address line 2", "address 2", "apt", "suite", "unit"),
    "patient.address.city": ("city", "town"),
    "patient.address.state": ("state", "province"),
    "patient.address.postalCode": ("zip", "zip code", "zipcode", "postal code", "postcode"),
    "patient.ssn": ("ssn", "social security", "social security number"),
    "insurance.provider": (
        "insurance",
        "insurance company",
        "insurance provider",
        "insurance carrier",
        "insurance name",
        "carrier",
        "payer",
        "health plan",
    ),
    "insurance.memberId": (
        "member id",
        "member number",
        "subscriber id",
        "policy number",
        "policy",
        "insurance id",
        "id number",
    ),
    "insurance.groupNumber": ("group number", "group id", "group", "grp"),
    "emergencyContact.name": ("emergency contact", "emergency contact name"),
    "emergencyContact.phone": ("emergency phone", "emergency contact phone"),
    "physician.name": (
        "physician",
        "primary care physician",
        "referring physician",
        "doctor",
        "pcp",
        "provider",
    ),
    "_computed.todayDate": ("date", "todays date", "today", "date signed", "visit date"),
}

# Phrases that on their own (or followed by a few words) read as field labels.
FORM_LABEL_KEYWORDS: FrozenSet[str] = frozenset(
    {
        "name",
        "first name",
        "last name",
        "middle name",
        "patient name",
        "full name",
        "dob",
        "d.o.b.",
        "date of birth",
        "birth date",
        "age",
        "sex",
        "gender",
        "address",
        "street",
        "city",
        "state",
        "zip",
        "zip code",
        "phone",
        "telephone",
        "cell",
        "mobile",
        "email",
        "e-mail",
        "insurance",
        "member id",
        "policy number",
        "group number",
        "ssn",
        "marital status",
        "emergency contact",
        "physician",
        "allergies",
        "medications",
        "date",
        "signature",
        "employer",
        "occupation",
        "race",
        "ethnicity",
        "language",
        "height",
        "weight",
    }
)

SECTION_HEADINGS: FrozenSet[str] = frozenset(
    {
        "patient information",
        "personal information",
        "patient demographics",
        "demographics",
        "contact information",
        "insurance information",
        "emergency contact information",
        "guarantor information",
        "medical history",
        "health history",
        "family history",
        "review of systems",
        "current medications",
        "patient registration",
        "registration form",
        "consent",
        "authorization",
        "office use only",
        "for office use only",
    }
)

CHECKED_GLYPHS: FrozenSet[str] = frozenset({"☑", "☒", "⊠", "✓", "✔", "✗", "✘", "■", "●", "◉"})
UNCHECKED_GLYPHS: FrozenSet[str] = frozenset({"☐", "□", "▢", "⬜", "❑", "❒", "○", "◯"})

OPTION_TOKENS: FrozenSet[str] = frozenset(
    {"male", "female", "yes", "no", "m", "f", "married", "single", "divorced", "widowed"}
)


@dataclass(frozen=True)
class GroupPattern:
    """How a family of checkbox options maps onto patient data.

    ``option_values`` translates option text into the value stored in the
    data (``"female" -> "F"``). A pattern without ``keypath`` is contextual
    and only supplies a label.
    """

    label: str
    label_terms: Tuple[str, ...]
    option_terms: FrozenSet[str]
    keypath: Optional[str] = None
    option_values: Dict[str, str] = field(default_factory=dict)


GROUP_PATTERNS: Tuple[GroupPattern, ...] = (
    GroupPattern(
        label="Sex",
        label_terms=("sex", "gender"),
        option_terms=frozenset({"male", "female", "m", "f"}),
        keypath="patient.sex",
        option_values={"male": "M", "m": "M", "man": "M", "female": "F", "f": "F", "woman": "F"},
    ),
    GroupPattern(
        label="Marital Status",
        label_terms=("marital",),
        option_terms=frozenset({"married", "single", "divorced", "widowed"}),
        keypath="patient.maritalStatus",
        option_values={
            "married": "Married",
            "single": "Single",
            "never married": "Single",
            "divorced": "Divorced",
            "widowed": "Widowed",
        },
    ),
    GroupPattern(
        label="Yes/No",
        label_terms=("yes/no", "yes no"),
        option_terms=frozenset({"yes", "no"}),
        option_values={"yes": "Yes", "y": "Yes", "true": "Yes", "no": "No", "n": "No", "false": "No"},
    ),
)

__all__ = [
    "CHECKED_GLYPHS",
    "FORM_LABEL_KEYWORDS",
    "GROUP_PATTERNS",
    "GroupPattern",
    "OPTION_TOKENS",
    "SECTION_HEADINGS",
    "SYNONYM_TABLE",
    "TABLES_VERSION",
    "UNCHECKED_GLYPHS",
]
