"""
Code System Normalization

Maps coding-system URIs onto the short canonical names used as keys in the
profile table. Matching is a case-insensitive substring test against a fixed
list of fragments, first hit wins. Unknown systems normalize to "" and simply
match nothing downstream.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple


class CodeSystem(str, Enum):
    """Canonical code-system tags (profile table keys)."""
    SNOMED = "SNOMED"
    RXNORM = "RxNorm"
    ICD10 = "ICD-10"
    AJCC = "AJCC"
    LOINC = "LOINC"
    NIH = "NIH"
    HGNC = "HGNC"
    HL7 = "HL7"


# Order matters: "nih" would otherwise catch rxnorm URIs hosted on nlm.nih.gov
SYSTEM_FRAGMENTS: Tuple[Tuple[str, CodeSystem], ...] = (
    ("snomed", CodeSystem.SNOMED),
    ("rxnorm", CodeSystem.RXNORM),
    ("icd-10", CodeSystem.ICD10),
    ("ajcc", CodeSystem.AJCC),
    ("cancerstaging.org", CodeSystem.AJCC),
    ("loinc", CodeSystem.LOINC),
    ("nih", CodeSystem.NIH),
    ("hgnc", CodeSystem.HGNC),
    ("genenames.org", CodeSystem.HGNC),
    ("valueset-observation-interpretation", CodeSystem.HL7),
    ("v3-observationinterpretation", CodeSystem.HL7),
)

HL7_INTERPRETATION_URI = "http://hl7.org/fhir/R4/valueset-observation-interpretation.html"


def normalize_code_system(system_uri: Optional[str]) -> str:
    """
    Return the canonical tag for a coding-system URI, or "" when unknown.

    Total over all inputs: None and "" both give "".
    """
    if not system_uri or not isinstance(system_uri, str):
        return ""
    lowered = system_uri.lower()
    for fragment, canonical in SYSTEM_FRAGMENTS:
        if fragment in lowered:
            return canonical.value
    return ""


def _text(value: Any) -> Optional[str]:
    """Strings pass through; anything else (lists, dicts, null) is dropped."""
    return value if isinstance(value, str) else None


@dataclass(frozen=True)
class Coding:
    """A single code reference: system URI, code, display text."""
    system: Optional[str] = None
    code: Optional[str] = None
    display: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Coding":
        code = data.get("code")
        if isinstance(code, (int, float)) and not isinstance(code, bool):
            code = str(code)
        return cls(
            system=_text(data.get("system")),
            code=_text(code),
            display=_text(data.get("display")),
        )

    @property
    def canonical_system(self) -> str:
        return normalize_code_system(self.system)

    @property
    def identity(self) -> Tuple[str, Optional[str]]:
        """(system, code) key used for membership and dedup."""
        return (self.canonical_system or (self.system or ""), self.code)

    def matches(self, system: CodeSystem, code: str) -> bool:
        """True when this coding is exactly `code` in canonical `system`."""
        return self.canonical_system == system.value and self.code == code

    def to_dict(self) -> dict:
        return {k: v for k, v in (("system", self.system), ("code", self.code), ("display", self.display)) if v is not None}
