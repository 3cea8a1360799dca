"""
Biomarker predicates for tumor markers and cancer genetic variants.

Each receptor predicate (HER2, PR, ER, FGFR, RB) is true when the marker's own
code is in the matching Biomarker-* profile AND any one kind of evidence agrees:

    - a coded value (SNOMED positive/negative, HL7 POS/NEG)
    - an interpretation code on the HL7 observation-interpretation system
    - a quantity matching the marker's threshold and unit
    - a ratio, read as a percentage, matching the threshold

BRCA predicates look at the gene-studied component (HGNC 1100 = BRCA1,
1101 = BRCA2) and need pathogenic evidence on the variant or on the
gene-studied component. Germline and somatic differ only in the
genomic-source-class component value.
"""

import logging
from typing import Iterable, Sequence

from .code_systems import Coding, CodeSystem
from .comparators import quantity_match, ratio_match
from .profiles import ProfileRepository
from .record import CancerGeneticVariant, TumorMarker

logger = logging.getLogger("mcode-engine")

# ==============================================================================
# CONSTANTS
# ==============================================================================

HER2_NEGATIVE_VALUES = ("0", "1", "2", "1+", "2+")
HER2_NEGATIVE_VALUES_STRICT = ("0", "1", "1+")
HER2_POSITIVE_VALUES = ("3", "3+")

POSITIVE_INTERPRETATIONS = ("POS", "DET", "H")
NEGATIVE_INTERPRETATIONS = ("L", "N", "NEG", "ND")
PATHOGENIC_INTERPRETATIONS = ("CAR", "A", "POS")

SNOMED_POSITIVE = "10828004"
SNOMED_NEGATIVE = "260385009"
LOINC_PRESENT = "LA9633-4"

HGNC_BRCA1 = "1100"
HGNC_BRCA2 = "1101"
LOINC_GERMLINE = "LA6683-2"
LOINC_SOMATIC = "LA6684-0"

PERCENT = "%"


def _hgnc_code(code: str) -> str:
    """'HGNC:1100' and '1100' are the same gene."""
    code = code.strip()
    if code.upper().startswith("HGNC:"):
        return code[5:]
    return code


class BiomarkerEvaluator:
    """
    Receptor and BRCA predicates bound to a profile repository.

    Args:
        repository: Profile table used for the Biomarker-* membership checks
        strict_ratio_comparators: Passed through to ratio_match()
    """

    def __init__(self, repository: ProfileRepository, strict_ratio_comparators: bool = False):
        self.repository = repository
        self.strict_ratio_comparators = strict_ratio_comparators

    # --------------------------------------------------------------------------
    # Evidence helpers
    # --------------------------------------------------------------------------

    def _is_marker(self, marker: TumorMarker, profile: str) -> bool:
        return self.repository.any_in(marker.code, profile)

    @staticmethod
    def _has_positive_value(marker: TumorMarker, allow_hl7: bool = True) -> bool:
        return any(
            c.matches(CodeSystem.SNOMED, SNOMED_POSITIVE) or (allow_hl7 and c.matches(CodeSystem.HL7, "POS"))
            for c in marker.value_codeable_concept
        )

    @staticmethod
    def _has_negative_value(marker: TumorMarker) -> bool:
        return any(
            c.matches(CodeSystem.SNOMED, SNOMED_NEGATIVE) or c.matches(CodeSystem.HL7, "NEG")
            for c in marker.value_codeable_concept
        )

    @staticmethod
    def _has_interpretation(codings: Iterable[Coding], codes: Sequence[str]) -> bool:
        return any(
            c.code in codes and c.canonical_system == CodeSystem.HL7.value
            for c in codings
        )

    @staticmethod
    def _quantity(marker: TumorMarker, targets, comparator: str, unit=None) -> bool:
        return any(
            quantity_match(q.value, q.unit_code, targets, comparator, unit)
            for q in marker.value_quantity
        )

    def _ratio(self, marker: TumorMarker, percent: float, comparator: str) -> bool:
        return any(
            ratio_match(r, percent, comparator, self.strict_ratio_comparators)
            for r in marker.value_ratio
        )

    def _receptor_positive(self, marker: TumorMarker, profile: str, metric: float) -> bool:
        return self._is_marker(marker, profile) and (
            self._has_positive_value(marker)
            or self._has_interpretation(marker.interpretation, POSITIVE_INTERPRETATIONS)
            or self._quantity(marker, [metric], ">=", PERCENT)
            or self._ratio(marker, metric, ">=")
        )

    def _receptor_negative(self, marker: TumorMarker, profile: str, metric: float) -> bool:
        return self._is_marker(marker, profile) and (
            self._has_negative_value(marker)
            or self._has_interpretation(marker.interpretation, NEGATIVE_INTERPRETATIONS)
            or self._quantity(marker, [metric], "<", PERCENT)
            or self._quantity(marker, [0], "=")
            or self._ratio(marker, metric, "<")
        )

    # --------------------------------------------------------------------------
    # Receptor predicates
    # --------------------------------------------------------------------------

    def is_her2_positive(self, marker: TumorMarker) -> bool:
        return self._is_marker(marker, "Biomarker-HER2") and (
            self._has_positive_value(marker)
            or self._has_interpretation(marker.interpretation, POSITIVE_INTERPRETATIONS)
            or self._quantity(marker, HER2_POSITIVE_VALUES, "=")
        )

    def is_her2_negative(self, marker: TumorMarker, values: Sequence[str] = HER2_NEGATIVE_VALUES) -> bool:
        return self._is_marker(marker, "Biomarker-HER2") and (
            self._has_negative_value(marker)
            or self._has_interpretation(marker.interpretation, NEGATIVE_INTERPRETATIONS)
            or self._quantity(marker, values, "=")
        )

    def is_pr_positive(self, marker: TumorMarker, metric: float) -> bool:
        return self._receptor_positive(marker, "Biomarker-PR", metric)

    def is_pr_negative(self, marker: TumorMarker, metric: float) -> bool:
        return self._receptor_negative(marker, "Biomarker-PR", metric)

    def is_er_positive(self, marker: TumorMarker, metric: float) -> bool:
        return self._receptor_positive(marker, "Biomarker-ER", metric)

    def is_er_negative(self, marker: TumorMarker, metric: float) -> bool:
        return self._receptor_negative(marker, "Biomarker-ER", metric)

    def is_fgfr_amplification(self, marker: TumorMarker, metric: float) -> bool:
        # FGFR takes the SNOMED positive concept only, not HL7 POS
        return self._is_marker(marker, "Biomarker-FGFR") and (
            self._has_positive_value(marker, allow_hl7=False)
            or self._has_interpretation(marker.interpretation, POSITIVE_INTERPRETATIONS)
            or self._quantity(marker, [metric], ">=", PERCENT)
            or self._ratio(marker, metric, ">=")
        )

    def is_rb_positive(self, marker: TumorMarker, metric: float) -> bool:
        return self._is_marker(marker, "Biomarker-RB") and (
            self._has_positive_value(marker)
            or self._has_interpretation(marker.interpretation, POSITIVE_INTERPRETATIONS)
            or self._quantity(marker, [metric], ">", PERCENT)
            or self._ratio(marker, metric, ">")
        )

    # --------------------------------------------------------------------------
    # BRCA predicates
    # --------------------------------------------------------------------------

    def is_brca(self, variant: CancerGeneticVariant, hgnc_code: str) -> bool:
        """Gene studied is `hgnc_code` and something marks the variant pathogenic."""
        studies_gene = any(
            c.canonical_system == CodeSystem.HGNC.value and c.code and _hgnc_code(c.code) == hgnc_code
            for component in variant.gene_studied
            for c in component.value_codeable_concept
        )
        if not studies_gene:
            return False

        pathogenic_value = any(
            c.matches(CodeSystem.SNOMED, SNOMED_POSITIVE)
            or c.matches(CodeSystem.LOINC, LOINC_PRESENT)
            or c.matches(CodeSystem.HL7, "POS")
            for c in variant.value_codeable_concept
        )
        pathogenic_interpretation = any(c.code in PATHOGENIC_INTERPRETATIONS for c in variant.interpretation)
        pathogenic_component = any(
            c.code in PATHOGENIC_INTERPRETATIONS
            for component in variant.gene_studied
            for c in component.interpretation
        )
        return pathogenic_value or pathogenic_interpretation or pathogenic_component

    @staticmethod
    def has_source_class(variant: CancerGeneticVariant, loinc_code: str) -> bool:
        """Genomic source class component coded `loinc_code` (germline/somatic)."""
        return any(
            c.matches(CodeSystem.LOINC, loinc_code)
            for component in variant.genomics_source_class
            for c in component.value_codeable_concept
        )

    def is_brca_germline(self, variant: CancerGeneticVariant, hgnc_code: str) -> bool:
        return self.is_brca(variant, hgnc_code) and self.has_source_class(variant, LOINC_GERMLINE)

    def is_brca_somatic(self, variant: CancerGeneticVariant, hgnc_code: str) -> bool:
        return self.is_brca(variant, hgnc_code) and self.has_source_class(variant, LOINC_SOMATIC)
