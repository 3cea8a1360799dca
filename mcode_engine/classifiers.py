"""
Dimension Classifiers: Extracted Clinical Record -> trial-search labels

==============================================================================
ARCHITECTURAL CONTEXT
==============================================================================

Each dimension turns one slice of the Extracted Clinical Record into a label:

    primary cancer, secondary cancer, histology/morphology, stage, age,
    tumor marker / genetic variant, radiation procedure, surgical procedure,
    medication statements, ECOG, Karnofsky

Rules are first-match-wins. Each rule is tried against every entity in the
relevant list before moving on to the next rule, so a lower-priority label is
never reported while a higher one also holds. When nothing matches the label
is NOT_SURE (stage and medications pad a fixed-length list with it).

Rules are written against named profiles (see profiles.py), plus a handful
of fixed codes that have no profile of their own.

Nothing here raises for clinical content: a malformed or absent input only
fails to match.

==============================================================================
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .biomarkers import (
    BiomarkerEvaluator, HER2_NEGATIVE_VALUES, HER2_NEGATIVE_VALUES_STRICT,
    HGNC_BRCA1, HGNC_BRCA2,
)
from .code_systems import Coding, CodeSystem
from .config import EngineSettings
from .profiles import ProfileRepository
from .record import ExtractedClinicalRecord, PrimaryCancerCondition

logger = logging.getLogger("mcode-engine")

NOT_SURE = "NOT_SURE"

STAGE_LABEL_COUNT = 2
MEDICATION_LABEL_COUNT = 3


# ==============================================================================
# LABELS
# ==============================================================================

class PrimaryCancerLabel(str, Enum):
    INVASIVE_BREAST_CANCER_AND_RECURRENT = "INVASIVE_BREAST_CANCER_AND_RECURRENT"
    LOCALLY_RECURRENT = "LOCALLY_RECURRENT"
    BREAST_CANCER = "BREAST_CANCER"
    CONCOMITANT_INVASIVE_MALIGNANCIES = "CONCOMITANT_INVASIVE_MALIGNANCIES"
    OTHER_MALIGNANCY_EXCEPT_SKIN_OR_CERVICAL = "OTHER_MALIGNANCY_EXCEPT_SKIN_OR_CERVICAL"


class SecondaryCancerLabel(str, Enum):
    INVASIVE_BREAST_CANCER_AND_METASTATIC = "INVASIVE_BREAST_CANCER_AND_METASTATIC"
    BRAIN_METASTASIS = "BRAIN_METASTASIS"
    LEPTOMENINGEAL_METASTATIC_DISEASE = "LEPTOMENINGEAL_METASTATIC_DISEASE"
    METASTATIC = "METASTATIC"


class HistologyLabel(str, Enum):
    INVASIVE_MAMMORY_CARCINOMA = "INVASIVE_MAMMORY_CARCINOMA"
    INVASIVE_DUCTAL_CARCINOMA = "INVASIVE_DUCTAL_CARCINOMA"
    INVASIVE_LOBULAR_CARCINOMA = "INVASIVE_LOBULAR_CARCINOMA"
    DUCTAL_CARCINOMA_IN_SITU = "DUCTAL_CARCINOMA_IN_SITU"
    NON_INFLAMMATORY_INVASIVE = "NON-INFLAMMATORY_INVASIVE"
    INVASIVE_CARCINOMA = "INVASIVE_CARCINOMA"
    INVASIVE_BREAST_CANCER = "INVASIVE_BREAST_CANCER"
    INFLAMMATORY = "INFLAMMATORY"


class StageLabel(str, Enum):
    INVASIVE_BREAST_CANCER_AND_LOCALLY_ADVANCED = "INVASIVE_BREAST_CANCER_AND_LOCALLY_ADVANCED"
    NON_INVASIVE = "NON_INVASIVE"
    ZERO = "ZERO"
    ONE = "ONE"
    TWO = "TWO"
    THREE = "THREE"
    FOUR = "FOUR"


class AgeLabel(str, Enum):
    OVER_18 = "18_OR_OVER"
    UNDER_18 = "UNDER_18"


class TumorMarkerLabel(str, Enum):
    TRIPLE_NEGATIVE_AND_RB_POSITIVE = "TRIPLE_NEGATIVE_AND_RB_POSITIVE"
    TRIPLE_NEGATIVE = "TRIPLE_NEGATIVE"
    TRIPLE_NEGATIVE_MINUS_10 = "TRIPLE_NEGATIVE_MINUS_10"
    ER_PLUS_PR_PLUS_HER2_MINUS = "ER_PLUS_PR_PLUS_HER2_MINUS"
    PR_PLUS_AND_HER2_MINUS_AND_FGFR_AMPLIFICATIONS = "PR_PLUS_AND_HER2_MINUS_AND_FGFR_AMPLIFICATIONS"
    ER_PLUS_AND_HER2_MINUS_AND_FGFR_AMPLIFICATIONS = "ER_PLUS_AND_HER2_MINUS_AND_FGFR_AMPLIFICATIONS"
    PR_PLUS_AND_HER2_MINUS = "PR_PLUS_AND_HER2_MINUS"
    ER_PLUS_AND_HER2_MINUS = "ER_PLUS_AND_HER2_MINUS"
    HER2_PLUS_AND_PR_PLUS = "HER2_PLUS_AND_PR_PLUS"
    HER2_PLUS_AND_ER_PLUS = "HER2_PLUS_AND_ER_PLUS"
    HER2_PLUS = "HER2_PLUS"
    PR_PLUS = "PR_PLUS"
    ER_PLUS = "ER_PLUS"
    HER2_MINUS = "HER2_MINUS"
    BRCA1_GERMLINE = "BRCA1-GERMLINE"
    BRCA2_GERMLINE = "BRCA2-GERMLINE"
    BRCA1_SOMATIC = "BRCA1-SOMATIC"
    BRCA2_SOMATIC = "BRCA2-SOMATIC"
    BRCA1 = "BRCA1"
    BRCA2 = "BRCA2"


class RadiationLabel(str, Enum):
    SRS = "SRS"
    WBRT = "WBRT"
    RADIATION_THERAPY = "RADIATION_THERAPY"


class SurgicalLabel(str, Enum):
    RESECTION = "RESECTION"
    SPLENECTOMY = "SPLENECTOMY"
    BONE_MARROW_TRANSPLANT = "BONE_MARROW_TRANSPLANT"
    ORGAN_TRANSPLANT = "ORGAN_TRANSPLANT"


class MedicationLabel(str, Enum):
    DRUGCOMBO_1 = "DRUGCOMBO_1"
    CDK4_6_MTOR_AND_ENDOCRINE = "CDK4_6_MTOR_AND_ENDOCRINE"
    T_DM1 = "T_DM1"
    CDK4_6_INHIBITOR = "CDK4_6_INHIBITOR"
    PEMBROLIZUMAB = "PEMBROLIZUMAB"
    POLY_ICLC = "POLY_ICLC"
    MTOR_INHIBITOR = "MTOR_INHIBITOR"
    CONCURRENT_ENDOCRINE_THERAPY = "CONCURRENT_ENDOCRINE_THERAPY"
    ANTI_ANDROGEN = "ANTI_ANDROGEN"
    ANTI_HER2 = "ANTI_HER2"
    TYROSINE_KINASE_INHIBITOR = "TYROSINE_KINASE_INHIBITOR"
    P13K_INHIBITOR = "P13K_INHIBITOR"
    ANTI_PD = "ANTI_PD"
    ANTI_PARP = "ANTI-PARP"
    SG = "SG"
    ANTI_TOPOISOMERASE_1 = "ANTI-TOPOISOMERASE-1"
    ANTI_CTLA4 = "ANTI-CTLA4"
    ANTI_CD40 = "ANTI-CD40"
    TRASTUZ_AND_PERTUZ = "TRASTUZ_AND_PERTUZ"


ECOG_LABELS: Dict[int, str] = {
    0: "ZERO", 1: "ONE", 2: "TWO", 3: "THREE", 4: "FOUR", 5: "FIVE",
}

KARNOFSKY_LABELS: Dict[int, str] = {
    0: "ZERO", 10: "TEN", 20: "TWENTY", 30: "THIRTY", 40: "FORTY", 50: "FIFTY",
    60: "SIXTY", 70: "SEVENTY", 80: "EIGHTY", 90: "NINETY", 100: "ONE_HUNDRED",
}

NUMERIC_STAGES: Tuple[Tuple[str, StageLabel], ...] = (
    ("Stage-0", StageLabel.ZERO),
    ("Stage-1", StageLabel.ONE),
    ("Stage-2", StageLabel.TWO),
    ("Stage-3", StageLabel.THREE),
    ("Stage-4", StageLabel.FOUR),
)

# Single-profile medication rules, in priority order after the composite ones
MEDICATION_PROFILES: Tuple[Tuple[MedicationLabel, Optional[str]], ...] = (
    (MedicationLabel.T_DM1, "Treatment-T-DM1"),
    (MedicationLabel.CDK4_6_INHIBITOR, "Treatment-CDK4_6_Inhibtor"),
    (MedicationLabel.PEMBROLIZUMAB, "Treatment-Pembrolizumab"),
    (MedicationLabel.POLY_ICLC, None),  # fixed NIH code, no profile
    (MedicationLabel.MTOR_INHIBITOR, "Treatment-mTOR_Inhibitor"),
    (MedicationLabel.CONCURRENT_ENDOCRINE_THERAPY, "Treatment-Endocrine_Therapy"),
    (MedicationLabel.ANTI_ANDROGEN, "Treatment-anti-Androgen"),
    (MedicationLabel.ANTI_HER2, "Treatment-anti-HER2"),
    (MedicationLabel.TYROSINE_KINASE_INHIBITOR, "Treatment-Tyrosine_Kinase_Inhib"),
    (MedicationLabel.P13K_INHIBITOR, "Treatment-P13K_Inhibitor"),
    (MedicationLabel.ANTI_PD, "Treatment-anti-PD1,PDL1,PDL2"),
    (MedicationLabel.ANTI_PARP, "Treatment-anti-PARP"),
    (MedicationLabel.SG, "Treatment-SG"),
    (MedicationLabel.ANTI_TOPOISOMERASE_1, "Treatment-anti-topoisomerase-1"),
    (MedicationLabel.ANTI_CTLA4, "Treatment-anti-CTLA4"),
    (MedicationLabel.ANTI_CD40, "Treatment-anti-CD40"),
    (MedicationLabel.TRASTUZ_AND_PERTUZ, "Treatment-Trastuz_and_Pertuz"),
)

# Fixed codes with no profile of their own
SNOMED_LEPTOMENINGEAL_SITE = "8935007"
SNOMED_WHOLE_BRAIN_RADIATION = "108290001"
SNOMED_BRAIN_SITES = ("12738006", "119235005")
SNOMED_BONE_MARROW_TRANSPLANT = "58390007"
SNOMED_INVASIVE_MAMMARY_CARCINOMA = "444604002"
SNOMED_INVASIVE_LOBULAR_MORPHOLOGY = "443757001"
SNOMED_INFLAMMATORY_MORPHOLOGY = "32968003"
NIH_POLY_ICLC = "#C1198"

UNKNOWN_BIRTH_DATES = ("NA", "N/A")


def _pad(labels: List[str], size: int) -> List[str]:
    """Exactly `size` labels: truncated in priority order, padded with NOT_SURE."""
    labels = labels[:size]
    return labels + [NOT_SURE] * (size - len(labels))


def _parse_birth_date(value: Optional[str]) -> Optional[date]:
    """FHIR date (YYYY, YYYY-MM, YYYY-MM-DD, or a dateTime) -> date."""
    if not value or value.strip().upper() in UNKNOWN_BIRTH_DATES:
        return None
    value = value.strip()
    for fmt, length in (("%Y-%m-%d", 10), ("%Y-%m", 7), ("%Y", 4)):
        try:
            return datetime.strptime(value[:length], fmt).date()
        except ValueError:
            continue
    return None


def _years_between(start: date, end: date) -> int:
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return years


# ==============================================================================
# CLASSIFIER
# ==============================================================================

class ClinicalFeatureClassifier:
    """
    The dimension classifiers, bound to one profile repository and settings.

    Holds no per-record state, so one instance can classify any number of
    records, concurrently or not.
    """

    def __init__(self, repository: ProfileRepository, settings: Optional[EngineSettings] = None):
        self.repository = repository
        self.settings = settings or EngineSettings()
        self.biomarkers = BiomarkerEvaluator(repository, self.settings.strict_ratio_comparators)
        self._active = {c.lower() for c in self.settings.active_status_codes}
        self._recurrence = {c.lower() for c in self.settings.recurrence_status_codes}

    # --------------------------------------------------------------------------
    # Shared predicates
    # --------------------------------------------------------------------------

    def _in(self, codings: Iterable[Coding], *profiles: str) -> bool:
        return self.repository.any_in(codings, *profiles)

    def _not_in(self, codings: Iterable[Coding], profile: str) -> bool:
        return self.repository.any_not_in(codings, profile)

    def _status_in(self, statuses: Iterable[Coding], tokens) -> bool:
        return any(s.code and s.code.lower() in tokens for s in statuses)

    def _is_active(self, condition) -> bool:
        return self._status_in(condition.clinical_status, self._active)

    def _is_recurrent(self, condition) -> bool:
        return self._status_in(condition.clinical_status, self._recurrence)

    def _stage_in(self, record: ExtractedClinicalRecord, *profiles: str) -> bool:
        return self._in(record.tnm_stage_groups, *profiles)

    def _is_invasive_breast(self, condition: PrimaryCancerCondition) -> bool:
        """Breast cancer with invasive morphology, or an invasive breast cancer code."""
        return (
            (self._in(condition.histology_morphology_behavior, "Morphology-Invasive")
             and self._in(condition.coding, "Cancer-Breast"))
            or self._in(condition.coding, "Cancer-Invasive-Breast")
        )

    def _breast_with_histology(self, condition: PrimaryCancerCondition, profile: str) -> bool:
        return (
            self._in(condition.coding, "Cancer-Breast")
            and self._in(condition.histology_morphology_behavior, profile)
        )

    @staticmethod
    def _has_code(codings: Iterable[Coding], system: CodeSystem, *codes: str) -> bool:
        return any(c.matches(system, code) for c in codings for code in codes)

    @staticmethod
    def _first(rules: Sequence[Tuple[Enum, Callable[[], bool]]]) -> str:
        for label, rule in rules:
            if rule():
                return label.value
        return NOT_SURE

    # --------------------------------------------------------------------------
    # Primary cancer
    # --------------------------------------------------------------------------

    def primary_cancer(self, record: ExtractedClinicalRecord) -> str:
        conditions = record.primary_cancer_conditions
        if not conditions:
            return NOT_SURE

        def invasive_and_recurrent():
            # Both profile checks apply to the same coding
            in_sheet = self.repository.code_is_in_sheet
            return any(
                self._is_recurrent(c) and any(
                    (self._in(c.histology_morphology_behavior, "Morphology-Invasive")
                     or in_sheet(coding, "Cancer-Invasive-Breast"))
                    and in_sheet(coding, "Cancer-Breast")
                    for coding in c.coding
                )
                for c in conditions
            )

        def locally_recurrent():
            return any(self._in(c.coding, "Cancer-Breast") and self._is_recurrent(c) for c in conditions)

        def breast_cancer():
            return any(self._in(c.coding, "Cancer-Breast") for c in conditions)

        def concomitant():
            return any(
                self._not_in(c.coding, "Cancer-Breast")
                and self._is_active(c)
                and self._stage_in(record, "Stage-1", "Stage-2", "Stage-3", "Stage-4")
                for c in conditions
            )

        def other_malignancy():
            return any(
                (self._not_in(c.coding, "Cancer-Breast") and self._is_active(c))
                or (self._not_in(c.coding, "Cancer-Cervical") and self._is_active(c)
                    and self._stage_in(record, "Stage-0"))
                for c in conditions
            )

        return self._first((
            (PrimaryCancerLabel.INVASIVE_BREAST_CANCER_AND_RECURRENT, invasive_and_recurrent),
            (PrimaryCancerLabel.LOCALLY_RECURRENT, locally_recurrent),
            (PrimaryCancerLabel.BREAST_CANCER, breast_cancer),
            (PrimaryCancerLabel.CONCOMITANT_INVASIVE_MALIGNANCIES, concomitant),
            (PrimaryCancerLabel.OTHER_MALIGNANCY_EXCEPT_SKIN_OR_CERVICAL, other_malignancy),
        ))

    # --------------------------------------------------------------------------
    # Secondary cancer
    # --------------------------------------------------------------------------

    def secondary_cancer(self, record: ExtractedClinicalRecord) -> str:
        secondaries = record.secondary_cancer_conditions
        if not secondaries:
            return NOT_SURE
        primaries = record.primary_cancer_conditions
        stage_4 = self._stage_in(record, "Stage-4")

        def invasive_and_metastatic():
            invasive_primary = (
                (any(self._in(p.histology_morphology_behavior, "Morphology-Invasive") for p in primaries)
                 and any(self._in(p.coding, "Cancer-Breast") for p in primaries))
                or any(self._in(p.coding, "Cancer-Invasive-Breast") for p in primaries)
            )
            return invasive_primary and any(s.coding or stage_4 for s in secondaries)

        def brain_metastasis():
            return any(self._in(s.coding, "Metastasis-Brain") and self._is_active(s) for s in secondaries)

        def leptomeningeal():
            return any(
                self._has_code(s.body_site, CodeSystem.SNOMED, SNOMED_LEPTOMENINGEAL_SITE)
                for s in secondaries
            )

        def metastatic():
            return any(s.coding or stage_4 for s in secondaries)

        return self._first((
            (SecondaryCancerLabel.INVASIVE_BREAST_CANCER_AND_METASTATIC, invasive_and_metastatic),
            (SecondaryCancerLabel.BRAIN_METASTASIS, brain_metastasis),
            (SecondaryCancerLabel.LEPTOMENINGEAL_METASTATIC_DISEASE, leptomeningeal),
            (SecondaryCancerLabel.METASTATIC, metastatic),
        ))

    # --------------------------------------------------------------------------
    # Histology / morphology
    # --------------------------------------------------------------------------

    def histology_morphology(self, record: ExtractedClinicalRecord) -> str:
        conditions = record.primary_cancer_conditions
        if not conditions and not record.tnm_stage_groups:
            return NOT_SURE
        no_stage_0 = not self._stage_in(record, "Stage-0")

        def mammary():
            return any(
                self._breast_with_histology(c, "Morphology-Invas_Carc_Mix")
                or (self._has_code(c.coding, CodeSystem.SNOMED, SNOMED_INVASIVE_MAMMARY_CARCINOMA) and no_stage_0)
                for c in conditions
            )

        def ductal():
            return any(
                self._breast_with_histology(c, "Morphology-Invas_Duct_Carc")
                or self._in(c.coding, "Cancer-Invas_Duct_Carc")
                for c in conditions
            )

        def lobular():
            return any(
                (self._in(c.coding, "Cancer-Breast")
                 and self._has_code(c.histology_morphology_behavior, CodeSystem.SNOMED, SNOMED_INVASIVE_LOBULAR_MORPHOLOGY))
                or self._in(c.coding, "Cancer-Invas_Lob_Carc")
                for c in conditions
            )

        def in_situ():
            return any(self._breast_with_histology(c, "Morphology-Duct_Car_In_Situ") for c in conditions)

        def non_inflammatory_invasive():
            return any(
                self._is_invasive_breast(c)
                and ((self._not_in(c.coding, "Cancer-Breast")
                      and self._not_in(c.histology_morphology_behavior, "Morphology-Inflammatory"))
                     or self._in(c.coding, "Cancer-Inflammatory"))
                for c in conditions
            )

        def invasive_carcinoma():
            return any(
                self._breast_with_histology(c, "Morphology-Invasive-Carcinoma")
                or self._in(c.coding, "Cancer-Invasive-Carcinoma")
                for c in conditions
            )

        def invasive_breast():
            return any(self._is_invasive_breast(c) for c in conditions)

        def inflammatory():
            return any(
                (self._in(c.coding, "Cancer-Breast")
                 and self._has_code(c.histology_morphology_behavior, CodeSystem.SNOMED, SNOMED_INFLAMMATORY_MORPHOLOGY))
                or self._in(c.coding, "Cancer-Inflammatory")
                for c in conditions
            )

        return self._first((
            (HistologyLabel.INVASIVE_MAMMORY_CARCINOMA, mammary),
            (HistologyLabel.INVASIVE_DUCTAL_CARCINOMA, ductal),
            (HistologyLabel.INVASIVE_LOBULAR_CARCINOMA, lobular),
            (HistologyLabel.DUCTAL_CARCINOMA_IN_SITU, in_situ),
            (HistologyLabel.NON_INFLAMMATORY_INVASIVE, non_inflammatory_invasive),
            (HistologyLabel.INVASIVE_CARCINOMA, invasive_carcinoma),
            (HistologyLabel.INVASIVE_BREAST_CANCER, invasive_breast),
            (HistologyLabel.INFLAMMATORY, inflammatory),
        ))

    # --------------------------------------------------------------------------
    # Stage
    # --------------------------------------------------------------------------

    def stage(self, record: ExtractedClinicalRecord) -> List[str]:
        """Locally-advanced flag first, then every numeric stage present; exactly 2 labels."""
        if not record.primary_cancer_conditions and not record.tnm_stage_groups:
            return [NOT_SURE] * STAGE_LABEL_COUNT

        labels: List[str] = []
        if self._stage_in(record, "Stage-3", "Stage-4") and any(
            self._is_invasive_breast(c) for c in record.primary_cancer_conditions
        ):
            labels.append(StageLabel.INVASIVE_BREAST_CANCER_AND_LOCALLY_ADVANCED.value)

        for profile, label in NUMERIC_STAGES:
            if not self._stage_in(record, profile):
                continue
            if label is StageLabel.ZERO and self.settings.emit_non_invasive_stage:
                labels.append(StageLabel.NON_INVASIVE.value)
            labels.append(label.value)

        if len(labels) > STAGE_LABEL_COUNT:
            logger.debug(f"[CLASSIFY] Stage labels truncated: {labels}")
        return _pad(labels, STAGE_LABEL_COUNT)

    # --------------------------------------------------------------------------
    # Age
    # --------------------------------------------------------------------------

    def age(self, record: ExtractedClinicalRecord, reference_date: Optional[date] = None) -> str:
        birth_date = _parse_birth_date(record.birth_date)
        if birth_date is None:
            return NOT_SURE
        today = reference_date or date.today()
        if _years_between(birth_date, today) >= 18:
            return AgeLabel.OVER_18.value
        return AgeLabel.UNDER_18.value

    # --------------------------------------------------------------------------
    # Tumor marker / genetic variant
    # --------------------------------------------------------------------------

    def tumor_marker(self, record: ExtractedClinicalRecord) -> str:
        markers = record.tumor_markers
        variants = record.cancer_genetic_variants
        if not markers and not variants:
            return NOT_SURE
        bio = self.biomarkers

        def any_marker(predicate, *args) -> Callable[[], bool]:
            return lambda: any(predicate(m, *args) for m in markers)

        def all_of(*checks: Callable[[], bool]) -> Callable[[], bool]:
            return lambda: all(check() for check in checks)

        def any_variant(predicate, *args) -> Callable[[], bool]:
            return lambda: any(predicate(v, *args) for v in variants)

        her2_neg = any_marker(bio.is_her2_negative, HER2_NEGATIVE_VALUES)
        her2_pos = any_marker(bio.is_her2_positive)

        return self._first((
            (TumorMarkerLabel.TRIPLE_NEGATIVE_AND_RB_POSITIVE, all_of(
                her2_neg, any_marker(bio.is_pr_negative, 1), any_marker(bio.is_er_negative, 1),
                any_marker(bio.is_rb_positive, 50))),
            (TumorMarkerLabel.TRIPLE_NEGATIVE, all_of(
                her2_neg, any_marker(bio.is_pr_negative, 1), any_marker(bio.is_er_negative, 1))),
            (TumorMarkerLabel.TRIPLE_NEGATIVE_MINUS_10, all_of(
                any_marker(bio.is_her2_negative, HER2_NEGATIVE_VALUES_STRICT),
                any_marker(bio.is_pr_negative, 10), any_marker(bio.is_er_negative, 10))),
            (TumorMarkerLabel.ER_PLUS_PR_PLUS_HER2_MINUS, all_of(
                her2_neg, any_marker(bio.is_pr_positive, 1), any_marker(bio.is_er_positive, 1))),
            (TumorMarkerLabel.PR_PLUS_AND_HER2_MINUS_AND_FGFR_AMPLIFICATIONS, all_of(
                her2_neg, any_marker(bio.is_pr_positive, 1), any_marker(bio.is_fgfr_amplification, 1))),
            (TumorMarkerLabel.ER_PLUS_AND_HER2_MINUS_AND_FGFR_AMPLIFICATIONS, all_of(
                her2_neg, any_marker(bio.is_er_positive, 1), any_marker(bio.is_fgfr_amplification, 1))),
            (TumorMarkerLabel.PR_PLUS_AND_HER2_MINUS, all_of(her2_neg, any_marker(bio.is_pr_positive, 1))),
            (TumorMarkerLabel.ER_PLUS_AND_HER2_MINUS, all_of(her2_neg, any_marker(bio.is_er_positive, 1))),
            (TumorMarkerLabel.HER2_PLUS_AND_PR_PLUS, all_of(her2_pos, any_marker(bio.is_pr_positive, 10))),
            (TumorMarkerLabel.HER2_PLUS_AND_ER_PLUS, all_of(her2_pos, any_marker(bio.is_er_positive, 10))),
            (TumorMarkerLabel.HER2_PLUS, her2_pos),
            (TumorMarkerLabel.PR_PLUS, any_marker(bio.is_pr_positive, 10)),
            (TumorMarkerLabel.ER_PLUS, any_marker(bio.is_er_positive, 10)),
            (TumorMarkerLabel.HER2_MINUS, her2_neg),
            (TumorMarkerLabel.BRCA1_GERMLINE, any_variant(bio.is_brca_germline, HGNC_BRCA1)),
            (TumorMarkerLabel.BRCA2_GERMLINE, any_variant(bio.is_brca_germline, HGNC_BRCA2)),
            (TumorMarkerLabel.BRCA1_SOMATIC, any_variant(bio.is_brca_somatic, HGNC_BRCA1)),
            (TumorMarkerLabel.BRCA2_SOMATIC, any_variant(bio.is_brca_somatic, HGNC_BRCA2)),
            (TumorMarkerLabel.BRCA1, any_variant(bio.is_brca, HGNC_BRCA1)),
            (TumorMarkerLabel.BRCA2, any_variant(bio.is_brca, HGNC_BRCA2)),
        ))

    # --------------------------------------------------------------------------
    # Procedures
    # --------------------------------------------------------------------------

    def radiation_procedure(self, record: ExtractedClinicalRecord) -> str:
        procedures = record.radiation_procedures
        if not procedures:
            return NOT_SURE

        if any(self._in(p.coding, "Treatment-SRS-Brain") for p in procedures):
            return RadiationLabel.SRS.value
        if any(
            self._has_code(p.coding, CodeSystem.SNOMED, SNOMED_WHOLE_BRAIN_RADIATION)
            and self._has_code(p.body_site, CodeSystem.SNOMED, *SNOMED_BRAIN_SITES)
            for p in procedures
        ):
            return RadiationLabel.WBRT.value
        return RadiationLabel.RADIATION_THERAPY.value

    def surgical_procedure(self, record: ExtractedClinicalRecord) -> str:
        procedures = record.surgical_procedures
        if not procedures:
            return NOT_SURE

        return self._first((
            (SurgicalLabel.RESECTION, lambda: self._in(procedures, "Treatment-Resection-Brain")),
            (SurgicalLabel.SPLENECTOMY, lambda: self._in(procedures, "Treatment-Splenectomy")),
            (SurgicalLabel.BONE_MARROW_TRANSPLANT,
             lambda: self._has_code(procedures, CodeSystem.SNOMED, SNOMED_BONE_MARROW_TRANSPLANT)),
            (SurgicalLabel.ORGAN_TRANSPLANT, lambda: self._in(procedures, "Treatment-Organ_Transplant")),
        ))

    # --------------------------------------------------------------------------
    # Medications
    # --------------------------------------------------------------------------

    def medications(self, record: ExtractedClinicalRecord) -> List[str]:
        """Every matching medication label in priority order; exactly 3 labels."""
        meds = record.medication_statements
        if not meds:
            return [NOT_SURE] * MEDICATION_LABEL_COUNT

        # Flatten once, then test profile names
        mapped = set(self.repository.extract_code_mappings(meds))
        labels: List[str] = []

        if {"Treatment-Trastuzumab", "Treatment-Pertuzumab", "Treatment-T-DM1"} <= mapped:
            labels.append(MedicationLabel.DRUGCOMBO_1.value)
        if mapped & {"Treatment-CDK4_6_Inhibtor", "Treatment-mTOR_Inhibitor"} and "Treatment-Endocrine_Therapy" in mapped:
            labels.append(MedicationLabel.CDK4_6_MTOR_AND_ENDOCRINE.value)

        for label, profile in MEDICATION_PROFILES:
            if profile is None:
                if self._has_code(meds, CodeSystem.NIH, NIH_POLY_ICLC):
                    labels.append(label.value)
            elif profile in mapped:
                labels.append(label.value)

        if len(labels) > MEDICATION_LABEL_COUNT:
            logger.debug(f"[CLASSIFY] Medication labels truncated: {labels}")
        return _pad(labels, MEDICATION_LABEL_COUNT)

    # --------------------------------------------------------------------------
    # Performance status
    # --------------------------------------------------------------------------

    def ecog(self, record: ExtractedClinicalRecord) -> str:
        if record.ecog_score is None:
            return NOT_SURE
        return ECOG_LABELS.get(record.ecog_score, NOT_SURE)

    def karnofsky(self, record: ExtractedClinicalRecord) -> str:
        if record.karnofsky_score is None:
            return NOT_SURE
        return KARNOFSKY_LABELS.get(record.karnofsky_score, NOT_SURE)
