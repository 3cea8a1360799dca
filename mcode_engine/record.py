"""
Extracted Clinical Record

The per-document working state the classifiers read. It is produced once by
the resource extractor (or directly through ExtractedRecordBuilder in tests)
and never mutated afterwards.

Every list field is present and defaults to empty. Classifiers branch on
"list is empty", never on "list is missing".
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .code_systems import Coding
from .comparators import Quantity, Ratio

logger = logging.getLogger("mcode-engine")


# ==============================================================================
# ENTITY TYPES
# ==============================================================================

@dataclass
class PrimaryCancerCondition:
    coding: List[Coding] = field(default_factory=list)
    clinical_status: List[Coding] = field(default_factory=list)
    histology_morphology_behavior: List[Coding] = field(default_factory=list)


@dataclass
class SecondaryCancerCondition:
    coding: List[Coding] = field(default_factory=list)
    clinical_status: List[Coding] = field(default_factory=list)
    body_site: List[Coding] = field(default_factory=list)


@dataclass
class TumorMarker:
    """Tumor marker observation (HER2, ER, PR, FGFR, RB, ...)."""
    code: List[Coding] = field(default_factory=list)
    value_quantity: List[Quantity] = field(default_factory=list)
    value_ratio: List[Ratio] = field(default_factory=list)
    value_codeable_concept: List[Coding] = field(default_factory=list)
    interpretation: List[Coding] = field(default_factory=list)


@dataclass
class VariantComponent:
    """One observation component: its coded value and interpretation."""
    value_codeable_concept: List[Coding] = field(default_factory=list)
    interpretation: List[Coding] = field(default_factory=list)


@dataclass
class CancerGeneticVariant:
    value_codeable_concept: List[Coding] = field(default_factory=list)
    interpretation: List[Coding] = field(default_factory=list)
    gene_studied: List[VariantComponent] = field(default_factory=list)
    genomics_source_class: List[VariantComponent] = field(default_factory=list)


@dataclass
class RadiationProcedure:
    coding: List[Coding] = field(default_factory=list)
    body_site: List[Coding] = field(default_factory=list)


@dataclass
class ExtractedClinicalRecord:
    """Typed oncology entities pulled out of one patient document."""
    primary_cancer_conditions: List[PrimaryCancerCondition] = field(default_factory=list)
    secondary_cancer_conditions: List[SecondaryCancerCondition] = field(default_factory=list)
    tnm_clinical_stage_group: List[Coding] = field(default_factory=list)
    tnm_pathological_stage_group: List[Coding] = field(default_factory=list)
    tumor_markers: List[TumorMarker] = field(default_factory=list)
    cancer_genetic_variants: List[CancerGeneticVariant] = field(default_factory=list)
    radiation_procedures: List[RadiationProcedure] = field(default_factory=list)
    surgical_procedures: List[Coding] = field(default_factory=list)
    medication_statements: List[Coding] = field(default_factory=list)

    # Scalars
    birth_date: Optional[str] = None
    ecog_score: Optional[int] = None
    karnofsky_score: Optional[int] = None

    @property
    def tnm_stage_groups(self) -> List[Coding]:
        """Clinical and pathological stage groups together."""
        return self.tnm_clinical_stage_group + self.tnm_pathological_stage_group

    def is_empty(self) -> bool:
        return not any((
            self.primary_cancer_conditions, self.secondary_cancer_conditions,
            self.tnm_clinical_stage_group, self.tnm_pathological_stage_group,
            self.tumor_markers, self.cancer_genetic_variants, self.radiation_procedures,
            self.surgical_procedures, self.medication_statements,
            self.birth_date, self.ecog_score is not None, self.karnofsky_score is not None,
        ))

    def to_dict(self) -> Dict:
        return asdict(self)


# ==============================================================================
# RECORD BUILDER
# ==============================================================================

def _identities(codings: Iterable[Coding]) -> FrozenSet[Tuple[str, Optional[str]]]:
    return frozenset(c.identity for c in codings)


def _append_unique(target: List[Coding], codings: Iterable[Coding]) -> int:
    """Append codings not already present by (system, code). Returns count added."""
    seen = {c.identity for c in target}
    added = 0
    for coding in codings:
        if coding is None or coding.identity in seen:
            continue
        target.append(coding)
        seen.add(coding.identity)
        added += 1
    return added


class ExtractedRecordBuilder:
    """
    Accumulates entities and enforces the dedup rules, then builds the record.

    Stage groups, surgical procedures and medication statements are flat
    coding lists deduplicated by (system, code). Radiation procedures are
    deduplicated as whole entities. Conditions, markers and variants are kept
    as given.
    """

    def __init__(self):
        self._record = ExtractedClinicalRecord()
        self._built = False

    def add_primary_cancer_condition(
        self,
        coding: Iterable[Coding] = (),
        clinical_status: Iterable[Coding] = (),
        histology_morphology_behavior: Iterable[Coding] = (),
    ) -> "ExtractedRecordBuilder":
        self._record.primary_cancer_conditions.append(PrimaryCancerCondition(
            coding=list(coding),
            clinical_status=list(clinical_status),
            histology_morphology_behavior=list(histology_morphology_behavior),
        ))
        return self

    def add_secondary_cancer_condition(
        self,
        coding: Iterable[Coding] = (),
        clinical_status: Iterable[Coding] = (),
        body_site: Iterable[Coding] = (),
    ) -> "ExtractedRecordBuilder":
        self._record.secondary_cancer_conditions.append(SecondaryCancerCondition(
            coding=list(coding),
            clinical_status=list(clinical_status),
            body_site=list(body_site),
        ))
        return self

    def add_tnm_clinical_stage(self, codings: Iterable[Coding]) -> "ExtractedRecordBuilder":
        _append_unique(self._record.tnm_clinical_stage_group, codings)
        return self

    def add_tnm_pathological_stage(self, codings: Iterable[Coding]) -> "ExtractedRecordBuilder":
        _append_unique(self._record.tnm_pathological_stage_group, codings)
        return self

    def add_tumor_marker(
        self,
        code: Iterable[Coding] = (),
        value_quantity: Iterable[Quantity] = (),
        value_ratio: Iterable[Ratio] = (),
        value_codeable_concept: Iterable[Coding] = (),
        interpretation: Iterable[Coding] = (),
    ) -> "ExtractedRecordBuilder":
        self._record.tumor_markers.append(TumorMarker(
            code=list(code),
            value_quantity=[q for q in value_quantity if q is not None],
            value_ratio=[r for r in value_ratio if r is not None],
            value_codeable_concept=list(value_codeable_concept),
            interpretation=list(interpretation),
        ))
        return self

    def add_genetic_variant(
        self,
        gene_studied: Iterable[VariantComponent] = (),
        genomics_source_class: Iterable[VariantComponent] = (),
        value_codeable_concept: Iterable[Coding] = (),
        interpretation: Iterable[Coding] = (),
    ) -> "ExtractedRecordBuilder":
        self._record.cancer_genetic_variants.append(CancerGeneticVariant(
            value_codeable_concept=list(value_codeable_concept),
            interpretation=list(interpretation),
            gene_studied=list(gene_studied),
            genomics_source_class=list(genomics_source_class),
        ))
        return self

    def add_radiation_procedure(
        self,
        coding: Iterable[Coding] = (),
        body_site: Iterable[Coding] = (),
    ) -> "ExtractedRecordBuilder":
        procedure = RadiationProcedure(coding=list(coding), body_site=list(body_site))
        for existing in self._record.radiation_procedures:
            if self._same_radiation(existing, procedure):
                # keep the more specific body site
                if not existing.body_site:
                    existing.body_site = procedure.body_site
                logger.debug("[EXTRACT] Skipping duplicate radiation procedure")
                return self
        self._record.radiation_procedures.append(procedure)
        return self

    def add_surgical_procedure(self, codings: Iterable[Coding]) -> "ExtractedRecordBuilder":
        _append_unique(self._record.surgical_procedures, codings)
        return self

    def add_medication_statement(self, codings: Iterable[Coding]) -> "ExtractedRecordBuilder":
        _append_unique(self._record.medication_statements, codings)
        return self

    def set_birth_date(self, birth_date: Optional[str]) -> "ExtractedRecordBuilder":
        self._record.birth_date = birth_date
        return self

    def set_ecog_score(self, score: Optional[int]) -> "ExtractedRecordBuilder":
        self._record.ecog_score = score
        return self

    def set_karnofsky_score(self, score: Optional[int]) -> "ExtractedRecordBuilder":
        self._record.karnofsky_score = score
        return self

    def build(self) -> ExtractedClinicalRecord:
        """Finish the record. A builder produces exactly one record."""
        if self._built:
            raise RuntimeError("ExtractedRecordBuilder.build() called twice")
        self._built = True
        return self._record

    @staticmethod
    def _same_radiation(existing: RadiationProcedure, candidate: RadiationProcedure) -> bool:
        if _identities(existing.coding) != _identities(candidate.coding):
            return False
        if not existing.body_site or not candidate.body_site:
            return True
        return _identities(existing.body_site) == _identities(candidate.body_site)
