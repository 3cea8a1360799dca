"""
Resource Extractor: mCODE bundle -> Extracted Clinical Record

==============================================================================
ARCHITECTURAL CONTEXT
==============================================================================

The input is a FHIR Bundle whose resources each declare one or more mCODE
profiles in `meta.profile`. What a resource means to the classifiers is
decided by the pair (resourceType, profile):

    Condition           + mcode-primary-cancer-condition     -> primary cancer
    Condition           + mcode-secondary-cancer-condition   -> secondary cancer
    Observation         + mcode-tnm-clinical-stage-group     -> TNM clinical stage
    Observation         + mcode-tnm-pathological-stage-group -> TNM pathological stage
    Observation         + mcode-tumor-marker                 -> tumor marker
    Observation         + mcode-cancer-genetic-variant       -> genetic variant
    Observation         + mcode-ecog-performance-status      -> ECOG score
    Observation         + mcode-karnofsky-performance-status -> Karnofsky score
    Procedure           + mcode-cancer-related-radiation-procedure
    Procedure           + mcode-cancer-related-surgical-procedure
    MedicationStatement + mcode-cancer-related-medication-statement
    Patient             + mcode-cancer-patient               -> birth date

Each pair has its own typed walker (a ResourceInterpreter). The walkers are
held in an InterpreterRegistry and fed into one ExtractedRecordBuilder, in a
single pass over the bundle entries.

Data Flow:
----------
    [Bundle entries] -> [InterpreterRegistry] -> [ExtractedRecordBuilder]
                               |                          |
                      one walker per pair        ExtractedClinicalRecord

==============================================================================
EXTRACTION RULES
==============================================================================

1. Resources with no recognized profile are ignored.
2. Entries with no `resource`, or a resource missing the sub-structure its
   walker needs, are skipped and a warning is recorded.
3. Walkers hold no state, so one registry is shared by every extraction.

==============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .code_systems import Coding
from .comparators import Quantity, Ratio
from .record import ExtractedClinicalRecord, ExtractedRecordBuilder, VariantComponent

logger = logging.getLogger("mcode-engine")

# ==============================================================================
# PROFILE FRAGMENTS
# ==============================================================================

PRIMARY_CANCER_CONDITION = "mcode-primary-cancer-condition"
SECONDARY_CANCER_CONDITION = "mcode-secondary-cancer-condition"
TNM_CLINICAL_STAGE_GROUP = "mcode-tnm-clinical-stage-group"
TNM_PATHOLOGICAL_STAGE_GROUP = "mcode-tnm-pathological-stage-group"
TUMOR_MARKER = "mcode-tumor-marker"
CANCER_GENETIC_VARIANT = "mcode-cancer-genetic-variant"
RADIATION_PROCEDURE = "mcode-cancer-related-radiation-procedure"
SURGICAL_PROCEDURE = "mcode-cancer-related-surgical-procedure"
MEDICATION_STATEMENT = "mcode-cancer-related-medication-statement"
CANCER_PATIENT = "mcode-cancer-patient"
ECOG_PERFORMANCE_STATUS = "mcode-ecog-performance-status"
KARNOFSKY_PERFORMANCE_STATUS = "mcode-karnofsky-performance-status"

HISTOLOGY_EXTENSION = "mcode-histology-morphology-behavior"

# Observation.component codes (LOINC)
GENE_STUDIED_CODE = "48018-6"
GENOMICS_SOURCE_CLASS_CODE = "48002-0"


# ==============================================================================
# FHIR HELPERS
# ==============================================================================

def _codings(concept: Any) -> List[Coding]:
    """
    Codings from a CodeableConcept, or from a list of them.

    FHIR is inconsistent about cardinality (clinicalStatus is 0..1,
    bodySite and interpretation are 0..*), so both shapes are accepted.
    """
    if isinstance(concept, Mapping):
        concept = [concept]
    if not isinstance(concept, list):
        return []
    codings = []
    for item in concept:
        if not isinstance(item, Mapping):
            continue
        inner = item.get("coding")
        if not isinstance(inner, list):
            continue
        for coding in inner:
            if isinstance(coding, Mapping):
                codings.append(Coding.from_dict(coding))
    return codings


def declared_profiles(resource: Mapping[str, Any]) -> List[str]:
    meta = resource.get("meta")
    if not isinstance(meta, Mapping):
        return []
    profiles = meta.get("profile")
    if isinstance(profiles, str):
        profiles = [profiles]
    if not isinstance(profiles, list):
        return []
    return [p for p in profiles if isinstance(p, str)]


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


# ==============================================================================
# BASE INTERPRETER CLASS
# ==============================================================================

class ResourceInterpreter(ABC):
    """
    Typed walker for one (resourceType, profile) pair.

    Subclasses set `resource_type`, `profile_fragment` and `category`, and
    implement interpret(). interpret() returns a list of warnings, and an
    empty list means the resource was taken.
    """

    resource_type: str = ""
    profile_fragment: str = ""
    category: str = "unknown"

    def can_interpret(self, resource: Mapping[str, Any]) -> bool:
        if resource.get("resourceType") != self.resource_type:
            return False
        return any(self.profile_fragment in profile for profile in declared_profiles(resource))

    @abstractmethod
    def interpret(self, resource: Mapping[str, Any], builder: ExtractedRecordBuilder) -> List[str]:
        """
        Walk the resource and add what it carries to the builder.

        Args:
            resource: One FHIR resource accepted by can_interpret()
            builder: Builder for the record under construction

        Returns:
            Warnings for anything skipped; empty when the resource was used
        """
        pass

    def _skip(self, resource: Mapping[str, Any], reason: str) -> List[str]:
        return [f"{self.category}: skipped {resource.get('resourceType')}/{resource.get('id', '?')} ({reason})"]


# ==============================================================================
# CONDITION INTERPRETERS
# ==============================================================================

class PrimaryCancerConditionInterpreter(ResourceInterpreter):
    resource_type = "Condition"
    profile_fragment = PRIMARY_CANCER_CONDITION
    category = "primary_cancer_condition"

    def interpret(self, resource, builder):
        coding = _codings(resource.get("code"))
        if not coding:
            return self._skip(resource, "no code.coding")

        builder.add_primary_cancer_condition(
            coding=coding,
            clinical_status=_codings(resource.get("clinicalStatus")),
            histology_morphology_behavior=self._extract_histology(resource),
        )
        return []

    def _extract_histology(self, resource: Mapping[str, Any]) -> List[Coding]:
        histology = []
        extensions = resource.get("extension")
        if not isinstance(extensions, list):
            return histology
        for extension in extensions:
            if not isinstance(extension, Mapping):
                continue
            if HISTOLOGY_EXTENSION in str(extension.get("url", "")):
                histology.extend(_codings(extension.get("valueCodeableConcept")))
        return histology


class SecondaryCancerConditionInterpreter(ResourceInterpreter):
    resource_type = "Condition"
    profile_fragment = SECONDARY_CANCER_CONDITION
    category = "secondary_cancer_condition"

    def interpret(self, resource, builder):
        coding = _codings(resource.get("code"))
        if not coding:
            return self._skip(resource, "no code.coding")

        builder.add_secondary_cancer_condition(
            coding=coding,
            clinical_status=_codings(resource.get("clinicalStatus")),
            body_site=_codings(resource.get("bodySite")),
        )
        return []


# ==============================================================================
# OBSERVATION INTERPRETERS
# ==============================================================================

class TNMStageGroupInterpreter(ResourceInterpreter):
    """TNM stage group observation; clinical or pathological."""

    resource_type = "Observation"

    def __init__(self, pathological: bool = False):
        self.pathological = pathological
        if pathological:
            self.profile_fragment = TNM_PATHOLOGICAL_STAGE_GROUP
            self.category = "tnm_pathological_stage_group"
        else:
            self.profile_fragment = TNM_CLINICAL_STAGE_GROUP
            self.category = "tnm_clinical_stage_group"

    def interpret(self, resource, builder):
        stage = _codings(resource.get("valueCodeableConcept"))
        if not stage:
            return self._skip(resource, "no valueCodeableConcept.coding")

        if self.pathological:
            builder.add_tnm_pathological_stage(stage)
        else:
            builder.add_tnm_clinical_stage(stage)
        return []


class TumorMarkerInterpreter(ResourceInterpreter):
    resource_type = "Observation"
    profile_fragment = TUMOR_MARKER
    category = "tumor_marker"

    def interpret(self, resource, builder):
        code = _codings(resource.get("code"))
        if not code:
            return self._skip(resource, "no code.coding")

        quantity = Quantity.from_dict(resource.get("valueQuantity"))
        ratio = Ratio.from_dict(resource.get("valueRatio"))

        builder.add_tumor_marker(
            code=code,
            value_quantity=[quantity] if quantity else [],
            value_ratio=[ratio] if ratio else [],
            value_codeable_concept=_codings(resource.get("valueCodeableConcept")),
            interpretation=_codings(resource.get("interpretation")),
        )
        return []


class GeneticVariantInterpreter(ResourceInterpreter):
    """
    Cancer genetic variant observation.

    Gene studied and genomic source class arrive as Observation.component
    entries keyed by their LOINC component code.
    """

    resource_type = "Observation"
    profile_fragment = CANCER_GENETIC_VARIANT
    category = "cancer_genetic_variant"

    def interpret(self, resource, builder):
        gene_studied: List[VariantComponent] = []
        source_class: List[VariantComponent] = []

        components = resource.get("component")
        if not isinstance(components, list):
            components = []
        for component in components:
            if not isinstance(component, Mapping):
                continue
            component_codes = {c.code for c in _codings(component.get("code"))}
            entry = VariantComponent(
                value_codeable_concept=_codings(component.get("valueCodeableConcept")),
                interpretation=_codings(component.get("interpretation")),
            )
            if GENE_STUDIED_CODE in component_codes:
                gene_studied.append(entry)
            if GENOMICS_SOURCE_CLASS_CODE in component_codes:
                source_class.append(entry)

        value = _codings(resource.get("valueCodeableConcept"))
        interpretation = _codings(resource.get("interpretation"))
        if not (gene_studied or source_class or value or interpretation):
            return self._skip(resource, "no components or values")

        builder.add_genetic_variant(
            gene_studied=gene_studied,
            genomics_source_class=source_class,
            value_codeable_concept=value,
            interpretation=interpretation,
        )
        return []


class PerformanceStatusInterpreter(ResourceInterpreter):
    """ECOG or Karnofsky performance status (valueInteger)."""

    resource_type = "Observation"

    def __init__(self, karnofsky: bool = False):
        self.karnofsky = karnofsky
        if karnofsky:
            self.profile_fragment = KARNOFSKY_PERFORMANCE_STATUS
            self.category = "karnofsky_performance_status"
        else:
            self.profile_fragment = ECOG_PERFORMANCE_STATUS
            self.category = "ecog_performance_status"

    def interpret(self, resource, builder):
        score = _as_int(resource.get("valueInteger"))
        if score is None:
            return self._skip(resource, "no integer valueInteger")

        if self.karnofsky:
            builder.set_karnofsky_score(score)
        else:
            builder.set_ecog_score(score)
        return []


# ==============================================================================
# PROCEDURE / MEDICATION / PATIENT INTERPRETERS
# ==============================================================================

class RadiationProcedureInterpreter(ResourceInterpreter):
    resource_type = "Procedure"
    profile_fragment = RADIATION_PROCEDURE
    category = "radiation_procedure"

    def interpret(self, resource, builder):
        coding = _codings(resource.get("code"))
        if not coding:
            return self._skip(resource, "no code.coding")
        builder.add_radiation_procedure(coding=coding, body_site=_codings(resource.get("bodySite")))
        return []


class SurgicalProcedureInterpreter(ResourceInterpreter):
    resource_type = "Procedure"
    profile_fragment = SURGICAL_PROCEDURE
    category = "surgical_procedure"

    def interpret(self, resource, builder):
        coding = _codings(resource.get("code"))
        if not coding:
            return self._skip(resource, "no code.coding")
        builder.add_surgical_procedure(coding)
        return []


class MedicationStatementInterpreter(ResourceInterpreter):
    resource_type = "MedicationStatement"
    profile_fragment = MEDICATION_STATEMENT
    category = "medication_statement"

    def interpret(self, resource, builder):
        coding = _codings(resource.get("medicationCodeableConcept"))
        if not coding:
            return self._skip(resource, "no medicationCodeableConcept.coding")
        builder.add_medication_statement(coding)
        return []


class CancerPatientInterpreter(ResourceInterpreter):
    resource_type = "Patient"
    profile_fragment = CANCER_PATIENT
    category = "cancer_patient"

    def interpret(self, resource, builder):
        birth_date = resource.get("birthDate")
        if not isinstance(birth_date, str) or not birth_date:
            return self._skip(resource, "no birthDate")
        builder.set_birth_date(birth_date)
        return []


# ==============================================================================
# INTERPRETER REGISTRY
# ==============================================================================

class InterpreterRegistry:
    """
    Registry of resource interpreters.

    Provides:
    - Interpreter registration and lookup by category
    - Selection of every interpreter that accepts a resource
    """

    def __init__(self):
        self._interpreters: Dict[str, ResourceInterpreter] = {}
        self._register_default_interpreters()

    def _register_default_interpreters(self):
        """Register built-in interpreters."""
        for interpreter in (
            PrimaryCancerConditionInterpreter(),
            SecondaryCancerConditionInterpreter(),
            TNMStageGroupInterpreter(pathological=False),
            TNMStageGroupInterpreter(pathological=True),
            TumorMarkerInterpreter(),
            GeneticVariantInterpreter(),
            RadiationProcedureInterpreter(),
            SurgicalProcedureInterpreter(),
            MedicationStatementInterpreter(),
            CancerPatientInterpreter(),
            PerformanceStatusInterpreter(karnofsky=False),
            PerformanceStatusInterpreter(karnofsky=True),
        ):
            self.register(interpreter)
        logger.debug(f"[REGISTRY] Registered {len(self._interpreters)} resource interpreters")

    def register(self, interpreter: ResourceInterpreter):
        self._interpreters[interpreter.category] = interpreter

    def get_interpreter(self, category: str) -> Optional[ResourceInterpreter]:
        return self._interpreters.get(category)

    def find_interpreters(self, resource: Mapping[str, Any]) -> List[ResourceInterpreter]:
        """Find all interpreters that accept a resource."""
        return [i for i in self._interpreters.values() if i.can_interpret(resource)]

    @property
    def categories(self) -> List[str]:
        return list(self._interpreters.keys())


# ==============================================================================
# RESOURCE EXTRACTOR
# ==============================================================================

class ResourceExtractor:
    """
    One pass over a bundle's entries, producing an ExtractedClinicalRecord.

    A new extractor (and builder) is used per document; the registry is shared.
    """

    def __init__(self, registry: Optional[InterpreterRegistry] = None):
        self.registry = registry or get_registry()
        self.warnings: List[str] = []
        self.stats = {
            'entries_seen': 0,
            'resources_used': 0,
            'resources_ignored': 0,
            'entries_skipped': 0,
        }

    def extract(self, bundle: Mapping[str, Any]) -> ExtractedClinicalRecord:
        """
        Build the record for one bundle.

        Args:
            bundle: FHIR Bundle as a mapping ({"resourceType": "Bundle", "entry": [...]})

        Returns:
            ExtractedClinicalRecord with every list present
        """
        builder = ExtractedRecordBuilder()

        entries = bundle.get("entry") or []
        if not isinstance(entries, list):
            self._warn("bundle.entry is not a list")
            entries = []

        for resource in self._resources(entries):
            interpreters = self.registry.find_interpreters(resource)
            if not interpreters:
                self.stats['resources_ignored'] += 1
                continue

            used = False
            for interpreter in interpreters:
                try:
                    warnings = interpreter.interpret(resource, builder)
                except (TypeError, ValueError, AttributeError) as e:
                    warnings = interpreter._skip(resource, f"malformed: {e}")
                    self.stats['entries_skipped'] += 1
                for warning in warnings:
                    self._warn(warning)
                used = used or not warnings
            if used:
                self.stats['resources_used'] += 1

        record = builder.build()
        logger.debug(
            f"[EXTRACT] {self.stats['entries_seen']} entries: "
            f"{self.stats['resources_used']} used, {self.stats['resources_ignored']} ignored, "
            f"{self.stats['entries_skipped']} skipped, {len(self.warnings)} warnings"
        )
        return record

    def _resources(self, entries: Iterable[Any]):
        for index, entry in enumerate(entries):
            self.stats['entries_seen'] += 1
            resource = entry.get("resource") if isinstance(entry, Mapping) else None
            if not isinstance(resource, Mapping):
                self.stats['entries_skipped'] += 1
                self._warn(f"entry[{index}] has no resource")
                continue
            yield resource

    def _warn(self, message: str):
        self.warnings.append(message)
        logger.debug(f"[EXTRACT] Warning: {message}")


# ==============================================================================
# MODULE-LEVEL CONVENIENCE FUNCTIONS
# ==============================================================================

# Global registry instance
_registry: Optional[InterpreterRegistry] = None


def get_registry() -> InterpreterRegistry:
    """Get or create the global interpreter registry."""
    global _registry
    if _registry is None:
        _registry = InterpreterRegistry()
    return _registry


def extract_record(bundle: Mapping[str, Any]) -> ExtractedClinicalRecord:
    """Convenience function to extract a record with the global registry."""
    return ResourceExtractor().extract(bundle)
