"""
Classification Engine

Ties the pieces together for one document:

    bundle -> ResourceExtractor -> ExtractedClinicalRecord
           -> ClinicalFeatureClassifier (x every dimension) -> ClassificationLabels

An engine instance owns exactly one record and is never shared between
requests. The profile repository it is given is read-only and may be shared
freely.
"""

import logging
from datetime import date
from typing import Any, List, Mapping, Optional

from .classifiers import ClinicalFeatureClassifier
from .config import EngineSettings, get_settings
from .extractor import ResourceExtractor
from .profiles import ProfileRepository, get_profile_repository
from .record import ExtractedClinicalRecord
from .schemas import ClassificationLabels

logger = logging.getLogger("mcode-engine")


class ClassificationEngine:
    """
    Classifies one Extracted Clinical Record across every dimension.

    Args:
        record: The record to classify (from a bundle or ExtractedRecordBuilder)
        repository: Profile table; defaults to the process-wide one
        settings: Engine settings; defaults to the environment
        reference_date: "Today" for the age dimension; defaults to date.today()
    """

    def __init__(
        self,
        record: ExtractedClinicalRecord,
        repository: Optional[ProfileRepository] = None,
        settings: Optional[EngineSettings] = None,
        reference_date: Optional[date] = None,
    ):
        self.settings = settings or get_settings()
        self.repository = repository or get_profile_repository(self.settings.profile_table_path)
        self.record = record
        self.reference_date = reference_date
        self.extraction_warnings: List[str] = []
        self.classifier = ClinicalFeatureClassifier(self.repository, self.settings)

    @classmethod
    def from_bundle(
        cls,
        bundle: Mapping[str, Any],
        repository: Optional[ProfileRepository] = None,
        settings: Optional[EngineSettings] = None,
        reference_date: Optional[date] = None,
    ) -> "ClassificationEngine":
        """Extract a record from a FHIR Bundle mapping and wrap it in an engine."""
        if not isinstance(bundle, Mapping):
            raise TypeError(f"Expected a Bundle mapping, got {type(bundle).__name__}")

        extractor = ResourceExtractor()
        record = extractor.extract(bundle)
        engine = cls(record, repository=repository, settings=settings, reference_date=reference_date)
        engine.extraction_warnings = extractor.warnings
        return engine

    # Individual dimensions

    def primary_cancer(self) -> str:
        return self.classifier.primary_cancer(self.record)

    def secondary_cancer(self) -> str:
        return self.classifier.secondary_cancer(self.record)

    def histology_morphology(self) -> str:
        return self.classifier.histology_morphology(self.record)

    def stage(self) -> List[str]:
        return self.classifier.stage(self.record)

    def age(self) -> str:
        return self.classifier.age(self.record, self.reference_date)

    def tumor_marker(self) -> str:
        return self.classifier.tumor_marker(self.record)

    def radiation_procedure(self) -> str:
        return self.classifier.radiation_procedure(self.record)

    def surgical_procedure(self) -> str:
        return self.classifier.surgical_procedure(self.record)

    def medications(self) -> List[str]:
        return self.classifier.medications(self.record)

    def ecog(self) -> str:
        return self.classifier.ecog(self.record)

    def karnofsky(self) -> str:
        return self.classifier.karnofsky(self.record)

    def classify(self) -> ClassificationLabels:
        """Run every dimension and collect the labels."""
        labels = ClassificationLabels(
            primary_cancer=self.primary_cancer(),
            secondary_cancer=self.secondary_cancer(),
            histology_morphology=self.histology_morphology(),
            stage=self.stage(),
            age=self.age(),
            tumor_marker=self.tumor_marker(),
            radiation_procedure=self.radiation_procedure(),
            surgical_procedure=self.surgical_procedure(),
            medications=self.medications(),
            ecog=self.ecog(),
            karnofsky=self.karnofsky(),
        )
        logger.debug(f"[CLASSIFY] {labels.model_dump()}")
        return labels


# ==============================================================================
# MODULE-LEVEL CONVENIENCE FUNCTIONS
# ==============================================================================

def classify_bundle(
    bundle: Mapping[str, Any],
    repository: Optional[ProfileRepository] = None,
    settings: Optional[EngineSettings] = None,
) -> ClassificationLabels:
    """Classify a FHIR Bundle with the process-wide repository and settings."""
    return ClassificationEngine.from_bundle(bundle, repository=repository, settings=settings).classify()


def classify_record(
    record: ExtractedClinicalRecord,
    repository: Optional[ProfileRepository] = None,
    settings: Optional[EngineSettings] = None,
) -> ClassificationLabels:
    return ClassificationEngine(record, repository=repository, settings=settings).classify()
