"""
mCODE Clinical Feature Classification Engine

Classifies a patient's mCODE oncology record into the fixed label set used to
filter breast cancer clinical trial searches.

Components:
- Code systems: coding-system URI -> canonical name (SNOMED, LOINC, RxNorm, ...)
- ProfileRepository: named profiles -> member codes, loaded once from JSON
- Comparators: quantity / ratio threshold matching
- ResourceExtractor: FHIR Bundle -> ExtractedClinicalRecord
- ClinicalFeatureClassifier: the priority-ordered dimension rules
- ClassificationEngine: one record in, one ClassificationLabels out
"""

from .code_systems import CodeSystem, Coding, normalize_code_system
from .comparators import Quantity, Ratio, quantity_match, ratio_match
from .profiles import ProfileRepository, ProfileTableError, get_profile_repository
from .record import ExtractedClinicalRecord, ExtractedRecordBuilder, VariantComponent
from .extractor import ResourceExtractor, extract_record
from .config import EngineSettings, get_settings
from .classifiers import ClinicalFeatureClassifier, NOT_SURE
from .engine import ClassificationEngine, classify_bundle, classify_record
from .schemas import ClassificationLabels

__all__ = [
    "CodeSystem",
    "Coding",
    "normalize_code_system",
    "Quantity",
    "Ratio",
    "quantity_match",
    "ratio_match",
    "ProfileRepository",
    "ProfileTableError",
    "get_profile_repository",
    "ExtractedClinicalRecord",
    "ExtractedRecordBuilder",
    "VariantComponent",
    "ResourceExtractor",
    "extract_record",
    "EngineSettings",
    "get_settings",
    "ClinicalFeatureClassifier",
    "NOT_SURE",
    "ClassificationEngine",
    "classify_bundle",
    "classify_record",
    "ClassificationLabels",
]
