"""
Pytest fixtures for the classification engine tests.
"""
import os

# Keep test runs from writing log files
os.environ["MCODE_LOG_FILE"] = ""

from datetime import date

import pytest

from mcode_engine import (
    ClinicalFeatureClassifier, EngineSettings, ExtractedRecordBuilder, ProfileRepository,
)
from mcode_engine.profiles import DEFAULT_PROFILE_TABLE


@pytest.fixture(scope="session")
def repository() -> ProfileRepository:
    """The packaged profile table."""
    return ProfileRepository.from_json(DEFAULT_PROFILE_TABLE)


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(log_file=None)


@pytest.fixture
def classifier(repository, settings) -> ClinicalFeatureClassifier:
    return ClinicalFeatureClassifier(repository, settings)


@pytest.fixture
def builder() -> ExtractedRecordBuilder:
    return ExtractedRecordBuilder()


@pytest.fixture
def reference_date() -> date:
    return date(2024, 6, 15)


@pytest.fixture
def tiny_repository() -> ProfileRepository:
    """A hand-written table for membership tests."""
    return ProfileRepository({
        "Cancer-Breast": {"SNOMED": ["783541009"], "ICD-10": ["C50.911"]},
        "Stage-3": {"SNOMED": ["261640009"], "AJCC": ["III"]},
        "Biomarker-HER2": {"LOINC": ["32996-1"]},
    })
