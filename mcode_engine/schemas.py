"""
Pydantic schemas for the HTTP shell.
Defines the request bundle and the label record returned by /classify.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List


class BundlePayload(BaseModel):
    """FHIR Bundle as posted by the caller; only the entry list is read."""
    model_config = ConfigDict(extra="allow")

    resourceType: str = "Bundle"
    id: str = ""
    type: str = "collection"
    entry: List[Dict[str, Any]] = []


class ClassificationLabels(BaseModel):
    """One label per dimension; stage and medications are fixed-length lists."""
    primary_cancer: str = "NOT_SURE"
    secondary_cancer: str = "NOT_SURE"
    histology_morphology: str = "NOT_SURE"
    stage: List[str] = Field(default_factory=lambda: ["NOT_SURE"] * 2)
    age: str = "NOT_SURE"
    tumor_marker: str = "NOT_SURE"
    radiation_procedure: str = "NOT_SURE"
    surgical_procedure: str = "NOT_SURE"
    medications: List[str] = Field(default_factory=lambda: ["NOT_SURE"] * 3)
    ecog: str = "NOT_SURE"
    karnofsky: str = "NOT_SURE"


class ExtractionResponse(BaseModel):
    record: Dict[str, Any]
    warnings: List[str] = []
    stats: Dict[str, int] = {}


class HealthResponse(BaseModel):
    status: str
    profiles_loaded: int
    timestamp: str


class ProfileSummary(BaseModel):
    """Member code counts per canonical system for one profile."""
    name: str
    systems: Dict[str, int]
