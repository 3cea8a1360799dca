"""
Tests for the classification engine: one record in, one label record out.
"""
import pytest

from mcode_engine import (
    ClassificationEngine, ClassificationLabels, EngineSettings, ExtractedRecordBuilder,
    NOT_SURE, classify_bundle, classify_record,
)
from tests.factories import (
    HL7_INTERPRETATION, SNOMED, bundle, cancer_patient, medication_statement,
    performance_status, primary_condition, radiation_procedure, secondary_condition,
    snomed, stage_group, surgical_procedure, tumor_marker,
)


@pytest.fixture
def patient_bundle():
    return bundle(
        cancer_patient("1965-03-01"),
        primary_condition("783541009", "active", histology="734075007"),
        secondary_condition("285641009", "active"),
        stage_group("261640009"),
        tumor_marker("32996-1", valueCodeableConcept={"coding": [{"system": SNOMED, "code": "260385009"}]}),
        tumor_marker("85337-4", valueQuantity={"value": 80, "code": "%"}),
        tumor_marker("85339-0", interpretation=[{"coding": [{"system": HL7_INTERPRETATION, "code": "POS"}]}]),
        radiation_procedure("473237008"),
        surgical_procedure("446103006"),
        medication_statement("1601374"),
        medication_statement("72965"),
        performance_status(1),
        performance_status(90, karnofsky=True),
    )


class TestClassificationEngine:

    def test_full_bundle(self, patient_bundle, repository, settings, reference_date):
        engine = ClassificationEngine.from_bundle(
            patient_bundle, repository=repository, settings=settings, reference_date=reference_date
        )
        labels = engine.classify()
        assert labels.primary_cancer == "BREAST_CANCER"
        assert labels.secondary_cancer == "INVASIVE_BREAST_CANCER_AND_METASTATIC"
        assert labels.histology_morphology == "INVASIVE_CARCINOMA"
        assert labels.stage == ["INVASIVE_BREAST_CANCER_AND_LOCALLY_ADVANCED", "THREE"]
        assert labels.age == "18_OR_OVER"
        assert labels.tumor_marker == "ER_PLUS_PR_PLUS_HER2_MINUS"
        assert labels.radiation_procedure == "SRS"
        assert labels.surgical_procedure == "RESECTION"
        assert labels.medications == [
            "CDK4_6_MTOR_AND_ENDOCRINE", "CDK4_6_INHIBITOR", "CONCURRENT_ENDOCRINE_THERAPY"
        ]
        assert labels.ecog == "ONE"
        assert labels.karnofsky == "NINETY"
        assert engine.extraction_warnings == []

    def test_empty_record_is_all_not_sure(self, repository, settings):
        labels = ClassificationEngine(ExtractedRecordBuilder().build(), repository, settings).classify()
        assert labels == ClassificationLabels()
        assert labels.stage == [NOT_SURE, NOT_SURE]
        assert labels.medications == [NOT_SURE, NOT_SURE, NOT_SURE]

    def test_classify_is_repeatable(self, patient_bundle, repository, settings, reference_date):
        engine = ClassificationEngine.from_bundle(
            patient_bundle, repository=repository, settings=settings, reference_date=reference_date
        )
        first = engine.classify()
        assert engine.classify() == first
        assert engine.stage() == first.stage

    def test_dimensions_are_independent_calls(self, repository, settings):
        record = ExtractedRecordBuilder().add_surgical_procedure([snomed("234319005")]).build()
        engine = ClassificationEngine(record, repository, settings)
        assert engine.surgical_procedure() == "SPLENECTOMY"
        assert engine.primary_cancer() == NOT_SURE

    @pytest.mark.parametrize("document", [None, [], "Bundle", 42])
    def test_from_bundle_rejects_non_mappings(self, document, repository, settings):
        with pytest.raises(TypeError):
            ClassificationEngine.from_bundle(document, repository=repository, settings=settings)

    def test_extraction_warnings_are_kept(self, repository, settings):
        data = bundle(surgical_procedure("446103006"))
        data["entry"].append({"fullUrl": "urn:uuid:empty"})
        engine = ClassificationEngine.from_bundle(data, repository=repository, settings=settings)
        assert len(engine.extraction_warnings) == 1
        assert engine.classify().surgical_procedure == "RESECTION"

    def test_settings_flow_to_classifiers(self, repository):
        data = bundle(
            primary_condition("363406005", "current"),
            stage_group("261645004"),
        )
        settings = EngineSettings(
            log_file=None, active_status_codes=("current",), emit_non_invasive_stage=True
        )
        labels = ClassificationEngine.from_bundle(data, repository=repository, settings=settings).classify()
        assert labels.primary_cancer == "OTHER_MALIGNANCY_EXCEPT_SKIN_OR_CERVICAL"
        assert labels.stage == ["NON_INVASIVE", "ZERO"]


class TestConvenienceFunctions:

    def test_classify_bundle(self, patient_bundle, repository, settings):
        labels = classify_bundle(patient_bundle, repository=repository, settings=settings)
        assert labels.tumor_marker == "ER_PLUS_PR_PLUS_HER2_MINUS"

    def test_classify_record(self, repository, settings):
        record = ExtractedRecordBuilder().set_ecog_score(4).build()
        assert classify_record(record, repository=repository, settings=settings).ecog == "FOUR"

    def test_default_repository(self, settings):
        record = ExtractedRecordBuilder().add_radiation_procedure([snomed("473237008")]).build()
        assert ClassificationEngine(record, settings=settings).radiation_procedure() == "SRS"
