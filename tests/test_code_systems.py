"""
Tests for code-system normalization and Coding identity.
"""
import pytest

from mcode_engine import Coding, CodeSystem, normalize_code_system


class TestNormalizeCodeSystem:
    """URI -> canonical code-system tag"""

    @pytest.mark.parametrize("uri, expected", [
        ("http://snomed.info/sct", "SNOMED"),
        ("HTTP://SNOMED.INFO/SCT", "SNOMED"),
        ("http://www.nlm.nih.gov/research/umls/rxnorm", "RxNorm"),
        ("http://hl7.org/fhir/sid/icd-10-cm", "ICD-10"),
        ("http://cancerstaging.org", "AJCC"),
        ("AJCC", "AJCC"),
        ("http://loinc.org", "LOINC"),
        (" http://loinc.info/sct", "LOINC"),
        ("http://ncit.nci.nih.gov", "NIH"),
        ("http://www.genenames.org", "HGNC"),
        ("hgnc", "HGNC"),
        ("http://hl7.org/fhir/R4/valueset-observation-interpretation.html", "HL7"),
        ("http://terminology.hl7.org/CodeSystem/v3-ObservationInterpretation", "HL7"),
    ])
    def test_known_systems(self, uri, expected):
        assert normalize_code_system(uri) == expected

    def test_rxnorm_is_not_read_as_nih(self):
        """RxNorm is hosted on nlm.nih.gov but must stay RxNorm."""
        assert normalize_code_system("http://www.nlm.nih.gov/research/umls/rxnorm") == CodeSystem.RXNORM.value

    @pytest.mark.parametrize("uri", [
        "", None, "http://example.org/codes",
        "http://terminology.hl7.org/CodeSystem/condition-clinical",
    ])
    def test_unknown_systems_normalize_to_empty(self, uri):
        assert normalize_code_system(uri) == ""

    def test_non_string_input_is_empty(self):
        assert normalize_code_system(42) == ""


class TestCoding:
    """Coding construction and identity"""

    def test_from_dict_stringifies_codes(self):
        coding = Coding.from_dict({"system": "http://snomed.info/sct", "code": 783541009})
        assert coding.code == "783541009"
        assert coding.canonical_system == "SNOMED"

    def test_identity_uses_canonical_system(self):
        a = Coding(system="http://snomed.info/sct", code="123")
        b = Coding(system="http://SNOMED.info/sct/", code="123", display="other text")
        assert a.identity == b.identity

    def test_identity_keeps_unknown_systems_apart(self):
        a = Coding(system="http://example.org/a", code="1")
        b = Coding(system="http://example.org/b", code="1")
        assert a.identity != b.identity

    def test_matches(self):
        coding = Coding(system="http://snomed.info/sct", code="10828004")
        assert coding.matches(CodeSystem.SNOMED, "10828004")
        assert not coding.matches(CodeSystem.LOINC, "10828004")
        assert not coding.matches(CodeSystem.SNOMED, "260385009")

    def test_to_dict_drops_missing_fields(self):
        assert Coding(code="X").to_dict() == {"code": "X"}
