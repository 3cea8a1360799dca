"""
Tests for the profile repository.
"""
import json

import pytest

from mcode_engine import Coding, ProfileRepository, ProfileTableError
from mcode_engine import profiles as profiles_module
from tests.factories import ajcc, loinc, rxnorm, snomed


class TestMembership:
    """profiles_contain_code / code_is_in_sheet / code_is_not_in_sheet"""

    def test_member_code(self, tiny_repository):
        assert tiny_repository.code_is_in_sheet(snomed("783541009"), "Cancer-Breast")

    def test_any_of_several_profiles(self, tiny_repository):
        assert tiny_repository.profiles_contain_code(ajcc("III"), "Cancer-Breast", "Stage-3")

    def test_system_must_match(self, tiny_repository):
        """Same code under a different system is not a member."""
        assert not tiny_repository.code_is_in_sheet(loinc("783541009"), "Cancer-Breast")

    def test_icd10_members(self, tiny_repository):
        coding = Coding(system="http://hl7.org/fhir/sid/icd-10-cm", code="C50.911")
        assert tiny_repository.code_is_in_sheet(coding, "Cancer-Breast")

    def test_unknown_profile_is_empty(self, tiny_repository):
        assert not tiny_repository.code_is_in_sheet(snomed("783541009"), "Cancer-Nonexistent")

    def test_unknown_system_is_empty(self, tiny_repository):
        coding = Coding(system="http://example.org", code="783541009")
        assert not tiny_repository.code_is_in_sheet(coding, "Cancer-Breast")

    def test_codeless_coding(self, tiny_repository):
        assert not tiny_repository.code_is_in_sheet(Coding(system="http://snomed.info/sct"), "Cancer-Breast")
        assert not tiny_repository.code_is_in_sheet(None, "Cancer-Breast")

    def test_not_in_sheet(self, tiny_repository):
        assert tiny_repository.code_is_not_in_sheet(snomed("363406005"), "Cancer-Breast")
        assert not tiny_repository.code_is_not_in_sheet(snomed("783541009"), "Cancer-Breast")
        assert not tiny_repository.code_is_not_in_sheet(Coding(), "Cancer-Breast")


class TestExtractCodeMappings:
    """Flattening a coding list into profile names"""

    def test_returns_each_profile_once_in_table_order(self, tiny_repository):
        codings = [ajcc("III"), snomed("783541009"), snomed("261640009")]
        assert tiny_repository.extract_code_mappings(codings) == ["Cancer-Breast", "Stage-3"]

    def test_no_matches(self, tiny_repository):
        assert tiny_repository.extract_code_mappings([snomed("1"), Coding()]) == []

    def test_medication_codes_map_to_several_profiles(self, repository):
        mapped = repository.extract_code_mappings([rxnorm("1371046")])
        assert "Treatment-T-DM1" in mapped
        assert "Treatment-anti-HER2" in mapped


class TestLoading:
    """Loading the table from JSON"""

    def test_packaged_table_has_every_rule_profile(self, repository):
        for name in (
            "Cancer-Breast", "Cancer-Invasive-Breast", "Cancer-Cervical", "Morphology-Invasive",
            "Metastasis-Brain", "Stage-0", "Stage-4", "Biomarker-HER2", "Biomarker-RB",
            "Treatment-SRS-Brain", "Treatment-Organ_Transplant", "Treatment-CDK4_6_Inhibtor",
            "Treatment-anti-PD1,PDL1,PDL2", "Treatment-Trastuz_and_Pertuz",
        ):
            assert name in repository

    def test_from_json(self, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps({"Stage-1": {"AJCC": ["I", "IA"]}}))
        repository = ProfileRepository.from_json(path)
        assert len(repository) == 1
        assert repository.summary() == {"Stage-1": {"AJCC": 2}}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ProfileTableError):
            ProfileRepository.from_json(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "profiles.json"
        path.write_text("{not json")
        with pytest.raises(ProfileTableError):
            ProfileRepository.from_json(path)

    @pytest.mark.parametrize("table", [
        ["Cancer-Breast"],
        {"Cancer-Breast": ["783541009"]},
        {"Cancer-Breast": {"SNOMED": "783541009"}},
    ])
    def test_badly_shaped_tables(self, tmp_path, table):
        path = tmp_path / "profiles.json"
        path.write_text(json.dumps(table))
        with pytest.raises(ProfileTableError):
            ProfileRepository.from_json(path)

    def test_table_is_read_only(self, tiny_repository):
        with pytest.raises(TypeError):
            tiny_repository._profiles["New"] = {}

    def test_global_repository_is_cached(self, monkeypatch):
        monkeypatch.setattr(profiles_module, "_repository", None)
        first = profiles_module.get_profile_repository()
        assert profiles_module.get_profile_repository() is first
        profiles_module.reset_profile_repository()
        assert profiles_module._repository is None
