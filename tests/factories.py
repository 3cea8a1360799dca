"""
Builders for codings and mCODE FHIR resources used across the tests.
"""

from typing import Any, Dict, List, Optional

from mcode_engine import Coding, Quantity, Ratio, VariantComponent

SNOMED = "http://snomed.info/sct"
LOINC = "http://loinc.org"
RXNORM = "http://www.nlm.nih.gov/research/umls/rxnorm"
AJCC = "http://cancerstaging.org"
HGNC = "http://www.genenames.org"
ICD10 = "http://hl7.org/fhir/sid/icd-10-cm"
NIH = "http://ncit.nci.nih.gov"
HL7_INTERPRETATION = "http://hl7.org/fhir/R4/valueset-observation-interpretation.html"
CONDITION_CLINICAL = "http://terminology.hl7.org/CodeSystem/condition-clinical"

MCODE = "http://hl7.org/fhir/us/mcode/StructureDefinition/"


def snomed(code: str) -> Coding:
    return Coding(system=SNOMED, code=code)


def loinc(code: str) -> Coding:
    return Coding(system=LOINC, code=code)


def rxnorm(code: str) -> Coding:
    return Coding(system=RXNORM, code=code)


def ajcc(code: str) -> Coding:
    return Coding(system=AJCC, code=code)


def hgnc(code: str) -> Coding:
    return Coding(system=HGNC, code=code)


def hl7(code: str) -> Coding:
    return Coding(system=HL7_INTERPRETATION, code=code)


def status(code: str) -> Coding:
    return Coding(system=CONDITION_CLINICAL, code=code)


def quantity(value, comparator: Optional[str] = None, unit: Optional[str] = None) -> Quantity:
    return Quantity(value=value, comparator=comparator, code=unit)


def ratio(numerator, denominator, comparator: Optional[str] = None) -> Ratio:
    return Ratio(
        numerator=Quantity(value=numerator, comparator=comparator),
        denominator=Quantity(value=denominator, comparator=comparator),
    )


def gene_component(hgnc_code: str, interpretation: Optional[List[Coding]] = None) -> VariantComponent:
    return VariantComponent(value_codeable_concept=[hgnc(hgnc_code)], interpretation=interpretation or [])


def source_class_component(loinc_code: str) -> VariantComponent:
    return VariantComponent(value_codeable_concept=[loinc(loinc_code)])


# ==============================================================================
# FHIR RESOURCE DICTS
# ==============================================================================

def _concept(system: str, code: str, display: Optional[str] = None) -> Dict[str, Any]:
    coding = {"system": system, "code": code}
    if display:
        coding["display"] = display
    return {"coding": [coding]}


def _meta(profile: str) -> Dict[str, Any]:
    return {"profile": [MCODE + profile]}


def bundle(*resources: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "resourceType": "Bundle",
        "id": "test-bundle",
        "type": "collection",
        "entry": [{"fullUrl": f"urn:uuid:{i}", "resource": r} for i, r in enumerate(resources)],
    }


def primary_condition(code: str, clinical_status: Optional[str] = None, histology: Optional[str] = None,
                      system: str = SNOMED) -> Dict[str, Any]:
    resource = {
        "resourceType": "Condition",
        "id": f"primary-{code}",
        "meta": _meta("mcode-primary-cancer-condition"),
        "code": _concept(system, code),
    }
    if clinical_status:
        resource["clinicalStatus"] = _concept(CONDITION_CLINICAL, clinical_status)
    if histology:
        resource["extension"] = [{
            "url": MCODE + "mcode-histology-morphology-behavior",
            "valueCodeableConcept": _concept(SNOMED, histology),
        }]
    return resource


def secondary_condition(code: str, clinical_status: Optional[str] = None,
                        body_site: Optional[str] = None) -> Dict[str, Any]:
    resource = {
        "resourceType": "Condition",
        "id": f"secondary-{code}",
        "meta": _meta("mcode-secondary-cancer-condition"),
        "code": _concept(SNOMED, code),
    }
    if clinical_status:
        resource["clinicalStatus"] = _concept(CONDITION_CLINICAL, clinical_status)
    if body_site:
        resource["bodySite"] = [_concept(SNOMED, body_site)]
    return resource


def stage_group(code: str, pathological: bool = False, system: str = SNOMED) -> Dict[str, Any]:
    profile = "mcode-tnm-pathological-stage-group" if pathological else "mcode-tnm-clinical-stage-group"
    return {
        "resourceType": "Observation",
        "meta": _meta(profile),
        "code": _concept(LOINC, "21908-9"),
        "valueCodeableConcept": _concept(system, code),
    }


def tumor_marker(code: str, **values: Any) -> Dict[str, Any]:
    resource = {
        "resourceType": "Observation",
        "meta": _meta("mcode-tumor-marker"),
        "code": _concept(LOINC, code),
    }
    resource.update(values)
    return resource


def genetic_variant(gene: str, source_class: Optional[str] = None, value: Optional[Dict] = None,
                    interpretation: Optional[List[Dict]] = None) -> Dict[str, Any]:
    components = [{
        "code": _concept(LOINC, "48018-6"),
        "valueCodeableConcept": _concept(HGNC, gene),
    }]
    if source_class:
        components.append({
            "code": _concept(LOINC, "48002-0"),
            "valueCodeableConcept": _concept(LOINC, source_class),
        })
    resource = {
        "resourceType": "Observation",
        "meta": _meta("mcode-cancer-genetic-variant"),
        "code": _concept(LOINC, "69548-6"),
        "component": components,
    }
    if value:
        resource["valueCodeableConcept"] = value
    if interpretation:
        resource["interpretation"] = interpretation
    return resource


def radiation_procedure(code: str, body_site: Optional[str] = None) -> Dict[str, Any]:
    resource = {
        "resourceType": "Procedure",
        "meta": _meta("mcode-cancer-related-radiation-procedure"),
        "code": _concept(SNOMED, code),
    }
    if body_site:
        resource["bodySite"] = [_concept(SNOMED, body_site)]
    return resource


def surgical_procedure(code: str) -> Dict[str, Any]:
    return {
        "resourceType": "Procedure",
        "meta": _meta("mcode-cancer-related-surgical-procedure"),
        "code": _concept(SNOMED, code),
    }


def medication_statement(code: str, system: str = RXNORM) -> Dict[str, Any]:
    return {
        "resourceType": "MedicationStatement",
        "meta": _meta("mcode-cancer-related-medication-statement"),
        "medicationCodeableConcept": _concept(system, code),
    }


def cancer_patient(birth_date: str) -> Dict[str, Any]:
    return {
        "resourceType": "Patient",
        "id": "patient-1",
        "meta": _meta("mcode-cancer-patient"),
        "birthDate": birth_date,
    }


def performance_status(score: Any, karnofsky: bool = False) -> Dict[str, Any]:
    profile = "mcode-karnofsky-performance-status" if karnofsky else "mcode-ecog-performance-status"
    return {
        "resourceType": "Observation",
        "meta": _meta(profile),
        "code": _concept(LOINC, "89243-0" if karnofsky else "89247-1"),
        "valueInteger": score,
    }
