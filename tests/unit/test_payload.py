"""
发往 provider 的请求：
- DiagnosisRequest.from_dict 校验
- detect_language
- build_provider_payload 字段
"""
from datetime import datetime, timezone

import pytest

from clinic.drugs.types import InventoryDrugRecord
from clinic.exceptions import ValidationError
from clinic.payload import (
    MINIMUM_ADDITIONAL_THERAPY,
    THERAPY_EXPLANATION_WITH_INVENTORY,
    THERAPY_EXPLANATION_WITHOUT_INVENTORY,
    DiagnosisRequest,
    build_provider_payload,
    detect_language,
)


class TestDetectLanguage:

    @pytest.mark.parametrize("text, expected", [
        ("Headache and fever for two days", "english"),
        ("Galvassāpes un drudzis", "latvian"),
        ("Stiprs klepus naktī", "latvian"),
        ("Sirds sitas ātri", "latvian"),
        ("Головная боль и температура", "russian"),
        ("Starke Kopfschmerzen und Fieber", "german"),
        ("Acute chest pain, high temperature", "english"),
        ("", "english"),
    ])
    def test_detect(self, text, expected):
        assert detect_language(text) == expected


class TestDiagnosisRequest:

    def test_minimal(self):
        request = DiagnosisRequest.from_dict({"owner_id": "doc-1", "complaint": " Cough "})
        assert request.owner_id == "doc-1"
        assert request.complaint == "Cough"
        assert request.patient_age is None
        assert request.patient_info == {}
        assert request.clinical_data == {}

    def test_optional_fields_collected(self):
        request = DiagnosisRequest.from_dict({
            "owner_id": "doc-1",
            "complaint": "Chest pain",
            "symptoms": ["shortness of breath", "sweating"],
            "age": "57",
            "gender": "male",
            "patient_name": "Janis",
            "date_of_birth": "1968-04-02",
            "heart_rate": 112,
            "pain_scale": 0,
            "allergies": "",
        })
        assert request.patient_age == 57
        assert request.patient_gender == "male"
        assert request.symptoms == "shortness of breath, sweating"
        assert request.patient_info == {"patient_name": "Janis", "date_of_birth": "1968-04-02"}
        assert request.clinical_data == {"heart_rate": 112, "pain_scale": 0}

    def test_errors_collected(self):
        with pytest.raises(ValidationError) as exc_info:
            DiagnosisRequest.from_dict({"complaint": "", "patient_age": "old"})
        fields = [e["field"] for e in exc_info.value.detail["errors"]]
        assert fields == ["owner_id", "complaint", "patient_age"]
        assert exc_info.value.http_status == 400

    def test_age_out_of_range(self):
        with pytest.raises(ValidationError):
            DiagnosisRequest.from_dict({"owner_id": "d", "complaint": "x", "patient_age": 200})

    def test_not_an_object(self):
        with pytest.raises(ValidationError):
            DiagnosisRequest.from_dict(["complaint"])


class TestBuildProviderPayload:

    NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def _request(self, **kwargs):
        data = {"owner_id": "doc-1", "complaint": "Headache", "symptoms": "fever", "patient_age": 30}
        data.update(kwargs)
        return DiagnosisRequest.from_dict(data)

    def test_without_inventory(self):
        payload = build_provider_payload(self._request(), now=self.NOW)

        assert payload["complaint"] == "Headache"
        assert payload["age"] == 30
        assert payload["symptoms"] == ["fever"]
        assert payload["timestamp"] == "2024-05-01T12:00:00+00:00"
        assert payload["detected_language"] == "english"
        assert payload["user_drug_inventory"] is None
        assert payload["has_drug_inventory"] is False
        assert payload["request_comprehensive_therapy"] is True
        assert payload["minimum_additional_therapy_count"] == MINIMUM_ADDITIONAL_THERAPY
        assert payload["include_alternative_treatments"] is True
        assert payload["include_otc_medications"] is True
        assert payload["therapy_explanation"] == THERAPY_EXPLANATION_WITHOUT_INVENTORY

    def test_with_inventory(self):
        inventory = [
            InventoryDrugRecord(id="1", drug_name="Ibuprofen 400mg", stock_quantity=10, dosage_form="tablet"),
            InventoryDrugRecord(id="2", drug_name="Loratadine", stock_quantity=0),
        ]
        payload = build_provider_payload(self._request(), inventory=inventory, now=self.NOW)

        assert payload["has_drug_inventory"] is True
        assert payload["user_drug_inventory"].startswith("Drug: Ibuprofen 400mg,")
        assert "Loratadine" not in payload["user_drug_inventory"]
        assert payload["therapy_explanation"] == THERAPY_EXPLANATION_WITH_INVENTORY

    def test_inventory_limit(self):
        inventory = [InventoryDrugRecord(id=str(i), drug_name=f"Drug {i}", stock_quantity=1) for i in range(5)]
        payload = build_provider_payload(self._request(), inventory=inventory, limit=2)
        assert len(payload["user_drug_inventory"].split("\n")) == 2

    def test_optional_fields_only_when_present(self):
        payload = build_provider_payload(self._request(patient_surname="Berzins", temperature=38.2))
        assert payload["patient_surname"] == "Berzins"
        assert payload["temperature"] == 38.2
        assert "patient_name" not in payload
        assert "allergies" not in payload

    def test_no_symptoms(self):
        payload = build_provider_payload(self._request(symptoms=""))
        assert payload["symptoms"] is None
