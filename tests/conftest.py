"""
Shared fixtures for all tests.

factory-boy factories live here so both unit/ and integration/ can import them.
"""
import pytest
from django.test import Client

import factory
from clinic.models import DrugCategory, InventoryDrug, Diagnosis, DispensingRecord


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class DrugCategoryFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = DrugCategory

    name = factory.Sequence(lambda n: f'Category {n}')


class InventoryDrugFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = InventoryDrug

    owner_id = 'doctor-1'
    drug_name = factory.Sequence(lambda n: f'Drug {n} 10mg')
    generic_name = ''
    dosage_form = 'tablet'
    strength = '10mg'
    stock_quantity = 50
    is_active = True


class DiagnosisFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Diagnosis

    owner_id = 'doctor-1'
    complaint = 'Headache and fever'
    symptoms = 'fever'
    patient_age = 34
    patient_gender = 'female'
    status = 'pending'


class CompletedDiagnosisFactory(DiagnosisFactory):
    status = 'completed'
    primary_diagnosis = 'Tension-type headache'
    severity_level = 'moderate'
    confidence_score = 0.85
    llm_model = 'claude-sonnet-4-20250514'
    inventory_drugs = factory.LazyFunction(lambda: [
        {'drug_name': 'Ibuprofen 400mg', 'dosage': '1 tablet every 8 hours', 'duration': '5 days'},
    ])


class DispensingRecordFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = DispensingRecord

    diagnosis = factory.SubFactory(CompletedDiagnosisFactory)
    inventory_drug = factory.SubFactory(InventoryDrugFactory)
    drug_name = factory.SelfAttribute('inventory_drug.drug_name')
    quantity = 2
    stock_deducted = factory.SelfAttribute('quantity')
    notes = 'Prescribed for: Headache and fever. Duration: 5 days'


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def api_client():
    """Django test client for integration tests."""
    return Client()


@pytest.fixture
def sample_diagnosis_payload():
    """Minimal valid payload for POST /api/diagnoses/."""
    return {
        'owner_id': 'doctor-1',
        'complaint': 'Severe headache since yesterday',
        'symptoms': 'fever, nausea',
        'patient_age': 42,
        'patient_gender': 'male',
    }


@pytest.fixture
def provider_text_response():
    """n8n 当前的 text 形状，JSON 在 markdown 代码块里。"""
    return {
        'text': (
            'Here is the assessment:\n```json\n'
            '{"primary_diagnosis": "Tension-type headache", '
            '"differential_diagnoses": ["Migraine", "Sinusitis"], '
            '"recommended_actions": ["Rest", "Hydration"], '
            '"treatment": ["Analgesics"], '
            '"inventory_drugs": [{"drug_name": "Ibuprofen 400mg", "dosage": "2 tablets", "duration": "3 days"}], '
            '"severity_level": "moderate", "confidence_score": 87}\n```'
        ),
    }
