"""
Integration tests — 真实 HTTP 请求打到 Django View，验证完整流程。

用 Django test Client，走完：
  HTTP Request → urls.py → View → Service → ORM → DB → Response

每个测试验证：status_code + response body 的统一格式。
Celery task 被 mock 掉，不实际调 LLM。
"""
import json
import pytest
from unittest.mock import patch

from clinic.models import Diagnosis, DispensingBatch, DispensingRecord
from tests.conftest import (
    CompletedDiagnosisFactory,
    DiagnosisFactory,
    DispensingRecordFactory,
    InventoryDrugFactory,
)


# -------------------------------------------------------------------
# Helper
# -------------------------------------------------------------------

def post_json(api_client, url, payload, **kwargs):
    """快捷方式：POST JSON，返回 (status_code, body_dict)。"""
    response = api_client.post(
        url,
        data=json.dumps(payload),
        content_type='application/json',
        **kwargs,
    )
    return response.status_code, json.loads(response.content)


# ===================================================================
# POST /api/diagnoses/
# ===================================================================

@pytest.mark.django_db
class TestCreateDiagnosis:

    @patch('clinic.tasks.analyze_diagnosis')
    def test_create_success(self, mock_task, api_client, sample_diagnosis_payload):
        status, body = post_json(api_client, '/api/diagnoses/', sample_diagnosis_payload)

        assert status == 201
        assert body['status'] == 'pending'
        assert 'type' not in body

        diagnosis = Diagnosis.objects.get(id=body['diagnosis_id'])
        assert diagnosis.complaint == 'Severe headache since yesterday'
        assert diagnosis.patient_age == 42
        mock_task.delay.assert_called_once_with(body['diagnosis_id'])

    @patch('clinic.tasks.analyze_diagnosis')
    def test_extra_fields_kept(self, mock_task, api_client, sample_diagnosis_payload):
        sample_diagnosis_payload.update({'patient_name': 'Janis', 'allergies': 'penicillin', 'temperature': 38.2})
        status, body = post_json(api_client, '/api/diagnoses/', sample_diagnosis_payload)

        assert status == 201
        diagnosis = Diagnosis.objects.get(id=body['diagnosis_id'])
        assert diagnosis.patient_info == {'patient_name': 'Janis'}
        assert diagnosis.clinical_data == {'allergies': 'penicillin', 'temperature': 38.2}

    @patch('clinic.tasks.analyze_diagnosis')
    def test_missing_complaint(self, mock_task, api_client, sample_diagnosis_payload):
        del sample_diagnosis_payload['complaint']
        status, body = post_json(api_client, '/api/diagnoses/', sample_diagnosis_payload)

        assert status == 400
        assert body['type'] == 'validation_error'
        assert body['code'] == 'VALIDATION_ERROR'
        assert Diagnosis.objects.count() == 0
        mock_task.delay.assert_not_called()


# ===================================================================
# GET /api/diagnoses/<id>/
# ===================================================================

@pytest.mark.django_db
class TestGetDiagnosis:

    def test_completed(self, api_client):
        diagnosis = CompletedDiagnosisFactory()
        response = api_client.get(f'/api/diagnoses/{diagnosis.id}/')

        assert response.status_code == 200
        body = json.loads(response.content)
        assert body['status'] == 'completed'
        assert body['diagnosis']['primary_diagnosis'] == 'Tension-type headache'

    def test_not_found(self, api_client):
        response = api_client.get('/api/diagnoses/00000000-0000-0000-0000-000000000000/')

        assert response.status_code == 404
        body = json.loads(response.content)
        assert body['type'] == 'block'
        assert body['code'] == 'DIAGNOSIS_NOT_FOUND'


# ===================================================================
# POST /api/diagnoses/<id>/ingest
# ===================================================================

@pytest.mark.django_db
class TestIngestCallback:

    def test_text_shape(self, api_client, provider_text_response):
        diagnosis = DiagnosisFactory(status='processing')
        status, body = post_json(api_client, f'/api/diagnoses/{diagnosis.id}/ingest', provider_text_response)

        assert status == 200
        assert body['primary_diagnosis'] == 'Tension-type headache'
        assert body['confidence_score'] == 0.87
        diagnosis.refresh_from_db()
        assert diagnosis.status == 'completed'

    def test_list_shape(self, api_client):
        diagnosis = DiagnosisFactory()
        payload = [{'primary_diagnosis': 'Acute bronchitis', 'severity_level': 'mild'}]
        status, body = post_json(api_client, f'/api/diagnoses/{diagnosis.id}/ingest', payload)

        assert status == 200
        assert body['primary_diagnosis'] == 'Acute bronchitis'

    def test_unrecoverable_text(self, api_client):
        diagnosis = DiagnosisFactory(status='processing')
        status, body = post_json(
            api_client, f'/api/diagnoses/{diagnosis.id}/ingest', {'text': 'Sorry, I cannot help.'},
        )

        assert status == 502
        assert body['type'] == 'ingestion_error'
        assert body['code'] == 'JSON_RECOVERY_FAILURE'

        diagnosis.refresh_from_db()
        assert diagnosis.status == 'failed'
        assert diagnosis.error_message.startswith('[JSON_RECOVERY_FAILURE]')
        assert diagnosis.primary_diagnosis == ''


# ===================================================================
# POST /api/diagnoses/<id>/dispensing
# ===================================================================

@pytest.mark.django_db
class TestRecordDispensing:

    def test_records_inventory_drugs(self, api_client):
        drug = InventoryDrugFactory(drug_name='Ibuprofen 400mg', stock_quantity=30)
        diagnosis = CompletedDiagnosisFactory()

        status, body = post_json(api_client, f'/api/diagnoses/{diagnosis.id}/dispensing', {})

        assert status == 201
        assert body['created'] == 1
        assert body['failed'] == 0
        assert body['idempotency_key'] == f'diagnosis:{diagnosis.id}'
        assert body['records'][0]['inventory_drug_id'] == str(drug.id)
        assert body['records'][0]['match_tier'] == 'exact'

        drug.refresh_from_db()
        assert drug.stock_quantity == 29

    def test_second_request_blocked(self, api_client):
        InventoryDrugFactory(drug_name='Ibuprofen 400mg')
        diagnosis = CompletedDiagnosisFactory()
        url = f'/api/diagnoses/{diagnosis.id}/dispensing'

        post_json(api_client, url, {})
        status, body = post_json(api_client, url, {})

        assert status == 409
        assert body['code'] == 'DISPENSING_ALREADY_RECORDED'
        assert DispensingRecord.objects.count() == 1
        assert DispensingBatch.objects.count() == 1

    def test_idempotency_key_header(self, api_client):
        InventoryDrugFactory(drug_name='Ibuprofen 400mg')
        diagnosis = CompletedDiagnosisFactory()
        url = f'/api/diagnoses/{diagnosis.id}/dispensing'

        status, body = post_json(api_client, url, {}, HTTP_IDEMPOTENCY_KEY='visit-1')
        assert status == 201
        assert body['idempotency_key'] == 'visit-1'

        status, _ = post_json(api_client, url, {}, HTTP_IDEMPOTENCY_KEY='visit-2')
        assert status == 201
        assert DispensingRecord.objects.count() == 2

    def test_manual_drugs_with_unmatched_entry(self, api_client):
        InventoryDrugFactory(drug_name='Paracetamol 500mg')
        diagnosis = CompletedDiagnosisFactory()

        status, body = post_json(api_client, f'/api/diagnoses/{diagnosis.id}/dispensing', {
            'drugs': [
                {'drug_name': 'paracetamol 500 mg', 'dosage': '2 tablets'},
                {'drug_name': 'Unobtainium 5mg'},
            ],
        })

        assert status == 201
        assert body['created'] == 2
        assert [w['code'] for w in body['warnings']] == ['MATCH_NOT_FOUND']
        assert body['records'][1]['inventory_drug_id'] is None

    def test_not_ready(self, api_client):
        diagnosis = DiagnosisFactory(status='processing')
        status, body = post_json(api_client, f'/api/diagnoses/{diagnosis.id}/dispensing', {})

        assert status == 400
        assert body['code'] == 'DIAGNOSIS_NOT_READY'
        assert body['detail']['current_status'] == 'processing'

    def test_nothing_to_dispense(self, api_client):
        diagnosis = CompletedDiagnosisFactory(inventory_drugs=[])
        status, body = post_json(api_client, f'/api/diagnoses/{diagnosis.id}/dispensing', {})

        assert status == 400
        assert body['code'] == 'NO_DRUGS_TO_DISPENSE'
        assert DispensingBatch.objects.count() == 0


# ===================================================================
# DELETE /api/dispensing/<id>/
# ===================================================================

@pytest.mark.django_db
class TestDeleteDispensing:

    def test_delete_restores_stock(self, api_client):
        drug = InventoryDrugFactory(stock_quantity=10)
        record = DispensingRecordFactory(inventory_drug=drug, quantity=3)

        response = api_client.delete(f'/api/dispensing/{record.id}/')

        assert response.status_code == 204
        drug.refresh_from_db()
        assert drug.stock_quantity == 13

    def test_not_found(self, api_client):
        response = api_client.delete('/api/dispensing/00000000-0000-0000-0000-000000000000/')

        assert response.status_code == 404
        assert json.loads(response.content)['code'] == 'DISPENSING_RECORD_NOT_FOUND'
