"""
Celery task analyze_diagnosis（直接调用，不经过 broker）：
- 成功：provider 返回 → 解析 → 写回诊断
- 失败且还能重试：状态回到 pending，异常往上抛
- 重试耗尽：标记 failed，不写任何诊断字段
"""
import pytest
from unittest.mock import patch

from clinic.llm.types import ProviderResponse
from clinic.tasks import analyze_diagnosis
from tests.conftest import DiagnosisFactory, InventoryDrugFactory


@pytest.mark.django_db
class TestAnalyzeDiagnosis:

    @patch('clinic.llm.factory.get_provider_service')
    def test_success(self, mock_factory, provider_text_response):
        InventoryDrugFactory(drug_name='Ibuprofen 400mg')
        diagnosis = DiagnosisFactory()
        mock_factory.return_value.analyze.return_value = ProviderResponse(
            raw=provider_text_response, model='claude-sonnet-4-20250514',
        )

        analyze_diagnosis(str(diagnosis.id))

        diagnosis.refresh_from_db()
        assert diagnosis.status == 'completed'
        assert diagnosis.primary_diagnosis == 'Tension-type headache'
        assert diagnosis.llm_model == 'claude-sonnet-4-20250514'

        payload = mock_factory.return_value.analyze.call_args[0][0]
        assert payload['complaint'] == 'Headache and fever'
        assert payload['has_drug_inventory'] is True

    @patch('clinic.llm.factory.get_provider_service')
    def test_failure_resets_to_pending_for_retry(self, mock_factory):
        diagnosis = DiagnosisFactory()
        mock_factory.return_value.analyze.side_effect = TimeoutError('provider timed out')

        with pytest.raises(TimeoutError):
            analyze_diagnosis(str(diagnosis.id))

        diagnosis.refresh_from_db()
        assert diagnosis.status == 'pending'
        assert diagnosis.primary_diagnosis == ''

    @patch('clinic.llm.factory.get_provider_service')
    def test_retries_exhausted_marks_failed(self, mock_factory):
        diagnosis = DiagnosisFactory()
        mock_factory.return_value.analyze.return_value = ProviderResponse(
            raw={'text': 'I am unable to help.'}, model='gpt-4o',
        )

        with patch.object(analyze_diagnosis, 'max_retries', 0):
            analyze_diagnosis(str(diagnosis.id))

        diagnosis.refresh_from_db()
        assert diagnosis.status == 'failed'
        assert 'No JSON found' in diagnosis.error_message
        assert diagnosis.primary_diagnosis == ''
        assert diagnosis.completed_at is None

    @patch('clinic.llm.factory.get_provider_service')
    def test_missing_diagnosis_skipped(self, mock_factory):
        analyze_diagnosis('00000000-0000-0000-0000-000000000000')
        mock_factory.assert_not_called()
