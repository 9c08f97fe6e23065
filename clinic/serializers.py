"""
Response serializers — ORM 对象 / pipeline 结果 → JSON-able dict。

只负责「输出格式化」，不做任何解析或校验。
请求解析在 clinic/payload.py，provider 返回的解析在 clinic/intake/。
"""


def _iso(value):
    return value.isoformat() if value else None


def serialize_diagnosis_created(diagnosis):
    """Serialize diagnosis for 201 creation response."""
    return {
        'diagnosis_id': str(diagnosis.id),
        'status': 'pending',
        'message': 'Diagnosis request received. Analysis queued.',
        'created_at': diagnosis.created_at.isoformat(),
    }


def serialize_canonical(diagnosis):
    """Diagnosis 上已保存的 canonical 字段。"""
    return {
        'primary_diagnosis': diagnosis.primary_diagnosis,
        'differential_diagnoses': diagnosis.differential_diagnoses,
        'recommended_actions': diagnosis.recommended_actions,
        'treatment': diagnosis.treatment,
        'drug_suggestions': diagnosis.drug_suggestions,
        'inventory_drugs': diagnosis.inventory_drugs,
        'additional_therapy': diagnosis.additional_therapy,
        'improved_patient_history': diagnosis.improved_patient_history,
        'severity_level': diagnosis.severity_level,
        'confidence_score': diagnosis.confidence_score,
        'clinical_assessment': diagnosis.clinical_assessment,
        'monitoring_plan': diagnosis.monitoring_plan,
    }


def serialize_diagnosis_detail(diagnosis):
    """Serialize diagnosis detail with status-dependent fields."""
    response = {
        'diagnosis_id': str(diagnosis.id),
        'status': diagnosis.status,
        'complaint': diagnosis.complaint,
        'created_at': diagnosis.created_at.isoformat(),
        'updated_at': diagnosis.updated_at.isoformat(),
    }

    if diagnosis.status == 'processing':
        response['message'] = 'Diagnosis is being analyzed, please wait...'
    elif diagnosis.status == 'pending':
        response['message'] = 'Diagnosis is queued for analysis'
    elif diagnosis.status == 'completed':
        response['message'] = 'Diagnosis completed'
        response['completed_at'] = _iso(diagnosis.completed_at)
        response['llm_model'] = diagnosis.llm_model
        response['diagnosis'] = serialize_canonical(diagnosis)
        response['dispensing_url'] = f'/api/diagnoses/{diagnosis.id}/dispensing'
    elif diagnosis.status == 'failed':
        response['message'] = 'Diagnosis analysis failed'
        response['error'] = {
            'message': diagnosis.error_message,
            'retry_allowed': True,
        }

    return response


def serialize_dispensing_record(record):
    return {
        'id': str(record.id),
        'drug_name': record.drug_name,
        'quantity': record.quantity,
        'notes': record.notes,
        'inventory_drug_id': str(record.inventory_drug_id) if record.inventory_drug_id else None,
        'match_tier': record.match_tier,
        'dispensed_at': _iso(record.dispensed_at),
    }


def serialize_batch_result(batch, result):
    """record_diagnosis_dispensing() 的结果 → 201 body。失败的条目放在 errors 里。"""
    return {
        'batch_id': str(batch.id) if batch.id else None,
        'idempotency_key': batch.idempotency_key,
        'created': result.created,
        'failed': result.failed,
        'warnings': result.warnings,
        'records': [serialize_dispensing_record(r) for r in result.records],
        'errors': [
            {'drug_name': o.plan.drug_name, **o.error}
            for o in result.outcomes if not o.ok
        ],
    }
