import functools
import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from .dispensing import DispensingContext, plan_dispensings, record_dispensings
from .drugs.matching import reconcile
from .drugs.types import PrescribedDrugEntry
from .drugs.vocabulary import DEFAULT_VOCABULARY, load_vocabulary
from .exceptions import BlockError, IngestionError, ValidationError
from .intake import ingest_provider_response
from .intake.fields import parse_drug_entries
from .intake.types import CanonicalDiagnosis
from .models import Diagnosis, DispensingBatch, InventoryDrug
from .payload import DiagnosisRequest, build_provider_payload
from .store import DjangoDispensingStore

logger = logging.getLogger(__name__)

__all__ = [
    'list_inventory',
    'get_vocabulary',
    'create_diagnosis',
    'build_diagnosis_payload',
    'ingest_provider_response',
    'apply_canonical_diagnosis',
    'ingest_diagnosis_callback',
    'get_diagnosis_detail',
    'record_diagnosis_dispensing',
    'delete_dispensing_record',
]


def list_inventory(owner_id):
    """执业者当前的有效库存快照（InventoryDrugRecord 列表）。"""
    drugs = (
        InventoryDrug.objects
        .filter(owner_id=owner_id, is_active=True)
        .select_related('category')
        .order_by('drug_name')
    )
    return [drug.to_record() for drug in drugs]


@functools.lru_cache(maxsize=None)
def get_vocabulary():
    """settings.DRUG_VOCABULARY_FILE 指定了就用文件里的关键词表，否则用内置的。"""
    path = getattr(settings, 'DRUG_VOCABULARY_FILE', '')
    if not path:
        return DEFAULT_VOCABULARY
    logger.info("[Vocabulary] 从 %s 加载关键词表", path)
    return load_vocabulary(path)


def create_diagnosis(data):
    """
    校验请求 → 写入 pending 的 Diagnosis → 提交 Celery 任务。
    Raises ValidationError — View 层不需要处理，exception_handler 统一兜底。
    """
    request = DiagnosisRequest.from_dict(data)

    diagnosis = Diagnosis.objects.create(
        owner_id=request.owner_id,
        complaint=request.complaint,
        symptoms=request.symptoms,
        patient_age=request.patient_age,
        patient_gender=request.patient_gender,
        patient_info=request.patient_info,
        clinical_data=request.clinical_data,
        status='pending',
    )
    logger.info("[Diagnosis] 创建 diagnosis_id=%s owner=%s", diagnosis.id, diagnosis.owner_id)

    from .tasks import analyze_diagnosis
    analyze_diagnosis.delay(str(diagnosis.id))

    return diagnosis


def build_diagnosis_payload(diagnosis):
    """已保存的 Diagnosis → provider 请求体（带库存摘要）。"""
    request = DiagnosisRequest(
        owner_id=diagnosis.owner_id,
        complaint=diagnosis.complaint,
        symptoms=diagnosis.symptoms,
        patient_age=diagnosis.patient_age,
        patient_gender=diagnosis.patient_gender,
        patient_info=dict(diagnosis.patient_info or {}),
        clinical_data=dict(diagnosis.clinical_data or {}),
    )
    return build_provider_payload(
        request,
        inventory=list_inventory(diagnosis.owner_id),
        vocabulary=get_vocabulary(),
        limit=getattr(settings, 'RELEVANCE_MAX_DRUGS', 200),
    )


def apply_canonical_diagnosis(diagnosis, canonical, model=None):
    """把解析好的 CanonicalDiagnosis 写回 Diagnosis，标记 completed。"""
    data = canonical.to_dict()
    for key in (
        'primary_diagnosis', 'differential_diagnoses', 'recommended_actions', 'treatment',
        'drug_suggestions', 'inventory_drugs', 'additional_therapy', 'improved_patient_history',
        'severity_level', 'confidence_score', 'clinical_assessment', 'monitoring_plan',
    ):
        setattr(diagnosis, key, data[key])

    diagnosis.llm_model = model
    diagnosis.status = 'completed'
    diagnosis.error_message = None
    diagnosis.completed_at = timezone.now()
    diagnosis.save()
    return diagnosis


def ingest_diagnosis_callback(diagnosis_id, raw):
    """
    provider 回调（同步）：解析 body，成功则写回诊断。
    解析失败时诊断标记 failed，不写入任何诊断字段，异常继续往上抛（502）。
    """
    diagnosis = get_diagnosis_detail(diagnosis_id)

    try:
        canonical = ingest_provider_response(raw)
    except IngestionError as exc:
        logger.warning("[Diagnosis] diagnosis_id=%s 回调解析失败: %s", diagnosis_id, exc.message)
        diagnosis.status = 'failed'
        diagnosis.error_message = f"[{exc.code}] {exc.message}"
        diagnosis.save(update_fields=['status', 'error_message', 'updated_at'])
        raise

    apply_canonical_diagnosis(diagnosis, canonical, model=diagnosis.llm_model or 'callback')
    return canonical


def get_diagnosis_detail(diagnosis_id):
    """Get diagnosis by ID. Raises BlockError if not found."""
    try:
        return Diagnosis.objects.get(id=diagnosis_id)
    except Diagnosis.DoesNotExist:
        raise BlockError(
            message='Diagnosis not found',
            code='DIAGNOSIS_NOT_FOUND',
            detail={'diagnosis_id': str(diagnosis_id)},
            http_status=404,
        )


def _stored_dispensable_drugs(diagnosis):
    canonical = CanonicalDiagnosis(
        primary_diagnosis=diagnosis.primary_diagnosis,
        drug_suggestions=parse_drug_entries(diagnosis.drug_suggestions),
        inventory_drugs=parse_drug_entries(diagnosis.inventory_drugs),
    )
    return canonical.dispensable_drugs()


def _manual_entries(drugs):
    if not isinstance(drugs, list):
        raise ValidationError(
            message='drugs must be a list.',
            detail={'received_type': type(drugs).__name__},
        )
    entries = [PrescribedDrugEntry.from_raw(item) for item in drugs]
    return [entry for entry in entries if entry is not None]


def record_diagnosis_dispensing(diagnosis_id, idempotency_key=None, drugs=None, store=None):
    """
    为某个已完成的诊断记录发药。

    - 诊断不存在 → 404
    - 诊断未完成 → DIAGNOSIS_NOT_READY (400)
    - idempotency key 已用过 → DISPENSING_ALREADY_RECORDED (409)
    - drugs 传了就用医生手填的药，否则用诊断里的 inventory_drugs
    - 一条都没写成功时 batch 会被删掉（batch.id 为 None），key 可以重试

    Returns:
        (batch, BatchResult)
    """
    diagnosis = get_diagnosis_detail(diagnosis_id)

    if diagnosis.status != 'completed':
        raise ValidationError(
            message='Diagnosis is not completed yet',
            code='DIAGNOSIS_NOT_READY',
            detail={'diagnosis_id': str(diagnosis_id), 'current_status': diagnosis.status},
        )

    key = idempotency_key or f"diagnosis:{diagnosis.id}"
    existing = DispensingBatch.objects.filter(idempotency_key=key).first()
    if existing is not None:
        raise _already_recorded(key, existing)

    entries = _manual_entries(drugs) if drugs is not None else _stored_dispensable_drugs(diagnosis)
    if not entries:
        raise ValidationError(
            message='No drugs to dispense for this diagnosis.',
            code='NO_DRUGS_TO_DISPENSE',
            detail={'diagnosis_id': str(diagnosis_id)},
        )

    matches = reconcile(entries, list_inventory(diagnosis.owner_id))
    plans, warnings = plan_dispensings(matches, complaint=diagnosis.complaint)

    try:
        with transaction.atomic():
            batch = DispensingBatch.objects.create(idempotency_key=key, diagnosis=diagnosis)
    except IntegrityError:
        # 并发请求抢先用了同一个 key
        raise _already_recorded(key, DispensingBatch.objects.filter(idempotency_key=key).first())

    context = DispensingContext(
        diagnosis_id=str(diagnosis.id),
        batch_id=str(batch.id),
        complaint=diagnosis.complaint,
        patient_info=diagnosis.patient_info or {},
    )
    result = record_dispensings(plans, store or DjangoDispensingStore(), context)
    result.warnings.extend(warnings)

    if result.created == 0:
        # 一条都没写进去，释放 key，允许用同一个 key 重试
        logger.warning("[Dispensing] batch %s 全部写入失败，释放 idempotency_key=%s", batch.id, key)
        batch.delete()

    return batch, result


def _already_recorded(key, batch):
    return BlockError(
        message='Dispensing has already been recorded for this request.',
        code='DISPENSING_ALREADY_RECORDED',
        detail={'idempotency_key': key, 'batch_id': str(batch.id) if batch else None},
    )


def delete_dispensing_record(record_id, store=None):
    """删除发药记录并恢复库存。不存在 → 404。"""
    store = store or DjangoDispensingStore()
    if not store.delete_dispensing(record_id):
        raise BlockError(
            message='Dispensing record not found',
            code='DISPENSING_RECORD_NOT_FOUND',
            detail={'record_id': str(record_id)},
            http_status=404,
        )
