import logging
from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=10,   # 初始重试延迟（秒），指数退避会乘以 2^retry_count
    acks_late=True,           # 任务执行完才 ack，防止 worker 崩溃时任务丢失
    reject_on_worker_lost=True,
)
def analyze_diagnosis(self, diagnosis_id: str):
    """
    异步调用 provider 并解析诊断。

    重试策略：
      - 最多重试 3 次
      - 指数退避：10s → 20s → 40s
      - 超出次数后将 diagnosis 标记为 failed
      - provider 超时也算一次失败，不写入任何诊断字段
    """
    from clinic.models import Diagnosis
    from clinic.llm.factory import get_provider_service
    from clinic.services import apply_canonical_diagnosis, build_diagnosis_payload, ingest_provider_response

    logger.info("[Celery][analyze_diagnosis] 开始处理 diagnosis_id=%s (attempt %d/%d)",
                diagnosis_id, self.request.retries + 1, self.max_retries + 1)

    try:
        diagnosis = Diagnosis.objects.get(id=diagnosis_id)
    except Diagnosis.DoesNotExist:
        logger.error("[Celery] Diagnosis %s 不存在，跳过", diagnosis_id)
        return  # 不重试，直接结束

    # 标记为处理中
    diagnosis.status = 'processing'
    diagnosis.save(update_fields=['status', 'updated_at'])

    try:
        # 1. 构建 payload（含库存摘要）
        payload = build_diagnosis_payload(diagnosis)
        logger.info("[Celery] payload 构建完成，language=%s", payload['detected_language'])

        # 2. 调用 provider
        response = get_provider_service().analyze(payload)
        logger.info("[Celery] provider 返回成功，model=%s", response.model)

        # 3. 解析（envelope → JSON recovery → 字段）
        canonical = ingest_provider_response(response.raw)

        # 4. 写回诊断
        apply_canonical_diagnosis(diagnosis, canonical, model=response.model)

        logger.info("[Celery] diagnosis_id=%s 处理完成，primary=%s",
                    diagnosis_id, canonical.primary_diagnosis)

    except Exception as exc:
        logger.warning(
            "[Celery] diagnosis_id=%s 处理失败 (attempt %d): %s",
            diagnosis_id, self.request.retries + 1, str(exc)
        )

        if self.request.retries < self.max_retries:
            # 指数退避：countdown = 10 * 2^retries → 10s, 20s, 40s
            countdown = self.default_retry_delay * (2 ** self.request.retries)
            logger.info(
                "[Celery] 将在 %ds 后重试 (第 %d 次)...",
                countdown, self.request.retries + 1
            )
            # 把 diagnosis 重置回 pending，等重试
            diagnosis.status = 'pending'
            diagnosis.save(update_fields=['status', 'updated_at'])
            raise self.retry(exc=exc, countdown=countdown)
        else:
            # 全部重试耗尽，标记失败
            logger.error("[Celery] diagnosis_id=%s 已达最大重试次数，标记为 failed", diagnosis_id)
            diagnosis.status = 'failed'
            diagnosis.error_message = f"[重试 {self.max_retries} 次后仍失败] {str(exc)}"
            diagnosis.save(update_fields=['status', 'error_message', 'updated_at'])
