"""
工厂函数：根据 provider 返回的形状挑选 Adapter。

新增形状只需：
  1. 在 adapters.py 新建 Adapter 类
  2. 在此处 _build_registry() 加一行
  不需要修改任何业务代码。
"""

import json
import logging
from typing import Any

from ..exceptions import TransportFormatError
from .base import BaseEnvelopeAdapter
from .recovery import truncate_for_log
from .types import CanonicalDiagnosis

logger = logging.getLogger(__name__)


# ── 注册表 ──────────────────────────────────────────────────────────────────
# key: 形状标识
# value: Adapter 类（未实例化）
# 顺序有意义：同时带 text 和 primary_diagnosis 的对象按 text 处理
def _build_registry() -> dict[str, type[BaseEnvelopeAdapter]]:
    # 延迟导入，避免循环依赖
    from .adapters import DirectObjectAdapter, ListAdapter, TextFieldAdapter

    return {
        "text":   TextFieldAdapter,
        "list":   ListAdapter,
        "direct": DirectObjectAdapter,
    }


def _decode(raw: Any) -> Any:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise TransportFormatError(
                message="Provider response body is not valid UTF-8.",
                detail={"error": str(exc)},
            ) from exc

    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise TransportFormatError(
                message="Provider returned invalid JSON.",
                detail={"body": truncate_for_log(raw)},
            ) from exc

    return raw


def get_adapter(raw: Any) -> BaseEnvelopeAdapter:
    """
    返回已实例化的 Adapter。

    Args:
        raw: provider 的返回（dict / list，或者还没解码的 JSON str / bytes）

    Raises:
        TransportFormatError: 形状不认识
    """
    decoded = _decode(raw)
    registry = _build_registry()

    for adapter_cls in registry.values():
        if adapter_cls.accepts(decoded):
            return adapter_cls(decoded)

    logger.error("[Intake] 无法识别的 provider 返回格式: %s", truncate_for_log(decoded))
    raise TransportFormatError(
        message="Unrecognized provider response format.",
        detail={"known_shapes": list(registry.keys()), "received_type": type(decoded).__name__},
    )


def ingest_provider_response(raw: Any) -> CanonicalDiagnosis:
    """provider 返回 → CanonicalDiagnosis。TransportFormatError / JsonRecoveryFailure / MissingRequiredField 都会往上抛。"""
    adapter = get_adapter(raw)
    logger.info("[Intake] provider 返回形状=%s", adapter.shape)
    return adapter.process()
