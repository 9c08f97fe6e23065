"""
BaseEnvelopeAdapter — 所有 provider 返回形状（envelope）Adapter 的抽象基类。

每个新形状只需：
1. 继承 BaseEnvelopeAdapter
2. 实现 accepts() 和 unwrap()
3. 在 factory.py 的 _build_registry() 注册一行

业务代码无需任何改动。
"""

from abc import ABC, abstractmethod
from typing import Any

from ..exceptions import TransportFormatError
from .fields import parse_diagnosis
from .recovery import recover_json
from .types import CanonicalDiagnosis, DiagnosisObject, EmbeddedText, Envelope


class BaseEnvelopeAdapter(ABC):
    """
    三步流水线：unwrap → extract → parse

    子类只负责"认出形状"和"解包"；JSON recovery 和字段解析在基类里统一做。
    """

    # 子类声明自己对应的形状标识符（与 factory 注册键一致）
    shape: str = ""

    def __init__(self, raw: Any):
        self._raw = raw

    # ── 必须实现 ───────────────────────────────────────────────────────────

    @classmethod
    @abstractmethod
    def accepts(cls, raw: Any) -> bool:
        """raw（已经 JSON 解码）是不是这个 Adapter 负责的形状。"""

    @abstractmethod
    def unwrap(self) -> Envelope:
        """解包成 EmbeddedText（文本里嵌着 JSON）或 DiagnosisObject（已经是对象）。"""

    # ── 提供默认实现，子类可 override ──────────────────────────────────────

    def extract(self) -> dict:
        """unwrap 之后拿到诊断 JSON 对象。文本形状走 JSON recovery。"""
        envelope = self.unwrap()
        if isinstance(envelope, EmbeddedText):
            return recover_json(envelope.text)
        if isinstance(envelope, DiagnosisObject):
            return envelope.data
        raise TransportFormatError(
            message=f"Adapter {type(self).__name__} produced an unknown envelope.",
            detail={"shape": self.shape},
        )

    # ── 对外统一入口 ───────────────────────────────────────────────────────

    def process(self) -> CanonicalDiagnosis:
        """unwrap → extract → parse，返回 CanonicalDiagnosis。任何一步失败都不产生部分结果。"""
        return parse_diagnosis(self.extract())
