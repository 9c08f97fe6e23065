"""
具体 Envelope Adapter 实现。

已注册形状（factory 按这个顺序尝试）：
  text    — TextFieldAdapter     {"text": "...```json {...} ```..."}
  list    — ListAdapter          [{"text": "..."}, ...] 或 [{"primary_diagnosis": ...}, ...]
  direct  — DirectObjectAdapter  {"primary_diagnosis": "...", ...}
"""

from typing import Any

from .base import BaseEnvelopeAdapter
from .types import DiagnosisObject, EmbeddedText, Envelope


def _has_text(item: Any) -> bool:
    return isinstance(item, dict) and isinstance(item.get("text"), str) and bool(item["text"].strip())


def _is_diagnosis(item: Any) -> bool:
    return isinstance(item, dict) and "primary_diagnosis" in item


# ── TextFieldAdapter ───────────────────────────────────────────────────────
#
# 当前 webhook 的主要格式：
# {
#   "text": "Here is the analysis:\n```json\n{ \"primary_diagnosis\": \"...\", ... }\n```"
# }
# text 可能被截断（没有结尾的 ```，括号不闭合），交给 JSON recovery。

class TextFieldAdapter(BaseEnvelopeAdapter):
    shape = "text"

    @classmethod
    def accepts(cls, raw: Any) -> bool:
        return _has_text(raw)

    def unwrap(self) -> Envelope:
        return EmbeddedText(self._raw["text"])


# ── ListAdapter ────────────────────────────────────────────────────────────
#
# 部分 workflow 把输出包在数组里，只看第一个元素：
# [ { "text": "...```json ... ```..." } ]
# [ { "primary_diagnosis": "...", "differential_diagnoses": [...] } ]

class ListAdapter(BaseEnvelopeAdapter):
    shape = "list"

    @classmethod
    def accepts(cls, raw: Any) -> bool:
        if not isinstance(raw, list) or not raw:
            return False
        first = raw[0]
        return _has_text(first) or _is_diagnosis(first)

    def unwrap(self) -> Envelope:
        first = self._raw[0]
        if _has_text(first):
            return EmbeddedText(first["text"])
        return DiagnosisObject(first)


# ── DirectObjectAdapter ────────────────────────────────────────────────────
#
# 直接就是诊断对象：
# { "primary_diagnosis": "...", "differential_diagnoses": [...], ... }

class DirectObjectAdapter(BaseEnvelopeAdapter):
    shape = "direct"

    @classmethod
    def accepts(cls, raw: Any) -> bool:
        return _is_diagnosis(raw)

    def unwrap(self) -> Envelope:
        return DiagnosisObject(self._raw)
