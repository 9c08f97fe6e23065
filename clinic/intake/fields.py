"""
Diagnosis Field Parser：解析后的 JSON 对象 → CanonicalDiagnosis。

provider 对同一个字段的编码经常不一致：
  - differential_diagnoses 可能是数组，也可能是 "flu, cold, allergy" 这样的字符串
  - confidence_score 可能是 0.87，也可能是 87（百分比）
  - severity_level 可能缺失，需要从全文关键词推断
  - 药物可能是旧格式 drug_suggestions（带 source 标记），也可能是新格式
    inventory_drugs / additional_therapy，两种都保留

唯一的致命情况：没有 primary_diagnosis → MissingRequiredField。
"""

import json
import re
from typing import Any

from ..drugs.types import PrescribedDrugEntry
from ..exceptions import MissingRequiredField
from .types import DEFAULT_CONFIDENCE, SEVERITY_LEVELS, CanonicalDiagnosis

_LIST_SPLIT_RE = re.compile(r"[,\n]")

# 按优先级排列：先命中的胜出
SEVERITY_KEYWORDS = (
    ("critical", ("critical", "emergency", "immediate")),
    ("high", ("severe", "urgent")),
    ("low", ("mild", "minor")),
)
DEFAULT_SEVERITY = "moderate"


def parse_list_field(value: Any) -> list:
    """数组原样保留（去掉空项）；字符串按逗号/换行切分，去掉空段。"""
    if isinstance(value, str):
        return [part.strip() for part in _LIST_SPLIT_RE.split(value) if part.strip()]

    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if item is None:
                continue
            if isinstance(item, str):
                item = item.strip()
                if not item:
                    continue
            items.append(item)
        return items

    return []


def parse_confidence(value: Any) -> float:
    """
    > 1 视为百分比，除以 100；否则视为已归一化。缺失或无法解析 → 0.85。
    结果限制在 [0, 1]。
    """
    if isinstance(value, bool) or value is None:
        return DEFAULT_CONFIDENCE

    if isinstance(value, str):
        value = value.strip().rstrip("%").strip()
        if not value:
            return DEFAULT_CONFIDENCE
        try:
            value = float(value)
        except ValueError:
            return DEFAULT_CONFIDENCE

    if not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE

    score = float(value)
    if score != score:  # NaN
        return DEFAULT_CONFIDENCE
    if score > 1:
        score = score / 100
    return min(max(score, 0.0), 1.0)


def infer_severity(data: dict) -> str:
    """有合法的 severity_level 就用；否则在整个响应的序列化文本里找关键词。"""
    provided = data.get("severity_level")
    if isinstance(provided, str) and provided.strip().lower() in SEVERITY_LEVELS:
        return provided.strip().lower()

    text = json.dumps(data, ensure_ascii=False, default=str).lower()
    for level, keywords in SEVERITY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return level
    return DEFAULT_SEVERITY


def parse_drug_entries(value: Any) -> list[PrescribedDrugEntry]:
    if not isinstance(value, (list, tuple)):
        return []
    entries = (PrescribedDrugEntry.from_raw(item) for item in value)
    return [entry for entry in entries if entry is not None]


def require_primary_diagnosis(data: dict) -> str:
    primary = data.get("primary_diagnosis") if isinstance(data, dict) else None
    if primary is not None and not isinstance(primary, str):
        primary = str(primary)
    if not primary or not primary.strip():
        raise MissingRequiredField(
            message="Invalid provider response: missing primary_diagnosis.",
            detail={"keys": sorted(data.keys()) if isinstance(data, dict) else []},
        )
    return primary.strip()


def parse_diagnosis(data: dict) -> CanonicalDiagnosis:
    """
    JSON 对象 → CanonicalDiagnosis。

    primary_diagnosis 在构造任何字段之前先检查，缺了直接抛错，
    不会产生半成品。

    Raises:
        MissingRequiredField: 没有 primary_diagnosis
    """
    primary = require_primary_diagnosis(data)

    history = data.get("improved_patient_history")
    return CanonicalDiagnosis(
        primary_diagnosis=primary,
        differential_diagnoses=[str(d) for d in parse_list_field(data.get("differential_diagnoses"))],
        recommended_actions=parse_list_field(data.get("recommended_actions")),
        treatment=parse_list_field(data.get("treatment")),
        drug_suggestions=parse_drug_entries(data.get("drug_suggestions")),
        inventory_drugs=parse_drug_entries(data.get("inventory_drugs")),
        additional_therapy=parse_drug_entries(data.get("additional_therapy")),
        severity_level=infer_severity(data),
        confidence_score=parse_confidence(data.get("confidence_score")),
        improved_patient_history=str(history).strip() if history else "",
        clinical_assessment=data.get("clinical_assessment") or None,
        monitoring_plan=data.get("monitoring_plan") or None,
    )
