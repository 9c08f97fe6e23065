"""
发往 provider 的请求：DiagnosisRequest（入参解析 + 校验）和 build_provider_payload()。

payload 只带填写了的字段，减小请求体；库存摘要由 relevance selector 排序截断后生成。
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import Any, Iterable, Optional

from .drugs.relevance import DEFAULT_LIMIT, format_inventory_summary, select_relevant_drugs
from .drugs.types import InventoryDrugRecord
from .drugs.vocabulary import DrugVocabulary
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

MINIMUM_ADDITIONAL_THERAPY = 5

PATIENT_FIELDS = ("patient_name", "patient_surname", "patient_id", "date_of_birth")
HISTORY_FIELDS = ("allergies", "current_medications", "chronic_conditions", "previous_surgeries", "previous_injuries")
VITAL_FIELDS = (
    "blood_pressure_systolic", "blood_pressure_diastolic", "heart_rate", "temperature",
    "respiratory_rate", "oxygen_saturation", "weight", "height",
)
SYMPTOM_DETAIL_FIELDS = ("complaint_duration", "pain_scale", "symptom_onset", "associated_symptoms")

THERAPY_EXPLANATION_WITH_INVENTORY = (
    "IMPORTANT DUAL REQUIREMENT: 1) For 'inventory_drugs' field: ONLY recommend drugs with exact names "
    "matching the user_drug_inventory list provided. Use exact drug names from inventory. 2) For "
    "'additional_therapy' field: Provide 5-8 comprehensive external treatment options including both "
    "prescription and over-the-counter medications that would be ideal for this condition, regardless of "
    "inventory availability. These external suggestions should represent best-practice medical treatment "
    "options that the doctor should consider prescribing or recommending to the patient."
)
THERAPY_EXPLANATION_WITHOUT_INVENTORY = (
    "Please provide comprehensive therapy recommendations in the 'additional_therapy' field. Provide at "
    "least 5 diverse therapy options including both prescription and over-the-counter medications that "
    "represent best medical practice for this condition."
)


# ── 语言检测 ────────────────────────────────────────────────────────────────
# 词干按词首匹配（"sāp" 命中 "sāpes"）。和英文撞车的词干不收。
_LATVIAN_CHARS_RE = re.compile(r"[āēīōūģķļņšž]")
_LATVIAN_STEMS = (
    "sāp", "klepu", "drudzis", "galva", "kuņģ", "elpošana", "rīkle", "seja", "krūts",
    "vēders", "roku", "kāju", "mugura", "ausi", "deguns", "sirds", "pēda",
)
_RUSSIAN_CHARS_RE = re.compile(r"[а-яё]")
_GERMAN_STEMS = (
    "schmerzen", "fieber", "husten", "kopf", "bauch", "brust", "rücken", "bein",
    "herz", "augen", "ohren", "nase",
)


def _has_stem(text: str, stems) -> bool:
    return any(re.search(rf"\b{re.escape(stem)}", text) for stem in stems)


def detect_language(text: str) -> str:
    """english | latvian | russian | german。拉脱维亚语优先，其次俄语、德语，默认英语。"""
    lower = (text or "").lower()
    if _LATVIAN_CHARS_RE.search(lower) or _has_stem(lower, _LATVIAN_STEMS):
        return "latvian"
    if _RUSSIAN_CHARS_RE.search(lower):
        return "russian"
    if _has_stem(lower, _GERMAN_STEMS):
        return "german"
    return "english"


# ── 请求 ───────────────────────────────────────────────────────────────────

@dataclass
class DiagnosisRequest:
    owner_id: str
    complaint: str
    symptoms: str = ""
    patient_age: Optional[int] = None
    patient_gender: str = ""
    patient_info: dict = field(default_factory=dict)
    clinical_data: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "DiagnosisRequest":
        """
        解析 POST /api/diagnoses/ 的 body。

        Raises:
            ValidationError: 必填字段缺失 / 类型不对，detail.errors 列出全部问题
        """
        if not isinstance(data, dict):
            raise ValidationError(message="Request body must be a JSON object.")

        errors = []

        owner_id = str(data.get("owner_id") or "").strip()
        if not owner_id:
            errors.append({"field": "owner_id", "message": "owner_id is required."})

        complaint = data.get("complaint")
        if not isinstance(complaint, str) or not complaint.strip():
            errors.append({"field": "complaint", "message": "complaint is required."})
            complaint = ""

        age = data.get("patient_age", data.get("age"))
        if age in ("", None):
            age = None
        else:
            try:
                age = int(age)
            except (TypeError, ValueError):
                errors.append({"field": "patient_age", "message": "patient_age must be an integer."})
                age = None
            else:
                if age < 0 or age > 150:
                    errors.append({"field": "patient_age", "message": "patient_age must be between 0 and 150."})

        symptoms = data.get("symptoms") or ""
        if isinstance(symptoms, list):
            symptoms = ", ".join(str(s).strip() for s in symptoms if str(s).strip())
        elif not isinstance(symptoms, str):
            errors.append({"field": "symptoms", "message": "symptoms must be a string or a list of strings."})
            symptoms = ""

        if errors:
            raise ValidationError(
                message="Diagnosis request validation failed.",
                detail={"errors": errors},
            )

        clinical_fields = HISTORY_FIELDS + VITAL_FIELDS + SYMPTOM_DETAIL_FIELDS
        return cls(
            owner_id=owner_id,
            complaint=complaint.strip(),
            symptoms=symptoms.strip(),
            patient_age=age,
            patient_gender=str(data.get("patient_gender", data.get("gender")) or "").strip(),
            patient_info={k: data[k] for k in PATIENT_FIELDS if _present(data.get(k))},
            clinical_data={k: data[k] for k in clinical_fields if _present(data.get(k))},
        )

    @property
    def search_text(self) -> str:
        return f"{self.complaint} {self.symptoms}".strip()


def _present(value) -> bool:
    # pain_scale 为 0 也要发
    return value is not None and value != ""


def build_provider_payload(
    request: DiagnosisRequest,
    inventory: Iterable[InventoryDrugRecord] = (),
    vocabulary: Optional[DrugVocabulary] = None,
    limit: Optional[int] = DEFAULT_LIMIT,
    now: Optional[datetime] = None,
) -> dict:
    """
    DiagnosisRequest + 库存快照 → provider 请求体。

    Args:
        request:    已校验的请求
        inventory:  执业者的库存快照，可以为空
        vocabulary: relevance 打分用的关键词表
        limit:      库存摘要最多几条
        now:        时间戳，测试用
    """
    scored = select_relevant_drugs(inventory, request.search_text, vocabulary=vocabulary, limit=limit)
    summary = format_inventory_summary(scored) if scored else None
    has_inventory = bool(summary)

    payload = {
        "complaint": request.complaint,
        "age": request.patient_age,
        "gender": request.patient_gender,
        "symptoms": [request.symptoms] if request.symptoms else None,
        "timestamp": (now or datetime.now(dt_timezone.utc)).isoformat(),
        "detected_language": detect_language(request.search_text),
        "user_drug_inventory": summary,
        "has_drug_inventory": has_inventory,
        "request_comprehensive_therapy": True,
        "minimum_additional_therapy_count": MINIMUM_ADDITIONAL_THERAPY,
        "include_alternative_treatments": True,
        "include_otc_medications": True,
        "therapy_explanation": (
            THERAPY_EXPLANATION_WITH_INVENTORY if has_inventory else THERAPY_EXPLANATION_WITHOUT_INVENTORY
        ),
    }
    payload.update(request.patient_info)
    payload.update(request.clinical_data)

    logger.info(
        "[Payload] language=%s 库存摘要 %d 条，payload 字段 %d 个",
        payload["detected_language"], len(scored), len(payload),
    )
    return payload
