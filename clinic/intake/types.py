"""
Ingestion 阶段的标准结构。

EmbeddedText / DiagnosisObject 是 envelope adapter 解包之后的两种结果：
  - EmbeddedText:    一段文本，里面嵌着 JSON（需要走 JSON recovery）
  - DiagnosisObject: 已经是诊断对象了

CanonicalDiagnosis 是业务逻辑唯一认识的诊断格式。
所有 list 字段解析成功后一定是 []，不会是 None。
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Union

from ..drugs.types import PrescribedDrugEntry

SEVERITY_LEVELS = ("critical", "high", "moderate", "low")

DEFAULT_CONFIDENCE = 0.85


@dataclass(frozen=True)
class EmbeddedText:
    text: str


@dataclass(frozen=True)
class DiagnosisObject:
    data: dict


Envelope = Union[EmbeddedText, DiagnosisObject]


@dataclass
class CanonicalDiagnosis:
    primary_diagnosis: str
    differential_diagnoses: list[str] = field(default_factory=list)
    recommended_actions: list[Any] = field(default_factory=list)
    treatment: list[Any] = field(default_factory=list)
    drug_suggestions: list[PrescribedDrugEntry] = field(default_factory=list)
    inventory_drugs: list[PrescribedDrugEntry] = field(default_factory=list)
    additional_therapy: list[PrescribedDrugEntry] = field(default_factory=list)
    severity_level: str = "moderate"
    confidence_score: float = DEFAULT_CONFIDENCE
    improved_patient_history: str = ""
    clinical_assessment: Optional[Any] = None
    monitoring_plan: Optional[Any] = None

    def dispensable_drugs(self) -> list[PrescribedDrugEntry]:
        """
        需要对库存做 reconcile 的药。

        新格式用 inventory_drugs；只有旧格式 drug_suggestions 时，
        取 source == "inventory" 的那些。
        """
        if self.inventory_drugs:
            return list(self.inventory_drugs)
        return [d for d in self.drug_suggestions if d.source == "inventory"]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        for key in ("drug_suggestions", "inventory_drugs", "additional_therapy"):
            data[key] = [entry.to_dict() for entry in getattr(self, key)]
        return data
