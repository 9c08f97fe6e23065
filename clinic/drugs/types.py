"""
药品相关的标准结构。

InventoryDrugRecord 是库存的只读快照：每个请求从数据库取一次，
之后 relevance 打分和 reconciler 匹配都只读这个快照，从不修改库存。
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class InventoryDrugRecord:
    id: str
    drug_name: str
    stock_quantity: int = 0
    generic_name: str = ""
    active_ingredient: str = ""
    dosage_form: str = ""          # tablet / capsule / syrup / ...
    strength: str = ""             # 500mg / 10mg/ml / ...
    dosage_adults: str = ""
    category: Optional[str] = None  # category 名称，未分类为 None


@dataclass
class PrescribedDrugEntry:
    """
    provider 或医生开出的一条药。

    id / drug_id 只是关联线索，不保证能在当前库存里找到。
    """

    drug_name: str
    dosage: str = ""
    duration: str = ""
    instructions: str = ""
    source: str = ""               # 旧格式 drug_suggestions 里的 inventory / external
    prescription_required: Optional[bool] = None
    id: Optional[str] = None
    drug_id: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    _KNOWN_KEYS = (
        "drug_name", "name", "dosage", "duration", "instructions",
        "source", "prescription_required", "id", "drug_id",
    )

    @classmethod
    def from_raw(cls, item: Any) -> Optional["PrescribedDrugEntry"]:
        """
        dict 或裸字符串 → PrescribedDrugEntry。
        没有药名的条目返回 None，由调用方丢弃。
        """
        if isinstance(item, str):
            name = item.strip()
            return cls(drug_name=name) if name else None

        if not isinstance(item, dict):
            return None

        name = str(item.get("drug_name") or item.get("name") or "").strip()
        if not name:
            return None

        def _text(key):
            value = item.get(key)
            return str(value).strip() if value is not None else ""

        def _ref(key):
            value = item.get(key)
            return str(value) if value not in (None, "") else None

        required = item.get("prescription_required")
        return cls(
            drug_name=name,
            dosage=_text("dosage"),
            duration=_text("duration"),
            instructions=_text("instructions"),
            source=_text("source").lower(),
            prescription_required=required if isinstance(required, bool) else None,
            id=_ref("id"),
            drug_id=_ref("drug_id"),
            extra={k: v for k, v in item.items() if k not in cls._KNOWN_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "drug_name": self.drug_name,
            "dosage": self.dosage,
            "duration": self.duration,
        })
        if self.instructions:
            data["instructions"] = self.instructions
        if self.source:
            data["source"] = self.source
        if self.prescription_required is not None:
            data["prescription_required"] = self.prescription_required
        if self.id is not None:
            data["id"] = self.id
        if self.drug_id is not None:
            data["drug_id"] = self.drug_id
        return data


class MatchTier(enum.IntEnum):
    """匹配层级，数字越小越精确，按顺序尝试。"""

    EXACT = 1
    NORMALIZED = 2
    CONTAINMENT = 3
    IDENTIFIER = 4


@dataclass
class MatchResult:
    entry: PrescribedDrugEntry
    drug: Optional[InventoryDrugRecord] = None
    tier: Optional[MatchTier] = None

    @property
    def matched(self) -> bool:
        return self.drug is not None
