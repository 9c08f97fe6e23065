"""
Drug Reconciler：把处方药条目对到库存记录上。

四层匹配，严格按顺序，第一个有结果的层级胜出；同一层内取库存迭代顺序中的第一条：
  1. EXACT        原名精确匹配（小写 + 合并空白）
  2. NORMALIZED   归一化名精确匹配（见 names.normalize_drug_name）
  3. CONTAINMENT  归一化名互相包含，被包含的一方长度必须 > 5
                  （防止 "acid" 这种短串误配 "folic acid"）
  4. IDENTIFIER   处方条目带的 id / drug_id 等于库存 id

找不到不是错误，返回 drug=None 的 MatchResult。
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .names import collapse_drug_name, normalize_drug_name
from .types import InventoryDrugRecord, MatchResult, MatchTier, PrescribedDrugEntry

logger = logging.getLogger(__name__)

# 包含匹配时，被包含字符串的最小长度（不含）
MIN_CONTAINED_LENGTH = 5


@dataclass(frozen=True)
class _InventoryKeys:
    drug: InventoryDrugRecord
    collapsed: str
    normalized: str


class DrugReconciler:
    """
    对一份库存快照做匹配。

    库存的归一化 key 只在构造时算一次，之后每个处方条目都复用。
    """

    def __init__(self, inventory: Iterable[InventoryDrugRecord]):
        self._keys = [
            _InventoryKeys(
                drug=drug,
                collapsed=collapse_drug_name(drug.drug_name),
                normalized=normalize_drug_name(drug.drug_name),
            )
            for drug in inventory
        ]

    def match(self, entry: PrescribedDrugEntry) -> MatchResult:
        collapsed = collapse_drug_name(entry.drug_name)
        normalized = normalize_drug_name(entry.drug_name)

        tiers = (
            (MatchTier.EXACT, lambda k: bool(collapsed) and k.collapsed == collapsed),
            (MatchTier.NORMALIZED, lambda k: bool(normalized) and k.normalized == normalized),
            (MatchTier.CONTAINMENT, lambda k: _contains(k.normalized, normalized)),
            (MatchTier.IDENTIFIER, lambda k: _same_identifier(entry, k.drug)),
        )

        for tier, predicate in tiers:
            found = self._first(predicate)
            if found is not None:
                logger.debug("[Reconcile] %r → %r (tier %s)", entry.drug_name, found.drug_name, tier.name)
                return MatchResult(entry=entry, drug=found, tier=tier)

        logger.info("[Reconcile] %r not found in inventory", entry.drug_name)
        return MatchResult(entry=entry)

    def _first(self, predicate) -> Optional[InventoryDrugRecord]:
        for keys in self._keys:
            if predicate(keys):
                return keys.drug
        return None


def _contains(inventory_name: str, prescribed_name: str) -> bool:
    if not inventory_name or not prescribed_name:
        return False
    if prescribed_name in inventory_name and len(prescribed_name) > MIN_CONTAINED_LENGTH:
        return True
    if inventory_name in prescribed_name and len(inventory_name) > MIN_CONTAINED_LENGTH:
        return True
    return False


def _same_identifier(entry: PrescribedDrugEntry, drug: InventoryDrugRecord) -> bool:
    drug_id = str(drug.id)
    return (entry.id is not None and entry.id == drug_id) or (
        entry.drug_id is not None and entry.drug_id == drug_id
    )


def reconcile(
    entries: Iterable[PrescribedDrugEntry],
    inventory: Iterable[InventoryDrugRecord],
) -> list[MatchResult]:
    """每个处方条目一个 MatchResult，顺序与输入一致。"""
    reconciler = DrugReconciler(inventory)
    return [reconciler.match(entry) for entry in entries]
