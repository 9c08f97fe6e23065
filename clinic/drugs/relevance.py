"""
库存相关性打分：决定哪些库存药发给 provider。

库存可能有上千条，全部塞进请求会让 provider 的回答质量下降，也可能超出
传输上限。所以先按主诉/症状打分排序，再截断到固定条数。

打分规则：
  +10  主诉命中某个 condition group，且药名/通用名/有效成分含该组的药物关键词（每组一次）
  +2   常用/必备药
  +1   首选剂型（tablet / capsule）
  =1   以上都没命中时的保底分，保证有库存的药都有机会入选
  +0.5 有分类（鼓励类别多样性）
"""

import functools
from dataclasses import dataclass
from typing import Iterable, Optional

from .types import InventoryDrugRecord
from .vocabulary import DEFAULT_VOCABULARY, DrugVocabulary

DEFAULT_LIMIT = 200

# 分差小于这个值视为"接近"，改按类别名排序，避免结果全是同一类药
NEAR_TIE_MARGIN = 2


@dataclass(frozen=True)
class ScoredDrug:
    drug: InventoryDrugRecord
    score: float


def score_drug(drug: InventoryDrugRecord, matched_groups, vocabulary: DrugVocabulary) -> float:
    name = (drug.drug_name or "").lower()
    generic = (drug.generic_name or "").lower()
    ingredient = (drug.active_ingredient or "").lower()

    score = 0.0
    for group in matched_groups:
        if any(kw in name or kw in generic or kw in ingredient for kw in group.drug_keywords):
            score += 10

    if any(common in name for common in vocabulary.common_drugs):
        score += 2

    if (drug.dosage_form or "").lower() in vocabulary.preferred_forms:
        score += 1

    if score == 0:
        score = 1

    if drug.category:
        score += 0.5

    return score


def _compare(a: ScoredDrug, b: ScoredDrug) -> int:
    if abs(a.score - b.score) < NEAR_TIE_MARGIN:
        left = (a.drug.category or "").casefold()
        right = (b.drug.category or "").casefold()
        return (left > right) - (left < right)
    return -1 if a.score > b.score else 1


def select_relevant_drugs(
    inventory: Iterable[InventoryDrugRecord],
    text: str,
    vocabulary: Optional[DrugVocabulary] = None,
    limit: Optional[int] = DEFAULT_LIMIT,
) -> list[ScoredDrug]:
    """
    过滤无库存 → 打分 → 排序 → 截断。

    Args:
        inventory:  库存快照
        text:       主诉 + 症状
        vocabulary: 关键词表，默认 DEFAULT_VOCABULARY
        limit:      最多返回多少条，None 表示不截断
    """
    vocabulary = vocabulary or DEFAULT_VOCABULARY
    search_text = (text or "").lower()
    matched_groups = [g for g in vocabulary.condition_groups if g.matches(search_text)]

    scored = [
        ScoredDrug(drug=drug, score=score_drug(drug, matched_groups, vocabulary))
        for drug in inventory
        if drug.stock_quantity > 0
    ]
    scored.sort(key=functools.cmp_to_key(_compare))

    if limit is not None:
        scored = scored[:limit]
    return scored


def format_inventory_summary(scored: Iterable[ScoredDrug]) -> str:
    """每条药一行的可读摘要，作为 user_drug_inventory 发给 provider。"""
    lines = []
    for item in scored:
        drug = item.drug
        line = f"Drug: {drug.drug_name}"
        if drug.generic_name:
            line += f" ({drug.generic_name})"
        line += (
            f", Form: {drug.dosage_form or 'N/A'}"
            f", Strength: {drug.strength or 'N/A'}"
            f", Stock: {drug.stock_quantity}"
            f", Category: {drug.category or 'Uncategorized'}"
        )
        if drug.dosage_adults:
            line += f", Adult Dosage: {drug.dosage_adults}"
        lines.append(line)
    return "\n".join(lines)
