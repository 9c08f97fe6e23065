"""
Dispensing Recorder：reconcile 结果 → 发药记录。

每个 MatchResult 都生成一条记录，找不到库存的也一样（inventory 引用为空，
notes 里注明），这样审计记录里有医生推荐过的所有药，而不只是能对上库存的。

一批记录逐条独立写入：某条写失败（PersistenceError）只记在该条的结果里，
不影响其它条目。

"这个诊断是否已经记录过" 不归这里管，调用方用 idempotency key 控制。
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .drugs.types import MatchResult, MatchTier
from .exceptions import MatchNotFound, PersistenceError

logger = logging.getLogger(__name__)

_FIRST_INT_RE = re.compile(r"\d+")

UNMATCHED_NOTE = "Note: Drug not found in current inventory."


@dataclass(frozen=True)
class DispensingContext:
    """一批记录共享的上下文：触发它们的诊断和患者信息。"""

    diagnosis_id: Optional[str] = None
    batch_id: Optional[str] = None
    complaint: str = ""
    patient_info: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DispensingPlan:
    drug_name: str
    quantity: int
    notes: str
    inventory_drug_id: Optional[str] = None
    match_tier: Optional[MatchTier] = None


@dataclass
class ItemOutcome:
    plan: DispensingPlan
    record: Any = None
    error: Optional[dict] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    outcomes: list[ItemOutcome] = field(default_factory=list)
    warnings: list[dict] = field(default_factory=list)

    @property
    def records(self) -> list:
        return [o.record for o in self.outcomes if o.ok]

    @property
    def created(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)


def extract_quantity(dosage) -> int:
    """剂量文本里的第一个整数（"2 tablets twice daily" → 2），没有则 1，最小 1。"""
    match = _FIRST_INT_RE.search(str(dosage or ""))
    if not match:
        return 1
    return max(int(match.group()), 1)


def plan_dispensings(matches: Iterable[MatchResult], complaint: str = "") -> tuple[list[DispensingPlan], list[dict]]:
    """
    MatchResult → DispensingPlan，顺序不变。

    Returns:
        (plans, warnings)  每个没对上库存的条目一条 MATCH_NOT_FOUND warning
    """
    plans = []
    warnings = []
    reason = complaint.strip() if complaint else "Not specified"

    for result in matches:
        entry = result.entry
        notes = f"Prescribed for: {reason}. Duration: {entry.duration or 'Not specified'}"

        if result.matched:
            plans.append(DispensingPlan(
                drug_name=entry.drug_name,
                quantity=extract_quantity(entry.dosage),
                notes=notes,
                inventory_drug_id=str(result.drug.id),
                match_tier=result.tier,
            ))
            continue

        plans.append(DispensingPlan(
            drug_name=entry.drug_name,
            quantity=extract_quantity(entry.dosage),
            notes=f"{notes}. {UNMATCHED_NOTE}",
        ))
        warnings.append(MatchNotFound(
            message=f"'{entry.drug_name}' was not found in the current inventory; recorded without stock reference.",
            detail={"drug_name": entry.drug_name},
        ).to_dict())

    return plans, warnings


def record_dispensings(plans: Iterable[DispensingPlan], store, context: DispensingContext) -> BatchResult:
    """
    逐条通过 store 写入。某条 PersistenceError 记录在该条结果里，继续下一条。

    Args:
        plans:   plan_dispensings() 的结果
        store:   BaseDispensingStore 实现
        context: 这一批共享的诊断/患者上下文
    """
    result = BatchResult()

    for plan in plans:
        try:
            record = store.create_dispensing(plan, context)
        except PersistenceError as exc:
            logger.warning("[Dispensing] '%s' 写入失败: %s", plan.drug_name, exc.message)
            result.outcomes.append(ItemOutcome(plan=plan, error=exc.to_dict()))
            continue
        result.outcomes.append(ItemOutcome(plan=plan, record=record))

    logger.info(
        "[Dispensing] diagnosis=%s 写入完成：成功 %d，失败 %d",
        context.diagnosis_id, result.created, result.failed,
    )
    return result
