"""
BaseDispensingStore — 发药记录的持久化接口。

dispensing.py 只认识这个接口，不直接碰 ORM；测试里可以换成内存实现。
"""

import logging
from abc import ABC, abstractmethod

from django.db import DatabaseError, transaction
from django.db.models import F

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


class BaseDispensingStore(ABC):

    @abstractmethod
    def create_dispensing(self, plan, context):
        """
        写入一条发药记录。

        Args:
            plan:    DispensingPlan
            context: DispensingContext（诊断、批次、患者信息）

        Raises:
            PersistenceError: 写入失败
        """

    @abstractmethod
    def delete_dispensing(self, record_id) -> bool:
        """删除一条发药记录，返回是否存在。Raises PersistenceError。"""


class DjangoDispensingStore(BaseDispensingStore):
    """
    ORM 实现。每条记录一个事务：写记录 + 扣库存要么都成功，要么都回滚。
    库存最多扣到 0，实际扣掉的数量记在 stock_deducted 上，删除时只加回这么多。
    """

    def create_dispensing(self, plan, context):
        from .models import DispensingRecord, InventoryDrug

        try:
            with transaction.atomic():
                deducted = 0
                if plan.inventory_drug_id:
                    drug = InventoryDrug.objects.select_for_update().filter(id=plan.inventory_drug_id).first()
                    if drug is not None:
                        deducted = min(drug.stock_quantity, plan.quantity)
                        InventoryDrug.objects.filter(id=drug.id).update(
                            stock_quantity=F('stock_quantity') - deducted,
                        )

                record = DispensingRecord.objects.create(
                    batch_id=context.batch_id,
                    diagnosis_id=context.diagnosis_id,
                    inventory_drug_id=plan.inventory_drug_id,
                    drug_name=plan.drug_name,
                    quantity=plan.quantity,
                    stock_deducted=deducted,
                    notes=plan.notes,
                    patient_info=context.patient_info or {},
                    match_tier=plan.match_tier.name.lower() if plan.match_tier else None,
                )
        except DatabaseError as exc:
            logger.error("[Store] 写入发药记录失败 drug=%s: %s", plan.drug_name, exc)
            raise PersistenceError(
                message=f"Could not record dispensing of '{plan.drug_name}'.",
                detail={'drug_name': plan.drug_name, 'error': str(exc)},
            ) from exc

        return record

    def delete_dispensing(self, record_id) -> bool:
        from .models import DispensingRecord, InventoryDrug

        try:
            with transaction.atomic():
                record = DispensingRecord.objects.select_for_update().filter(id=record_id).first()
                if record is None:
                    return False
                if record.inventory_drug_id and record.stock_deducted:
                    InventoryDrug.objects.filter(id=record.inventory_drug_id).update(
                        stock_quantity=F('stock_quantity') + record.stock_deducted,
                    )
                record.delete()
        except DatabaseError as exc:
            logger.error("[Store] 删除发药记录失败 id=%s: %s", record_id, exc)
            raise PersistenceError(
                message='Could not delete dispensing record.',
                detail={'record_id': str(record_id), 'error': str(exc)},
            ) from exc

        logger.info("[Store] 已删除发药记录 id=%s，库存已恢复", record_id)
        return True
