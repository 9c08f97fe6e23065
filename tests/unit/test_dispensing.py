"""
Dispensing Recorder（不碰数据库，store 用内存实现）：
- extract_quantity
- 找不到库存的药也生成记录 + MATCH_NOT_FOUND warning
- 单条写入失败不影响其它条目
"""
import pytest

from clinic.dispensing import (
    UNMATCHED_NOTE,
    DispensingContext,
    extract_quantity,
    plan_dispensings,
    record_dispensings,
)
from clinic.drugs.matching import reconcile
from clinic.drugs.types import InventoryDrugRecord, MatchTier, PrescribedDrugEntry
from clinic.exceptions import PersistenceError
from clinic.store import BaseDispensingStore


class InMemoryStore(BaseDispensingStore):

    def __init__(self, fail_on=()):
        self.records = []
        self.fail_on = set(fail_on)

    def create_dispensing(self, plan, context):
        if plan.drug_name in self.fail_on:
            raise PersistenceError(message=f"cannot write {plan.drug_name}")
        record = {"drug_name": plan.drug_name, "quantity": plan.quantity, "batch_id": context.batch_id}
        self.records.append(record)
        return record

    def delete_dispensing(self, record_id):
        return False


INVENTORY = [
    InventoryDrugRecord(id="inv-1", drug_name="Ibuprofen 400mg N20 tabletes", stock_quantity=20),
    InventoryDrugRecord(id="inv-2", drug_name="ACC 200mg", stock_quantity=5),
]

ENTRIES = [
    PrescribedDrugEntry("Ibuprofen 400mg", dosage="2 tablets 3x daily", duration="5 days"),
    PrescribedDrugEntry("ACC 200mg", dosage="1 sachet"),
    PrescribedDrugEntry("Oseltamivir 75mg", dosage="1 capsule twice daily", duration="5 days"),
]


class TestExtractQuantity:

    @pytest.mark.parametrize("dosage, expected", [
        ("2 tablets twice daily", 2),
        ("take 10 ml", 10),
        ("one tablet", 1),
        ("0 tablets", 1),
        ("", 1),
        (None, 1),
    ])
    def test_values(self, dosage, expected):
        assert extract_quantity(dosage) == expected


class TestPlanDispensings:

    def test_one_plan_per_entry(self):
        plans, warnings = plan_dispensings(reconcile(ENTRIES, INVENTORY), complaint="Flu symptoms")

        assert [p.drug_name for p in plans] == ["Ibuprofen 400mg", "ACC 200mg", "Oseltamivir 75mg"]
        assert [p.inventory_drug_id for p in plans] == ["inv-1", "inv-2", None]
        assert [p.quantity for p in plans] == [2, 1, 1]
        assert plans[0].match_tier == MatchTier.NORMALIZED
        assert plans[1].match_tier == MatchTier.EXACT
        assert plans[2].match_tier is None

    def test_notes(self):
        plans, _ = plan_dispensings(reconcile(ENTRIES, INVENTORY), complaint="Flu symptoms")
        assert plans[0].notes == "Prescribed for: Flu symptoms. Duration: 5 days"
        assert plans[1].notes == "Prescribed for: Flu symptoms. Duration: Not specified"
        assert plans[2].notes == f"Prescribed for: Flu symptoms. Duration: 5 days. {UNMATCHED_NOTE}"

    def test_unmatched_warning(self):
        _, warnings = plan_dispensings(reconcile(ENTRIES, INVENTORY))
        assert len(warnings) == 1
        assert warnings[0]["type"] == "warning"
        assert warnings[0]["code"] == "MATCH_NOT_FOUND"
        assert warnings[0]["detail"] == {"drug_name": "Oseltamivir 75mg"}

    def test_missing_complaint(self):
        plans, _ = plan_dispensings(reconcile(ENTRIES[:1], INVENTORY))
        assert plans[0].notes.startswith("Prescribed for: Not specified.")


class TestRecordDispensings:

    def test_all_written(self):
        plans, _ = plan_dispensings(reconcile(ENTRIES, INVENTORY), complaint="Flu")
        store = InMemoryStore()

        result = record_dispensings(plans, store, DispensingContext(batch_id="b-1"))

        assert result.created == 3
        assert result.failed == 0
        assert len(result.records) == 3
        assert all(r["batch_id"] == "b-1" for r in store.records)

    def test_partial_failure_continues(self):
        plans, _ = plan_dispensings(reconcile(ENTRIES, INVENTORY), complaint="Flu")
        store = InMemoryStore(fail_on={"ACC 200mg"})

        result = record_dispensings(plans, store, DispensingContext())

        assert result.created == 2
        assert result.failed == 1
        assert [r["drug_name"] for r in result.records] == ["Ibuprofen 400mg", "Oseltamivir 75mg"]
        failed = [o for o in result.outcomes if not o.ok][0]
        assert failed.plan.drug_name == "ACC 200mg"
        assert failed.error["code"] == "PERSISTENCE_ERROR"
