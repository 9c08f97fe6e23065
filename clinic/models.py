import uuid
from django.db import models
from django.utils import timezone

from .drugs.types import InventoryDrugRecord


class DrugCategory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'drug_categories'


class InventoryDrug(models.Model):
    """执业者（或机构）自己的库存。owner_id 是执业者或机构的 id，认证不在本系统范围内。"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner_id = models.CharField(max_length=64, db_index=True)
    drug_name = models.CharField(max_length=200)
    generic_name = models.CharField(max_length=200, blank=True, default='')
    active_ingredient = models.TextField(blank=True, default='')
    category = models.ForeignKey(DrugCategory, on_delete=models.SET_NULL, null=True, blank=True)
    dosage_form = models.CharField(max_length=100, blank=True, default='')
    strength = models.CharField(max_length=100, blank=True, default='')
    dosage_adults = models.CharField(max_length=200, blank=True, default='')
    stock_quantity = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'inventory_drugs'

    def to_record(self):
        return InventoryDrugRecord(
            id=str(self.id),
            drug_name=self.drug_name,
            stock_quantity=self.stock_quantity,
            generic_name=self.generic_name,
            active_ingredient=self.active_ingredient,
            dosage_form=self.dosage_form,
            strength=self.strength,
            dosage_adults=self.dosage_adults,
            category=self.category.name if self.category_id else None,
        )


class Diagnosis(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
    ]
    SEVERITY_CHOICES = [
        ('critical', 'Critical'),
        ('high', 'High'),
        ('moderate', 'Moderate'),
        ('low', 'Low'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner_id = models.CharField(max_length=64, db_index=True)

    # 请求输入
    complaint = models.TextField()
    symptoms = models.TextField(blank=True, default='')
    patient_age = models.PositiveIntegerField(blank=True, null=True)
    patient_gender = models.CharField(max_length=20, blank=True, default='')
    patient_info = models.JSONField(default=dict, blank=True)    # 姓名 / 病历号 / 生日
    clinical_data = models.JSONField(default=dict, blank=True)   # 生命体征 / 病史 / 症状细节

    # provider 解析结果
    primary_diagnosis = models.TextField(blank=True, default='')
    differential_diagnoses = models.JSONField(default=list, blank=True)
    recommended_actions = models.JSONField(default=list, blank=True)
    treatment = models.JSONField(default=list, blank=True)
    drug_suggestions = models.JSONField(default=list, blank=True)
    inventory_drugs = models.JSONField(default=list, blank=True)
    additional_therapy = models.JSONField(default=list, blank=True)
    improved_patient_history = models.TextField(blank=True, default='')
    severity_level = models.CharField(max_length=20, choices=SEVERITY_CHOICES, blank=True, default='')
    confidence_score = models.FloatField(blank=True, null=True)
    clinical_assessment = models.JSONField(blank=True, null=True)
    monitoring_plan = models.JSONField(blank=True, null=True)
    llm_model = models.CharField(max_length=100, blank=True, null=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    error_message = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'diagnoses'


class DispensingBatch(models.Model):
    """一次"为某诊断记录发药"的请求。idempotency_key 唯一，防止同一批被重复记录。"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    idempotency_key = models.CharField(max_length=200, unique=True)
    diagnosis = models.ForeignKey(Diagnosis, on_delete=models.SET_NULL, null=True, related_name='dispensing_batches')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'dispensing_batches'


class DispensingRecord(models.Model):
    """
    发药记录。创建后不再修改，只能删除（删除时由 store 把库存加回去）。

    inventory_drug 可以为空（处方药没对上库存），drug_name 永远有值。
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    batch = models.ForeignKey(DispensingBatch, on_delete=models.SET_NULL, null=True, blank=True, related_name='records')
    diagnosis = models.ForeignKey(Diagnosis, on_delete=models.SET_NULL, null=True, blank=True, related_name='dispensing_records')
    inventory_drug = models.ForeignKey(InventoryDrug, on_delete=models.SET_NULL, null=True, blank=True)
    drug_name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField()
    # 实际从库存扣掉的数量（库存不足时小于 quantity），删除时按这个加回去
    stock_deducted = models.PositiveIntegerField(default=0)
    notes = models.TextField(blank=True, default='')
    patient_info = models.JSONField(default=dict, blank=True)
    match_tier = models.CharField(max_length=20, blank=True, null=True)
    dispensed_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'dispensing_records'
