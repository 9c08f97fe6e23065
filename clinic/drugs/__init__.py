from .matching import DrugReconciler, reconcile
from .names import collapse_drug_name, normalize_drug_name
from .relevance import ScoredDrug, format_inventory_summary, select_relevant_drugs
from .types import InventoryDrugRecord, MatchResult, MatchTier, PrescribedDrugEntry
from .vocabulary import DEFAULT_VOCABULARY, ConditionGroup, DrugVocabulary, load_vocabulary

__all__ = [
    "DrugReconciler",
    "reconcile",
    "collapse_drug_name",
    "normalize_drug_name",
    "ScoredDrug",
    "format_inventory_summary",
    "select_relevant_drugs",
    "InventoryDrugRecord",
    "MatchResult",
    "MatchTier",
    "PrescribedDrugEntry",
    "DEFAULT_VOCABULARY",
    "ConditionGroup",
    "DrugVocabulary",
    "load_vocabulary",
]
