"""
主诉关键词 → 药物类别关键词 对照表。

这是配置数据，不是逻辑：RelevanceSelector 只认识 DrugVocabulary 结构，
换语言或换词表只需传入另一个 DrugVocabulary（或用 DRUG_VOCABULARY_FILE
指向一个 JSON 文件），打分代码零改动。

JSON 文件格式：
{
  "condition_groups": [
    {"name": "analgesics", "pattern": "pain|headache|sāp", "drug_keywords": ["ibuprofen", "paracetamol"]}
  ],
  "common_drugs":    ["paracetamol", "ibuprofen"],
  "preferred_forms": ["tablet", "capsule"]
}
缺省的 key 沿用 DEFAULT_VOCABULARY 的值。
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ConditionGroup:
    name: str
    pattern: str                   # 正则，对主诉/症状文本做大小写不敏感匹配
    drug_keywords: tuple[str, ...]

    def matches(self, text: str) -> bool:
        return re.search(self.pattern, text or "", re.IGNORECASE) is not None


@dataclass(frozen=True)
class DrugVocabulary:
    condition_groups: tuple[ConditionGroup, ...]
    common_drugs: tuple[str, ...] = ()
    preferred_forms: tuple[str, ...] = field(default=("tablet", "capsule"))


DEFAULT_VOCABULARY = DrugVocabulary(
    condition_groups=(
        ConditionGroup(
            name="analgesics",
            pattern=r"pain|sāp|headache|galvassāp|fever|temperature|drudzis|migraine|migrēna|"
                    r"toothache|zobu|боль|температур|schmerz|fieber",
            drug_keywords=("paracetamol", "ibuprofen", "analgin", "aspirin", "ketanov", "dolmen",
                           "acetaminophen", "naproxen", "diclofenac", "tramadol"),
        ),
        ConditionGroup(
            name="respiratory",
            pattern=r"cough|klepu|klepus|runny nose|iesnas|cold|saaukstēšan|respiratory|elpceļ|"
                    r"sore throat|rīkle|bronchitis|pneimonij|asthma|кашель|husten|erkältung",
            drug_keywords=("acc", "mucosolvan", "broncho", "actifed", "coldargan", "sirup",
                           "expectorant", "salbutamol", "ventolin", "berodual", "prednisolon"),
        ),
        ConditionGroup(
            name="digestive",
            pattern=r"nausea|vomit|vemšan|diarrhea|caureja|stomach|kuņģ|gastro|constipation|"
                    r"aizcietējum|bloating|uzpūšan|gas|gāz|meteorism|digestive|gremošan|bowel|"
                    r"zarn|intestinal|heartburn|grēmas|acid|skābe|живот|bauch",
            drug_keywords=("metoclopramid", "loperamid", "smecta", "rehydron", "omeprazol",
                           "antacid", "lactulose", "laktulose", "duphalac", "simeticon",
                           "espumisan", "motilium", "disflatyl", "ranitidine", "domperidone"),
        ),
        ConditionGroup(
            name="antibiotics",
            pattern=r"infection|infekcij|antibiotic|antibiotik|bacteria|bakterij|pneumonia|"
                    r"pneimonija|bronchitis|sinusitis|uti|urinary|инфекц",
            drug_keywords=("azithromycin", "azibiot", "amoxicillin", "cipro", "betaklav",
                           "ceftriaxon", "clarithromycin", "erythromycin", "doxycycline"),
        ),
        ConditionGroup(
            name="dermatological",
            pattern=r"skin|āda|ādas|rash|izsitum|wound|brūc|cut|griezum|eczema|dermatitis|"
                    r"psoriasis|fungal|sēnīt",
            drug_keywords=("bepanthen", "betadin", "clotrimazol", "cream", "krēms", "ziede",
                           "hydrocortisone", "betamethasone", "miconazole"),
        ),
        ConditionGroup(
            name="antihistamines",
            pattern=r"allergy|alerģij|itch|niez|antihistamin|hives|nātrene|allergic rhinitis|"
                    r"аллерг|allergie",
            drug_keywords=("loratadin", "cetirizin", "suprastin", "clarityn", "fenistil",
                           "tavegil", "zyrtec", "telfast"),
        ),
        ConditionGroup(
            name="ophthalmic",
            pattern=r"eye|acu|dry eyes|sausas acis|conjunctivitis|konjunktivīt|red eyes|sarkanas",
            drug_keywords=("artelac", "corneregel", "pilieni", "chloramphenicol", "gentamicin"),
        ),
        ConditionGroup(
            name="cardiovascular",
            pattern=r"heart|sirds|blood pressure|asinsspiedien|hypertension|chest pain|"
                    r"krūtu sāp|arrhythmia|сердц|herz",
            drug_keywords=("atenolol", "amlodipine", "enalapril", "metoprolol", "carvedilol",
                           "lisinopril"),
        ),
        ConditionGroup(
            name="metabolic",
            pattern=r"diabetes|diabēts|blood sugar|cukur|metabolic|vielmaiņ|диабет",
            drug_keywords=("metformin", "insulin", "glibenclamide", "gliclazide"),
        ),
        ConditionGroup(
            name="psychotropic",
            pattern=r"anxiety|trauksm|depression|depresij|sleep|miega|insomnia|bezmiega|stress|"
                    r"тревог|бессонниц|schlaf",
            drug_keywords=("diazepam", "lorazepam", "zolpidem", "melatonin", "valerian"),
        ),
        ConditionGroup(
            name="supplements",
            pattern=r"vitamin|vitamīn|supplement|papildinājum|deficiency|trūkum|weakness|vājum",
            drug_keywords=("vitamin", "b12", "iron", "calcium", "magnesium", "zinc", "omega"),
        ),
    ),
    common_drugs=("paracetamol", "ibuprofen", "analgin", "vitamin", "betadin"),
    preferred_forms=("tablet", "capsule"),
)


def load_vocabulary(path) -> DrugVocabulary:
    """
    从 JSON 文件读取词表。

    Raises:
        ValueError: 文件不是合法 JSON，或 condition_groups 结构不对
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Drug vocabulary {path} is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise ValueError(f"Drug vocabulary {path} must be a JSON object")

    groups = DEFAULT_VOCABULARY.condition_groups
    if "condition_groups" in raw:
        try:
            groups = tuple(
                ConditionGroup(
                    name=str(g["name"]),
                    pattern=str(g["pattern"]),
                    drug_keywords=tuple(str(k).lower() for k in g["drug_keywords"]),
                )
                for g in raw["condition_groups"]
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Drug vocabulary {path} has a malformed condition group: {exc}") from exc

    return DrugVocabulary(
        condition_groups=groups,
        common_drugs=tuple(str(d).lower() for d in raw.get("common_drugs", DEFAULT_VOCABULARY.common_drugs)),
        preferred_forms=tuple(str(f).lower() for f in raw.get("preferred_forms", DEFAULT_VOCABULARY.preferred_forms)),
    )
