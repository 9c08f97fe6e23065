"""
药名归一化：把库存名和处方名变成可比较的 key。

库存里的名字通常带着包装规格和剂型（"Ibuprofen 400mg N20 tabletes"），
provider 给出的名字通常不带（"Ibuprofen 400mg"）。两边都过一遍
normalize_drug_name() 之后才能比较。

纯函数，无 I/O，幂等：normalize(normalize(x)) == normalize(x)。
"""

import re

_WHITESPACE_RE = re.compile(r"\s+")

# 本地化的描述性短语，出现在任何位置都去掉
_DESCRIPTIVE_RE = re.compile(
    r"\b(?:orally\s+disintegrating|film[\s-]coated|coated|"
    r"mutē\s+disperģējamās|apvalkotās)\b"
)

# "500 mg/125 mg" → "500mg"
_RATIO_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*mg\s*/\s*\d+(?:[.,]\d+)?\s*mg\b")

# "400 mg" → "400mg"
_UNIT_GLUE_RE = re.compile(r"(\d)\s+(mcg|mg|ml|g)\b")

# 包装规格 N12 / N20 ...，连同后面的内容一起去掉
_PACK_SIZE_RE = re.compile(r"\s+n\d+.*$")

# 末尾的剂型 / 单位词。只去末尾：名字中间的剂型词保留，
# "Nurofen mutē disperģējamās tabletes 200 mg N12" → "nurofen tabletes 200mg"，
# 和处方里的 "Nurofen 200mg" 对不上，只能靠 id 匹配或手工选药
_TRAILING_FORM_RE = re.compile(
    r"\s+(?:tabletes?|tablets?|kapsulas?|capsules?|ml|mg|g)$"
)


def collapse_drug_name(name) -> str:
    """小写 + 合并空白 + trim。reconciler 第一层（原名精确匹配）用这个。"""
    if not name:
        return ""
    return _WHITESPACE_RE.sub(" ", str(name).lower()).strip()


def _normalize_once(name: str) -> str:
    text = collapse_drug_name(name)
    text = _DESCRIPTIVE_RE.sub(" ", text)
    text = _RATIO_RE.sub(r"\1mg", text)
    text = _UNIT_GLUE_RE.sub(r"\1\2", text)
    text = collapse_drug_name(text)
    text = _PACK_SIZE_RE.sub("", text)

    stripped = _TRAILING_FORM_RE.sub("", text)
    while stripped != text:
        text = stripped
        stripped = _TRAILING_FORM_RE.sub("", text)

    return collapse_drug_name(text)


def normalize_drug_name(name) -> str:
    """
    药名 → 归一化比较 key。

    每一步替换都只会让字符串变短，所以反复执行直到不再变化一定会停，
    停下来的结果再执行一次也不会变，幂等由此保证。
    """
    current = collapse_drug_name(name)
    while True:
        following = _normalize_once(current)
        if following == current:
            return current
        current = following
