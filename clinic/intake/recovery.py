"""
JSON Recovery：从 provider 返回的文本里抠出一个 JSON 对象，必要时修复截断。

provider 常见的坏情况：
  - JSON 包在 markdown 代码块里（```json ... ```），前后还有解释文字
  - 上游 token/size 限制把输出截断在某个字段中间，括号没闭合，结尾的 ``` 也没了

抽取顺序（第一个成功的胜出）：
  1. ```json 代码块（没有结尾 ``` 的截断情况，取到文本末尾）
  2. 任意代码块
  3. 从第一个 { 开始做括号匹配（考虑字符串和转义），取最宽的 {...}；括号没闭合就取到末尾

修复（只在解析失败时做）：
  扫描时维护一个结构栈（{ / [），记录最后一个"语法完整"的位置：
  容器刚打开之后、或一个完整的值之后。悬空的 key、冒号、逗号、写了一半的值都不算。
  截断到那个位置，再按栈的逆序补上缺的 ] / }。
  用栈而不是数括号个数，所以嵌套顺序是真实的，不需要假设"先补 ] 再补 }"。

这是尽力而为的启发式，修不好就抛 JsonRecoveryFailure，不会抛别的异常。
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

from ..exceptions import JsonRecoveryFailure

logger = logging.getLogger(__name__)

# 写日志 / 放进异常 detail 的原文最多保留这么多字符
LOG_TEXT_LIMIT = 500

_JSON_FENCE_RE = re.compile(r"```json\s*(.*?)(?:```|\Z)", re.DOTALL | re.IGNORECASE)
_ANY_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*\r?\n?(.*?)(?:```|\Z)", re.DOTALL)

_CLOSERS = {"{": "}", "[": "]"}

_INVALID = object()


def truncate_for_log(text: Any, limit: int = LOG_TEXT_LIMIT) -> str:
    text = text if isinstance(text, str) else repr(text)
    if len(text) <= limit:
        return text
    return text[:limit] + f"... [{len(text) - limit} more chars]"


# ── 抽取 ──────────────────────────────────────────────────────────────────

def _widest_object(text: str) -> Optional[str]:
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]

    # 括号没闭合：截断了，取到末尾交给修复
    return text[start:]


def extract_json_candidate(text: str) -> Optional[str]:
    """按 ```json 块 → 任意代码块 → 括号匹配 的顺序找 JSON 文本。找不到返回 None。"""
    for pattern in (_JSON_FENCE_RE, _ANY_FENCE_RE):
        for match in pattern.finditer(text):
            body = match.group(1).strip()
            if "{" in body:
                return body
    return _widest_object(text)


# ── 修复 ──────────────────────────────────────────────────────────────────

@dataclass
class _ScanResult:
    complete_end: Optional[int] = None              # 顶层对象完整闭合的位置（不含）
    safe_end: Optional[int] = None                  # 最后一个语法完整的位置（不含）
    safe_stack: tuple[str, ...] = ()                # 该位置上还没闭合的容器


def _scan(text: str, start: int) -> _ScanResult:
    result = _ScanResult()
    stack: list[str] = []
    expect_key = False
    in_string = False
    string_is_key = False
    escaped = False
    in_scalar = False

    def mark(end):
        result.safe_end = end
        result.safe_stack = tuple(stack)

    for i in range(start, len(text)):
        ch = text[i]

        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
                if not string_is_key:
                    mark(i + 1)
            continue

        if in_scalar:
            # 数字 / true / false / null：遇到分隔符才算写完
            if ch in ",}]" or ch.isspace():
                in_scalar = False
                mark(i)
            else:
                continue

        if ch == '"':
            in_string = True
            string_is_key = expect_key
            expect_key = False
        elif ch in "{[":
            stack.append(ch)
            expect_key = ch == "{"
            mark(i + 1)
        elif ch in "}]":
            if not stack:
                break
            stack.pop()
            expect_key = False
            if not stack:
                result.complete_end = i + 1
                return result
            mark(i + 1)
        elif ch == ",":
            expect_key = bool(stack) and stack[-1] == "{"
        elif ch == ":":
            expect_key = False
        elif not ch.isspace():
            in_scalar = True

    return result


def repair_truncated_json(text: str) -> Optional[str]:
    """
    修复截断的 JSON 文本。

    - 结构完整（顶层对象闭合了）：去掉尾部多余内容后原样返回
    - 结构不完整：截到最后一个完整位置，按栈逆序补齐闭合符
    - 没有可用的截断点：返回 None
    """
    start = text.find("{")
    if start < 0:
        return None

    scan = _scan(text, start)
    if scan.complete_end is not None:
        return text[start:scan.complete_end]
    if scan.safe_end is None:
        return None

    closers = "".join(_CLOSERS[opener] for opener in reversed(scan.safe_stack))
    return text[start:scan.safe_end] + closers


# ── 入口 ──────────────────────────────────────────────────────────────────

def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return _INVALID


def recover_json(text: str) -> dict:
    """
    文本 → JSON 对象（dict）。

    Raises:
        JsonRecoveryFailure: 找不到 JSON、修复后仍无法解析、或顶层不是对象
    """
    if not isinstance(text, str) or not text.strip():
        raise JsonRecoveryFailure(
            message="Provider response text is empty.",
            detail={"text": truncate_for_log(text)},
        )

    candidate = extract_json_candidate(text)
    if candidate is None:
        logger.error("[Recovery] 文本中找不到 JSON: %s", truncate_for_log(text))
        raise JsonRecoveryFailure(
            message="No JSON found in provider response text.",
            detail={"text": truncate_for_log(text)},
        )

    data = _loads(candidate)
    if data is _INVALID:
        repaired = repair_truncated_json(candidate)
        if repaired is not None:
            logger.info(
                "[Recovery] JSON 解析失败，尝试修复截断（原长度=%d，修复后长度=%d）",
                len(candidate), len(repaired),
            )
            data = _loads(repaired)

    if data is _INVALID:
        logger.error("[Recovery] 修复后仍无法解析: %s", truncate_for_log(candidate))
        raise JsonRecoveryFailure(
            message="Invalid JSON in provider response text.",
            detail={"text": truncate_for_log(candidate)},
        )

    if not isinstance(data, dict):
        raise JsonRecoveryFailure(
            message="Provider response JSON is not an object.",
            detail={"text": truncate_for_log(candidate)},
        )

    return data
