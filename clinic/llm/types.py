"""
provider 层的标准响应结构。

所有 ProviderService 实现的 analyze() 都返回这个对象。
业务层（tasks.py）只认识这个格式，拿到 raw 之后交给 intake 解析，
不知道背后是哪家 LLM 还是 n8n webhook。
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class ProviderResponse:
    raw: Any           # provider 原样返回（dict / list），交给 clinic.intake
    model: str         # 实际使用的模型名，写入 Diagnosis.llm_model
