"""
具体 provider 实现。

新增 provider：在此文件添加一个类，然后在 factory.py 注册即可。

已注册 provider：
  anthropic — ClaudeService    (claude-sonnet-4-20250514)
  openai    — OpenAIService    (gpt-4o)
  webhook   — WebhookService   (n8n workflow，N8N_WEBHOOK_URL)

LLM 的回答统一包成 {"text": ...} 返回，和 n8n 的 text 形状一致，
后面由 clinic.intake 从 text 里把 JSON 抠出来。
"""

import logging

import requests
from django.conf import settings

from ..exceptions import TransportFormatError
from ..intake.recovery import truncate_for_log
from ..prompts import SYSTEM_PROMPT, build_user_prompt
from .base import BaseProviderService
from .types import ProviderResponse

logger = logging.getLogger(__name__)

MAX_TOKENS = 4000


def _timeout() -> float:
    return float(getattr(settings, "PROVIDER_TIMEOUT_SECONDS", 120))


# ── ClaudeService ──────────────────────────────────────────────────────────
#
# 使用 Anthropic SDK。
# 配置：ANTHROPIC_API_KEY
# 模型：claude-sonnet-4-20250514（可通过 ANTHROPIC_MODEL 覆盖）

class ClaudeService(BaseProviderService):

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def analyze(self, payload: dict) -> ProviderResponse:
        import anthropic

        api_key = getattr(settings, "ANTHROPIC_API_KEY", "")
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY is not set")

        model = getattr(settings, "ANTHROPIC_MODEL", "") or self.DEFAULT_MODEL
        client = anthropic.Anthropic(api_key=api_key, timeout=_timeout())

        response = client.messages.create(
            model=model,
            max_tokens=MAX_TOKENS,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_user_prompt(payload)}],
        )

        return ProviderResponse(
            raw={"text": response.content[0].text},
            model=model,
        )


# ── OpenAIService ──────────────────────────────────────────────────────────
#
# 使用 OpenAI SDK。
# 配置：OPENAI_API_KEY
# 模型：gpt-4o（可通过 OPENAI_MODEL 覆盖）

class OpenAIService(BaseProviderService):

    DEFAULT_MODEL = "gpt-4o"

    def analyze(self, payload: dict) -> ProviderResponse:
        import openai

        api_key = getattr(settings, "OPENAI_API_KEY", "")
        if not api_key:
            raise ValueError("OPENAI_API_KEY is not set")

        model = getattr(settings, "OPENAI_MODEL", "") or self.DEFAULT_MODEL
        client = openai.OpenAI(api_key=api_key, timeout=_timeout())

        response = client.chat.completions.create(
            model=model,
            max_tokens=MAX_TOKENS,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user",   "content": build_user_prompt(payload)},
            ],
        )

        return ProviderResponse(
            raw={"text": response.choices[0].message.content or ""},
            model=model,
        )


# ── WebhookService ─────────────────────────────────────────────────────────
#
# 直接把 payload POST 给 n8n workflow，返回值可能是三种形状之一（见 clinic/intake/adapters.py）。
# 配置：N8N_WEBHOOK_URL
# 非 2xx → requests.HTTPError（会重试）；body 不是 JSON → TransportFormatError

class WebhookService(BaseProviderService):

    MODEL_NAME = "n8n-webhook"

    def analyze(self, payload: dict) -> ProviderResponse:
        url = getattr(settings, "N8N_WEBHOOK_URL", "")
        if not url:
            raise ValueError("N8N_WEBHOOK_URL is not set")

        logger.info("[Webhook] POST %s", url)
        response = requests.post(url, json=payload, timeout=_timeout())
        response.raise_for_status()

        try:
            raw = response.json()
        except ValueError as exc:
            logger.error("[Webhook] n8n 返回的不是 JSON: %s", truncate_for_log(response.text))
            raise TransportFormatError(
                message="Provider returned invalid JSON.",
                detail={"body": truncate_for_log(response.text), "status": response.status_code},
            ) from exc

        return ProviderResponse(raw=raw, model=self.MODEL_NAME)
