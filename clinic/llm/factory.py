"""
工厂函数：根据 settings.LLM_PROVIDER 返回对应的 ProviderService 实例。

新增 provider 只需：
  1. 在 services.py 新建 XxxService(BaseProviderService) 类
  2. 在此处 _build_registry() 加一行
  不需要修改 tasks.py 或任何业务代码。
"""

from django.conf import settings

from .base import BaseProviderService


def _build_registry() -> dict[str, type[BaseProviderService]]:
    # 延迟导入，避免在 Django 启动前触发 SDK import
    from .services import ClaudeService, OpenAIService, WebhookService

    return {
        "anthropic": ClaudeService,
        "openai":    OpenAIService,
        "webhook":   WebhookService,
    }


def get_provider_service() -> BaseProviderService:
    """
    从 settings.LLM_PROVIDER 读取 provider，返回对应的实例。

    Raises:
        ValueError: LLM_PROVIDER 未知
    """
    provider = getattr(settings, "LLM_PROVIDER", "anthropic")
    registry = _build_registry()
    service_cls = registry.get(provider)

    if service_cls is None:
        raise ValueError(
            f"Unknown LLM_PROVIDER: {provider!r}. "
            f"Known providers: {list(registry.keys())}"
        )

    return service_cls()
