"""
BaseProviderService — 所有诊断 provider 的抽象基类。

每个新 provider 只需：
1. 继承 BaseProviderService
2. 实现 analyze()
3. 在 factory.py 的 _build_registry() 注册一行

tasks.py 完全不知道背后用哪家 provider。
"""

from abc import ABC, abstractmethod

from .types import ProviderResponse


class BaseProviderService(ABC):

    @abstractmethod
    def analyze(self, payload: dict) -> ProviderResponse:
        """
        把请求 payload 发给 provider，返回原样的响应。

        Args:
            payload: clinic.payload.build_provider_payload() 的结果

        Returns:
            ProviderResponse(raw=provider 原始返回, model=模型名)

        Raises:
            Exception: 调用失败 / 超时，由 tasks.py 的重试机制处理
        """
