"""LLM Provider 集成层。

该包下的模块负责：
- 定义模型网关抽象接口 (base)。
- 维护模型别名表 (registry)。
- 提供具体实现 (anthropic_client)。
"""

from typing import Optional

from agent_friend.config.settings import Settings
from agent_friend.providers.anthropic_client import AnthropicClient
from agent_friend.providers.base import ModelGateway


def create_gateway(cfg: Settings, name: Optional[str] = None) -> ModelGateway:
    """根据名称创建网关实例，默认 anthropic。"""

    provider_name = (name or "anthropic").lower()
    if provider_name != "anthropic":
        raise KeyError(f"Unknown provider: {name!r}")
    return AnthropicClient(cfg)
