"""Agent Friend 顶层包。

该包提供一个可调用工具的对话 Agent，
包括配置加载、领域模型、模型网关、工具系统（天气、时间、以太坊钱包）、
对话引擎与持久化存储等能力。
"""

from agent_friend.agents.base_agent import AgentConfig, AgentEngine
from agent_friend.agents.friend_agent import FriendAgent

__all__ = ["AgentConfig", "AgentEngine", "FriendAgent"]
