"""对外 API 服务模块。

组合根：由 Settings 一次性组装存储、网关、工具后端与 Agent，
并提供简化的函数接口供 CLI 等上层应用调用。
"""

from typing import Any, Dict, List, Optional

from eth_account import Account

from agent_friend.agents.friend_agent import FriendAgent
from agent_friend.config.settings import Settings, get_settings
from agent_friend.domain.exceptions import AgentError
from agent_friend.domain.models import turn_to_dict
from agent_friend.infrastructure.logging.logger import logger, setup_logger
from agent_friend.infrastructure.storage.json_store import JsonConversationStore
from agent_friend.prompts import resolve_personality
from agent_friend.providers import create_gateway
from agent_friend.tools.clock import ClockBackend
from agent_friend.tools.executor import ToolExecutor
from agent_friend.tools.keys import InMemoryKeyRing
from agent_friend.tools.wallet import EthereumBackend
from agent_friend.tools.weather import WeatherBackend


_agent: Optional[FriendAgent] = None


def build_key_ring(cfg: Settings) -> InMemoryKeyRing:
    keys = InMemoryKeyRing()
    if cfg.wallet_private_key is not None:
        secret = cfg.wallet_private_key.get_secret_value()
        keys.store(Account.from_key(secret).address, secret)
    return keys


def build_agent(cfg: Settings) -> FriendAgent:
    """按配置组装完整的对象图。"""
    setup_logger(cfg)
    executor = ToolExecutor(
        weather=WeatherBackend(cfg),
        clock=ClockBackend(),
        wallet=EthereumBackend(cfg),
    )
    return FriendAgent(
        store=JsonConversationStore(root=cfg.storage_root),
        gateway=create_gateway(cfg),
        tool_executor=executor,
        cfg=cfg,
        personality=resolve_personality(cfg.personality_path),
        keys=build_key_ring(cfg),
    )


def get_default_agent() -> FriendAgent:
    """获取默认的 Agent 实例（单例）。"""
    global _agent
    if _agent is None:
        _agent = build_agent(get_settings())
    return _agent


def run_chat(user_input: str, conversation_id: Optional[str] = None) -> Dict[str, Any]:
    """运行一轮对话。

    Args:
        user_input: 用户输入内容
        conversation_id: 会话ID（可选，不提供则创建新会话）

    Returns:
        成功时 {"ok": True, "conversation_id", "reply", "rounds", "usage"}；
        失败时 {"ok": False, "conversation_id", "error": {"code", "message"}}，会话内容不变。
    """
    agent = get_default_agent()
    conversation_id = conversation_id or agent.new_conversation_id()
    try:
        reply = agent.chat(user_input=user_input, conversation_id=conversation_id)
    except AgentError as e:
        logger.error(f"Chat failed: {e}", extra={"extra": {
            "conversation_id": conversation_id,
            "error_code": e.code,
        }})
        return {
            "ok": False,
            "conversation_id": conversation_id,
            "error": {"code": e.code, "message": e.message},
        }
    return {
        "ok": True,
        "conversation_id": reply.conversation_id,
        "reply": reply.text,
        "rounds": reply.rounds,
        "usage": {
            "input_tokens": reply.usage.input_tokens,
            "output_tokens": reply.usage.output_tokens,
        },
    }


def get_conversation_turns(conversation_id: str) -> List[Dict[str, Any]]:
    """获取会话的全部记录（按追加顺序）。"""
    agent = get_default_agent()
    return [turn_to_dict(t) for t in agent.store.load_recent(conversation_id)]


def list_conversations() -> List[str]:
    return get_default_agent().store.list_conversations()
