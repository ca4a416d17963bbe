"""Agent Friend 的便捷包装。

根据 Settings 与人格配置组装 AgentEngine，提供面向调用方的 chat 接口。
"""

from typing import Optional
from uuid import uuid4

from agent_friend.agents.base_agent import AgentConfig, AgentEngine
from agent_friend.config.settings import Settings
from agent_friend.domain.conversation import ConversationStore
from agent_friend.domain.models import AssistantReply
from agent_friend.domain.personality import Personality
from agent_friend.prompts import load_system_prompt
from agent_friend.providers.base import ModelGateway
from agent_friend.tools.executor import ToolExecutor
from agent_friend.tools.keys import KeyRing


class FriendAgent:
    """对话 Agent 的便捷包装类。

    人格只在构造时渲染一次进系统指令，之后不再变化。
    """

    def __init__(
        self,
        store: ConversationStore,
        gateway: ModelGateway,
        tool_executor: ToolExecutor,
        cfg: Settings,
        personality: Personality,
        keys: Optional[KeyRing] = None,
    ):
        """初始化 Agent。

        Args:
            store: 会话存储实例
            gateway: 模型网关实例
            tool_executor: 工具执行器
            cfg: 进程配置（只读）
            personality: 人格配置
            keys: 签名用的 key ring（可选，不提供则无法转账）
        """
        self.personality = personality
        self._store = store
        self._config = AgentConfig(
            system_prompt=load_system_prompt(personality),
            model=cfg.default_model,
            max_context_turns=cfg.max_context_turns,
            max_tool_rounds=cfg.max_tool_rounds,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
        )
        self._engine = AgentEngine(
            store=store,
            gateway=gateway,
            tool_executor=tool_executor,
            config=self._config,
            keys=keys,
        )

    @staticmethod
    def new_conversation_id() -> str:
        return f"c-{uuid4().hex}"

    def chat(self, user_input: str, conversation_id: Optional[str] = None) -> AssistantReply:
        """发起一轮对话，conversation_id 为空时开启新会话。"""
        return self._engine.process_turn(
            conversation_id=conversation_id or self.new_conversation_id(),
            user_text=user_input,
        )

    @property
    def store(self) -> ConversationStore:
        return self._store
