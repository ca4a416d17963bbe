"""Agent 引擎核心模块。

实现加载历史窗口、驱动模型往返、分发工具调用、原子提交本轮记录等核心逻辑。

一次 process_turn 的状态流转：

    IDLE -> AWAITING_MODEL -> DISPATCHING_TOOLS -> AWAITING_MODEL -> ... -> COMMITTING -> DONE
                                     (任一步失败) -> FAILED

本轮产生的记录只保存在局部的工作日志中，成功时一次性 append 到 Store；
失败或被中途放弃时 Store 保持调用前的状态。
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from agent_friend.domain.conversation import ConversationStore
from agent_friend.domain.exceptions import AgentError, InputError, ToolLoopExceeded
from agent_friend.domain.models import (
    AssistantMessage,
    AssistantReply,
    ChatRequest,
    ChatUsage,
    FinalReply,
    Turn,
    UserMessage,
)
from agent_friend.infrastructure.logging.logger import logger
from agent_friend.providers.base import ModelGateway
from agent_friend.tools.executor import ToolExecutor
from agent_friend.tools.keys import KeyRing


@dataclass(frozen=True)
class AgentConfig:
    system_prompt: str
    model: str = "chat"
    max_context_turns: int = 20
    max_tool_rounds: int = 8  # 与模型往返的最大轮数
    temperature: float = 0.7
    max_tokens: Optional[int] = None


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOLS = "dispatching_tools"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


class AgentEngine:
    def __init__(
        self,
        store: ConversationStore,
        gateway: ModelGateway,
        tool_executor: ToolExecutor,
        config: AgentConfig,
        keys: Optional[KeyRing] = None,
    ):
        self._store = store
        self._gateway = gateway
        self._tool_executor = tool_executor
        self._config = config
        self._keys = keys

    def process_turn(self, conversation_id: str, user_text: str) -> AssistantReply:
        """处理一条用户输入，返回最终回答。

        Args:
            conversation_id: 会话ID（不透明字符串，首次使用即创建）
            user_text: 用户输入

        Returns:
            AssistantReply，其中 turns 为本轮原子提交的全部记录

        Raises:
            AgentError 的子类：InputError / GatewayError / StoreError / ToolLoopExceeded
        """
        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "conversation_id": conversation_id,
        }
        state = TurnState.IDLE
        try:
            if not user_text or not user_text.strip():
                raise InputError(code="EMPTY_INPUT", message="message must not be empty")

            # 1. 加载历史窗口
            history = self._load_history(conversation_id, log_ctx)

            # 2. 本轮工作日志
            working: List[Turn] = [UserMessage(text=user_text.strip())]
            usage = ChatUsage()
            max_rounds = self._config.max_tool_rounds

            # 3. 模型往返循环
            for round_num in range(1, max_rounds + 1):
                state = self._transition(state, TurnState.AWAITING_MODEL, log_ctx, round=round_num)
                req = ChatRequest(
                    model=self._config.model,
                    system=self._config.system_prompt,
                    messages=history + working,
                    tools=self._tool_executor.tool_defs,
                    temperature=self._config.temperature,
                    max_tokens=self._config.max_tokens,
                )
                response = self._gateway.send(req)
                usage = usage + response.usage

                if isinstance(response, FinalReply):
                    working.append(AssistantMessage(text=response.text))
                    # 5. 原子提交
                    state = self._transition(state, TurnState.COMMITTING, log_ctx, turn_count=len(working))
                    self._store.append(conversation_id, working)
                    state = self._transition(state, TurnState.DONE, log_ctx)
                    self._log(
                        logging.INFO,
                        "Completed agent turn",
                        log_ctx,
                        rounds=round_num,
                        input_tokens=usage.input_tokens,
                        output_tokens=usage.output_tokens,
                        elapsed_seconds=round(time.time() - start_time, 2),
                    )
                    return AssistantReply(
                        conversation_id=conversation_id,
                        text=response.text,
                        turns=list(working),
                        rounds=round_num,
                        usage=usage,
                    )

                if round_num == max_rounds:
                    # 最后一轮仍要求调用工具：不再执行，避免产生看不到结果的副作用
                    break

                working.append(AssistantMessage(text=response.text, tool_calls=list(response.calls)))
                state = self._transition(state, TurnState.DISPATCHING_TOOLS, log_ctx, call_count=len(response.calls))
                # 按模型给出的顺序逐个执行，后面的调用可能依赖前面的结果
                for call in response.calls:
                    self._log(
                        logging.INFO,
                        "Tool call received",
                        log_ctx,
                        tool_name=call.name,
                        tool_call_id=call.id,
                        arg_keys=sorted(call.arguments),
                    )
                    result = self._tool_executor.execute(call, self._keys)
                    self._log(
                        logging.INFO if result.outcome.ok else logging.WARNING,
                        "Tool execution finished",
                        log_ctx,
                        tool_call_id=call.id,
                        ok=result.outcome.ok,
                        reason=result.outcome.reason.value if result.outcome.reason else None,
                    )
                    working.append(result)

            # 4. 超过轮数上限
            raise ToolLoopExceeded(
                code="TOOL_LOOP_EXCEEDED",
                message=f"no final reply after {max_rounds} model rounds",
                max_rounds=max_rounds,
            )
        except AgentError as e:
            self._transition(state, TurnState.FAILED, log_ctx)
            self._log(
                logging.ERROR,
                "Agent turn failed",
                log_ctx,
                failed_in=state.value,
                error_code=e.code,
                error=e.message,
                elapsed_seconds=round(time.time() - start_time, 2),
            )
            raise

    def _load_history(self, conversation_id: str, log_ctx: Dict[str, Any]) -> List[Turn]:
        history = self._store.load_recent(conversation_id, self._config.max_context_turns)
        # 窗口截断后可能以工具结果或助手消息开头，丢弃直到第一条用户消息
        start = next((i for i, t in enumerate(history) if isinstance(t, UserMessage)), len(history))
        if start:
            self._log(logging.INFO, "Trimmed history head", log_ctx, dropped=start)
        history = history[start:]
        self._log(logging.INFO, "Loaded history", log_ctx, turn_count=len(history))
        return history

    def _transition(self, current: TurnState, new: TurnState, log_ctx: Dict[str, Any], **fields: Any) -> TurnState:
        self._log(logging.DEBUG, "Turn state", log_ctx, state_from=current.value, state_to=new.value, **fields)
        return new

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
