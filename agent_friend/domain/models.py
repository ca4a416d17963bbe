"""统一的对话与结果数据模型。

本模块定义了 Agent 内部在 Store、Gateway 与 Engine 之间共享的标准数据结构：

- Turn: 一条会话记录，取值为 UserMessage / AssistantMessage / ToolResult 之一。
- ChatRequest: 发给模型网关的完整请求（系统指令 + 工作日志 + 工具定义）。
- GatewayResponse: 网关解析后的统一响应，FinalReply 或 ToolCalls。
- AssistantReply: 一次 process_turn 成功后返回给调用方的结果。

Provider 适配器（如 AnthropicClient）只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from agent_friend.tools.definitions import ToolCall, ToolDef, ToolOutcome, ToolResult


# 持久化记录中的角色判别字段
Role = Literal["user", "assistant", "tool"]


@dataclass
class UserMessage:
    text: str
    role: Role = field(default="user", init=False)


@dataclass
class AssistantMessage:
    """助手消息。模型触发工具调用时，tool_calls 保存有序的调用列表。"""

    text: str
    tool_calls: List[ToolCall] = field(default_factory=list)
    role: Role = field(default="assistant", init=False)


Turn = Union[UserMessage, AssistantMessage, ToolResult]


def turn_role(turn: Turn) -> Role:
    if isinstance(turn, ToolResult):
        return "tool"
    return turn.role


def turn_to_dict(turn: Turn) -> Dict[str, Any]:
    """Turn 的 JSON 形式，持久化记录与服务层输出共用。"""
    payload: Dict[str, Any] = {"role": turn_role(turn)}
    if isinstance(turn, ToolResult):
        payload["tool_call_id"] = turn.call_id
        payload["tool_name"] = turn.tool_name
        payload["outcome"] = turn.outcome.to_dict()
    elif isinstance(turn, AssistantMessage):
        payload["content"] = turn.text
        payload["tool_calls"] = [
            {"id": c.id, "name": c.name, "arguments": c.arguments} for c in turn.tool_calls
        ]
    else:
        payload["content"] = turn.text
    return payload


def turn_from_dict(data: Dict[str, Any]) -> Turn:
    role = data["role"]
    if role == "user":
        return UserMessage(text=data.get("content") or "")
    if role == "assistant":
        return AssistantMessage(
            text=data.get("content") or "",
            tool_calls=[
                ToolCall(id=c["id"], name=c["name"], arguments=c.get("arguments") or {})
                for c in data.get("tool_calls") or []
            ],
        )
    if role == "tool":
        return ToolResult(
            call_id=data["tool_call_id"],
            tool_name=data["tool_name"],
            outcome=ToolOutcome.from_dict(data["outcome"]),
        )
    raise ValueError(f"unknown role {role!r}")


@dataclass
class ChatRequest:
    """一次完整的模型请求。

    Engine 将历史窗口与本轮工作日志拼好后生成 ChatRequest，
    Provider 适配层负责把本结构转换成具体 API 的 JSON 请求体。
    """

    model: str  # 逻辑模型名，如 "chat"（再由 registry 映射为真实模型名）
    system: str
    messages: List[Turn]
    tools: List[ToolDef] = field(default_factory=list)
    temperature: float = 0.7
    max_tokens: Optional[int] = None


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "ChatUsage") -> "ChatUsage":
        return ChatUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


@dataclass
class FinalReply:
    text: str
    usage: ChatUsage = field(default_factory=ChatUsage)


@dataclass
class ToolCalls:
    """模型请求执行一个或多个工具；text 为调用前的说明文字（可能为空）。"""

    calls: List[ToolCall]
    text: str = ""
    usage: ChatUsage = field(default_factory=ChatUsage)


GatewayResponse = Union[FinalReply, ToolCalls]


@dataclass
class AssistantReply:
    """process_turn 的返回值。turns 为本轮原子提交到 Store 的全部记录。"""

    conversation_id: str
    text: str
    turns: List[Turn]
    rounds: int
    usage: ChatUsage = field(default_factory=ChatUsage)
