"""工具数据结构定义。

ToolDef / ToolParam 描述发给模型的工具 schema；
ToolCall / ToolOutcome / ToolResult 是工具往返中保存与持久化的记录。

工具集合是封闭的：ToolName 枚举中的每一项都必须有对应的 ToolDef 与后端实现，
发给模型的工具列表与执行器能处理的工具始终一致。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ToolName(str, Enum):
    WEATHER_LOOKUP = "weather_lookup"
    TIME_LOOKUP = "time_lookup"
    WALLET_GENERATE = "wallet_generate"
    WALLET_BALANCE = "wallet_balance"
    WALLET_SEND = "wallet_send"

    @classmethod
    def parse(cls, raw: str) -> Optional["ToolName"]:
        try:
            return cls(raw)
        except ValueError:
            return None


class FailureReason(str, Enum):
    """工具失败原因（机器可读）。"""

    UNKNOWN_TOOL = "UNKNOWN_TOOL"
    INVALID_ARGUMENTS = "INVALID_ARGUMENTS"
    LOCATION_NOT_FOUND = "LOCATION_NOT_FOUND"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UNKNOWN_TIMEZONE = "UNKNOWN_TIMEZONE"
    KEY_GENERATION_FAILED = "KEY_GENERATION_FAILED"
    INVALID_ADDRESS = "INVALID_ADDRESS"
    RPC_UNAVAILABLE = "RPC_UNAVAILABLE"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    SIGNING_FAILED = "SIGNING_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class ToolParam:
    """单个工具参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Dict[str, Any]


@dataclass
class ToolDef:
    """一个可供 LLM 调用的工具定义。"""

    name: str
    description: str
    params: Dict[str, ToolParam]

    def input_schema(self) -> Dict[str, Any]:
        """生成 JSON Schema，既发给模型，也用于执行前的参数校验。"""
        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name, param in self.params.items():
            schema = param.schema or {"type": "string"}
            if param.description:
                schema = {**schema, "description": param.description}
            properties[name] = schema
            if param.required:
                required.append(name)
        return {
            "type": "object",
            "properties": properties,
            "required": required,
            "additionalProperties": False,
        }


@dataclass
class ToolCall:
    """模型发起的一次工具调用请求，id 在同一轮内唯一。"""

    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass(frozen=True)
class ToolOutcome:
    """工具执行结果：success(payload) 或 failure(reason, message)。"""

    ok: bool
    payload: Dict[str, Any] = field(default_factory=dict)
    reason: Optional[FailureReason] = None
    message: str = ""

    @classmethod
    def success(cls, payload: Dict[str, Any]) -> "ToolOutcome":
        return cls(ok=True, payload=dict(payload))

    @classmethod
    def failure(cls, reason: FailureReason, message: str) -> "ToolOutcome":
        return cls(ok=False, reason=reason, message=message)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "payload": self.payload}
        return {"ok": False, "reason": self.reason.value if self.reason else None, "message": self.message}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolOutcome":
        if data.get("ok"):
            return cls.success(data.get("payload") or {})
        return cls.failure(FailureReason(data["reason"]), data.get("message") or "")


@dataclass
class ToolResult:
    """一次工具调用的结果，call_id 关联同一轮内的 ToolCall。"""

    call_id: str
    tool_name: str
    outcome: ToolOutcome
