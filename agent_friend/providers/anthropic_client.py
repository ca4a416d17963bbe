"""Anthropic Messages API 适配器。

本模块负责：

1. 接收统一的 ChatRequest。
2. 将工作日志转换为 Messages API 的 content block 格式：
   - UserMessage -> user/text
   - AssistantMessage -> assistant/text + tool_use
   - ToolResult -> user/tool_result（连续的结果合并进同一条 user 消息）
3. 调用 HTTP 接口，把网络/HTTP 错误映射为 GatewayError 子类。
4. 将响应 JSON 解析为 FinalReply / ToolCalls；结构不符时抛 MalformedResponse。

网关内部不做任何重试：超时交给调用方决定，避免重复触发已执行工具的副作用。
"""

import json
from typing import Any, Dict, List

import httpx

from agent_friend.config.settings import Settings
from agent_friend.domain.exceptions import (
    ApiError,
    GatewayTimeout,
    MalformedResponse,
    NetworkError,
    RateLimitError,
    Unauthorized,
)
from agent_friend.domain.models import (
    AssistantMessage,
    ChatRequest,
    ChatUsage,
    FinalReply,
    GatewayResponse,
    ToolCalls,
    Turn,
    UserMessage,
)
from agent_friend.providers.registry import ANTHROPIC_BASE_URL, resolve_model
from agent_friend.tools.definitions import ToolCall, ToolDef, ToolResult


class AnthropicClient:
    """Anthropic 提供方客户端实现。

    - name: Provider 名称（供日志/调试使用）。
    - send: 对外统一调用入口，返回 FinalReply 或 ToolCalls。
    """

    name = "anthropic"

    def __init__(self, cfg: Settings):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = cfg

    def send(self, req: ChatRequest) -> GatewayResponse:
        api_key = self._settings.anthropic_api_key
        if not api_key:
            raise Unauthorized(code="MISSING_API_KEY", message="ANTHROPIC_API_KEY not set", http_status=401)
        payload = self._build_payload(req)
        base = self._settings.anthropic_base_url or ANTHROPIC_BASE_URL
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base.rstrip('/')}/v1/messages",
                    json=payload,
                    headers={
                        "x-api-key": api_key,
                        "anthropic-version": self._settings.anthropic_version,
                        "content-type": "application/json",
                    },
                )
        except httpx.TimeoutException as e:
            raise GatewayTimeout(code="GATEWAY_TIMEOUT", message=f"Anthropic request timed out: {e}", http_status=504)
        except httpx.RequestError as e:
            # DNS 失败、连接被拒绝等
            raise NetworkError(code="GATEWAY_UNREACHABLE", message=str(e), http_status=502)
        self._raise_for_status(resp)
        try:
            data = resp.json()
        except ValueError:
            raise MalformedResponse(code="MALFORMED_RESPONSE", message="response body is not JSON", http_status=502)
        return self._parse_response(data)

    # ---- 请求构造 ----

    def _build_payload(self, req: ChatRequest) -> Dict[str, Any]:
        model = resolve_model(req.model)
        payload: Dict[str, Any] = {
            "model": model.model_id,
            "max_tokens": req.max_tokens or model.max_output_tokens,
            "temperature": req.temperature,
            "messages": self._messages_to_payload(req.messages),
        }
        if req.system:
            payload["system"] = req.system
        if req.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in req.tools]
        return payload

    def _messages_to_payload(self, turns: List[Turn]) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        for turn in turns:
            role, blocks = self._turn_to_blocks(turn)
            if not blocks:
                continue
            # API 要求 user/assistant 交替出现，相邻同角色的消息合并
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"].extend(blocks)
            else:
                messages.append({"role": role, "content": blocks})
        return messages

    @staticmethod
    def _turn_to_blocks(turn: Turn) -> tuple[str, List[Dict[str, Any]]]:
        if isinstance(turn, ToolResult):
            block: Dict[str, Any] = {
                "type": "tool_result",
                "tool_use_id": turn.call_id,
                "content": json.dumps(turn.outcome.to_dict(), ensure_ascii=False),
            }
            if not turn.outcome.ok:
                block["is_error"] = True
            return "user", [block]
        if isinstance(turn, AssistantMessage):
            blocks: List[Dict[str, Any]] = []
            if turn.text:
                blocks.append({"type": "text", "text": turn.text})
            for call in turn.tool_calls:
                blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments})
            return "assistant", blocks
        if isinstance(turn, UserMessage):
            return "user", [{"type": "text", "text": turn.text}] if turn.text else []
        raise TypeError(f"unsupported turn type {type(turn).__name__}")

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        return {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.input_schema(),
        }

    # ---- 响应解析 ----

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        status = resp.status_code
        if status < 400:
            return
        if status in (401, 403):
            raise Unauthorized(code="UNAUTHORIZED", message="Anthropic rejected the API key", http_status=status)
        if status == 429:
            # 限流错误交给上层做重试/退避
            raise RateLimitError(code="RATE_LIMITED", message="Anthropic rate limit", http_status=429)
        raise ApiError(code="API_ERROR", message=resp.text[:500], http_status=status)

    def _parse_response(self, data: Any) -> GatewayResponse:
        if not isinstance(data, dict):
            raise MalformedResponse(code="MALFORMED_RESPONSE", message="response is not an object", http_status=502)
        if data.get("type") == "error":
            err = data.get("error")
            if not isinstance(err, dict):
                raise MalformedResponse(code="MALFORMED_RESPONSE", message="error body is not an object", http_status=502)
            raise ApiError(
                code="API_ERROR",
                message=f"{err.get('type', 'error')}: {err.get('message', '')}",
                http_status=502,
            )
        content = data.get("content")
        if not isinstance(content, list):
            raise MalformedResponse(code="MALFORMED_RESPONSE", message="response has no content list", http_status=502)

        texts: List[str] = []
        calls: List[ToolCall] = []
        for block in content:
            if not isinstance(block, dict):
                raise MalformedResponse(code="MALFORMED_RESPONSE", message="content block is not an object", http_status=502)
            kind = block.get("type")
            if kind == "text":
                texts.append(str(block.get("text") or ""))
            elif kind == "tool_use":
                calls.append(self._parse_tool_use(block))

        ids = [c.id for c in calls]
        if len(set(ids)) != len(ids):
            raise MalformedResponse(code="MALFORMED_RESPONSE", message="duplicate tool_use ids in one response", http_status=502)

        usage = self._parse_usage(data.get("usage"))
        text = "".join(texts).strip()
        if calls:
            return ToolCalls(calls=calls, text=text, usage=usage)
        if not text:
            raise MalformedResponse(code="MALFORMED_RESPONSE", message="response has neither text nor tool calls", http_status=502)
        return FinalReply(text=text, usage=usage)

    @staticmethod
    def _parse_usage(raw: Any) -> ChatUsage:
        if raw is None:
            return ChatUsage()
        if not isinstance(raw, dict):
            raise MalformedResponse(code="MALFORMED_RESPONSE", message="usage is not an object", http_status=502)
        try:
            return ChatUsage(
                input_tokens=int(raw.get("input_tokens") or 0),
                output_tokens=int(raw.get("output_tokens") or 0),
            )
        except (TypeError, ValueError):
            raise MalformedResponse(code="MALFORMED_RESPONSE", message="usage token counts are not integers", http_status=502)

    @staticmethod
    def _parse_tool_use(block: Dict[str, Any]) -> ToolCall:
        call_id = block.get("id")
        name = block.get("name")
        arguments = block.get("input", {})
        if not isinstance(call_id, str) or not call_id or not isinstance(name, str) or not name:
            raise MalformedResponse(code="MALFORMED_RESPONSE", message="tool_use block lacks id or name", http_status=502)
        if not isinstance(arguments, dict):
            raise MalformedResponse(code="MALFORMED_RESPONSE", message="tool_use input is not an object", http_status=502)
        return ToolCall(id=call_id, name=name, arguments=arguments)
