"""模型网关抽象接口。

上层 AgentEngine 不直接依赖具体厂商的 HTTP API，而是依赖此协议：

- 每个厂商实现一个 ModelGateway（如 AnthropicClient）。
- 负责：将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 FinalReply / ToolCalls。
- 任何异常都应转换为 GatewayError 的子类，不向上抛出原始的解析或网络异常。
"""

from typing import Protocol

from agent_friend.domain.models import ChatRequest, GatewayResponse


class ModelGateway(Protocol):
    """模型网关协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - send(req): 执行一次请求/响应往返，返回 FinalReply 或 ToolCalls。
    """

    name: str

    def send(self, req: ChatRequest) -> GatewayResponse:
        ...
