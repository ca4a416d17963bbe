"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
便于在 service 层或 CLI 层做统一捕获与用户提示。

- AgentError 及其子类：会中止当前一轮对话（process_turn 只会抛出这一族）。
- ToolError：工具后端内部使用，由 ToolExecutor 转换为 ToolOutcome.failure，
  不会越过执行器向上传播。
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agent_friend.tools.definitions import FailureReason


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_FAILED"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 trace_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigError(BusinessError):
    """配置或人格文档无法加载。"""


class AgentError(BusinessError):
    """一轮对话失败，会话保持调用前的状态。"""


class InputError(AgentError):
    """用户输入不合法（目前只有空文本）。"""


class GatewayError(AgentError):
    """与模型服务交互失败。"""


class GatewayTimeout(GatewayError):
    """请求超时。由调用方决定是否重试，网关内部不重试。"""


class MalformedResponse(GatewayError):
    """模型返回了无法解析或不符合预期结构的响应。"""


class Unauthorized(GatewayError):
    """API 密钥缺失或被拒绝。"""


class RateLimitError(GatewayError):
    """Provider 限流错误，由上层负责重试/退避策略。"""


class NetworkError(GatewayError):
    """网络层错误，例如 DNS 失败、连接被拒绝等。"""


class ApiError(GatewayError):
    """第三方 API 返回其他非 2xx 错误时抛出。"""


class StoreError(AgentError):
    """会话存储读写失败。"""


class ToolLoopExceeded(AgentError):
    """模型在允许的轮数内没有给出最终回答。"""


class ToolError(BusinessError):
    """工具后端失败，携带 FailureReason。"""

    def __init__(self, reason: "FailureReason", message: str, **extra):
        self.reason = reason
        super().__init__(code=reason.value, message=message, **extra)
