"""工具注册与分发。

ToolExecutor 持有固定的后端集合，按 ToolName 枚举逐一分发，
运行时不支持动态注册，保证与发给模型的工具列表一致。

dispatch 永远不抛异常，总是返回 ToolOutcome：
- 未知工具名 -> failure(UNKNOWN_TOOL)
- 参数不符合 schema -> failure(INVALID_ARGUMENTS)，不会调用后端
- 后端 ToolError -> failure(对应 reason)
"""

from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from agent_friend.domain.exceptions import ToolError
from agent_friend.infrastructure.logging.logger import logger
from .clock import ClockBackend
from .definitions import FailureReason, ToolCall, ToolDef, ToolName, ToolOutcome, ToolParam, ToolResult
from .keys import KeyRing
from .wallet import EthereumBackend
from .weather import WeatherBackend


class ToolExecutor:
    def __init__(self, weather: WeatherBackend, clock: ClockBackend, wallet: EthereumBackend):
        self._weather = weather
        self._clock = clock
        self._wallet = wallet
        self._defs: Dict[ToolName, ToolDef] = {ToolName(d.name): d for d in default_tool_defs()}
        self._validators = {
            name: Draft202012Validator(d.input_schema()) for name, d in self._defs.items()
        }

    @property
    def tool_defs(self) -> List[ToolDef]:
        return list(self._defs.values())

    def execute(self, call: ToolCall, keys: Optional[KeyRing] = None) -> ToolResult:
        return ToolResult(call_id=call.id, tool_name=call.name, outcome=self.dispatch(call.name, call.arguments, keys))

    def dispatch(self, tool_name: str, args: Any, keys: Optional[KeyRing] = None) -> ToolOutcome:
        tool = ToolName.parse(tool_name)
        if tool is None:
            return ToolOutcome.failure(FailureReason.UNKNOWN_TOOL, f"Unknown tool: {tool_name}")
        if not isinstance(args, dict):
            return ToolOutcome.failure(FailureReason.INVALID_ARGUMENTS, "arguments must be an object")
        error = best_match(self._validators[tool].iter_errors(args))
        if error is not None:
            return ToolOutcome.failure(FailureReason.INVALID_ARGUMENTS, error.message)
        try:
            return ToolOutcome.success(self._invoke(tool, args, keys))
        except ToolError as e:
            return ToolOutcome.failure(e.reason, e.message)
        except Exception as e:
            logger.exception("Tool backend crashed", extra={"extra": {"tool_name": tool.value}})
            return ToolOutcome.failure(FailureReason.INTERNAL_ERROR, f"{tool.value} failed: {type(e).__name__}")

    def _invoke(self, tool: ToolName, args: Dict[str, Any], keys: Optional[KeyRing]) -> Dict[str, Any]:
        if tool is ToolName.WEATHER_LOOKUP:
            return self._weather.lookup(args["location"])
        if tool is ToolName.TIME_LOOKUP:
            return self._clock.lookup(args.get("timezone"))
        if tool is ToolName.WALLET_GENERATE:
            return self._wallet.generate_wallet(keys)
        if tool is ToolName.WALLET_BALANCE:
            return self._wallet.get_balance(args["address"])
        if tool is ToolName.WALLET_SEND:
            return self._wallet.send(args["from"], args["to"], args["amount"], keys)
        raise AssertionError(f"unhandled tool {tool!r}")


def default_tool_defs() -> List[ToolDef]:
    return [
        ToolDef(
            name=ToolName.WEATHER_LOOKUP.value,
            description="Get the current weather for a city or place name",
            params={
                "location": ToolParam(
                    name="location",
                    description="City or place name, e.g. 'London'",
                    required=True,
                    schema={"type": "string", "minLength": 1},
                )
            },
        ),
        ToolDef(
            name=ToolName.TIME_LOOKUP.value,
            description="Get the current time, locally or in a specific IANA timezone",
            params={
                "timezone": ToolParam(
                    name="timezone",
                    description="IANA timezone such as 'Africa/Cairo'; omit for local time",
                    required=False,
                    schema={"type": "string"},
                )
            },
        ),
        ToolDef(
            name=ToolName.WALLET_GENERATE.value,
            description="Generate a new Ethereum key pair and return its address (the private key is never revealed)",
            params={},
        ),
        ToolDef(
            name=ToolName.WALLET_BALANCE.value,
            description="Get the ETH balance of an Ethereum address",
            params={
                "address": ToolParam(
                    name="address",
                    description="0x-prefixed Ethereum address",
                    required=True,
                    schema={"type": "string"},
                )
            },
        ),
        ToolDef(
            name=ToolName.WALLET_SEND.value,
            description="Send ETH from a wallet whose key is held in this session to another address",
            params={
                "from": ToolParam(
                    name="from",
                    description="Sender address; its key must be available to the agent",
                    required=True,
                    schema={"type": "string"},
                ),
                "to": ToolParam(
                    name="to",
                    description="Recipient address",
                    required=True,
                    schema={"type": "string"},
                ),
                "amount": ToolParam(
                    name="amount",
                    description="Amount of ETH to send, e.g. '0.05'",
                    required=True,
                    schema={"type": ["string", "number"]},
                ),
            },
        ),
    ]
