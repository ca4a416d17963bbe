"""Anthropic 模型别名表。

代码与配置里只出现别名（如 "chat"），发请求前才换成具体的 Claude 模型 ID。
未登记的名字原样透传，方便直接在配置里写完整模型 ID。
"""

from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class ModelAlias:
    alias: str
    model_id: str
    max_output_tokens: int


ANTHROPIC_BASE_URL = "https://api.anthropic.com"

MODEL_ALIASES: Dict[str, ModelAlias] = {
    "chat": ModelAlias(alias="chat", model_id="claude-3-opus-20240229", max_output_tokens=1024),
    "chat-fast": ModelAlias(alias="chat-fast", model_id="claude-3-haiku-20240307", max_output_tokens=1024),
}


def resolve_model(name: str) -> ModelAlias:
    """别名不区分大小写；未知名字视为完整模型 ID。"""
    found = MODEL_ALIASES.get(name.lower())
    if found is not None:
        return found
    return ModelAlias(alias=name, model_id=name, max_output_tokens=1024)
