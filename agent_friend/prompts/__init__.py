"""系统提示词加载工具。

从 prompts 目录读取 system.md 模板，填入人格信息，
生成发给模型的 system 指令。未配置人格文档时使用内置的 default_personality.yaml。
"""

from pathlib import Path
from typing import Optional

from agent_friend.domain.personality import Personality, load_personality


PROMPTS_DIR = Path(__file__).resolve().parent
DEFAULT_PERSONALITY = PROMPTS_DIR / "default_personality.yaml"


def resolve_personality(path: Optional[str] = None) -> Personality:
    return load_personality(path or DEFAULT_PERSONALITY)


def load_system_prompt(personality: Personality) -> str:
    """根据人格配置渲染系统提示词文本。"""

    template = (PROMPTS_DIR / "system.md").read_text(encoding="utf-8")
    directives = "\n".join(f"- {d}" for d in personality.directives)
    return template.format(
        name=personality.name,
        description=personality.description or "a helpful assistant",
        directives=directives,
    ).strip()
