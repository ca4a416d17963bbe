"""人格配置。

人格文档（JSON 或 YAML）在进程启动时加载一次，之后只读：

    name: Friend
    role: a friendly assistant who can check the weather and manage Ethereum wallets
    style:
      tone: warm
      formality: casual
      domain_focus: [weather, ethereum]
    rules:
      - Never reveal private keys.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple, Union

import yaml

from .exceptions import ConfigError


@dataclass(frozen=True)
class Personality:
    name: str
    description: str
    directives: Tuple[str, ...] = ()


def personality_from_dict(data: Dict[str, Any]) -> Personality:
    if not isinstance(data, dict) or not data.get("name"):
        raise ConfigError(code="INVALID_PERSONALITY", message="personality document needs a 'name'")
    style = data.get("style") or {}
    directives = []
    if style.get("tone"):
        directives.append(f"Tone: {style['tone']}")
    if style.get("formality"):
        directives.append(f"Formality: {style['formality']}")
    focus = style.get("domain_focus") or []
    if focus:
        directives.append("Domain focus: " + ", ".join(str(f) for f in focus))
    directives.extend(str(rule) for rule in data.get("rules") or [])
    return Personality(
        name=str(data["name"]),
        description=str(data.get("role") or data.get("description") or ""),
        directives=tuple(directives),
    )


def load_personality(path: Union[str, Path]) -> Personality:
    """从 JSON/YAML 文件加载人格配置。"""
    p = Path(path).expanduser()
    try:
        text = p.read_text(encoding="utf-8")
        if p.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(code="PERSONALITY_LOAD_ERROR", message=f"{p}: {e}")
    return personality_from_dict(data)
