"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。

Settings 实例在进程启动时由 get_settings() 构造一次，之后不可修改，
并以构造参数的形式显式传给各组件（网关、工具后端、存储、引擎），
组件内部不读取全局配置。
"""

import os
import warnings
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("AGENT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic），构造后只读。"""

    # ---- 模型网关 ----
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API 密钥")
    anthropic_base_url: str = Field(default="https://api.anthropic.com", description="Anthropic API 基础URL")
    anthropic_version: str = Field(default="2023-06-01", description="anthropic-version 请求头")
    default_model: str = Field(
        default="chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )
    max_tokens: int = Field(default=1024, ge=1, description="单次回复最大 token 数")
    temperature: float = Field(default=0.7, ge=0.0, le=1.0, description="生成温度")
    http_timeout: float = Field(default=30.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 会话与存储 ----
    storage_root: str = Field(default=".storage", description="会话存储根目录")
    max_context_turns: int = Field(default=20, ge=1, le=200, description="加载的历史记录条数上限")
    max_tool_rounds: int = Field(
        default=8,
        ge=1,
        le=20,
        description="单轮对话内与模型往返的最大轮数（硬上限 20）",
    )

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否截断日志内容")

    # ---- 工具后端 ----
    eth_rpc_url: str = Field(default="http://127.0.0.1:8545", description="以太坊 JSON-RPC 地址")
    rpc_timeout: float = Field(default=15.0, ge=1.0, description="RPC 超时时间（秒）")
    gas_limit: int = Field(default=21000, ge=21000, description="普通转账的 gas 上限")
    wallet_private_key: Optional[SecretStr] = Field(
        default=None,
        description="可选的签名私钥，启动时放入 key ring，永不写入日志或会话",
    )
    weather_geocoding_url: str = Field(
        default="https://geocoding-api.open-meteo.com/v1/search",
        description="地名解析接口",
    )
    weather_forecast_url: str = Field(
        default="https://api.open-meteo.com/v1/forecast",
        description="天气查询接口",
    )

    # ---- 人格 ----
    personality_path: Optional[str] = Field(default=None, description="人格文档路径（JSON/YAML）")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("anthropic_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """进程级配置，只在组合根（api.service / CLI）中调用。"""
    return Settings()
