"""配置管理模块。

支持从 .env、config.yaml 以及环境变量加载配置。
优先级：显式参数 > 环境变量 > .env > config.yaml > secrets。
"""

import os
import sys
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_NAME = "transcription-formatter"


def _default_data_dir() -> str:
    """按平台返回用户数据目录。"""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return str(base / APP_NAME)
    if sys.platform == "darwin":
        return str(Path.home() / "Library" / "Application Support" / APP_NAME)
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / APP_NAME)
    return str(Path.home() / ".config" / APP_NAME)


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("FORMATTER_CONFIG_FILE")
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


class AppSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- 存储 ----
    data_dir: str = Field(default_factory=_default_data_dir, description="用户数据目录")
    store_name: str = Field(default=APP_NAME, description="持久化文件名（不含扩展名）")
    log_dir: Optional[str] = Field(default=None, description="日志目录，默认 <data_dir>/logs")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    # ---- LLM 后端 ----
    # 仅用于首次初始化存储文件，之后以存储中的值为准
    llm_base_url: Optional[str] = Field(default=None, description="LLM_BASE_URL")
    llm_api_key: Optional[str] = Field(default=None, description="LLM_API_KEY")

    # ---- 重试 ----
    retry_max_retries: int = Field(default=3, ge=0, le=10)
    retry_initial_delay_ms: int = Field(default=1000, ge=0)
    retry_max_delay_ms: int = Field(default=10000, ge=0)
    retry_backoff_multiplier: float = Field(default=2.0, ge=1.0)

    # ---- 命令分发 ----
    max_workers: int = Field(default=4, ge=1, le=32, description="并发处理命令的线程数")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("llm_base_url")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("LLM_BASE_URL must start with http:// or https://")
        return v

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

    @property
    def resolved_log_dir(self) -> Path:
        return Path(self.log_dir or Path(self.data_dir) / "logs")


def load_settings(**overrides: Any) -> AppSettings:
    """重新读取环境与配置文件，显式参数优先。"""

    return AppSettings(**overrides)


settings = AppSettings()

# 类型别名，让外部代码可以使用 Settings 类型
Settings = AppSettings
