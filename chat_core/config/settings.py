"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。

凭据（API 地址、Bearer Token）缺失时不会在导入阶段抛错，
而是在构造客户端时通过 require_credentials(cfg) 快速失败，
由上层统一提示一次配置错误。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_core.domain.exceptions import ConfigurationError


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("CHAT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
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
    """配置设置（使用 Pydantic）。"""

    # ---- 远端服务 ----
    elitea_api_url: Optional[str] = Field(default=None, description="Elitea API 基础URL")
    elitea_bearer_token: Optional[str] = Field(default=None, description="Bearer 凭据")
    elitea_cookie: Optional[str] = Field(default=None, description="可选的会话 Cookie")
    project_id: int = Field(default=42, ge=1, description="prompt_lib 项目 ID")

    # ---- 生成请求 ----
    integration_name: str = Field(default="my_integration", description="请求中携带的 integration_name")
    default_source: str = Field(default="alita", description="新建会话的来源标记")
    prefer_streaming: bool = Field(default=True, description="生成请求是否要求流式返回")
    http_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="HTTP 超时时间（秒），为空表示不设超时",
    )
    participant_list_limit: int = Field(default=10, ge=1, description="可选参与者列表的默认条数")

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("elitea_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if v:
            return v.rstrip("/")
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


settings = Settings()


def require_credentials(cfg=settings) -> None:
    """校验网络调用所需的配置，缺失时抛出 ConfigurationError。"""
    missing = []
    if not getattr(cfg, "elitea_api_url", None):
        missing.append("ELITEA_API_URL")
    if not getattr(cfg, "elitea_bearer_token", None):
        missing.append("ELITEA_BEARER_TOKEN")
    if missing:
        raise ConfigurationError(
            code="MISSING_CONFIG",
            message=f"Missing required configuration: {', '.join(missing)}",
            missing=missing,
        )
