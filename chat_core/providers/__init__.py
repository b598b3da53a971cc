"""远端服务集成层。

该包下的模块负责：
- 定义客户端抽象接口 (base)。
- 维护端点与默认模型配置 (registry)。
- 把事件流 / 一次性 JSON 回复解码为内容增量 (stream)。
- 提供具体的 HTTP 实现 (elitea_client)。
"""

from typing import Optional

from chat_core.config.settings import settings
from chat_core.providers.base import GenerationClient
from chat_core.providers.elitea_client import EliteaClient


def create_client(name: Optional[str] = None, cfg=None) -> GenerationClient:
    """根据名称创建客户端实例，配置缺失时抛出 ConfigurationError。"""

    client_name = (name or "elitea").lower()
    if client_name != "elitea":
        raise KeyError(f"Unknown provider: {name!r}")
    return EliteaClient(cfg or settings)
