"""Provider 与模型配置。

本模块集中维护远端服务的端点路径与默认模型：

- EndpointConfig: 各接口的路径模板，{project_id}/{conversation_id} 在调用时填充。
- ModelConfig: 逻辑模型名到具体模型绑定（model_name + integration_uid）及默认生成参数。

新建会话时未指定参与者，就用这里的 "llm" 模型生成默认参与者。"""

from dataclasses import dataclass
from typing import Dict, Mapping

from chat_core.domain.models import Participant


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    model_name: str
    integration_uid: str
    max_tokens: int
    default_temperature: float
    top_p: float
    top_k: int


@dataclass
class EndpointConfig:
    conversations: str
    participants: str
    predict: str
    applications: str


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    endpoints: EndpointConfig
    models: Dict[str, ModelConfig]


ELITEA_CONFIG = ProviderConfig(
    name="elitea",
    endpoints=EndpointConfig(
        conversations="/chat/conversations/prompt_lib/{project_id}",
        participants="/chat/participants/prompt_lib/{project_id}/{conversation_id}",
        predict="/prompt_lib/predict/prompt_lib/{project_id}",
        applications="/applications/applications/prompt_lib/{project_id}",
    ),
    models={
        "llm": ModelConfig(
            logical_name="llm",
            model_name="anthropic.claude-3-5-sonnet-20240620-v1:0",
            integration_uid="13c583ff-304c-4480-a5cb-7f0f8bfa8f00",
            max_tokens=2048,
            default_temperature=0.7,
            top_p=0.5,
            top_k=20,
        )
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "elitea": ELITEA_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")


def default_participant(logical_name: str = "llm", provider: str = "elitea") -> Participant:
    """按逻辑模型名生成一个默认参与者。"""

    model_cfg = get_provider_config(provider).models[logical_name]
    return Participant(
        entity_name=model_cfg.logical_name,
        model_name=model_cfg.model_name,
        integration_uid=model_cfg.integration_uid,
        temperature=model_cfg.default_temperature,
        top_p=model_cfg.top_p,
        top_k=model_cfg.top_k,
        max_tokens=model_cfg.max_tokens,
    )
