"""统一的会话、参与者与消息数据模型。

本模块定义了会话引擎内部共享的标准数据结构：

- Participant: 会话中的一个模型身份（含生成参数与模型绑定）。
- Conversation: 一个会话，持有有序的参与者列表。
- Message: 消息日志中的一条消息（用户或助手），带生命周期状态。
- PredictRequest: 发给远端生成接口的完整请求。
- CatalogEntry / CatalogPage: 远端可选参与者列表。
- ActionResult: 会话变更类操作的统一返回值。

所有实体均为不可变 dataclass，修改一律通过 dataclasses.replace
生成新对象，读者永远不会看到被原地修改的集合。
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple
from uuid import uuid4

from chat_core.domain.exceptions import ValidationError


# 消息作者类型
MessageKind = Literal["user", "assistant"]

# 消息生命周期：pending -> streaming -> complete | failed
MessageState = Literal["pending", "streaming", "complete", "failed"]

TERMINAL_STATES = frozenset({"complete", "failed"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_int(value: Any) -> bool:
    # bool 是 int 的子类
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class Participant:
    """会话中的一个模型参与者。

    - entity_name: 原始实体名（如 "llm"），发往远端。
    - alias: 面向用户的显示名，存在时优先用于 @ 提及匹配。
    - id: 远端分配的数字 ID（从目录添加的参与者才有）。
    - model_name / integration_uid: 模型绑定。
    - temperature / top_p / top_k / max_tokens: 生成参数。
    """

    entity_name: str
    model_name: str
    integration_uid: str
    temperature: float = 0.7
    top_p: float = 0.5
    top_k: int = 20
    max_tokens: int = 2048
    id: Optional[int] = None
    alias: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("temperature", "top_p"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(code="INVALID_PARTICIPANT", message=f"{name} must be a number")
        if not 0 <= self.temperature <= 2:
            raise ValidationError(code="INVALID_PARTICIPANT", message="temperature must be within [0, 2]")
        if not 0 <= self.top_p <= 1:
            raise ValidationError(code="INVALID_PARTICIPANT", message="top_p must be within [0, 1]")
        if not _is_int(self.top_k) or self.top_k < 0:
            raise ValidationError(code="INVALID_PARTICIPANT", message="top_k must be a non-negative integer")
        if not _is_int(self.max_tokens) or self.max_tokens <= 0:
            raise ValidationError(code="INVALID_PARTICIPANT", message="max_tokens must be a positive integer")

    @property
    def display_name(self) -> str:
        return self.alias or self.entity_name

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "entity_name": self.entity_name,
            "entity_meta": {
                "integration_uid": self.integration_uid,
                "model_name": self.model_name,
            },
            "entity_settings": {
                "max_tokens": self.max_tokens,
                "top_p": self.top_p,
                "top_k": self.top_k,
                "temperature": self.temperature,
            },
        }
        if self.id is not None:
            payload["id"] = self.id
        return payload

    @classmethod
    def from_payload(cls, data: Dict[str, Any], defaults: Optional["Participant"] = None) -> "Participant":
        """从远端返回的参与者描述构造 Participant，缺失或为 null 的字段取 defaults。"""

        meta = data.get("entity_meta") or {}
        cfg = data.get("entity_settings") or {}
        base = defaults or cls(entity_name="llm", model_name="", integration_uid="")

        def pick(source: Dict[str, Any], key: str) -> Any:
            value = source.get(key)
            return getattr(base, key) if value is None else value

        return cls(
            entity_name=data.get("entity_name") or base.entity_name,
            model_name=meta.get("model_name") or base.model_name,
            integration_uid=meta.get("integration_uid") or base.integration_uid,
            temperature=pick(cfg, "temperature"),
            top_p=pick(cfg, "top_p"),
            top_k=pick(cfg, "top_k"),
            max_tokens=pick(cfg, "max_tokens"),
            id=pick(data, "id"),
            alias=data.get("alias") or base.alias,
        )


@dataclass(frozen=True)
class Conversation:
    """一个会话。id 在远端持久化成功后才会被赋值。"""

    name: str
    participants: Tuple[Participant, ...] = ()
    is_private: bool = True
    source: str = "alita"
    id: Optional[int] = None

    def with_participants(self, participants) -> "Conversation":
        return replace(self, participants=tuple(participants))

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "is_private": self.is_private,
            "source": self.source,
            "participants": [p.to_payload() for p in self.participants],
        }


@dataclass(frozen=True)
class Message:
    """消息日志中的一条消息。

    content 仅在 streaming 状态下增长，进入 complete/failed 后冻结。
    target 记录该轮用户消息/助手回复所针对的参与者显示名。
    """

    kind: MessageKind
    content: str = ""
    state: MessageState = "complete"
    id: str = field(default_factory=lambda: f"m-{uuid4().hex}")
    timestamp: datetime = field(default_factory=utcnow)
    target: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


@dataclass(frozen=True)
class ModelSettings:
    temperature: float
    top_k: int
    top_p: float
    max_tokens: int
    stream: bool
    model_name: str
    integration_uid: str
    integration_name: str

    def to_payload(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "top_k": self.top_k,
            "top_p": self.top_p,
            "max_tokens": self.max_tokens,
            "stream": self.stream,
            "model": {
                "model_name": self.model_name,
                "integration_uid": self.integration_uid,
                "integration_name": self.integration_name,
            },
        }


@dataclass(frozen=True)
class PredictRequest:
    """一次生成请求，参数全部取自目标参与者。"""

    user_input: str
    model_settings: ModelSettings
    type: str = "chat"
    variables: Tuple[Dict[str, str], ...] = ()
    format_response: bool = True

    @classmethod
    def for_participant(
        cls,
        participant: Participant,
        user_input: str,
        *,
        stream: bool,
        integration_name: str,
    ) -> "PredictRequest":
        return cls(
            user_input=user_input,
            model_settings=ModelSettings(
                temperature=participant.temperature,
                top_k=participant.top_k,
                top_p=participant.top_p,
                max_tokens=participant.max_tokens,
                stream=stream,
                model_name=participant.model_name,
                integration_uid=participant.integration_uid,
                integration_name=integration_name,
            ),
        )

    @property
    def stream(self) -> bool:
        return self.model_settings.stream

    def to_payload(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "model_settings": self.model_settings.to_payload(),
            "variables": [dict(v) for v in self.variables],
            "user_input": self.user_input,
            "format_response": self.format_response,
        }


@dataclass(frozen=True)
class CatalogEntry:
    """远端目录中的一个可选参与者。"""

    id: int
    name: str
    description: str = ""
    status: Optional[str] = None
    author: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "CatalogEntry":
        author = data.get("author")
        if isinstance(author, dict):
            author = author.get("name") or author.get("email")
        status = data.get("status")
        if status is None:
            version = data.get("version_details") or {}
            status = version.get("status")
        return cls(
            id=data["id"],
            name=data.get("name") or "",
            description=data.get("description") or "",
            status=status,
            author=author,
            created_at=data.get("created_at"),
        )


@dataclass(frozen=True)
class CatalogPage:
    total: int
    entries: Tuple[CatalogEntry, ...]

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "CatalogPage":
        rows: List[Dict[str, Any]] = data.get("rows") or []
        entries = tuple(CatalogEntry.from_payload(r) for r in rows if "id" in r)
        return cls(total=data.get("total", len(entries)), entries=entries)


@dataclass(frozen=True)
class ActionResult:
    """会话变更类操作的返回值：失败时 error 保存可读错误信息。"""

    success: bool
    data: Any = None
    error: Optional[str] = None
