"""会话引擎核心模块。

把会话/参与者管理、@ 提及解析、生成请求组装与助手消息合并串成一轮对话：

    用户输入 -> MentionResolver -> (文本, 目标参与者)
             -> PredictRequest（目标参与者的生成参数）
             -> GenerationClient.stream_predict -> 内容增量
             -> MessageReconciler -> ConversationStore

所有状态变化都落在 ConversationStore 的封闭变更集合上。远端变更失败时
返回 ActionResult(success=False)，本地状态保持不变。
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, Iterator, List, Optional
from uuid import uuid4

from chat_core.chat.mentions import MentionResolver
from chat_core.chat.reconciler import MessageReconciler
from chat_core.config.settings import settings
from chat_core.domain.conversation import ConversationStore
from chat_core.domain.exceptions import TransportError, TurnInProgressError, ValidationError
from chat_core.domain.models import (
    ActionResult,
    CatalogEntry,
    Conversation,
    Message,
    Participant,
    PredictRequest,
)
from chat_core.infrastructure.logging.logger import log_event
from chat_core.infrastructure.storage.memory_store import InMemoryConversationStore
from chat_core.providers.base import GenerationClient
from chat_core.providers.registry import default_participant


class ChatSession:
    def __init__(
        self,
        client: GenerationClient,
        store: Optional[ConversationStore] = None,
        mentions: Optional[MentionResolver] = None,
        cfg=settings,
    ):
        self._client = client
        self._store = store or InMemoryConversationStore()
        self._mentions = mentions or MentionResolver()
        self._reconciler = MessageReconciler(self._store)
        self._settings = cfg

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def mentions(self) -> MentionResolver:
        return self._mentions

    @property
    def busy(self) -> bool:
        return self._reconciler.busy

    # ---- 会话 ----

    def create_conversation(
        self,
        name: str,
        participants: Optional[Iterable[Participant]] = None,
        is_private: bool = True,
        source: Optional[str] = None,
    ) -> ActionResult:
        """在远端创建会话，成功后设为当前会话并清空消息日志。

        进行中的一轮尚未结束时抛出 TurnInProgressError，不发起远端请求。
        """

        name = (name or "").strip()
        if not name:
            return ActionResult(success=False, error="Conversation name is required")
        self._ensure_idle("Close the current reply before creating a conversation")
        roster = tuple(participants) if participants is not None else (default_participant(),)
        conversation = Conversation(
            name=name,
            participants=roster,
            is_private=is_private,
            source=source or getattr(self._settings, "default_source", "alita"),
        )
        try:
            data = self._client.create_conversation(conversation)
        except TransportError as e:
            log_event(logging.ERROR, "Create conversation failed", {"name": name}, error=e.message)
            return ActionResult(success=False, error=e.message)

        data = data if isinstance(data, dict) else {}
        created = replace(conversation, id=data.get("id"))
        self._store.add_conversation(created)
        self._store.set_active(created)
        self._mentions.clear()
        log_event(logging.INFO, "Created conversation", {"conversation_id": created.id}, name=name)
        return ActionResult(success=True, data=created)

    def select_conversation(self, conversation: Conversation) -> None:
        """切换当前会话并清空消息日志；需先关闭进行中的一轮。"""

        self._ensure_idle("Close the current reply before switching conversations")
        self._store.set_active(conversation)
        self._mentions.clear()

    # ---- 参与者 ----

    def add_participant(self, participant: Participant) -> ActionResult:
        conversation = self._store.active
        if conversation is None or conversation.id is None:
            return ActionResult(success=False, error="No persisted conversation is active")
        try:
            data = self._client.add_participants(conversation.id, [participant])
        except TransportError as e:
            log_event(
                logging.ERROR,
                "Add participant failed",
                {"conversation_id": conversation.id},
                error=e.message,
            )
            return ActionResult(success=False, error=e.message)
        persisted = self._persisted_participant(data, participant)
        self._store.append_participant(persisted)
        return ActionResult(success=True, data=persisted)

    def add_catalog_participant(self, entry: CatalogEntry) -> ActionResult:
        """把目录中的参与者加入当前会话，显示名取目录名称。"""

        conversation = self._store.active
        if conversation is None or conversation.id is None:
            return ActionResult(success=False, error="No persisted conversation is active")
        try:
            data = self._client.add_catalog_participant(conversation.id, entry.id)
        except TransportError as e:
            log_event(
                logging.ERROR,
                "Add catalog participant failed",
                {"conversation_id": conversation.id},
                error=e.message,
                participant_id=entry.id,
            )
            return ActionResult(success=False, error=e.message)
        base = default_participant()
        local = Participant(
            entity_name="user",
            model_name=base.model_name,
            integration_uid=base.integration_uid,
            temperature=base.temperature,
            top_p=base.top_p,
            top_k=base.top_k,
            max_tokens=base.max_tokens,
            id=entry.id,
            alias=entry.name,
        )
        persisted = self._persisted_participant(data, local)
        self._store.append_participant(persisted)
        return ActionResult(success=True, data=persisted)

    def remove_participant(self, index: int) -> None:
        self._store.remove_participant(index)

    def update_participant(self, index: int, participant: Participant) -> None:
        self._store.replace_participant(index, participant)

    def list_available_participants(self, limit: Optional[int] = None) -> ActionResult:
        limit = limit or getattr(self._settings, "participant_list_limit", 10)
        try:
            page = self._client.list_available_participants(limit=limit)
        except TransportError as e:
            log_event(logging.ERROR, "List participants failed", {}, error=e.message, limit=limit)
            return ActionResult(success=False, error=e.message)
        return ActionResult(success=True, data=page)

    # ---- @ 提及 ----

    def input_changed(self, text: str) -> List[Participant]:
        return self._mentions.update(text, self._store.participants)

    def select_mention(self, text: str, participant: Participant) -> str:
        return self._mentions.select(text, participant)

    # ---- 对话 ----

    def stream_turn(self, text: str) -> Iterator[Message]:
        """执行一轮对话，逐步 yield 用户消息与助手消息的快照。

        空白输入直接忽略。上一轮尚未结束时抛出 TurnInProgressError，
        不会改动任何状态；关闭本生成器即停止应用后续增量。
        """

        user_input = (text or "").strip()
        if not user_input:
            return
        conversation = self._store.active
        if conversation is None:
            raise ValidationError(code="NO_ACTIVE_CONVERSATION", message="No active conversation")
        self._ensure_idle("An assistant reply is still in progress")

        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "conversation_id": conversation.id,
        }
        target = self._mentions.resolve_target(conversation.participants, text=user_input)
        self._mentions.clear()
        target_name = target.display_name if target else None

        user_message = Message(kind="user", content=user_input, state="complete", target=target_name)
        self._store.append_message(user_message)
        log_event(logging.INFO, "Stored user message", log_ctx, message_id=user_message.id, target=target_name)
        yield user_message

        increments = self._increments_for(target, user_input, log_ctx)
        turn = self._reconciler.reconcile(increments, target=target_name, log_ctx=log_ctx)
        try:
            for snapshot in turn:
                yield snapshot
        finally:
            turn.close()

    def send_message(self, text: str) -> Optional[Message]:
        """执行完整的一轮对话，返回终态的助手消息（空白输入返回 None）。"""

        last: Optional[Message] = None
        for snapshot in self.stream_turn(text):
            last = snapshot
        if last is None or last.kind != "assistant":
            return None
        return last

    def _increments_for(
        self,
        target: Optional[Participant],
        user_input: str,
        log_ctx: Dict[str, Any],
    ) -> Iterator[str]:
        """延迟到首次迭代时才组装请求，目标缺失等错误也由合并器处理为失败。"""

        if target is None:
            raise ValidationError(code="NO_PARTICIPANT", message="Conversation has no participants")
        req = PredictRequest.for_participant(
            target,
            user_input,
            stream=getattr(self._settings, "prefer_streaming", True),
            integration_name=getattr(self._settings, "integration_name", "my_integration"),
        )
        log_event(
            logging.INFO,
            "Calling provider",
            log_ctx,
            provider=getattr(self._client, "name", None),
            model=target.model_name,
            stream=req.stream,
        )
        yield from self._client.stream_predict(req)

    @staticmethod
    def _persisted_participant(data: Any, fallback: Participant) -> Participant:
        """优先采用远端返回的参与者描述（可能带有远端分配的 id）。"""

        if isinstance(data, list) and data:
            data = data[0]
        if not isinstance(data, dict):
            return fallback
        try:
            persisted = Participant.from_payload(data, defaults=fallback)
        except (ValidationError, TypeError, ValueError):
            log_event(logging.WARNING, "Ignored malformed participant descriptor", {}, entity_name=fallback.entity_name)
            return fallback
        return persisted

    def _ensure_idle(self, message: str) -> None:
        if self._reconciler.busy:
            raise TurnInProgressError(code="TURN_IN_PROGRESS", message=message, http_status=409)
