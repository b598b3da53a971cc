"""进程内的会话状态存储。

所有变更都会整体替换对应的元组，读者拿到的快照不会被后续变更修改。
参与者变更作用于当前激活的会话，并同步到已知会话列表中。
"""

from typing import Optional, Tuple

from chat_core.domain.conversation import ConversationStore
from chat_core.domain.exceptions import BusinessError
from chat_core.domain.models import Conversation, Message, Participant


class InMemoryConversationStore(ConversationStore):
    def __init__(self):
        self._active: Optional[Conversation] = None
        self._conversations: Tuple[Conversation, ...] = ()
        self._messages: Tuple[Message, ...] = ()

    # ---- 读取 ----

    @property
    def active(self) -> Optional[Conversation]:
        return self._active

    @property
    def conversations(self) -> Tuple[Conversation, ...]:
        return self._conversations

    @property
    def messages(self) -> Tuple[Message, ...]:
        return self._messages

    @property
    def participants(self) -> Tuple[Participant, ...]:
        if self._active is None:
            return ()
        return self._active.participants

    # ---- 会话 ----

    def add_conversation(self, conversation: Conversation) -> None:
        self._conversations = self._conversations + (conversation,)

    def set_active(self, conversation: Conversation, clear_messages: bool = True) -> None:
        self._active = conversation
        if clear_messages:
            self._messages = ()

    # ---- 消息 ----

    def append_message(self, message: Message) -> None:
        self._messages = self._messages + (message,)

    def replace_message(self, message: Message) -> None:
        replaced = False
        updated = []
        for m in self._messages:
            if m.id == message.id:
                updated.append(message)
                replaced = True
            else:
                updated.append(m)
        if not replaced:
            raise BusinessError(code="MESSAGE_NOT_FOUND", message=f"Unknown message: {message.id}")
        self._messages = tuple(updated)

    # ---- 参与者 ----
    # index 必须来自当前参与者快照，越界行为未定义

    def append_participant(self, participant: Participant) -> None:
        self._update_participants(self.participants + (participant,))

    def remove_participant(self, index: int) -> None:
        current = self.participants
        self._update_participants(current[:index] + current[index + 1:])

    def replace_participant(self, index: int, participant: Participant) -> None:
        updated = list(self.participants)
        updated[index] = participant
        self._update_participants(updated)

    def _update_participants(self, participants) -> None:
        if self._active is None:
            raise BusinessError(code="NO_ACTIVE_CONVERSATION", message="No active conversation")
        previous = self._active
        updated = previous.with_participants(participants)
        self._active = updated
        self._conversations = tuple(
            updated if (c is previous or (c.id is not None and c.id == previous.id)) else c
            for c in self._conversations
        )
