from typing import Optional, Protocol, Tuple

from .models import Conversation, Message, Participant


class ConversationStore(Protocol):
    """会话状态存储协议。

    只暴露只读快照和一组封闭的变更操作；任何组件都不能绕过这些操作
    修改会话或消息日志。
    """

    @property
    def active(self) -> Optional[Conversation]:
        ...

    @property
    def conversations(self) -> Tuple[Conversation, ...]:
        ...

    @property
    def messages(self) -> Tuple[Message, ...]:
        ...

    @property
    def participants(self) -> Tuple[Participant, ...]:
        ...

    def add_conversation(self, conversation: Conversation) -> None:
        ...

    def set_active(self, conversation: Conversation, clear_messages: bool = True) -> None:
        ...

    def append_message(self, message: Message) -> None:
        ...

    def replace_message(self, message: Message) -> None:
        ...

    def append_participant(self, participant: Participant) -> None:
        ...

    def remove_participant(self, index: int) -> None:
        ...

    def replace_participant(self, index: int, participant: Participant) -> None:
        ...
