"""助手消息的增量合并。

一条助手消息的生命周期：

    pending --首个增量--> streaming --序列结束--> complete
       |                      |
       +----序列为空---> complete
       +----任何异常----------+--> failed

合并规则：第一个增量直接替换占位内容，之后的增量以单个空格追加。
一次性回复的第一段往往已经是完整的第一块，因此不能给它加前缀空格。
失败时丢弃已累积内容，换成固定的致歉文案；进入终态时刷新时间戳。

同一会话内同时只允许一条 pending/streaming 的消息。
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, Iterator, Optional

from chat_core.domain.conversation import ConversationStore
from chat_core.domain.exceptions import BusinessError, TurnInProgressError
from chat_core.domain.models import Message, utcnow
from chat_core.infrastructure.logging.logger import log_event


FAILURE_TEXT = "Sorry, I encountered an error. Please try again."


class MessageReconciler:
    def __init__(self, store: ConversationStore, failure_text: str = FAILURE_TEXT):
        self._store = store
        self._failure_text = failure_text
        self._message: Optional[Message] = None
        self._applied = 0

    @property
    def message(self) -> Optional[Message]:
        """当前持有的在途消息；已释放时为 None。"""
        return self._message

    @property
    def busy(self) -> bool:
        if self._message is not None:
            return True
        return any(not m.is_terminal for m in self._store.messages)

    def begin(self, target: Optional[str] = None) -> Message:
        """创建占位消息并追加到消息日志。"""

        if self.busy:
            raise TurnInProgressError(
                code="TURN_IN_PROGRESS",
                message="An assistant reply is still in progress",
                http_status=409,
            )
        message = Message(kind="assistant", content="", state="pending", target=target)
        self._store.append_message(message)
        self._message = message
        self._applied = 0
        return message

    def apply(self, increment: str) -> Message:
        message = self._require_message()
        if self._applied == 0:
            content = increment
        else:
            content = f"{message.content} {increment}"
        self._applied += 1
        return self._commit(replace(message, content=content, state="streaming"))

    def complete(self) -> Message:
        message = self._require_message()
        try:
            return self._commit(replace(message, state="complete", timestamp=utcnow()))
        finally:
            self._release()

    def fail(self) -> Message:
        """进入 failed；即使写回消息日志失败，也会释放在途消息。"""

        message = self._require_message()
        try:
            return self._commit(
                replace(message, content=self._failure_text, state="failed", timestamp=utcnow())
            )
        finally:
            self._release()

    def reconcile(
        self,
        increments: Iterable[str],
        target: Optional[str] = None,
        log_ctx: Optional[Dict[str, Any]] = None,
    ) -> Iterator[Message]:
        """驱动一轮回复，每次状态变化后 yield 当前消息快照。

        调用方提前关闭本生成器（例如会话视图被关闭）时，不再应用后续增量，
        上游序列随之关闭，消息以已累积的内容进入 complete。
        """

        ctx = dict(log_ctx or {})
        message = self.begin(target=target)
        ctx["message_id"] = message.id
        iterator = iter(increments)
        try:
            yield message
            for increment in iterator:
                yield self.apply(increment)
        except GeneratorExit:
            log_event(logging.INFO, "Turn abandoned by consumer", ctx, applied=self._applied)
            self.complete()
            raise
        except Exception as exc:
            code = exc.code if isinstance(exc, BusinessError) else type(exc).__name__
            log_event(logging.ERROR, "Reply failed", ctx, error=str(exc), error_code=code)
            yield self.fail()
            return
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()
        log_event(logging.INFO, "Reply completed", ctx, increments=self._applied)
        yield self.complete()

    def _commit(self, message: Message) -> Message:
        self._store.replace_message(message)
        self._message = message
        return message

    def _release(self) -> None:
        self._message = None
        self._applied = 0

    def _require_message(self) -> Message:
        if self._message is None:
            raise BusinessError(code="NO_PENDING_MESSAGE", message="No assistant message in progress")
        return self._message
