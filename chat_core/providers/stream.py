"""生成回复的解码：把事件流或一次性 JSON 统一还原为内容增量序列。

- 事件流（text/event-stream、text/plain）：按行切分，只处理以 "data: " 开头的完整行，
  "[DONE]" 为空操作哨兵，JSON 片段中非空的 content 字段产出一个增量。
  单个片段无法解析时直接跳过，不影响后续片段。
- 一次性 JSON：messages 列表按内嵌时间戳稳定排序后逐条产出；
  否则取顶层 content 产出一个增量。
"""

import json
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional

logger = logging.getLogger("chat_core.stream")

EVENT_STREAM_TYPES = ("text/event-stream", "text/plain")
DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def is_event_stream(content_type: Optional[str]) -> bool:
    """根据 Content-Type 判断回复是否为事件流。"""

    if not content_type:
        return False
    lowered = content_type.lower()
    return any(t in lowered for t in EVENT_STREAM_TYPES)


class EventStreamDecoder:
    """增量解码器：接收任意切分的文本块，只对完整的行产出增量。

    不完整的尾部保留在缓冲区中等待下一块；流结束时仍未成行的部分直接丢弃。
    """

    def __init__(self):
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, text: str) -> List[str]:
        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        increments: List[str] = []
        for line in lines:
            content = parse_data_line(line)
            if content is not None:
                increments.append(content)
        return increments


def parse_data_line(line: str) -> Optional[str]:
    """解析单行事件数据，返回其中的 content；哨兵或坏片段返回 None。"""

    line = line.rstrip("\r")
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):]
    if data == DONE_SENTINEL:
        return None
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Dropped malformed stream fragment", extra={"extra": {"fragment": data[:64]}})
        return None
    if not isinstance(parsed, dict):
        return None
    content = parsed.get("content")
    if not content or not isinstance(content, str):
        return None
    return content


def iter_event_stream(chunks: Iterable[str]) -> Iterator[str]:
    """把事件流文本块序列解码为内容增量序列。"""

    decoder = EventStreamDecoder()
    for chunk in chunks:
        for increment in decoder.feed(chunk):
            yield increment
    if decoder.pending:
        logger.debug(
            "Discarded incomplete trailing frame",
            extra={"extra": {"pending_bytes": len(decoder.pending)}},
        )


def iter_batch_reply(data: Any) -> Iterator[str]:
    """把一次性 JSON 回复解码为内容增量序列。"""

    if not isinstance(data, dict):
        return
    messages = data.get("messages")
    if isinstance(messages, list):
        for message in order_sub_messages(messages):
            if not isinstance(message, dict):
                continue
            content = message.get("content")
            if content and isinstance(content, str):
                yield content
        return
    content = data.get("content")
    if content and isinstance(content, str):
        yield content


def order_sub_messages(messages: List[Any]) -> List[Any]:
    """按内嵌时间戳稳定排序；只要有一条缺少时间戳就保持到达顺序。"""

    stamps = [sub_message_timestamp(m) for m in messages]
    if not messages or any(s is None for s in stamps):
        return list(messages)
    order = sorted(range(len(messages)), key=lambda i: stamps[i])
    return [messages[i] for i in order]


def sub_message_timestamp(message: Any) -> Optional[datetime]:
    """读取 response_metadata.ResponseMetadata.HTTPHeaders.date。"""

    if not isinstance(message, dict):
        return None
    node: Any = message.get("response_metadata")
    for key in ("ResponseMetadata", "HTTPHeaders", "date"):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    if not node or not isinstance(node, str):
        return None
    return _parse_timestamp(node)


def _parse_timestamp(raw: str) -> Optional[datetime]:
    parsed: Optional[datetime]
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def describe_reply(data: Any) -> Dict[str, Any]:
    """返回一次性回复的结构摘要，仅用于日志。"""

    messages = data.get("messages") if isinstance(data, dict) else None
    return {
        "shape": "messages" if isinstance(messages, list) else "content",
        "count": len(messages) if isinstance(messages, list) else 1,
    }
