"""@ 提及解析。

用户在输入框末尾键入 "@xxx" 时进入提及模式：按显示名（优先 alias）做
不区分大小写的子串匹配给出候选；选中候选后把末尾的 "@xxx" 替换为
"@<显示名> "，并记住该参与者作为本轮的显式目标，直到输入被清空或提交。

没有显式目标时，提交文本中写全的 "@<显示名>" 决定目标；两者都没有时，
本轮默认发给会话的第一个参与者。
"""

from typing import List, Optional, Sequence

from chat_core.domain.models import Participant


def detect_mention(text: str) -> Optional[str]:
    """返回末尾处于活动状态的提及查询串，不在提及模式时返回 None。

    >>> detect_mention("hello @")
    ''
    >>> detect_mention("hello @bob")
    'bob'
    >>> detect_mention("hello @bob is here") is None
    True
    """

    at = text.rfind("@")
    if at < 0:
        return None
    if at > 0 and not text[at - 1].isspace():
        return None
    query = text[at + 1:]
    if any(ch.isspace() for ch in query):
        return None
    return query


def filter_candidates(query: str, roster: Sequence[Participant]) -> List[Participant]:
    """按显示名子串匹配（不区分大小写），保持参与者原有顺序。"""

    needle = query.casefold()
    return [p for p in roster if needle in p.display_name.casefold()]


def apply_selection(text: str, participant: Participant) -> str:
    """把末尾的 "@query" 替换为 "@<显示名> "；不在提及模式时原样追加。"""

    query = detect_mention(text)
    if query is None:
        prefix = text if not text or text[-1].isspace() else text + " "
    else:
        prefix = text[: len(text) - len(query) - 1]
    return f"{prefix}@{participant.display_name} "


def find_mention(text: str, roster: Sequence[Participant]) -> Optional[Participant]:
    """返回文本中第一个完整写出的 "@<显示名>" 对应的参与者。

    显示名需整体匹配（不区分大小写），其后为空白或文本结尾；
    同一位置有多个显示名可匹配时取最长的一个。
    """

    folded = text.casefold()
    for at, ch in enumerate(text):
        if ch != "@" or (at > 0 and not text[at - 1].isspace()):
            continue
        rest = folded[at + 1:]
        best: Optional[Participant] = None
        for p in roster:
            name = p.display_name.casefold()
            if not name or not rest.startswith(name):
                continue
            tail = rest[len(name):]
            if tail and not tail[0].isspace():
                continue
            if best is None or len(name) > len(best.display_name):
                best = p
        if best is not None:
            return best
    return None


class MentionResolver:
    """单个输入框的提及状态。"""

    def __init__(self):
        self._target: Optional[Participant] = None
        self._query: Optional[str] = None

    @property
    def target(self) -> Optional[Participant]:
        return self._target

    @property
    def query(self) -> Optional[str]:
        return self._query

    @property
    def active(self) -> bool:
        return self._query is not None

    def update(self, text: str, roster: Sequence[Participant]) -> List[Participant]:
        """输入变化时调用，返回当前候选列表。"""

        if not text:
            self.clear()
            return []
        self._query = detect_mention(text)
        if self._query is None:
            return []
        return filter_candidates(self._query, roster)

    def select(self, text: str, participant: Participant) -> str:
        """选中一个候选，返回替换后的输入文本。"""

        self._target = participant
        self._query = None
        return apply_selection(text, participant)

    def clear(self) -> None:
        self._target = None
        self._query = None

    def resolve_target(self, roster: Sequence[Participant], text: str = "") -> Optional[Participant]:
        """本轮目标：显式选中的参与者，其次是提交文本中写全的 @显示名，否则为第一个参与者。"""

        if self._target is not None:
            return self._target
        typed = find_mention(text, roster) if text else None
        if typed is not None:
            return typed
        if roster:
            return roster[0]
        return None
