"""Provider 抽象接口。

会话层不直接依赖 HTTP 细节，而是依赖此协议：

- stream_predict(req): 发起生成请求，返回惰性的内容增量序列（字符串）。
  无论远端以事件流还是一次性 JSON 回复，调用方看到的都是同一种序列。
- 其余方法对应会话/参与者的远端变更与目录查询。

测试中可以用任意实现了这些方法的假对象替换真实客户端。
"""

from typing import Any, Dict, Iterator, List, Protocol

from chat_core.domain.models import CatalogPage, Conversation, Participant, PredictRequest


class GenerationClient(Protocol):
    """远端会话服务客户端协议。"""

    name: str

    def stream_predict(self, req: PredictRequest) -> Iterator[str]:
        """执行一次生成调用，逐个产出内容增量。"""

        ...

    def create_conversation(self, conversation: Conversation) -> Dict[str, Any]:
        ...

    def add_participants(self, conversation_id: int, participants: List[Participant]) -> Any:
        ...

    def add_catalog_participant(self, conversation_id: int, participant_id: int) -> Any:
        ...

    def list_available_participants(self, limit: int = 10) -> CatalogPage:
        ...
