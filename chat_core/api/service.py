"""对外 API 服务模块。

提供简化的函数接口供上层应用调用，返回值均为普通字典。
"""

from typing import Any, Dict, Optional

from chat_core.chat.session import ChatSession
from chat_core.config.settings import settings
from chat_core.domain.models import Message
from chat_core.infrastructure.logging.logger import logger
from chat_core.providers import create_client


_session: Optional[ChatSession] = None


def get_default_session() -> ChatSession:
    """获取默认的 ChatSession 实例（单例）。

    配置缺失时抛出 ConfigurationError，由调用方提示一次即可。
    """
    global _session
    if _session is None:
        _session = ChatSession(client=create_client(cfg=settings), cfg=settings)
    return _session


def reset_default_session() -> None:
    global _session
    _session = None


def _message_to_dict(m: Message) -> Dict[str, Any]:
    return {
        "id": m.id,
        "type": m.kind,
        "content": m.content,
        "state": m.state,
        "target": m.target,
        "timestamp": m.timestamp.isoformat(),
    }


def start_conversation(name: str) -> Dict[str, Any]:
    """创建会话（使用默认参与者）并设为当前会话。"""
    session = get_default_session()
    result = session.create_conversation(name)
    if not result.success:
        return {"success": False, "error": result.error}
    conv = result.data
    return {
        "success": True,
        "conversation_id": conv.id,
        "name": conv.name,
        "participants": [p.display_name for p in conv.participants],
    }


def run_chat_turn(user_input: str) -> Dict[str, Any]:
    """在当前会话中执行一轮对话。

    Args:
        user_input: 用户输入内容，可包含完整的 "@<显示名>" 指定目标，
            否则发给第一个参与者

    Returns:
        包含会话ID与助手消息的字典

    Raises:
        各种 domain.exceptions 中定义的异常
    """
    try:
        session = get_default_session()
        assistant = session.send_message(user_input)
        active = session.store.active
        return {
            "conversation_id": active.id if active else None,
            "assistant_message": _message_to_dict(assistant) if assistant else None,
        }
    except Exception as e:
        logger.error(f"Chat failed: {e}", extra={"extra": {
            "error": str(e),
        }})
        raise


def list_messages() -> list[Dict[str, Any]]:
    """获取当前会话的所有消息。"""
    session = get_default_session()
    return [_message_to_dict(m) for m in session.store.messages]


def list_available_participants(limit: Optional[int] = None) -> Dict[str, Any]:
    """列出远端目录中的可选参与者。"""
    session = get_default_session()
    result = session.list_available_participants(limit)
    if not result.success:
        return {"success": False, "error": result.error}
    page = result.data
    return {
        "success": True,
        "total": page.total,
        "rows": [
            {
                "id": e.id,
                "name": e.name,
                "description": e.description,
                "status": e.status,
                "author": e.author,
                "created_at": e.created_at,
            }
            for e in page.entries
        ],
    }
