"""Chat Core 顶层包。

该包提供多参与者对话客户端的核心实现，
包括配置加载、领域模型、远端服务适配、事件流/批量回复解码、
@ 提及解析、助手消息增量合并与会话状态存储等能力。
"""

from chat_core.chat.session import ChatSession

__all__ = ["ChatSession"]
