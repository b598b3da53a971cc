"""领域层模型与协议。

包含：
- models: Participant / Conversation / Message / PredictRequest 等数据模型。
- conversation: 会话状态存储协议 ConversationStore。
- exceptions: 业务异常类型定义。
"""
