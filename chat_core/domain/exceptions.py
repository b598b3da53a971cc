"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在会话层或 UI 层做统一捕获与用户提示。

分类：
- ConfigurationError: 凭据等配置缺失，阻断所有网络调用。
- TransportError 及其子类: 单次请求失败，由调用方就近吸收。
- ValidationError: 参数校验失败。
- TurnInProgressError: 上一轮回复尚未结束时又发起新一轮。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "API_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 missing、body 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigurationError(BusinessError):
    """配置缺失或无效，启动时提示一次。"""


class TransportError(BusinessError):
    """传输层错误的公共基类。"""


class NetworkError(TransportError):
    """网络层错误，例如连接失败、读取中断等。"""


class ApiError(TransportError):
    """远端返回非 2xx 状态时抛出，message 保留服务端返回的错误内容。"""

    @property
    def body(self) -> str:
        return self.extra.get("body", "")


class RateLimitError(ApiError):
    """远端限流（429）。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class TurnInProgressError(BusinessError):
    """同一会话中已有未结束的助手消息。"""
