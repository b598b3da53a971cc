"""Elitea 会话服务适配器。

本模块负责：

1. 把 Conversation / Participant / PredictRequest 转成远端 HTTP 请求。
2. 调用 HTTP 接口，把网络错误、限流和非 2xx 状态统一包装为 TransportError。
3. 生成接口的回复在读取时按 Content-Type 分流：事件流逐块解码，
   一次性 JSON 整体解析，对调用方都表现为同一种内容增量序列。

所有请求都携带 Bearer 凭据，配置了 Cookie 时一并带上。
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

import httpx

from chat_core.config.settings import require_credentials, settings
from chat_core.domain.exceptions import ApiError, NetworkError, RateLimitError
from chat_core.domain.models import CatalogPage, Conversation, Participant, PredictRequest
from chat_core.infrastructure.logging.logger import log_event
from chat_core.providers.registry import ELITEA_CONFIG
from chat_core.providers.stream import describe_reply, is_event_stream, iter_batch_reply, iter_event_stream


class EliteaClient:
    """Elitea 远端服务客户端实现。

    - name: Provider 名称（供日志/调试使用）。
    - stream_predict: 生成调用，返回惰性的内容增量序列。
    """

    name = "elitea"

    def __init__(self, cfg=settings):
        # 凭据缺失时立即失败，而不是等到第一次发送
        require_credentials(cfg)
        self._settings = cfg

    # ---- 会话与参与者 ----

    def create_conversation(self, conversation: Conversation) -> Dict[str, Any]:
        """持久化一个新会话，返回远端会话描述（含 id）。"""

        url = self._url(ELITEA_CONFIG.endpoints.conversations)
        return self._post(url, conversation.to_payload())

    def add_participants(self, conversation_id: int, participants: List[Participant]) -> Any:
        url = self._url(ELITEA_CONFIG.endpoints.participants, conversation_id=conversation_id)
        return self._post(url, [p.to_payload() for p in participants])

    def add_catalog_participant(self, conversation_id: int, participant_id: int) -> Any:
        """把目录中的参与者按 ID 加入会话。"""

        url = self._url(ELITEA_CONFIG.endpoints.participants, conversation_id=conversation_id)
        body = {
            "entity_name": "user",
            "entity_meta": {"id": participant_id},
            "meta": {},
            "entity_settings": {},
        }
        return self._post(url, body)

    def list_available_participants(self, limit: int = 10) -> CatalogPage:
        url = self._url(ELITEA_CONFIG.endpoints.applications)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.get(
                    url,
                    params={"limit": limit, "agents_type": "all"},
                    headers=self._headers(json_body=False),
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        self._raise_for_status(resp.status_code, resp.text)
        return CatalogPage.from_payload(self._decode_json(resp))

    # ---- 生成 ----

    def stream_predict(self, req: PredictRequest) -> Iterator[str]:
        """执行一次生成调用，逐个 yield 内容增量。

        是否要求流式由 req.stream 决定；实际按哪种方式解码只看回复的 Content-Type，
        请求了流式但服务端返回普通 JSON 时同样能正确处理。
        """

        url = self._url(ELITEA_CONFIG.endpoints.predict)
        log_ctx = {"provider": self.name, "stream_requested": req.stream}
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    url,
                    json=req.to_payload(),
                    headers=self._headers(),
                ) as resp:
                    if not 200 <= resp.status_code < 300:
                        resp.read()
                        self._raise_for_status(resp.status_code, resp.text)
                    content_type = resp.headers.get("content-type", "")
                    if is_event_stream(content_type):
                        log_event(logging.INFO, "Reading event stream", log_ctx, content_type=content_type)
                        yield from iter_event_stream(resp.iter_text())
                    else:
                        resp.read()
                        data = self._decode_json(resp)
                        log_event(logging.INFO, "Read batch reply", log_ctx, **describe_reply(data))
                        yield from iter_batch_reply(data)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

    # ---- 辅助方法 ----

    def _post(self, url: str, body: Any) -> Any:
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(url, json=body, headers=self._headers())
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        self._raise_for_status(resp.status_code, resp.text)
        return self._decode_json(resp)

    def _url(self, template: str, **params: Any) -> str:
        path = template.format(project_id=self._settings.project_id, **params)
        return f"{self._settings.elitea_api_url}{path}"

    def _headers(self, json_body: bool = True) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self._settings.elitea_bearer_token}"}
        if json_body:
            headers["Content-Type"] = "application/json"
        cookie: Optional[str] = getattr(self._settings, "elitea_cookie", None)
        if cookie:
            headers["Cookie"] = cookie
        return headers

    @staticmethod
    def _raise_for_status(status_code: int, body: str) -> None:
        if status_code == 429:
            raise RateLimitError(
                code="RATE_LIMIT",
                message="Elitea rate limit",
                http_status=status_code,
                body=body,
            )
        if not 200 <= status_code < 300:
            raise ApiError(
                code="API_ERROR",
                message=f"HTTP error! status: {status_code} - {body}",
                http_status=status_code,
                body=body,
            )

    @staticmethod
    def _decode_json(resp) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(code="INVALID_RESPONSE", message=f"Invalid JSON response: {e}", http_status=502)
