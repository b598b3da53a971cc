import httpx
import pytest

from chat_core.domain.exceptions import ApiError, ConfigurationError, NetworkError, RateLimitError
from chat_core.domain.models import Conversation, Participant, PredictRequest
from chat_core.providers.elitea_client import EliteaClient


class SettingsStub:
    elitea_api_url = "https://elitea.test/api/v1"
    elitea_bearer_token = "secret-token"
    elitea_cookie = "session=abc"
    project_id = 42
    http_timeout = 1.0


def make_request(stream=True):
    participant = Participant(entity_name="llm", model_name="m-1", integration_uid="uid-1")
    return PredictRequest.for_participant(participant, "hi", stream=stream, integration_name="my_integration")


class FakeResponse:
    def __init__(self, status_code=200, content_type="application/json", chunks=None, data=None, text=""):
        self.status_code = status_code
        self.headers = {"content-type": content_type}
        self._chunks = list(chunks or [])
        self._data = data
        self.text = text
        self.read_called = False

    def iter_text(self):
        for chunk in self._chunks:
            yield chunk

    def read(self):
        self.read_called = True
        return b""

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


class StreamContext:
    def __init__(self, response):
        self._response = response

    def __enter__(self):
        return self._response

    def __exit__(self, *args):
        return False


def install_client(monkeypatch, response=None, error=None):
    calls = []

    class Client:
        def __init__(self, *a, **kw):
            calls.append(("init", kw))

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def stream(self, method, url, **kw):
            calls.append(("stream", method, url, kw))
            if error:
                raise error
            return StreamContext(response)

        def post(self, url, **kw):
            calls.append(("post", url, kw))
            if error:
                raise error
            return response

        def get(self, url, **kw):
            calls.append(("get", url, kw))
            if error:
                raise error
            return response

    monkeypatch.setattr("httpx.Client", Client)
    return calls


def test_client_requires_credentials():
    class Missing(SettingsStub):
        elitea_bearer_token = None

    with pytest.raises(ConfigurationError):
        EliteaClient(Missing())


def test_stream_predict_event_stream(monkeypatch):
    response = FakeResponse(
        content_type="text/event-stream",
        chunks=['data: {"content": "Hel', 'lo"}\ndata: {"content": "there"}\n', "data: [DONE]\n"],
    )
    calls = install_client(monkeypatch, response=response)
    increments = list(EliteaClient(SettingsStub()).stream_predict(make_request()))
    assert increments == ["Hello", "there"]

    _, method, url, kw = [c for c in calls if c[0] == "stream"][0]
    assert method == "POST"
    assert url == "https://elitea.test/api/v1/prompt_lib/predict/prompt_lib/42"
    assert kw["json"]["model_settings"]["stream"] is True
    assert kw["headers"]["Authorization"] == "Bearer secret-token"
    assert kw["headers"]["Cookie"] == "session=abc"


def test_stream_predict_handles_batch_reply_when_stream_requested(monkeypatch):
    response = FakeResponse(
        content_type="application/json",
        data={"messages": [{"content": "one"}, {"content": "two"}]},
    )
    install_client(monkeypatch, response=response)
    increments = list(EliteaClient(SettingsStub()).stream_predict(make_request(stream=True)))
    assert increments == ["one", "two"]


def test_stream_predict_api_error_keeps_status_and_body(monkeypatch):
    response = FakeResponse(status_code=500, text="internal boom")
    install_client(monkeypatch, response=response)
    with pytest.raises(ApiError) as exc:
        list(EliteaClient(SettingsStub()).stream_predict(make_request()))
    assert exc.value.http_status == 500
    assert exc.value.body == "internal boom"
    assert response.read_called


def test_stream_predict_rate_limit(monkeypatch):
    install_client(monkeypatch, response=FakeResponse(status_code=429, text="slow down"))
    with pytest.raises(RateLimitError):
        list(EliteaClient(SettingsStub()).stream_predict(make_request()))


def test_stream_predict_network_error(monkeypatch):
    install_client(monkeypatch, error=httpx.ConnectError("connection refused"))
    with pytest.raises(NetworkError):
        list(EliteaClient(SettingsStub()).stream_predict(make_request()))


def test_stream_predict_invalid_json(monkeypatch):
    install_client(monkeypatch, response=FakeResponse(content_type="application/json", data=None))
    with pytest.raises(ApiError) as exc:
        list(EliteaClient(SettingsStub()).stream_predict(make_request()))
    assert exc.value.code == "INVALID_RESPONSE"


def test_create_conversation(monkeypatch):
    calls = install_client(monkeypatch, response=FakeResponse(data={"id": 99}))
    conv = Conversation(
        name="demo",
        participants=(Participant(entity_name="llm", model_name="m-1", integration_uid="uid-1"),),
    )
    data = EliteaClient(SettingsStub()).create_conversation(conv)
    assert data == {"id": 99}
    _, url, kw = [c for c in calls if c[0] == "post"][0]
    assert url == "https://elitea.test/api/v1/chat/conversations/prompt_lib/42"
    assert kw["json"]["name"] == "demo"
    assert kw["json"]["participants"][0]["entity_name"] == "llm"


def test_add_participants_and_catalog_participant(monkeypatch):
    calls = install_client(monkeypatch, response=FakeResponse(data=[{"id": 5}]))
    client = EliteaClient(SettingsStub())
    client.add_participants(99, [Participant(entity_name="llm", model_name="m", integration_uid="u")])
    client.add_catalog_participant(99, 12)
    posts = [c for c in calls if c[0] == "post"]
    assert posts[0][1] == "https://elitea.test/api/v1/chat/participants/prompt_lib/42/99"
    assert isinstance(posts[0][2]["json"], list)
    assert posts[1][2]["json"] == {
        "entity_name": "user",
        "entity_meta": {"id": 12},
        "meta": {},
        "entity_settings": {},
    }


def test_add_participants_error(monkeypatch):
    install_client(monkeypatch, response=FakeResponse(status_code=403, text="forbidden"))
    with pytest.raises(ApiError) as exc:
        EliteaClient(SettingsStub()).add_participants(1, [])
    assert "403" in exc.value.message
    assert "forbidden" in exc.value.message


def test_list_available_participants(monkeypatch):
    response = FakeResponse(data={"total": 1, "rows": [{"id": 3, "name": "Helper"}]})
    calls = install_client(monkeypatch, response=response)
    page = EliteaClient(SettingsStub()).list_available_participants(limit=5)
    assert page.total == 1
    assert page.entries[0].name == "Helper"
    _, url, kw = [c for c in calls if c[0] == "get"][0]
    assert url == "https://elitea.test/api/v1/applications/applications/prompt_lib/42"
    assert kw["params"] == {"limit": 5, "agents_type": "all"}
    assert "Content-Type" not in kw["headers"]
