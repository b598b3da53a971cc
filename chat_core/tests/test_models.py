import pytest

from chat_core.domain.exceptions import ValidationError
from chat_core.domain.models import (
    CatalogPage,
    Conversation,
    Message,
    Participant,
    PredictRequest,
)


def make_participant(**overrides):
    data = dict(entity_name="llm", model_name="m-1", integration_uid="uid-1")
    data.update(overrides)
    return Participant(**data)


def test_participant_display_name_prefers_alias():
    assert make_participant().display_name == "llm"
    assert make_participant(alias="Helper").display_name == "Helper"


@pytest.mark.parametrize(
    "field,value",
    [
        ("temperature", 2.5),
        ("top_p", -0.1),
        ("top_k", -1),
        ("max_tokens", 0),
        ("top_k", True),
        ("max_tokens", True),
        ("temperature", "0.5"),
    ],
)
def test_participant_rejects_out_of_range(field, value):
    with pytest.raises(ValidationError):
        make_participant(**{field: value})


def test_participant_payload_shape():
    p = make_participant(temperature=0.2, top_p=0.9, top_k=5, max_tokens=100, id=7)
    payload = p.to_payload()
    assert payload["entity_name"] == "llm"
    assert payload["entity_meta"] == {"integration_uid": "uid-1", "model_name": "m-1"}
    assert payload["entity_settings"] == {"max_tokens": 100, "top_p": 0.9, "top_k": 5, "temperature": 0.2}
    assert payload["id"] == 7


def test_participant_from_payload_fills_missing_from_defaults():
    defaults = make_participant(alias="Coder", id=3)
    p = Participant.from_payload({"entity_name": "user", "entity_meta": {"id": 3}}, defaults=defaults)
    assert p.entity_name == "user"
    assert p.model_name == "m-1"
    assert p.alias == "Coder"
    assert p.id == 3


def test_conversation_payload_and_copy():
    conv = Conversation(name="demo", participants=(make_participant(),))
    payload = conv.to_payload()
    assert payload["name"] == "demo"
    assert payload["is_private"] is True
    assert payload["source"] == "alita"
    assert len(payload["participants"]) == 1

    updated = conv.with_participants([])
    assert updated.participants == ()
    assert len(conv.participants) == 1


def test_message_defaults():
    m = Message(kind="user", content="hi")
    assert m.id.startswith("m-")
    assert m.state == "complete"
    assert m.is_terminal
    assert not Message(kind="assistant", state="streaming").is_terminal


def test_predict_request_uses_participant_parameters():
    p = make_participant(temperature=1.1, top_p=0.3, top_k=40, max_tokens=512)
    req = PredictRequest.for_participant(p, "hello", stream=False, integration_name="my_integration")
    payload = req.to_payload()
    assert payload["type"] == "chat"
    assert payload["user_input"] == "hello"
    assert payload["variables"] == []
    assert payload["format_response"] is True
    settings = payload["model_settings"]
    assert settings["temperature"] == 1.1
    assert settings["top_k"] == 40
    assert settings["max_tokens"] == 512
    assert settings["stream"] is False
    assert settings["model"] == {
        "model_name": "m-1",
        "integration_uid": "uid-1",
        "integration_name": "my_integration",
    }
    assert req.stream is False


def test_catalog_page_from_payload():
    page = CatalogPage.from_payload(
        {
            "total": 12,
            "rows": [
                {"id": 1, "name": "Helper", "description": "d", "author": {"name": "alice"}, "created_at": "2024-01-01"},
                {"id": 2, "name": "Coder", "version_details": {"status": "published"}},
                {"name": "no id"},
            ],
        }
    )
    assert page.total == 12
    assert [e.name for e in page.entries] == ["Helper", "Coder"]
    assert page.entries[0].author == "alice"
    assert page.entries[1].status == "published"


def test_participant_from_payload_null_settings_use_defaults():
    defaults = make_participant(temperature=0.3, top_k=7)
    p = Participant.from_payload(
        {"entity_name": "llm", "id": None, "entity_settings": {"temperature": None, "top_k": None, "max_tokens": 64}},
        defaults=defaults,
    )
    assert p.temperature == 0.3
    assert p.top_k == 7
    assert p.max_tokens == 64
    assert p.id is None
