from chat_core.chat.mentions import MentionResolver, apply_selection, detect_mention, filter_candidates
from chat_core.domain.models import Participant


def make(name, alias=None):
    return Participant(entity_name=name, model_name="m", integration_uid="u", alias=alias)


HELPER = make("Helper")
CODER = make("Coder")


def test_detect_mention():
    assert detect_mention("hello @") == ""
    assert detect_mention("hello @bob") == "bob"
    assert detect_mention("hello @bob is here") is None
    assert detect_mention("@bo") == "bo"
    assert detect_mention("mail me@host") is None
    assert detect_mention("no mention") is None


def test_filter_candidates_case_insensitive_and_ordered():
    roster = [HELPER, CODER]
    assert filter_candidates("e", roster) == [HELPER, CODER]
    assert filter_candidates("cod", roster) == [CODER]
    assert filter_candidates("COD", roster) == [CODER]
    assert filter_candidates("", roster) == [HELPER, CODER]
    assert filter_candidates("x", []) == []


def test_filter_prefers_alias():
    aliased = make("user", alias="Reviewer")
    assert filter_candidates("rev", [aliased]) == [aliased]
    assert filter_candidates("user", [aliased]) == []


def test_apply_selection_replaces_trailing_token():
    assert apply_selection("please @co", CODER) == "please @Coder "
    assert apply_selection("@", HELPER) == "@Helper "


def test_resolver_remembers_target_until_cleared():
    resolver = MentionResolver()
    roster = [HELPER, CODER]
    assert resolver.update("ask @c", roster) == [CODER]
    assert resolver.active
    text = resolver.select("ask @c", CODER)
    assert text == "ask @Coder "
    assert resolver.target is CODER
    assert not resolver.active

    assert resolver.update(text + "how", roster) == []
    assert resolver.resolve_target(roster) is CODER

    resolver.update("", roster)
    assert resolver.target is None
    assert resolver.resolve_target(roster) is HELPER


def test_resolver_default_target():
    resolver = MentionResolver()
    assert resolver.resolve_target([]) is None
    assert resolver.resolve_target([CODER, HELPER]) is CODER


def test_space_deactivates_mention():
    resolver = MentionResolver()
    roster = [HELPER]
    assert resolver.update("hi @he", roster) == [HELPER]
    assert resolver.update("hi @he ", roster) == []
    assert not resolver.active


def test_typed_mention_picks_target_on_submit():
    helper = make("helper", alias="Code Helper")
    roster = [CODER, HELPER, helper]
    resolver = MentionResolver()
    assert resolver.resolve_target(roster, text="@helper fix this") is HELPER
    assert resolver.resolve_target(roster, text="ask @code helper please") is helper
    assert resolver.resolve_target(roster, text="ask @HELPER") is HELPER
    assert resolver.resolve_target(roster, text="ask @help me") is CODER
    assert resolver.resolve_target(roster, text="mail me@helper") is CODER


def test_explicit_selection_wins_over_typed_mention():
    resolver = MentionResolver()
    roster = [HELPER, CODER]
    resolver.select("@co", CODER)
    assert resolver.resolve_target(roster, text="@helper hi") is CODER
