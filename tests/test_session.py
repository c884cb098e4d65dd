"""
Tests for the reading session: exchanges, rollback, prompt modes, history.
Run with: pytest tests/test_session.py
"""

import pytest

from askgpt.conversation import LANGUAGE_HINT
from askgpt.errors import ErrorKind
from askgpt.models import Message
from askgpt.session import ReadingSession
from askgpt.transport import TransportResponse

from conftest import ok_reply

HIGHLIGHT = "It was a bright cold day in April, and the clocks were striking thirteen."


@pytest.fixture
def session_factory(settings, history, make_client):
    def _make(*responses, **kw):
        client, transport = make_client(*responses)
        kw.setdefault("book_title", "1984")
        kw.setdefault("book_author", "George Orwell")
        return ReadingSession(settings, client, history, **kw), transport
    return _make


# ---------------------------------------------------------------------------
# Free-form questions
# ---------------------------------------------------------------------------

def test_ask_end_to_end(session_factory, history, error_log):
    """One question, one reply, one history snapshot."""
    session, transport = session_factory(
        ok_reply("A short summary."),
        conversation=[Message(role="system", content="You are helpful")],
    )
    result = session.ask("Summarize: Lorem ipsum")

    assert result.ok
    assert result.text == "A short summary."
    assert [m.role for m in session.conversation] == ["system", "user", "assistant"]
    assert session.conversation[-1].content == "A short summary."

    sent = transport.calls[0]["body"]["messages"]
    assert sent == [
        {"role": "system", "content": "You are helpful"},
        {"role": "user", "content": "Summarize: Lorem ipsum"},
    ]

    assert len(history) == 1
    entry = history.entries[-1]
    assert entry.conversation == session.conversation
    assert entry.title == "AskGPT"
    assert "Assistant: A short summary." in entry.rendered_text
    assert error_log.read_entries() == []


def test_first_question_carries_highlight(session_factory):
    session, transport = session_factory(ok_reply("Winston."), highlighted_text=HIGHLIGHT)
    session.ask("Who is the protagonist?")

    sent = transport.calls[0]["body"]["messages"]
    assert len(sent) == 3
    assert sent[1]["content"].startswith("I'm reading something titled '1984' by George Orwell.")
    assert sent[1]["content"].endswith(HIGHLIGHT)
    assert sent[2]["content"] == "Who is the protagonist?"

    assert session.transcript == (
        f'Highlighted text: "{HIGHLIGHT}"\n\n'
        "User: Who is the protagonist?\n\n"
        "Assistant: Winston.\n\n"
    )


def test_follow_up_does_not_repeat_highlight(session_factory):
    session, transport = session_factory(ok_reply("one"), ok_reply("two"), highlighted_text=HIGHLIGHT)
    session.ask("First?")
    session.ask("Second?")

    second = transport.calls[1]["body"]["messages"]
    assert len(second) == 5
    assert sum(HIGHLIGHT in m["content"] for m in second) == 1
    assert session.exchanges == 2
    assert session.transcript.count("User: ") == 2


def test_follow_ups_are_pruned(session_factory, settings):
    settings.max_history_messages = 4
    session, transport = session_factory(ok_reply("ok"), highlighted_text=HIGHLIGHT)
    for i in range(5):
        session.ask(f"Question {i}?")

    for call in transport.calls[1:]:
        sent = call["body"]["messages"]
        assert len(sent) <= 4
        assert sent[0]["role"] == "system"
    assert transport.calls[-1]["body"]["messages"][-1]["content"] == "Question 4?"
    # The session keeps everything; only the outbound copy is bounded
    assert len(session.conversation) == 2 + 5 * 2


def test_blank_question_rejected(session_factory):
    session, transport = session_factory(ok_reply("unused"))
    with pytest.raises(ValueError):
        session.ask("   ")
    assert transport.calls == []


def test_failure_rolls_back(session_factory, history, error_log):
    session, _ = session_factory(TransportResponse(status_code=500, text="boom"), highlighted_text=HIGHLIGHT)
    before = list(session.conversation)

    result = session.ask("Anyone there?")

    assert not result.ok
    assert result.kind is ErrorKind.HTTP_ERROR
    assert session.conversation == before
    assert session.exchanges == 0
    assert len(history) == 0
    assert [e["kind"] for e in error_log.read_entries()] == ["http_error"]


def test_retry_after_failure(session_factory):
    session, transport = session_factory(
        TransportResponse(status_code=503, text="busy"),
        ok_reply("Back."),
        highlighted_text=HIGHLIGHT,
    )
    assert not session.ask("Hello?").ok
    assert session.ask("Hello?").ok
    # Highlight is sent again because the first exchange never completed
    assert HIGHLIGHT in transport.calls[1]["body"]["messages"][1]["content"]
    assert len(session.conversation) == 4


# ---------------------------------------------------------------------------
# Custom prompts
# ---------------------------------------------------------------------------

def test_run_prompt_starts_fresh_thread(session_factory, settings, history):
    settings.custom_prompts = {"summarize": "Please summarize the following text."}
    session, transport = session_factory(ok_reply("x"), ok_reply("Summary."), highlighted_text=HIGHLIGHT)
    session.ask("Earlier question")

    result = session.run_prompt("summarize")

    assert result.ok
    assert session.title == "Summarize"
    assert [m.role for m in session.conversation] == ["system", "user", "assistant"]
    sent = transport.calls[-1]["body"]["messages"]
    assert sent[0]["content"] == f"Please summarize the following text. {LANGUAGE_HINT}"
    assert sent[1]["content"].endswith(f"Here's the text I want you to process: {HIGHLIGHT}")
    assert history.entries[-1].title == "Summarize"
    assert session.transcript == f'Highlighted text: "{HIGHLIGHT}"\n\nAssistant: Summary.\n\n'


def test_run_prompt_translate_has_no_language_hint(session_factory, settings):
    settings.custom_prompts = {"translate": "Please TRANSLATE the following text to English."}
    session, transport = session_factory(ok_reply("Done."), highlighted_text=HIGHLIGHT)
    session.run_prompt("translate")
    assert transport.calls[0]["body"]["messages"][0]["content"] == settings.custom_prompts["translate"]


def test_run_prompt_failure_restores_state(session_factory, settings):
    settings.custom_prompts = {"explain": "Please explain."}
    session, _ = session_factory(
        ok_reply("first"),
        TransportResponse(status_code=429, text="slow down"),
        highlighted_text=HIGHLIGHT,
    )
    session.ask("Question?")
    before = list(session.conversation)

    result = session.run_prompt("explain")

    assert not result.ok
    assert session.conversation == before
    assert session.title == "AskGPT"
    assert session.exchanges == 1


def test_run_prompt_errors(session_factory, settings):
    settings.custom_prompts = {"explain": "Please explain."}
    session, transport = session_factory(ok_reply("unused"))
    with pytest.raises(ValueError):
        session.run_prompt("explain")  # nothing highlighted
    session.highlighted_text = HIGHLIGHT
    with pytest.raises(ValueError):
        session.run_prompt("nonexistent")
    assert transport.calls == []


# ---------------------------------------------------------------------------
# Book features
# ---------------------------------------------------------------------------

def test_book_feature_is_one_shot(session_factory, history):
    session, transport = session_factory(ok_reply("ok"), ok_reply("Ten questions."), highlighted_text=HIGHLIGHT)
    session.ask("Question?")
    before = list(session.conversation)

    result = session.book_feature("discussion")

    assert result.ok
    assert result.text == "Ten questions."
    assert session.conversation == before
    assert len(history) == 1

    body = transport.calls[-1]["body"]
    assert body["temperature"] == 0.8
    assert "book club" in body["messages"][1]["content"]
    assert HIGHLIGHT in body["messages"][2]["content"]


def test_book_feature_uses_session_temperature(session_factory, settings):
    settings.temperature = 0.4
    session, transport = session_factory(ok_reply("Analysis."), highlighted_text=HIGHLIGHT)
    session.book_feature("book_analysis")
    assert transport.calls[0]["body"]["temperature"] == 0.4


def test_disabled_feature(session_factory, settings):
    settings.advanced_features = {"recommendations": False}
    session, transport = session_factory(ok_reply("unused"))
    with pytest.raises(ValueError):
        session.book_feature("recommendations")
    assert transport.calls == []


# ---------------------------------------------------------------------------
# Resume, settings, clear
# ---------------------------------------------------------------------------

def test_resume_from_history(session_factory, settings, history, make_client):
    session, _ = session_factory(ok_reply("Winston."), highlighted_text=HIGHLIGHT)
    session.ask("Who?")

    client, transport = make_client(ok_reply("Oceania."))
    resumed = ReadingSession.resume(settings, client, history, history.get(0))

    assert resumed.highlighted_text == HIGHLIGHT
    assert resumed.exchanges == 1
    resumed.ask("Where?")

    sent = transport.calls[0]["body"]["messages"]
    assert len(sent) == 5
    assert sum(HIGHLIGHT in m["content"] for m in sent) == 1
    assert resumed.transcript.endswith("User: Where?\n\nAssistant: Oceania.\n\n")
    assert resumed.transcript.startswith(f'Highlighted text: "{HIGHLIGHT}"\n\nUser: Who?')
    assert len(history) == 2


def test_update_settings(session_factory):
    session, transport = session_factory(ok_reply("ok"))
    session.update_settings(model="gpt-5", temperature=0.9, system_prompt="Be terse.")

    assert session.conversation[0].content == "Be terse."
    session.ask("Hi")
    body = transport.calls[0]["body"]
    assert body["model"] == "gpt-5"
    assert "temperature" not in body  # reasoning family
    assert body["messages"][0]["content"] == "Be terse."


def test_update_settings_inserts_system_prompt(session_factory):
    session, _ = session_factory(ok_reply("ok"), conversation=[])
    session.update_settings(system_prompt="New rules.")
    assert session.conversation == [Message(role="system", content="New rules.")]


def test_clear(session_factory, history):
    session, _ = session_factory(ok_reply("ok"), highlighted_text=HIGHLIGHT)
    session.ask("Question?")
    session.clear()
    assert session.conversation == []
    assert session.exchanges == 0
    assert session.transcript == ""
    assert len(history) == 1
