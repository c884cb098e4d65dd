"""
Reading session — one dialog about one highlight.

The session owns its conversation for as long as the dialog is open. Every
successful exchange appends the assistant reply and files a snapshot of the
whole conversation in the history store; a failed exchange rolls the
conversation back to where it was, so the reader can simply try again.

    session = ReadingSession(settings, client, history,
                             highlighted_text=text, book_title=t, book_author=a)
    result = session.ask("Who is speaking here?")
    if result.ok:
        show(session.transcript)
"""

from __future__ import annotations

import copy
import logging

from askgpt.client import AskGPTClient, options_from_settings
from askgpt.config import Settings
from askgpt.conversation import (
    append_assistant,
    append_user,
    build_context_message,
    build_prompt_context,
    prune,
    render_transcript,
    reset_for_prompt,
    set_system_prompt,
    with_language_hint,
)
from askgpt.errors import QueryResult
from askgpt.features import build_feature_messages, get_feature
from askgpt.history import HistoryStore
from askgpt.models import Conversation, HistoryEntry, Message

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "AskGPT"
UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_AUTHOR = "Unknown Author"

_HIGHLIGHT_PREFIX = 'Highlighted text: "'


def _highlight_from_transcript(rendered_text: str) -> str:
    if not rendered_text.startswith(_HIGHLIGHT_PREFIX):
        return ""
    body = rendered_text[len(_HIGHLIGHT_PREFIX):]
    end = body.find('"\n\n')
    return body[:end] if end >= 0 else body.rstrip('"\n')


class ReadingSession:
    """Dialog controller: conversation state plus the history it feeds."""

    def __init__(
        self,
        settings: Settings,
        client: AskGPTClient,
        history: HistoryStore,
        highlighted_text: str = "",
        book_title: str = UNKNOWN_TITLE,
        book_author: str = UNKNOWN_AUTHOR,
        conversation: Conversation | None = None,
        title: str = DEFAULT_TITLE,
    ):
        self.settings = settings
        self.client = client
        self.history = history
        self.highlighted_text = highlighted_text
        self.book_title = book_title or UNKNOWN_TITLE
        self.book_author = book_author or UNKNOWN_AUTHOR
        self.title = title
        if conversation is None:
            conversation = [Message(role="system", content=settings.system_prompt)]
        self.conversation: Conversation = conversation
        self.exchanges = 0
        self.transcript = ""
        # Messages before this index (system prompt, opening context) are not rendered
        self._opening = len(self.conversation)

    @classmethod
    def resume(
        cls,
        settings: Settings,
        client: AskGPTClient,
        history: HistoryStore,
        entry: HistoryEntry,
        book_title: str = UNKNOWN_TITLE,
        book_author: str = UNKNOWN_AUTHOR,
    ) -> "ReadingSession":
        """Reopen a stored conversation and keep talking."""
        session = cls(
            settings,
            client,
            history,
            highlighted_text=_highlight_from_transcript(entry.rendered_text),
            book_title=book_title,
            book_author=book_author,
            conversation=copy.deepcopy(entry.conversation),
            title=entry.title,
        )
        session.exchanges = sum(1 for m in session.conversation if m.role == "assistant")
        has_system = bool(session.conversation) and session.conversation[0].role == "system"
        session._opening = 2 if has_system and len(session.conversation) > 1 else 0
        session.transcript = entry.rendered_text
        return session

    # ------------------------------------------------------------------
    # Exchanges
    # ------------------------------------------------------------------

    def ask(self, question: str) -> QueryResult:
        """
        Ask a question. On the first exchange the highlight is sent along as
        an opening context message.
        """
        if not question or not question.strip():
            raise ValueError("Please enter a question.")

        checkpoint = list(self.conversation)
        if self.exchanges == 0 and self.highlighted_text:
            append_user(
                self.conversation,
                build_context_message(self.book_title, self.book_author, self.highlighted_text),
            )
            self._opening = len(self.conversation)
        append_user(self.conversation, question)
        return self._send(checkpoint)

    def run_prompt(self, name: str) -> QueryResult:
        """Switch to a custom prompt mode; starts a fresh thread."""
        prompt = self.settings.custom_prompts.get(name)
        if not prompt:
            raise ValueError(f"No custom prompt named {name!r}")
        if not self.highlighted_text:
            raise ValueError("Please highlight some text first.")

        checkpoint = list(self.conversation)
        previous = (self.exchanges, self.title, self._opening)

        self.conversation = reset_for_prompt(
            with_language_hint(prompt),
            build_prompt_context(self.book_title, self.book_author, self.highlighted_text),
        )
        self.exchanges = 0
        self.title = name[:1].upper() + name[1:]
        self._opening = len(self.conversation)

        result = self._send(checkpoint)
        if not result.ok:
            self.exchanges, self.title, self._opening = previous
        return result

    def book_feature(self, name: str) -> QueryResult:
        """One-shot book-level request; the session conversation is left alone."""
        if not self.settings.is_feature_enabled(name):
            raise ValueError(f"Feature {name!r} is disabled")
        feature = get_feature(name)
        messages = build_feature_messages(feature, self.conversation, self.book_title, self.book_author)
        options = options_from_settings(self.settings, temperature=feature.temperature)
        return self.client.query(messages, options)

    def _send(self, checkpoint: Conversation) -> QueryResult:
        outbound = self.conversation
        if self.exchanges > 0:
            outbound = prune(self.conversation, self.settings.max_history_messages)

        result = self.client.query(outbound, options_from_settings(self.settings))
        if not result.ok:
            logger.info("Exchange failed (%s), rolling back conversation", result.kind)
            self.conversation = checkpoint
            return result

        append_assistant(self.conversation, result.text)
        self.exchanges += 1
        self.transcript = render_transcript(self.highlighted_text, self.conversation, skip=self._opening)
        self.history.append(HistoryEntry.snapshot(self.title, self.transcript, self.conversation))
        return result

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def update_settings(
        self,
        model: str | None = None,
        temperature=None,
        max_tokens=None,
        system_prompt: str | None = None,
    ) -> Settings:
        """Apply per-session overrides; a new system prompt replaces the old one."""
        self.settings = self.settings.with_overrides(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            system_prompt=system_prompt,
        )
        if system_prompt:
            had_system = bool(self.conversation) and self.conversation[0].role == "system"
            set_system_prompt(self.conversation, system_prompt)
            if not had_system:
                self._opening += 1
        return self.settings

    def clear(self) -> None:
        """Forget the conversation. Stored history is untouched."""
        self.conversation = []
        self.exchanges = 0
        self._opening = 0
        self.transcript = ""
