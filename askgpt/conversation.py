"""
Conversation manager — the growing message history of one reading session.

Conversations are plain lists of Message. The functions here append turns,
start fresh threads for custom prompt modes, and prune long threads to a
bounded window before they go back over the wire:

    conversation = reset_for_prompt(system_prompt, context)
    append_user(conversation, "And the second paragraph?")
    outbound = prune(conversation, 20)

The leading system message always survives pruning.
"""

from __future__ import annotations

import logging

from askgpt.models import Conversation, Message

logger = logging.getLogger(__name__)

LANGUAGE_HINT = "Detect the language and answer using that language."

DEFAULT_SYSTEM_PROMPT = (
    "The following is a conversation with an AI assistant. The assistant is "
    "helpful, creative, clever, and very friendly. Answer as concisely as "
    "possible. " + LANGUAGE_HINT
)


def append_user(conversation: Conversation, text: str) -> Conversation:
    """Append a user turn. Blank input must be rejected by the caller."""
    conversation.append(Message(role="user", content=text))
    return conversation


def append_assistant(conversation: Conversation, text: str) -> Conversation:
    conversation.append(Message(role="assistant", content=text))
    return conversation


def reset_for_prompt(system_prompt: str, context_text: str) -> Conversation:
    """Start a brand-new thread for a prompt mode: [system, user]."""
    return [
        Message(role="system", content=system_prompt),
        Message(role="user", content=context_text),
    ]


def prune(conversation: Conversation, max_messages: int) -> Conversation:
    """
    Bound a conversation to at most `max_messages` messages.

    Keeps message 0 when it is the system prompt, then the most recent
    messages that still fit. Returns a new list; the input is untouched.
    """
    if len(conversation) <= max_messages:
        return list(conversation)

    head: Conversation = []
    if conversation and conversation[0].role == "system" and max_messages > 0:
        head = [conversation[0]]

    keep = max_messages - len(head)
    tail = conversation[len(head):][-keep:] if keep > 0 else []
    logger.debug(
        "Pruned conversation from %d to %d messages",
        len(conversation), len(head) + len(tail),
    )
    return head + tail


def set_system_prompt(conversation: Conversation, system_prompt: str) -> Conversation:
    """Replace the leading system message, or insert one at position 0."""
    if conversation and conversation[0].role == "system":
        conversation[0] = Message(role="system", content=system_prompt)
    else:
        conversation.insert(0, Message(role="system", content=system_prompt))
    return conversation


def with_language_hint(prompt: str) -> str:
    """
    Append the language-detection instruction to a custom prompt.

    Prompts that mention translating (any case) already decide the output
    language, so they are returned as-is.
    """
    if "translate" in prompt.lower():
        return prompt
    return f"{prompt} {LANGUAGE_HINT}"


def build_context_message(title: str, author: str, highlighted_text: str) -> str:
    """Opening user message for a free-form question about a highlight."""
    return (
        f"I'm reading something titled '{title}' by {author}. "
        f"I have a question about the following highlighted text: {highlighted_text}"
    )


def build_prompt_context(title: str, author: str, highlighted_text: str) -> str:
    """Opening user message for a custom prompt mode."""
    return (
        f"I'm reading something titled '{title}' by {author}. "
        f"Here's the text I want you to process: {highlighted_text}"
    )


def render_transcript(highlighted_text: str, conversation: Conversation, skip: int = 2) -> str:
    """
    Render the conversation for display and for the history store.

    The first `skip` messages (system prompt and opening context) are not
    shown; the highlight heads the transcript instead.
    """
    parts = [f'Highlighted text: "{highlighted_text}"']
    for msg in conversation[skip:]:
        label = "User" if msg.role == "user" else "Assistant"
        parts.append(f"{label}: {msg.text}")
    return "\n\n".join(parts) + "\n\n"
