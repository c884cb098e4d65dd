"""
Data models for conversations and history.
These define the shape of data flowing between the session, the adapter
and the history store.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import Any

ROLES = ("system", "user", "assistant")


def flatten_content(content: Any) -> str:
    """
    Resolve message content to a flat string.

    Multi-part content (a list of strings or {"text": ...} parts) is joined
    with newlines, and a single {"text": ...} part yields its text; anything
    else falls back to str().
    """
    if isinstance(content, str):
        return content
    if content is None:
        return ""
    if isinstance(content, dict) and isinstance(content.get("text"), str):
        return content["text"]
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "\n".join(parts)
    return str(content)


@dataclass
class Message:
    """A single message in a conversation."""
    role: str            # "system", "user", "assistant"
    content: Any = ""    # usually str, may be multi-part

    @property
    def text(self) -> str:
        return flatten_content(self.content)

    def to_openai_format(self) -> dict:
        """Export in OpenAI messages array format."""
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(role=str(data.get("role", "user")), content=data.get("content", ""))


Conversation = list[Message]


@dataclass
class RequestOptions:
    """Per-call request parameters. Folded into the outgoing body, never stored."""
    model: str
    endpoint_url: str
    api_key: str = ""
    temperature: float | None = None
    max_tokens: int | None = None
    extra_params: dict[str, Any] = field(default_factory=dict)


@dataclass
class HistoryEntry:
    """A completed conversation, as kept by the history store."""
    title: str
    rendered_text: str
    conversation: Conversation = field(default_factory=list)
    timestamp: int = field(default_factory=lambda: int(time.time()))

    @classmethod
    def snapshot(cls, title: str, rendered_text: str, conversation: Conversation) -> "HistoryEntry":
        """Copy the conversation so the session can keep mutating its own."""
        return cls(
            title=title,
            rendered_text=rendered_text,
            conversation=copy.deepcopy(list(conversation)),
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "text": self.rendered_text,
            "timestamp": self.timestamp,
            "conversation": [m.to_openai_format() for m in self.conversation],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        return cls(
            title=str(data.get("title", "")),
            rendered_text=str(data.get("text", "")),
            timestamp=int(data.get("timestamp", 0)),
            conversation=[Message.from_dict(m) for m in data.get("conversation", [])],
        )
