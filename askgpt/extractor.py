"""
Response extractor — find the reply text in whatever the provider sent back.

Providers nest the assistant's text differently: `choices[0].message.content`,
`choices[0].text`, `choices[0].content[...]`, a top-level `output` list of
content blocks, and so on. Instead of special-casing each one, TextCollector
walks the decoded JSON tree and gathers text-bearing fields in a fixed
priority order, skipping fields that are known metadata.

The walk is depth-bounded and tracks visited containers by identity, so a
cyclic structure terminates with whatever text was found before the cycle.
"""

from __future__ import annotations

import logging
from typing import Any, Union

logger = logging.getLogger(__name__)

# Decoded JSON: null | bool | number | string | array | object
JSONValue = Union[None, bool, int, float, str, list, dict]

MAX_DEPTH = 10
SEPARATOR = "\n\n"

TEXT_FIELDS = ("text", "output_text", "generated_text")
NESTED_FIELDS = ("message", "delta", "output")
METADATA_FIELDS = frozenset({
    "role", "finish_reason", "index", "refusal", "safety_ratings",
    "id", "type", "object", "status", "model", "created", "usage", "logprobs",
})
_HANDLED_FIELDS = frozenset(TEXT_FIELDS) | {"content", "annotations"} | frozenset(NESTED_FIELDS)


class TextCollector:
    """Depth-bounded visitor over a decoded JSON value."""

    def __init__(self, max_depth: int = MAX_DEPTH):
        self.max_depth = max_depth
        self.fragments: list[str] = []
        self._seen: set[int] = set()
        # Hold references so ids stay unique for the whole walk
        self._pinned: list[Any] = []

    def visit(self, node: JSONValue, depth: int = 1) -> None:
        if depth > self.max_depth:
            return
        if isinstance(node, str):
            if node:
                self.fragments.append(node)
        elif isinstance(node, dict):
            if self._mark(node):
                self._visit_object(node, depth)
        elif isinstance(node, list):
            if self._mark(node):
                for item in node:
                    self.visit(item, depth + 1)
        # numbers, booleans and null carry no text

    def _mark(self, node: Any) -> bool:
        """Record a container as visited. False if it was already seen."""
        key = id(node)
        if key in self._seen:
            return False
        self._seen.add(key)
        self._pinned.append(node)
        return True

    def _visit_object(self, node: dict, depth: int) -> None:
        for key in TEXT_FIELDS:
            value = node.get(key)
            if isinstance(value, str) and value:
                self.fragments.append(value)

        content = node.get("content")
        if isinstance(content, str):
            if content:
                self.fragments.append(content)
        elif isinstance(content, (dict, list)):
            self.visit(content, depth + 1)

        for key in NESTED_FIELDS:
            value = node.get(key)
            if isinstance(value, (dict, list)):
                self.visit(value, depth + 1)

        for key, value in node.items():
            if key in _HANDLED_FIELDS or key in METADATA_FIELDS:
                continue
            self.visit(value, depth + 1)

        annotations = node.get("annotations")
        if isinstance(annotations, (dict, list)):
            self.visit(annotations, depth + 1)

    def result(self) -> str | None:
        if not self.fragments:
            return None
        return SEPARATOR.join(self.fragments)


def flatten_to_text(node: JSONValue) -> str | None:
    """All text found under `node`, blank-line separated, or None."""
    collector = TextCollector()
    collector.visit(node)
    return collector.result()


def extract_choice(choice: JSONValue) -> str | None:
    """Text of a single chat-completions choice."""
    if not isinstance(choice, dict):
        return None

    text = choice.get("text")
    if isinstance(text, str) and text:
        return text

    for key in ("message", "content", "output"):
        value = choice.get(key)
        if isinstance(value, (dict, list)):
            flattened = flatten_to_text(value)
            if flattened:
                return flattened

    return flatten_to_text(choice)


def extract_reply(response: JSONValue) -> str | None:
    """
    Recover the assistant reply from a decoded response body.

    Tries `choices[0]` (chat completions) first, then top-level `output`
    (responses). None means the response had no extractable text.
    """
    if not isinstance(response, dict):
        return None

    choices = response.get("choices")
    if isinstance(choices, list) and choices:
        content = extract_choice(choices[0])
        if content:
            return content

    output = response.get("output")
    if output is not None:
        content = flatten_to_text(output)
        if content:
            return content

    logger.debug("No text found in response (keys=%s)", sorted(response.keys()))
    return None
