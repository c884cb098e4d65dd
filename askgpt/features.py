"""
Book features — one-shot requests about the book as a whole.

Each feature pairs a system prompt with a request template. The excerpts the
reader has already discussed (user messages that carry a highlight) are
appended as context, followed by a language instruction when the excerpts
are written in a script we can recognize.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from askgpt.models import Conversation, Message

logger = logging.getLogger(__name__)

SAME_LANGUAGE = (
    "Respond in the same language as the user's text. If the text is in a "
    "non-English language, provide your response in that language."
)

EXCERPT_MARKER = "highlighted text"


@dataclass(frozen=True)
class BookFeature:
    name: str
    title: str
    system_prompt: str
    request: str                     # formatted with title= and author=
    temperature: float | None = None  # None → session temperature


FEATURES: dict[str, BookFeature] = {
    "book_analysis": BookFeature(
        name="book_analysis",
        title="Book Analysis",
        system_prompt=(
            "You are a literary analyst. Provide insights about themes, writing "
            "style, and historical context. " + SAME_LANGUAGE
        ),
        request=(
            "I'm reading '{title}' by {author}. Based on the excerpts I've shared "
            "with you so far, can you provide analysis of themes, writing style, "
            "and historical context?"
        ),
    ),
    "characters_plot": BookFeature(
        name="characters_plot",
        title="Characters & Plot",
        system_prompt=(
            "You are a literary assistant specializing in character and plot analysis. "
            "For the book excerpts provided, create a detailed analysis with these sections: "
            "1. CHARACTERS: List all characters mentioned with brief descriptions and their "
            "relationships to others. "
            "2. PLOT SUMMARY: Summarize the key events and plot points revealed so far. "
            "3. TIMELINE: Create a chronological sequence of events if possible. "
            "4. THEMES & MOTIFS: Identify recurring themes or motifs. "
            "Format your response with clear headings and bullet points for readability. "
            + SAME_LANGUAGE
        ),
        request=(
            "I'm reading '{title}' by {author}. Based on the excerpts I've shared with "
            "you, can you track the characters and plot developments so far?"
        ),
        temperature=0.7,
    ),
    "discussion": BookFeature(
        name="discussion",
        title="Book Club Discussion Questions",
        system_prompt=(
            "You are a book club facilitator. Generate thought-provoking discussion "
            "questions about themes, characters, plot, writing style, and societal "
            "implications based on the book excerpts shared. " + SAME_LANGUAGE
        ),
        request=(
            "I'm reading '{title}' by {author} for my book club. Based on the excerpts "
            "I've shared with you, can you generate 10 discussion questions that would "
            "lead to interesting conversations?"
        ),
        temperature=0.8,
    ),
    "recommendations": BookFeature(
        name="recommendations",
        title="Book Recommendations",
        system_prompt=(
            "You are a literary recommendation expert. Suggest 5 books similar to the "
            "one being discussed, with brief descriptions of why they might appeal to "
            "the reader. " + SAME_LANGUAGE
        ),
        request=(
            "I'm reading '{title}' by {author} and enjoying it. Can you recommend 5 "
            "similar books I might enjoy?"
        ),
        temperature=0.7,
    ),
}

# Script ranges, checked in order; first match wins.
_SCRIPTS = [
    ("russian", re.compile(r"[Ѐ-ӿ]")),
    ("japanese", re.compile(r"[぀-ヿ]")),
    ("korean", re.compile(r"[가-힯ᄀ-ᇿ]")),
    ("chinese", re.compile(r"[一-鿿]")),
    ("arabic", re.compile(r"[؀-ۿ]")),
]


def excerpt_messages(conversation: Conversation) -> list[Message]:
    return [
        m for m in conversation
        if m.role == "user" and EXCERPT_MARKER in m.text
    ]


def detect_language(conversation: Conversation) -> str:
    """
    Guess the language of the highlighted excerpts from their script.

    Latin-script languages can't be told apart this way, so anything not
    recognized is reported as english and left to the model.
    """
    for msg in excerpt_messages(conversation):
        sample = msg.text.split(EXCERPT_MARKER, 1)[-1].lstrip(": ")
        if len(sample.strip()) <= 10:
            continue
        for language, pattern in _SCRIPTS:
            if pattern.search(sample):
                return language
    return "english"


def build_feature_messages(
    feature: BookFeature,
    conversation: Conversation,
    title: str,
    author: str,
) -> Conversation:
    """[system, request, *excerpts, language instruction?]"""
    messages = [
        Message(role="system", content=feature.system_prompt),
        Message(role="user", content=feature.request.format(title=title, author=author)),
    ]
    excerpts = excerpt_messages(conversation)
    messages.extend(Message(role=m.role, content=m.content) for m in excerpts)

    language = detect_language(conversation)
    if language != "english":
        messages.append(Message(role="user", content=f"Please respond in {language} language."))

    logger.debug(
        "Built %s request with %d excerpt(s), language=%s",
        feature.name, len(excerpts), language,
    )
    return messages


def get_feature(name: str) -> BookFeature:
    try:
        return FEATURES[name]
    except KeyError:
        raise ValueError(f"Unknown book feature: {name!r}") from None
