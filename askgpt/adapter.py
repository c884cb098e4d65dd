"""
Request adapter — one conversation in, one provider request body out.

OpenAI-style endpoints disagree on details that change every few model
releases: which token-limit field is accepted, whether temperature may be
set at all, and whether the body carries `messages` (chat completions) or
`input` + `instructions` (responses). Rather than checking model names at
every call site, classify() tags each (endpoint, model) pair once:

    EndpointStyle  CHAT_COMPLETIONS | RESPONSES
    ModelFamily    LEGACY | MAX_COMPLETION_TOKENS | REASONING

and build_request() reads everything it needs off that RequestShape.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from askgpt.errors import ErrorKind, InvalidInput, MissingCredential
from askgpt.models import Conversation, RequestOptions

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
REASONING_TEMPERATURE = 1
DEFAULT_MAX_TOKENS = 1024

_REASONING_PATTERN = re.compile(r"^gpt-5")
_MAX_COMPLETION_PATTERNS = [
    re.compile(r"^gpt-4o"),
    re.compile(r"^gpt-4-turbo"),
    re.compile(r"^gpt-3\.5-turbo-0125"),
    re.compile(r"^o\d"),
]


class EndpointStyle(str, Enum):
    CHAT_COMPLETIONS = "chat_completions"
    RESPONSES = "responses"


class ModelFamily(str, Enum):
    LEGACY = "legacy"
    MAX_COMPLETION_TOKENS = "max_completion_tokens"
    REASONING = "reasoning"


@dataclass(frozen=True)
class RequestShape:
    """Classification of an (endpoint, model) pair."""
    style: EndpointStyle
    family: ModelFamily

    @property
    def token_field(self) -> str:
        if self.style is EndpointStyle.RESPONSES:
            return "max_output_tokens"
        if self.family is ModelFamily.LEGACY:
            return "max_tokens"
        return "max_completion_tokens"

    @property
    def accepts_temperature(self) -> bool:
        return self.family is not ModelFamily.REASONING

    @property
    def default_temperature(self) -> float:
        if self.family is ModelFamily.REASONING:
            return REASONING_TEMPERATURE
        return DEFAULT_TEMPERATURE

    @property
    def needs_text_only_defaults(self) -> bool:
        """Reasoning models on chat completions want explicit text-only output."""
        return self.family is ModelFamily.REASONING and self.style is EndpointStyle.CHAT_COMPLETIONS


def classify_endpoint(endpoint_url: str) -> EndpointStyle:
    if "/responses" in (endpoint_url or "").lower():
        return EndpointStyle.RESPONSES
    return EndpointStyle.CHAT_COMPLETIONS


def classify_model(model: str) -> ModelFamily:
    model = (model or "").lower()
    if _REASONING_PATTERN.match(model):
        return ModelFamily.REASONING
    if any(p.match(model) for p in _MAX_COMPLETION_PATTERNS):
        return ModelFamily.MAX_COMPLETION_TOKENS
    return ModelFamily.LEGACY


def classify(endpoint_url: str, model: str) -> RequestShape:
    return RequestShape(style=classify_endpoint(endpoint_url), family=classify_model(model))


def to_responses_input(conversation: Conversation) -> tuple[list[dict], str | None]:
    """
    Convert messages for a responses-style endpoint.

    System messages are folded into one `instructions` string (blank-line
    separated, in order). Everything else becomes a role-tagged content block;
    roles other than user/assistant are sent as user.
    """
    items: list[dict] = []
    instructions: str | None = None

    for msg in conversation:
        text = msg.text
        if msg.role == "system":
            if text:
                instructions = f"{instructions}\n\n{text}" if instructions else text
            continue

        role = msg.role if msg.role in ("user", "assistant") else "user"
        content_type = "output_text" if role == "assistant" else "input_text"
        items.append({
            "role": role,
            "content": [{"type": content_type, "text": text}],
        })

    return items, instructions


def build_request(conversation: Conversation, options: RequestOptions, error_log=None) -> dict[str, Any]:
    """
    Build the request body for one call.

    Raises InvalidInput for an empty conversation and MissingCredential when
    no API key is set; the transport is never reached in either case.
    An unsupported temperature is recorded on `error_log` (if given) and
    dropped, and the request goes ahead.
    """
    if not conversation:
        raise InvalidInput(
            "At least one message is required.",
            {"message_count": 0},
        )
    if not options.api_key:
        raise MissingCredential(
            "API key not found. Set api_key in config.yaml or OPENAI_API_KEY in the environment.",
            {"has_api_key": False},
        )

    shape = classify(options.endpoint_url, options.model)

    body: dict[str, Any] = {"model": options.model}
    if shape.style is EndpointStyle.RESPONSES:
        items, instructions = to_responses_input(conversation)
        body["input"] = items
        if instructions:
            body["instructions"] = instructions
    else:
        body["messages"] = [{"role": m.role, "content": m.text} for m in conversation]

    temperature = options.temperature
    if shape.accepts_temperature:
        body["temperature"] = temperature if temperature is not None else shape.default_temperature
    elif temperature is not None and temperature != shape.default_temperature:
        logger.warning(
            "Model '%s' only accepts the default temperature; ignoring %s",
            options.model, temperature,
        )
        if error_log is not None:
            error_log.record(
                ErrorKind.UNSUPPORTED_PARAMETER,
                model=options.model,
                endpoint=options.endpoint_url,
                detail={"parameter": "temperature", "requested": temperature},
            )

    max_tokens = options.max_tokens if options.max_tokens is not None else DEFAULT_MAX_TOKENS
    body[shape.token_field] = max_tokens

    if shape.needs_text_only_defaults:
        body.setdefault("response_format", {"type": "text"})
        body.setdefault("modalities", ["text"])

    # Caller has the final say
    body.update(options.extra_params or {})

    logger.debug(
        "Built %s request for '%s' (family=%s, token_field=%s)",
        shape.style.value, options.model, shape.family.value, shape.token_field,
    )
    return body


def encode_body(body: dict[str, Any]) -> str:
    """Serialize a request body to its wire form."""
    return json.dumps(body, ensure_ascii=False)
