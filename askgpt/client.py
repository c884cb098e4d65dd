"""
Query engine: adapter → transport → extractor, with one error policy.

Every abort path writes exactly one diagnostics entry and comes back as a
failed QueryResult. Nothing here raises to the caller.
"""

from __future__ import annotations

import json
import logging

from askgpt.adapter import build_request
from askgpt.config import Settings
from askgpt.diagnostics import ErrorLog
from askgpt.errors import (
    AskGPTError,
    HttpError,
    JsonParseFailure,
    QueryResult,
    UnexpectedResponseFormat,
)
from askgpt.extractor import extract_reply
from askgpt.models import Conversation, RequestOptions
from askgpt.transport import HttpTransport

logger = logging.getLogger(__name__)

RESPONSE_LOG_SNIPPET = 2048


def options_from_settings(
    settings: Settings,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> RequestOptions:
    """RequestOptions for one call, per-call values winning over settings."""
    return RequestOptions(
        model=model or settings.model,
        endpoint_url=settings.base_url,
        api_key=settings.api_key,
        temperature=temperature if temperature is not None else settings.temperature,
        max_tokens=max_tokens if max_tokens is not None else settings.max_tokens,
        extra_params=dict(settings.additional_parameters),
    )


class AskGPTClient:
    """Sends one conversation to the configured endpoint and returns the reply."""

    def __init__(self, transport: HttpTransport | None = None, error_log: ErrorLog | None = None):
        self.transport = transport or HttpTransport()
        self.error_log = error_log

    @classmethod
    def from_settings(cls, settings: Settings) -> "AskGPTClient":
        return cls(
            transport=HttpTransport(timeout=settings.timeout),
            error_log=ErrorLog(settings.error_log_path),
        )

    def _record(self, exc: AskGPTError, options: RequestOptions) -> None:
        if self.error_log is not None:
            self.error_log.record(
                exc.kind,
                model=options.model,
                endpoint=options.endpoint_url,
                detail=exc.detail,
            )

    def query(self, conversation: Conversation, options: RequestOptions) -> QueryResult:
        """Run one request/response exchange."""
        try:
            text, status = self._exchange(conversation, options)
        except AskGPTError as e:
            logger.warning("Query to '%s' failed (%s): %s", options.model, e.kind.value, e)
            self._record(e, options)
            return QueryResult.failure(e)
        return QueryResult.success(text, status_code=status)

    def _exchange(self, conversation: Conversation, options: RequestOptions) -> tuple[str, int]:
        body = build_request(conversation, options, error_log=self.error_log)
        resp = self.transport.post(options.endpoint_url, body, options.api_key)
        excerpt = (resp.text or "")[:RESPONSE_LOG_SNIPPET]

        if resp.status_code != 200:
            raise HttpError(resp.status_code, excerpt)

        try:
            data = json.loads(resp.text)
        except (json.JSONDecodeError, TypeError) as e:
            raise JsonParseFailure(
                "Failed to parse API response. The response may be malformed.",
                {"response_excerpt": excerpt, "error": str(e)},
            ) from e

        content = extract_reply(data)
        if not content:
            raise UnexpectedResponseFormat(
                "Unexpected response format from API",
                {"response_excerpt": excerpt},
            )

        logger.info(
            "Reply from '%s': %d chars in %.0fms",
            options.model, len(content), resp.latency_ms,
        )
        return content, resp.status_code
