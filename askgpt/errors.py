"""
Error taxonomy and the result contract for queries.

Everything below the client raises AskGPTError subclasses. AskGPTClient.query()
catches them, writes one diagnostics entry, and hands the caller a QueryResult,
so UI code checks `result.ok` instead of sniffing strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid_input"
    MISSING_CREDENTIAL = "missing_credential"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"
    JSON_PARSE_FAILURE = "json_parse_failure"
    UNEXPECTED_RESPONSE_FORMAT = "unexpected_response_format"
    # Non-fatal: logged, request proceeds
    UNSUPPORTED_PARAMETER = "unsupported_parameter"


class AskGPTError(Exception):
    """Base class for failures that abort a query."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str, detail: dict | None = None):
        super().__init__(message)
        self.detail = detail or {}


class InvalidInput(AskGPTError):
    kind = ErrorKind.INVALID_INPUT


class MissingCredential(AskGPTError):
    kind = ErrorKind.MISSING_CREDENTIAL


class NetworkError(AskGPTError):
    kind = ErrorKind.NETWORK_ERROR


class HttpError(AskGPTError):
    kind = ErrorKind.HTTP_ERROR

    def __init__(self, status_code: int, excerpt: str):
        super().__init__(
            f"HTTP {status_code}: {excerpt}",
            {"status": status_code, "response_excerpt": excerpt},
        )
        self.status_code = status_code
        self.excerpt = excerpt


class JsonParseFailure(AskGPTError):
    kind = ErrorKind.JSON_PARSE_FAILURE


class UnexpectedResponseFormat(AskGPTError):
    kind = ErrorKind.UNEXPECTED_RESPONSE_FORMAT


@dataclass
class QueryResult:
    """Outcome of one query: either reply text or an error kind + message."""
    ok: bool
    text: str = ""
    kind: ErrorKind | None = None
    error: str = ""
    status_code: int | None = None

    @classmethod
    def success(cls, text: str, status_code: int = 200) -> "QueryResult":
        return cls(ok=True, text=text, status_code=status_code)

    @classmethod
    def failure(cls, exc: AskGPTError) -> "QueryResult":
        return cls(
            ok=False,
            kind=exc.kind,
            error=str(exc),
            status_code=getattr(exc, "status_code", None),
        )
