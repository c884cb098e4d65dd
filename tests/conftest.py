"""
Shared fixtures: settings pointed at tmp_path and a scripted transport.
"""

import json

import pytest

from askgpt.client import AskGPTClient
from askgpt.config import Settings
from askgpt.diagnostics import ErrorLog
from askgpt.history import HistoryStore
from askgpt.transport import TransportResponse


class FakeTransport:
    """Records every POST and replays canned responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, body, api_key):
        self.calls.append({"url": url, "body": body, "api_key": api_key})
        resp = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(resp, Exception):
            raise resp
        return resp


def ok_reply(text: str) -> TransportResponse:
    return TransportResponse(
        status_code=200,
        text=json.dumps({"choices": [{"message": {"role": "assistant", "content": text}}]}),
    )


@pytest.fixture
def settings(tmp_path):
    return Settings(api_key="sk-test", data_dir=tmp_path)


@pytest.fixture
def error_log(settings):
    return ErrorLog(settings.error_log_path)


@pytest.fixture
def history(settings):
    return HistoryStore(settings.history_path)


@pytest.fixture
def make_client(error_log):
    def _make(*responses):
        transport = FakeTransport(*responses)
        return AskGPTClient(transport=transport, error_log=error_log), transport
    return _make
