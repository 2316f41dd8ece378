# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for suite",
#   "sections": [
#     {
#       "id": "isolate-process-state",
#       "name": "isolate_process_state",
#       "anchor": "function-isolate-process-state",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Shared fixtures for the suite. Every test starts from fresh process-wide
state: settings are re-read from a clean environment, the server clock
estimate is zeroed and no cached HTTP client survives.
"""

from __future__ import annotations

import os
from typing import Generator

import pytest

from tests.fixtures.http_mocking import (  # noqa: F401
    MockResponseBuilder,
    ScriptedTransport,
    http_mock,
    mock_client,
)
from TypedAPI.network.client import reset_http_client
from TypedAPI.server_time import reset_server_time
from TypedAPI.settings import reset_settings


@pytest.fixture(autouse=True)
def isolate_process_state(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Reset settings, server time and HTTP clients around each test."""
    for key in list(os.environ):
        if key.startswith("TYPEDAPI_"):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    reset_server_time()
    reset_http_client()
    yield
    reset_settings()
    reset_server_time()
    reset_http_client()
