"""Shared fixtures for chat export tests."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from helpers import make_conversation, make_transport


@pytest.fixture()
def chat_histories() -> dict[str, dict]:
    """Upstream session payloads keyed by UUID."""
    return {
        "uuid-1": make_conversation("Upstream One", [("user", "First?"), ("assistant", "Yes.")]),
        "uuid-2": make_conversation("Upstream Two", [("user", "Second?")]),
    }


@pytest.fixture()
def upstream_requests() -> list[httpx.Request]:
    """Requests received by the mocked chat service."""
    return []


@pytest.fixture()
def client(chat_histories, upstream_requests):
    """TestClient for app.py with the chat service mocked out.

    Patches build_client so every upstream call goes to an
    ``httpx.MockTransport`` serving ``chat_histories``.
    """
    import app as app_module
    from chat_sessions import build_client

    transport = make_transport(chat_histories, seen=upstream_requests)

    def _build_client(base_url, cookies=None, timeout=30.0):
        return build_client(base_url, cookies=cookies, timeout=timeout, transport=transport)

    with patch.object(app_module, "build_client", _build_client):
        with TestClient(app_module.app) as tc:
            yield tc
