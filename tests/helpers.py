"""Shared test helpers for chat export tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

import httpx


def make_conversation(
    title: str = "Test Chat",
    messages: list[tuple[str, str]] | None = None,
) -> dict:
    """Build a conversation dict from (role, content) pairs.

    Args:
        title: Conversation title.
        messages: List of (role, content) pairs. Defaults to one user turn
            and one assistant turn.

    Returns:
        A dict matching the chat service's conversation structure.
    """
    if messages is None:
        messages = [("user", "Hi there"), ("assistant", "Hello!")]
    return {
        "title": title,
        "messages": [{"role": role, "content": content} for role, content in messages],
    }


def make_transport(
    histories: dict[str, dict],
    status_codes: dict[str, int] | None = None,
    seen: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """Build a mock chat service answering ``/get_chat_session``.

    Args:
        histories: Session payloads keyed by UUID. Unknown UUIDs get a 404.
        status_codes: Optional forced status per UUID.
        seen: Optional list that collects every request received.

    Returns:
        An ``httpx.MockTransport`` to pass to ``build_client``.
    """
    status_codes = status_codes or {}

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        if request.url.path != "/get_chat_session":
            return httpx.Response(404, json={"detail": "Not found"})
        chat_uuid = request.url.params.get("uuid")
        if chat_uuid in status_codes:
            return httpx.Response(status_codes[chat_uuid], text="error")
        if chat_uuid not in histories:
            return httpx.Response(404, json={"detail": "Not found"})
        return httpx.Response(200, json=histories[chat_uuid])

    return httpx.MockTransport(handler)
