"""Retrieve chat sessions from the chat service.

The service exposes ``GET /get_chat_session?uuid=<uuid>`` and authenticates
with the caller's session cookies. Fetching a batch is fail-fast: one failed
session aborts the whole export.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class SessionRef(BaseModel):
    uuid: str
    title: str


class SessionList(BaseModel):
    """Sessions chosen for export, as listed by the chat service."""

    sessions: list[SessionRef]


class ChatServiceError(Exception):
    """The chat service could not be reached or returned an unusable reply.

    Attributes:
        message: Human readable description.
        status_code: HTTP status of the upstream reply, when there was one.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def build_client(
    base_url: str,
    cookies: str | Mapping[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an async HTTP client bound to the chat service.

    Args:
        base_url: Root URL of the chat service.
        cookies: Either a raw ``Cookie`` header value (as sent by the
            browser) or a name/value mapping.
        timeout: Per-request timeout in seconds.
        transport: Optional transport override, used by tests.

    Returns:
        An ``httpx.AsyncClient``; the caller owns and closes it.
    """
    headers: dict[str, str] = {}
    jar = None
    if isinstance(cookies, str):
        if cookies.strip():
            headers["Cookie"] = cookies
    elif cookies:
        jar = dict(cookies)
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        headers=headers,
        cookies=jar,
        timeout=timeout,
        transport=transport,
    )


async def fetch_chat_history(client: httpx.AsyncClient, chat_uuid: str) -> dict:
    """Fetch one chat session.

    Args:
        client: Client from ``build_client``.
        chat_uuid: UUID of the chat session.

    Returns:
        The decoded JSON session object.

    Raises:
        ChatServiceError: On transport failure, HTTP error status, or a
            body that is not JSON.
    """
    try:
        resp = await client.get("/get_chat_session", params={"uuid": chat_uuid})
    except httpx.RequestError as e:
        raise ChatServiceError(f"Network error fetching chat {chat_uuid}: {e}") from e
    if resp.status_code >= 400:
        raise ChatServiceError(
            f"Chat service returned {resp.status_code} for chat {chat_uuid}",
            status_code=resp.status_code,
        )
    try:
        return resp.json()
    except ValueError as e:
        raise ChatServiceError(
            f"Chat service returned invalid JSON for chat {chat_uuid}",
            status_code=resp.status_code,
        ) from e


async def fetch_chat_histories(client: httpx.AsyncClient, uuids: list[str]) -> list[dict]:
    """Fetch sessions one after another, skipping replies without messages.

    Raises:
        ChatServiceError: If any single fetch fails.
    """
    histories: list[dict] = []
    for chat_uuid in uuids:
        history = await fetch_chat_history(client, chat_uuid)
        if isinstance(history, dict) and isinstance(history.get("messages"), list):
            histories.append(history)
        else:
            logger.warning("No chat history found for UUID: %s", chat_uuid)
    return histories


async def fetch_conversations(
    client: httpx.AsyncClient,
    sessions: list[SessionRef],
) -> list[dict]:
    """Fetch every session concurrently and label it with its listed title.

    Args:
        client: Client from ``build_client``.
        sessions: Sessions to export.

    Returns:
        Conversation dicts in the same order as ``sessions``. Each has the
        upstream payload with ``title`` replaced by the session title.

    Raises:
        ChatServiceError: "Failed to fetch chat histories" if any fetch
            fails; the underlying error is chained.
    """
    tasks = [asyncio.ensure_future(fetch_chat_history(client, s.uuid)) for s in sessions]
    try:
        histories = await asyncio.gather(*tasks)
    except ChatServiceError as e:
        # Stop the remaining fetches before the caller closes the client.
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.error("Error fetching chat histories: %s", e)
        raise ChatServiceError("Failed to fetch chat histories", e.status_code) from e

    conversations = []
    for session, history in zip(sessions, histories):
        payload = history if isinstance(history, dict) else {}
        conversations.append({**payload, "title": session.title})
    return conversations


def load_session_list(path: str) -> SessionList:
    """Load and validate a session list JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If the file is not JSON or does not match
            ``SessionList``.
    """
    with open(path, "r", encoding="utf-8") as f:
        return SessionList.model_validate_json(f.read())
