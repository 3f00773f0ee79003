"""FastAPI service for exporting chat sessions as a ZIP of Markdown files.

The browser posts the sessions it wants exported; the service fetches them
from the chat service with the browser's cookies, formats each one and
returns the archive as a file download.

Deployment: uvicorn app:app --host 127.0.0.1 --port 8204
"""

from __future__ import annotations

import logging
import os
from typing import Any
from urllib.parse import quote

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import Response

from chat_archive import DEFAULT_ARCHIVE_NAME, build_archive, normalize_archive_filename
from chat_markdown import format_conversation_markdown
from chat_sessions import ChatServiceError, SessionList, build_client, fetch_conversations

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
CHAT_SERVICE_URL = os.environ.get("CHAT_SERVICE_URL", "http://127.0.0.1:8000")
CHAT_SERVICE_TIMEOUT = float(os.environ.get("CHAT_SERVICE_TIMEOUT", "30"))

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Chat Markdown Export",
    root_path="/chat_export",
)


def _content_disposition(filename: str) -> str:
    """Build an attachment header that is safe for any filename.

    Latin-1 clients read the ASCII ``filename`` fallback; others read the
    RFC 5987 ``filename*`` form.
    """
    fallback = "".join(
        c for c in filename if c.isascii() and c.isprintable() and c not in '"\\'
    ).strip()
    if not fallback or fallback == ".zip":
        fallback = DEFAULT_ARCHIVE_NAME
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health")
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.post("/api/format")
def api_format(
    conversation: Any = Body(...),
    remove_invalid: bool = True,
):
    """Format a single conversation posted as JSON."""
    markdown = format_conversation_markdown(conversation, remove_invalid)
    return Response(content=markdown, media_type="text/markdown; charset=utf-8")


@app.post("/api/export")
async def api_export(
    session_list: SessionList,
    request: Request,
    filename: str | None = None,
    remove_invalid: bool = True,
):
    """Fetch the listed sessions and return them as a ZIP download."""
    if not session_list.sessions:
        raise HTTPException(status_code=400, detail="No sessions to export")

    client = build_client(
        CHAT_SERVICE_URL,
        cookies=request.headers.get("cookie"),
        timeout=CHAT_SERVICE_TIMEOUT,
    )
    try:
        async with client:
            conversations = await fetch_conversations(client, session_list.sessions)
    except ChatServiceError as e:
        raise HTTPException(status_code=502, detail=e.message)

    archive = build_archive(conversations, remove_invalid)
    archive_name = normalize_archive_filename(filename, DEFAULT_ARCHIVE_NAME)
    logger.info("Exported %d conversations as %s", len(conversations), archive_name)
    return Response(
        content=archive,
        media_type="application/zip",
        headers={"Content-Disposition": _content_disposition(archive_name)},
    )
