"""Package formatted conversations into a ZIP archive of Markdown files."""

from __future__ import annotations

import io
import logging
import re
import zipfile
from collections.abc import Mapping
from typing import Any, Callable

from chat_markdown import format_conversation_markdown

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_NAME = "DeepAIChats.zip"

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]+')


def safe_filename(title: str) -> str:
    """Turn a conversation title into a ``.md`` entry name.

    Args:
        title: Conversation title as listed by the chat service.

    Returns:
        The title with ``< > : " / \\ | ? *`` removed, trimmed, plus ``.md``.
    """
    return f"{_UNSAFE_FILENAME_CHARS.sub('', title).strip()}.md"


def build_archive(
    conversations: list[dict],
    remove_invalid: bool = True,
    log: Any = None,
) -> bytes:
    """Format each conversation and zip the results.

    Entries with the same file name overwrite each other, so the last
    conversation with a given name wins. A conversation that fails to
    format still gets an (empty) entry.

    Args:
        conversations: Conversation dicts, each with a ``title``.
        remove_invalid: Passed through to the formatter.
        log: Logger handed to the formatter.

    Returns:
        The ZIP archive as bytes.
    """
    entries: dict[str, str] = {}
    for conversation in conversations:
        formatted = format_conversation_markdown(conversation, remove_invalid, log)
        title = conversation.get("title") if isinstance(conversation, Mapping) else None
        name = safe_filename(str(title or ""))
        if name in entries:
            logger.info("Replacing duplicate archive entry %s", name)
        entries[name] = formatted

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, formatted in entries.items():
            zf.writestr(name, formatted.encode("utf-8"))
    logger.info("Built archive with %d entries", len(entries))
    return buffer.getvalue()


def normalize_archive_filename(
    name: str | None,
    fallback: str = DEFAULT_ARCHIVE_NAME,
) -> str:
    """Return a usable archive filename.

    Blank or missing names fall back to ``fallback``. Otherwise ``.zip`` is
    appended when missing and the result is trimmed.
    """
    if not name or not name.strip():
        return fallback
    if not name.endswith(".zip"):
        name += ".zip"
    return name.strip()


def ask_for_archive_filename(
    fallback: str = DEFAULT_ARCHIVE_NAME,
    input_fn: Callable[[str], str] | None = None,
) -> str:
    """Prompt the user for the archive filename.

    Args:
        fallback: Name used when the user enters nothing.
        input_fn: Prompt function. Defaults to ``input``.

    Returns:
        The normalised filename.
    """
    prompt = f"Please enter a filename for the downloaded zip file [{fallback}]: "
    picked = (input_fn or input)(prompt)
    return normalize_archive_filename(picked, fallback)
