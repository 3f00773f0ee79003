"""Convert a chat conversation record into a Markdown document.

A conversation is a plain mapping with a ``title`` string and an ordered
``messages`` list, each message carrying a ``role`` and a ``content``
string. ``format_conversation_markdown`` is the entry point used by the
archive builder, the web service and the CLI; it never raises.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

logger = logging.getLogger(__name__)

CITATION_MARKER = "\u001c"
INVALID_CONTENT_PLACEHOLDER = "(The message contains invalid content)"
USER_LABEL = "**User:**"
ASSISTANT_LABEL = "**Assistant:**"

# str.strip() also treats the \x1c-\x1f separators as whitespace; keep them.
_EDGE_WHITESPACE = re.compile(r"^[^\S\x1c-\x1f]+|[^\S\x1c-\x1f]+$")
_TITLE_QUOTES = re.compile(r'^"|"\Z')


class ConversationValidationError(ValueError):
    """Raised (or reported) when a conversation lacks its required shape."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def custom_message(self) -> str:
        """Return the message prefixed with the error category."""
        return f"ValidationError: {self.message}"


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of ``validate_conversation``: success, or the first failure."""

    error: ConversationValidationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MessageRecord(BaseModel):
    """Minimum shape of one message: both fields present, any type."""

    model_config = ConfigDict(extra="allow")

    role: Any
    content: Any


def _trim(text: str) -> str:
    return _EDGE_WHITESPACE.sub("", text)


def check_messages(messages: list, title: str, log: Any = None) -> int:
    """Warn about every message entry that does not match ``MessageRecord``.

    Entries are never removed; the formatter applies its own content
    policy later on.

    Args:
        messages: The conversation's message list.
        title: Conversation title, used in the warning text.
        log: Logger to warn on. Defaults to the module logger.

    Returns:
        The number of malformed entries found.
    """
    log = log or logger
    malformed = 0
    for index, message in enumerate(messages):
        if not isinstance(message, Mapping):
            ok = False
        else:
            try:
                MessageRecord.model_validate(dict(message))
                ok = True
            except ValidationError:
                ok = False
        if not ok:
            malformed += 1
            log.warning(
                'Skipping malformed message at index %d in conversation "%s".',
                index,
                title,
            )
    return malformed


def validate_conversation(conversation: Any, log: Any = None) -> ValidationOutcome:
    """Check the structural preconditions of a conversation record.

    The four structural checks run in order and the first failure is
    returned. Per-message problems are only logged (see ``check_messages``).

    Args:
        conversation: Candidate conversation value.
        log: Logger for the per-message warnings. Defaults to the module logger.

    Returns:
        A ``ValidationOutcome``; ``outcome.error`` holds the failure, if any.
    """
    if conversation is None:
        return ValidationOutcome(
            ConversationValidationError("The conversation object cannot be null or undefined.")
        )
    if not isinstance(conversation, Mapping):
        return ValidationOutcome(
            ConversationValidationError("The conversation must be an object.")
        )
    title = conversation.get("title")
    if not title or not isinstance(title, str):
        return ValidationOutcome(
            ConversationValidationError("The conversation must have a title of type string.")
        )
    messages = conversation.get("messages")
    if not isinstance(messages, list):
        return ValidationOutcome(
            ConversationValidationError("The conversation.messages must be an array.")
        )

    check_messages(messages, title, log)
    return ValidationOutcome()


def clean_title(title: str) -> str:
    """Drop one leading and one trailing double quote, then trim."""
    return _trim(_TITLE_QUOTES.sub("", title))


def truncate_at_citation(content: str) -> str:
    """Cut ``content`` at the first citation marker and trim the rest.

    Args:
        content: Raw message text.

    Returns:
        The text before the first U+001C marker, trimmed. Content without a
        marker is returned trimmed and otherwise whole.
    """
    citation_index = content.find(CITATION_MARKER)
    if citation_index != -1:
        return _trim(content[:citation_index])
    return _trim(content)


def format_content_as_blockquote(content: str) -> str:
    """Prefix every line, blank ones included, with ``> ``."""
    return "\n".join(f"> {line}" for line in content.split("\n"))


def handle_invalid_content(
    index: int,
    title: str,
    remove_invalid: bool = True,
    log: Any = None,
) -> str | None:
    """Apply the invalid-content policy to one message.

    Returns:
        None when the message should be dropped, otherwise the placeholder text.
    """
    (log or logger).warning(
        'Message at index %d in conversation "%s" contains invalid content.',
        index,
        title,
    )
    return None if remove_invalid else INVALID_CONTENT_PLACEHOLDER


def _format_message(
    message: Any,
    index: int,
    title: str,
    remove_invalid: bool,
    log: Any,
) -> str:
    fields = message if isinstance(message, Mapping) else {}
    role_label = USER_LABEL if fields.get("role") == "user" else ASSISTANT_LABEL

    raw = fields.get("content")
    if isinstance(raw, str) and _trim(raw) != "":
        content = truncate_at_citation(raw)
    else:
        content = handle_invalid_content(index, title, remove_invalid, log)

    if not content:
        return ""
    return f"{role_label}\n{format_content_as_blockquote(content)}\n\n"


def format_conversation_markdown(
    conversation: Any,
    remove_invalid: bool = True,
    log: Any = None,
) -> str:
    """Render a conversation record as Markdown.

    Args:
        conversation: Mapping with ``title`` and ``messages``.
        remove_invalid: Drop messages with blank or missing content when
            True; otherwise render them with a placeholder.
        log: Logger receiving warnings and errors. Defaults to the module
            logger.

    Returns:
        The Markdown document, or an empty string when the conversation is
        invalid or formatting fails for any reason.
    """
    log = log or logger
    try:
        outcome = validate_conversation(conversation, log)
        if not outcome.ok:
            log.error(
                "Error formatting conversation to Markdown: %s",
                outcome.error.custom_message(),
            )
            return ""

        title = clean_title(conversation["title"])
        parts = [f"## Conversation: {title}\n\n"]
        for index, message in enumerate(conversation["messages"]):
            parts.append(_format_message(message, index, title, remove_invalid, log))
        return "".join(parts)
    except Exception:
        log.exception("Error formatting conversation to Markdown")
        return ""
