"""
Export chat sessions from the chat service into a ZIP file of Markdown
documents, one per conversation.

The sessions to export are read from a JSON file shaped like the chat
service's session listing: {"sessions": [{"uuid": ..., "title": ...}]}.
Authentication uses the browser's session cookie string, passed with
--cookie.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from pydantic import ValidationError

from chat_archive import (
    DEFAULT_ARCHIVE_NAME,
    ask_for_archive_filename,
    build_archive,
    normalize_archive_filename,
)
from chat_sessions import (
    ChatServiceError,
    SessionList,
    build_client,
    fetch_conversations,
    load_session_list,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8000"


async def download_chats_as_zip(
    session_list: SessionList,
    base_url: str,
    cookies: str | None = None,
    remove_invalid: bool = True,
) -> tuple[bytes, int]:
    """Fetch all listed sessions and build the archive.

    Args:
        session_list: Sessions to export.
        base_url: Root URL of the chat service.
        cookies: Raw ``Cookie`` header value for the chat service.
        remove_invalid: Drop messages with blank content instead of
            rendering a placeholder.

    Returns:
        A tuple of (archive_bytes, conversation_count).

    Raises:
        ChatServiceError: If any session could not be fetched.
    """
    async with build_client(base_url, cookies=cookies) as client:
        conversations = await fetch_conversations(client, session_list.sessions)
    return build_archive(conversations, remove_invalid), len(conversations)


def _write_archive(archive: bytes, output_file: str) -> None:
    """Write the archive, creating parent directories as needed."""
    parent = os.path.dirname(output_file)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(output_file, "wb") as f:
        f.write(archive)


def _resolve_output_file(output: str | None, prompt: bool) -> str:
    if output:
        return normalize_archive_filename(output)
    if prompt:
        return ask_for_archive_filename(DEFAULT_ARCHIVE_NAME)
    return DEFAULT_ARCHIVE_NAME


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for exporting chat sessions.

    Returns:
        The number of conversations exported. Exits with status 1 when the
        session list cannot be read or the chat service fails.
    """
    parser = argparse.ArgumentParser(
        description="Export chat sessions to a ZIP file of Markdown documents"
    )
    parser.add_argument("sessions_file",
                        help='JSON file listing sessions: {"sessions": [{"uuid", "title"}]}')
    parser.add_argument("--output", "-o",
                        help=f"Archive filename (default: {DEFAULT_ARCHIVE_NAME})")
    parser.add_argument("--base-url", default=os.environ.get("CHAT_SERVICE_URL", DEFAULT_BASE_URL),
                        help="Chat service root URL (default: $CHAT_SERVICE_URL)")
    parser.add_argument("--cookie", default=os.environ.get("CHAT_SERVICE_COOKIE"),
                        help="Cookie header value for the chat service (default: $CHAT_SERVICE_COOKIE)")
    parser.add_argument("--keep-invalid", dest="remove_invalid", action="store_false",
                        help="Render messages with invalid content as a placeholder instead of dropping them")
    parser.add_argument("--prompt", "-p", action="store_true",
                        help="Ask for the archive filename when --output is not given")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        session_list = load_session_list(args.sessions_file)
    except FileNotFoundError:
        print(f"Error: File '{args.sessions_file}' not found.")
        sys.exit(1)
    except ValidationError as e:
        print(f"Error: '{args.sessions_file}' is not a valid session list: {e}")
        sys.exit(1)

    if not session_list.sessions:
        print("No sessions listed; nothing to export.")
        return 0

    print(f"Fetching {len(session_list.sessions)} conversations from {args.base_url}...")
    try:
        archive, count = asyncio.run(
            download_chats_as_zip(session_list, args.base_url, args.cookie, args.remove_invalid)
        )
    except ChatServiceError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    output_file = _resolve_output_file(args.output, args.prompt)
    try:
        _write_archive(archive, output_file)
    except OSError as e:
        logger.error("Error during file save: %s", e)
        output_file = DEFAULT_ARCHIVE_NAME
        try:
            _write_archive(archive, output_file)
        except OSError as e:
            print(f"Error: could not save archive: {e}")
            sys.exit(1)
    print(f"Export complete! {count} conversations saved to {output_file}")
    return count


if __name__ == "__main__":
    main()
