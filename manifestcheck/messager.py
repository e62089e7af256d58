"""Fetching the server's message for the running version."""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Any, Iterator, Protocol


@dataclass(frozen=True)
class VersionMessage:
    cli_version: str
    message_text: str
    message_color: str


class MessagesClient(Protocol):
    def get_version_message(self, cli_version: str, timeout: int) -> Any: ...


class Messager:
    """Loads version messages in the background."""

    def __init__(self, messages_client: MessagesClient, default_timeout: int = 900) -> None:
        self.messages_client = messages_client
        self.default_timeout = default_timeout

    def load_version_messages(self, cli_version: str) -> Iterator[VersionMessage]:
        """Start fetching now; the iterator yields at most one message."""
        results: queue.Queue[VersionMessage | None] = queue.Queue(maxsize=1)

        def fetch() -> None:
            try:
                message = self.messages_client.get_version_message(
                    cli_version, self.default_timeout
                )
            except Exception:
                message = None
            results.put(self._to_version_message(message))

        threading.Thread(target=fetch, daemon=True).start()
        return self._drain(results)

    @staticmethod
    def _drain(results: queue.Queue[VersionMessage | None]) -> Iterator[VersionMessage]:
        message = results.get()
        if message is not None:
            yield message

    @staticmethod
    def _to_version_message(message: Any) -> VersionMessage | None:
        if message is None:
            return None
        return VersionMessage(
            cli_version=message.cli_version,
            message_text=message.message_text,
            message_color=message.message_color,
        )