# mcbackup/services/command_channel.py
"""
RCON command round trips

One command in flight at a time: write, then read its response. Server-side
rejections are modelled as ProtocolError/CommandError; a broken session is a
TransportError from the RCON client.
"""

from __future__ import annotations

import logging
from typing import Protocol

from mcbackup.services.rcon import TransportError, strip_minecraft_colors

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def write(self, command: str) -> int:
        ...

    def read(self) -> tuple[int, str]:
        ...


class ProtocolError(Exception):
    """The server answered, but the answer signals a rejection."""

    def __init__(self, response: str) -> None:
        super().__init__(response)
        self.response = response


class CommandError(ProtocolError):
    """A display command echoed text where silence means success."""


class CommandChannel:
    """One command in flight at a time over an open RCON session.

    Every ``send`` writes one command and consumes exactly one response. A
    response whose id does not match the request is still returned: the
    server gives no way to tell a stale reply from a valid one, so the
    mismatch is only logged.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    def send(self, command: str) -> str:
        try:
            sent_id = self._transport.write(command)
            response_id, response = self._transport.read()
        except TransportError:
            raise
        except OSError as exc:
            raise TransportError(f"RCON command failed: {exc}") from exc

        if sent_id != response_id:
            logger.warning(
                "[RCON] Response id mismatch for %r: sent %s, received %s",
                command, sent_id, response_id,
            )
        if response:
            logger.debug("[RCON] %s -> %s", command, strip_minecraft_colors(response))
        return response
