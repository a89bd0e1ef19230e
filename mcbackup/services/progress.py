# mcbackup/services/progress.py
"""
Player-visible backup progress

Text goes out with ``tellraw`` as a two-part component (aqua ``[Backup]``
tag followed by the coloured message). The optional boss bar
``backup:active`` must already exist on the server; this module only assigns
players to it, toggles visibility and updates value/name.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

from mcbackup.core.config import (
    DEFAULT_BOSSBAR_SELECTOR,
    DEFAULT_BROADCAST_SELECTOR,
    DEFAULT_DETAIL_SELECTOR,
)
from mcbackup.services.command_channel import CommandChannel, CommandError

logger = logging.getLogger(__name__)

INDICATOR_ID = "backup:active"
INDICATOR_MISSING_PREFIX = "No bossbar exists with the ID"
DEFAULT_COLOR = "gray"
ALERT_COLOR = "red"


class IndicatorMissingError(CommandError):
    """The boss bar has not been created on the server."""


def indicator_missing(response: str) -> bool:
    """Translate a bossbar command response into "indicator absent".

    The server only reports this as chat text, so the check is a prefix
    match on the vanilla message.
    """
    return response.startswith(INDICATOR_MISSING_PREFIX)


def format_message(message: str, color: str = DEFAULT_COLOR) -> str:
    components = [
        {"text": "[Backup]", "color": "aqua"},
        {"text": f" {message}", "color": color},
    ]
    return json.dumps(components, separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True)
class Selectors:
    """Audience selectors, passed to the server untouched"""
    bossbar: str = DEFAULT_BOSSBAR_SELECTOR
    broadcast: str = DEFAULT_BROADCAST_SELECTOR
    detail: str = DEFAULT_DETAIL_SELECTOR


@dataclass
class ProgressState:
    visible: bool = False
    bossbar_selector: str = DEFAULT_BOSSBAR_SELECTOR
    detail_selector: str = DEFAULT_DETAIL_SELECTOR


class ProgressReporter:
    """Sends backup progress to players as chat text and an optional boss bar"""

    def __init__(self, channel: CommandChannel, selectors: Optional[Selectors] = None):
        self.channel = channel
        self.selectors = selectors or Selectors()
        self.state = ProgressState(
            bossbar_selector=self.selectors.bossbar,
            detail_selector=self.selectors.detail,
        )

    @property
    def visible(self) -> bool:
        return self.state.visible

    def announce(self, selector: str, message: str, color: str = DEFAULT_COLOR):
        """Send a formatted chat line; any reply text means it was rejected"""
        response = self.channel.send(f"tellraw {selector} {format_message(message, color or DEFAULT_COLOR)}")
        if response != "":
            raise CommandError(response)

    def detail(self, message: str, color: str = DEFAULT_COLOR):
        self.announce(self.state.detail_selector, message, color)

    def broadcast(self, message: str, color: str = DEFAULT_COLOR):
        self.announce(self.selectors.broadcast, message, color)

    def set_progress(self, title: str, percent: int):
        """Announce ``title`` and, when the boss bar is shown, move it to ``percent``.

        A rejected announcement does not stop the boss bar update; the
        rejection is raised once the update has been sent.
        """
        announce_error: Optional[CommandError] = None
        try:
            self.detail(title)
        except CommandError as e:
            logger.warning("[Progress] Progress message %r rejected: %s", title, e)
            announce_error = e

        if self.state.visible:
            percent = max(0, min(100, int(percent)))
            self.channel.send(f"bossbar set {INDICATOR_ID} value {percent}")
            self.channel.send(f"bossbar set {INDICATOR_ID} name {json.dumps(f'Backup: {title}', ensure_ascii=False)}")

        if announce_error is not None:
            raise announce_error

    def show_indicator(self):
        """Assign players to the boss bar and make it visible"""
        response = self.channel.send(f"bossbar set {INDICATOR_ID} players {self.state.bossbar_selector}")
        if indicator_missing(response):
            self.state.visible = False
            raise IndicatorMissingError(response)

        self.channel.send(f"bossbar set {INDICATOR_ID} visible true")
        self.state.visible = True

    def hide_indicator(self):
        """Hide the boss bar. Safe to call whether or not it was shown."""
        self.channel.send(f"bossbar set {INDICATOR_ID} visible false")
        self.state.visible = False
