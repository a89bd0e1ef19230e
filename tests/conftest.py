import json

import pytest

from mcbackup.core.config import BackupSettings
from mcbackup.services import backup_runner, orchestrator
from mcbackup.services.rcon import TransportError

BOSSBAR_PLAYERS_OK = "Custom bossbar [Backup] now has 2 players: Alex, Steve"


class FakeTransport:
    """In-memory RCON session: records commands, answers by command prefix."""

    def __init__(self, responses=None, fail_on=None, id_offset=0):
        self.responses = responses or {}
        self.fail_on = fail_on
        self.id_offset = id_offset
        self.commands = []
        self.reads = 0
        self.connected = False
        self.disconnected = False
        self._next_id = 0
        self._pending = None

    def connect(self):
        self.connected = True

    def disconnect(self):
        self.disconnected = True

    def _respond(self, command):
        for prefix, response in self.responses.items():
            if command.startswith(prefix):
                return response
        return ""

    def write(self, command):
        if self.fail_on and command.startswith(self.fail_on):
            raise TransportError("Connection lost")
        self._next_id += 1
        self.commands.append(command)
        self._pending = (self._next_id + self.id_offset, self._respond(command))
        return self._next_id

    def read(self):
        self.reads += 1
        pending, self._pending = self._pending, None
        return pending


def tellraw_messages(commands, selector=None):
    """Decode ``(selector, text, color)`` from every tellraw command sent"""
    messages = []
    for command in commands:
        if not command.startswith("tellraw "):
            continue
        _, target, payload = command.split(" ", 2)
        if selector is not None and target != selector:
            continue
        components = json.loads(payload)
        messages.append((target, components[1]["text"][1:], components[1]["color"]))
    return messages


@pytest.fixture
def settings():
    return BackupSettings(rcon_host="127.0.0.1", rcon_password="secret", warning_delay=0)


@pytest.fixture
def no_sleep(monkeypatch):
    """Record sleeps instead of waiting (both services share the time module)."""
    slept = []
    monkeypatch.setattr(backup_runner.time, "sleep", lambda seconds: slept.append(seconds))
    assert orchestrator.time.sleep is backup_runner.time.sleep
    return slept
