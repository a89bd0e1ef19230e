# mcbackup/services/orchestrator.py
"""
Backup run orchestration

Opens the RCON session, warns players, shows the boss bar, runs the backup
and cleans up. The returned exit status is the operator-facing outcome.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Type

from mcbackup.core.config import BackupSettings
from mcbackup.services.backup_runner import BackupResult, BackupRunner
from mcbackup.services.command_channel import CommandChannel, CommandError
from mcbackup.services.progress import ProgressReporter, Selectors
from mcbackup.services.rcon import RCONClient, TransportError

logger = logging.getLogger(__name__)

FINISH_SETTLE_SECONDS = 2
WARNING_MESSAGE = "Starting a backup shortly."

TransportFactory = Callable[[BackupSettings], RCONClient]


def default_transport_factory(settings: BackupSettings) -> RCONClient:
    return RCONClient(settings.rcon_host, settings.rcon_port, settings.rcon_password)


class BackupOrchestrator:
    """Top-level run: warn players, show progress, back up, clean up.

    Owns the RCON session for the whole run and is the only component that
    reports the overall outcome to the operator.
    """

    def __init__(
        self,
        settings: BackupSettings,
        transport_factory: Optional[TransportFactory] = None,
        runner_cls: Type[BackupRunner] = BackupRunner,
    ) -> None:
        self._settings = settings
        self._transport_factory = transport_factory or default_transport_factory
        self._runner_cls = runner_cls

    def _selectors(self) -> Selectors:
        return Selectors(
            bossbar=self._settings.bossbar_selector,
            broadcast=self._settings.broadcast_selector,
            detail=self._settings.detail_selector,
        )

    def run(self) -> int:
        client = self._transport_factory(self._settings)
        try:
            client.connect()
        except TransportError as exc:
            logger.error("[Orchestrator] %s", exc)
            raise SystemExit(
                f"Failed to connect to RCON server at {self._settings.rcon_host}:{self._settings.rcon_port}: {exc}"
            ) from exc

        try:
            result = self._run_session(CommandChannel(client))
        except TransportError as exc:
            logger.error("[Orchestrator] Backup aborted, RCON session lost: %s", exc)
            return 1
        finally:
            client.disconnect()

        if result.succeeded:
            logger.info("[Orchestrator] Backup succeeded: %s", result.last_line)
            return 0
        logger.error("[Orchestrator] Backup failed (exit %s): %s", result.exit_code, result.error)
        return 1

    def _run_session(self, channel: CommandChannel) -> BackupResult:
        reporter = ProgressReporter(channel, self._selectors())

        try:
            reporter.broadcast(WARNING_MESSAGE)
        except CommandError as exc:
            logger.warning("[Orchestrator] Failed to broadcast backup warning: %s", exc)
        time.sleep(self._settings.warning_delay)

        try:
            try:
                reporter.show_indicator()
            except CommandError as exc:
                logger.warning("[Orchestrator] Failed to show the bossbar: %s", exc)

            try:
                reporter.set_progress("Starting Backup", 0)
            except CommandError as exc:
                logger.warning("[Orchestrator] Failed to update the progress: %s", exc)

            result = self._runner_cls(channel, reporter, self._settings).run()
            time.sleep(FINISH_SETTLE_SECONDS)
        finally:
            if reporter.visible:
                reporter.hide_indicator()

        return result
