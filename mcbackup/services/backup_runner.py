# mcbackup/services/backup_runner.py
"""
Live backup of a running server

Sequence:
1. Tell the detail audience worlds are being saved (10%)
2. save-off, save-all (autosave comes back on when the sequence exits)
3. Run restic against the configured file list (50%)
4. Relay failure state and every output line to players
5. Final progress with the tool's last output line (100%)
"""

import logging
import shlex
import subprocess
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Sequence, Tuple

from mcbackup.core.config import BackupSettings
from mcbackup.services.command_channel import CommandChannel, CommandError
from mcbackup.services.progress import ALERT_COLOR, DEFAULT_COLOR, ProgressReporter

logger = logging.getLogger(__name__)

SAVE_SETTLE_SECONDS = 1
EMPTY_OUTPUT_LINE = "(no output)"


@dataclass(frozen=True)
class BackupResult:
    """Terminal state of one backup process run"""
    succeeded: bool
    exit_code: int
    output_lines: Tuple[str, ...]
    error: str = ""

    @property
    def last_line(self) -> str:
        return self.output_lines[-1]


class BackupProcessError(Exception):
    """The backup tool exited non-zero or could not be started."""

    def __init__(self, exit_code: int, output: str, detail: str):
        super().__init__(detail)
        self.exit_code = exit_code
        self.output = output
        self.detail = detail


def split_output(output: str) -> Tuple[str, ...]:
    """Split tool output into lines; empty output becomes a single fallback line"""
    stripped = output.strip()
    if not stripped:
        return (EMPTY_OUTPUT_LINE,)
    return tuple(stripped.split("\n"))


def run_backup_process(command: Sequence[str]) -> BackupResult:
    """Run the backup tool to completion, stdout and stderr combined.

    Undecodable bytes (non-UTF-8 file names) become U+FFFD.
    """
    try:
        completed = subprocess.run(
            list(command),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as e:
        raise BackupProcessError(-1, "", str(e)) from e

    output = completed.stdout or ""
    if completed.returncode != 0:
        raise BackupProcessError(completed.returncode, output, f"exit status {completed.returncode}")
    return BackupResult(succeeded=True, exit_code=0, output_lines=split_output(output))


@contextmanager
def autosave_suspended(channel: CommandChannel):
    """Turn autosave off and flush worlds; autosave is restored on exit"""
    channel.send("save-off")
    try:
        channel.send("save-all")
        yield
    finally:
        channel.send("save-on")
        logger.info("[BackupRunner] Autosave re-enabled")


class BackupRunner:
    """Runs exactly one backup attempt and reports it to players"""

    def __init__(self, channel: CommandChannel, reporter: ProgressReporter, settings: BackupSettings):
        self.channel = channel
        self.reporter = reporter
        self.settings = settings

    def _report(self, title: str, percent: int):
        try:
            self.reporter.set_progress(title, percent)
        except CommandError as e:
            logger.warning("[BackupRunner] Failed to update progress %r: %s", title, e)

    def _detail(self, message: str, color: str = DEFAULT_COLOR):
        try:
            self.reporter.detail(message, color)
        except CommandError as e:
            logger.warning("[BackupRunner] Failed to send %r: %s", message, e)

    def run(self) -> BackupResult:
        self._report("Saving Worlds", 10)

        with autosave_suspended(self.channel):
            time.sleep(SAVE_SETTLE_SECONDS)

            command = self.settings.backup_command
            command_line = shlex.join(command)
            self._report("Running restic", 50)
            logger.info("[BackupRunner] Running %s", command_line)
            self._detail(command_line)

            try:
                result = run_backup_process(command)
            except BackupProcessError as e:
                logger.error("[BackupRunner] restic failed (exit %s): %s", e.exit_code, e.detail)
                self._detail(f"Failed backup. Exit: {e.exit_code}", ALERT_COLOR)
                self._detail(e.detail, ALERT_COLOR)
                result = BackupResult(
                    succeeded=False,
                    exit_code=e.exit_code,
                    output_lines=split_output(e.output),
                    error=e.detail,
                )

            logger.info("[BackupRunner] restic output:\n%s", "\n".join(result.output_lines))
            for line in result.output_lines:
                self._detail(line)

            self._report(result.last_line, 100)

        return result
