import argparse
import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from mcbackup.core.config import ENV_FILE, SETTINGS_FILE, ConfigurationError, load_settings, parse_warning_delay

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Live backup of a running Minecraft server over RCON.")
    parser.add_argument(
        "--env-file",
        default=str(ENV_FILE),
        help="Path to a .env file with RCON_HOST, RCON_PASSWORD and selectors.",
    )
    parser.add_argument(
        "--config",
        default=str(SETTINGS_FILE),
        help="Optional YAML settings file (environment variables take precedence).",
    )
    parser.add_argument(
        "--warning-delay",
        default=None,
        help="Seconds between the player warning and the backup (overrides WARNING_DELAY).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default LOG_LEVEL or INFO).",
    )
    return parser.parse_args(argv)


def configure_logging(level: str):
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def run_backup(argv: Optional[Sequence[str]] = None) -> int:
    """Command line entry point; returns the process exit code."""
    args = parse_args(argv)
    load_dotenv(dotenv_path=args.env_file)
    configure_logging(args.log_level or os.getenv("LOG_LEVEL", "INFO"))

    try:
        settings = load_settings(config_file=Path(args.config).expanduser())
    except ConfigurationError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc

    if args.warning_delay is not None:
        settings.warning_delay = parse_warning_delay(args.warning_delay, settings.warning_delay)

    from mcbackup.services.orchestrator import BackupOrchestrator

    return BackupOrchestrator(settings).run()
