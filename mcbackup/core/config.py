import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

# ==========================================
# Path Configuration
# ==========================================

CORE_DIR = Path(__file__).resolve().parent
PACKAGE_DIR = CORE_DIR.parent
ROOT_DIR = PACKAGE_DIR.parent

ENV_FILE = ROOT_DIR / ".env"
DATA_DIR = ROOT_DIR / "data"
SETTINGS_FILE = DATA_DIR / "backup_settings.yml"

# ==========================================
# Defaults
# ==========================================

DEFAULT_BOSSBAR_SELECTOR = "@a"
DEFAULT_BROADCAST_SELECTOR = "@a"
DEFAULT_DETAIL_SELECTOR = "@a[tag=backups]"
DEFAULT_WARNING_DELAY = 5
DEFAULT_RCON_PORT = 25575
DEFAULT_RESTIC_BINARY = "restic"
DEFAULT_BACKUP_FILE_LIST = ".backuplist"

APP_VERSION = os.getenv("APP_VERSION", "1.0.0")


class ConfigurationError(Exception):
    """Raised when the backup runner configuration is incomplete or invalid."""


@dataclass
class BackupSettings:
    """Everything one backup run needs, resolved once at start-up"""
    rcon_host: str
    rcon_password: str
    rcon_port: int = DEFAULT_RCON_PORT
    bossbar_selector: str = DEFAULT_BOSSBAR_SELECTOR
    broadcast_selector: str = DEFAULT_BROADCAST_SELECTOR
    detail_selector: str = DEFAULT_DETAIL_SELECTOR
    warning_delay: int = DEFAULT_WARNING_DELAY
    restic_binary: str = DEFAULT_RESTIC_BINARY
    backup_file_list: str = DEFAULT_BACKUP_FILE_LIST
    extra_restic_args: List[str] = field(default_factory=list)

    @property
    def backup_command(self) -> List[str]:
        return [
            self.restic_binary,
            "backup",
            "--files-from",
            self.backup_file_list,
            *self.extra_restic_args,
        ]


# Environment variable -> BackupSettings field
_ENV_KEYS = {
    "BOSSBAR_SELECTOR": "bossbar_selector",
    "BACKUP_BROADCAST_SELECTOR": "broadcast_selector",
    "BACKUP_MESSAGE_SELECTOR": "detail_selector",
    "RESTIC_BINARY": "restic_binary",
    "BACKUP_FILE_LIST": "backup_file_list",
    "RCON_PASSWORD": "rcon_password",
}


def load_settings_file(config_file: Path) -> dict:
    """Load the optional YAML overlay. A missing file is an empty overlay."""
    if not config_file.exists():
        return {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {config_file}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_file} must contain a mapping")

    known = {f.name for f in fields(BackupSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        logger.warning("[Config] Ignoring unknown keys in %s: %s", config_file, ", ".join(unknown))
    return {k: v for k, v in data.items() if k in known}


def parse_warning_delay(raw, default: int = DEFAULT_WARNING_DELAY) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        logger.warning("[Config] Failed to parse WARNING_DELAY %r as int, using %s", raw, default)
        return default
    if value < 0:
        logger.warning("[Config] Negative WARNING_DELAY %s clamped to 0", value)
        return 0
    return value


def split_host_port(raw: str, default_port: int) -> tuple[str, int]:
    """Split ``host:port``; a bare host keeps ``default_port``."""
    raw = raw.strip()
    if raw.count(":") == 1:
        host, _, port = raw.partition(":")
        try:
            return host, int(port)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid RCON port in {raw!r}") from exc
    return raw, default_port


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    config_file: Path = SETTINGS_FILE,
) -> BackupSettings:
    """Resolve settings with precedence: environment > YAML file > defaults."""
    env = os.environ if environ is None else environ
    values = load_settings_file(config_file)

    for env_key, attr in _ENV_KEYS.items():
        if env_key in env:
            values[attr] = env[env_key]

    values["warning_delay"] = parse_warning_delay(
        env.get("WARNING_DELAY", values.get("warning_delay", DEFAULT_WARNING_DELAY))
    )

    port = values.get("rcon_port", DEFAULT_RCON_PORT)
    port_source = "rcon_port"
    if "RCON_PORT" in env:
        port, port_source = env["RCON_PORT"], "RCON_PORT"
    try:
        port = int(port)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {port_source} {port!r}") from exc

    host = env.get("RCON_HOST", values.get("rcon_host", ""))
    if host:
        host, port = split_host_port(str(host), port)

    if not values.get("rcon_password"):
        # Local server: fall back to the values in server.properties
        from mcbackup.services.rcon import get_rcon_config

        props_config = get_rcon_config(env.get("MINECRAFT_SERVER_PATH"))
        if props_config is not None and props_config.enabled and props_config.password:
            logger.info("[Config] Using RCON settings from server.properties")
            values["rcon_password"] = props_config.password
            if not host:
                host = props_config.host
                port = props_config.port

    values["rcon_host"] = host
    values["rcon_port"] = int(port)

    if not values.get("rcon_host"):
        raise ConfigurationError("RCON_HOST is not set")
    if not values.get("rcon_password"):
        raise ConfigurationError("RCON_PASSWORD is not set")

    extra = values.get("extra_restic_args") or []
    if not isinstance(extra, list):
        raise ConfigurationError("extra_restic_args must be a list")
    values["extra_restic_args"] = [str(arg) for arg in extra]

    return BackupSettings(**values)
