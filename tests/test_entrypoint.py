import pytest

import mcbackup
from mcbackup.services import orchestrator

RCON_ENV = (
    "RCON_HOST", "RCON_PORT", "RCON_PASSWORD", "WARNING_DELAY", "MINECRAFT_SERVER_PATH",
    "BOSSBAR_SELECTOR", "BACKUP_BROADCAST_SELECTOR", "BACKUP_MESSAGE_SELECTOR",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # setenv first so values written by load_dotenv are undone after the test
    for key in RCON_ENV:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return ["--env-file", str(tmp_path / ".env"), "--config", str(tmp_path / "settings.yml")]


def test_missing_configuration_exits(clean_env):
    with pytest.raises(SystemExit) as excinfo:
        mcbackup.run_backup(clean_env)

    assert "Configuration error" in str(excinfo.value)


def test_env_file_and_warning_delay_flag(monkeypatch, tmp_path, clean_env):
    (tmp_path / ".env").write_text(
        "RCON_HOST=mc.local:25580\nRCON_PASSWORD=pw\nWARNING_DELAY=9\n", encoding="utf-8"
    )
    captured = {}

    def _fake_run(self):
        captured["settings"] = self._settings
        return 0

    monkeypatch.setattr(orchestrator.BackupOrchestrator, "run", _fake_run)

    assert mcbackup.run_backup(clean_env + ["--warning-delay", "0"]) == 0

    settings = captured["settings"]
    assert settings.rcon_host == "mc.local"
    assert settings.rcon_port == 25580
    assert settings.warning_delay == 0
