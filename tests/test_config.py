from __future__ import annotations

from pathlib import Path

from daily_methods_hub.config import load_settings

ENV_KEYS = ("DATABASE_PATH", "TZ", "ADMIN_TOKEN", "CRON_SECRET", "API_HOST", "API_PORT")


def _clear(monkeypatch) -> None:
    # setenv first so monkeypatch restores whatever load_settings writes
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)


def test_defaults(tmp_path, monkeypatch) -> None:
    _clear(monkeypatch)
    settings = load_settings(tmp_path / "missing.env")
    assert settings.database_path == Path("./data/hub.db")
    assert settings.tz == "UTC"
    assert settings.admin_token is None
    assert settings.cron_secret is None
    assert settings.api_host == "127.0.0.1"
    assert settings.api_port == 8000


def test_env_file_values(tmp_path, monkeypatch) -> None:
    _clear(monkeypatch)
    env = tmp_path / ".env"
    env.write_text(
        "\n".join(
            [
                "# comment",
                "DATABASE_PATH=/tmp/hub.db",
                'TZ="Europe/Oslo"',
                "CRON_SECRET='abc'",
                "API_PORT=9001",
            ]
        )
    )
    settings = load_settings(env)
    assert settings.database_path == Path("/tmp/hub.db")
    assert settings.tz == "Europe/Oslo"
    assert settings.cron_secret == "abc"
    assert settings.api_port == 9001


def test_process_env_wins_and_bad_values_fall_back(tmp_path, monkeypatch) -> None:
    _clear(monkeypatch)
    env = tmp_path / ".env"
    env.write_text("API_PORT=9001\n")
    monkeypatch.setenv("API_PORT", "not-a-port")
    monkeypatch.setenv("TZ", "Mars/Olympus")
    settings = load_settings(env)
    assert settings.api_port == 8000
    assert settings.tz == "UTC"
