from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from daily_methods_hub.time_utils import DEFAULT_TZ


@dataclass(frozen=True)
class Settings:
    database_path: Path
    tz: str
    admin_token: str | None
    cron_secret: str | None
    api_host: str
    api_port: int


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _resolve_tz(raw: str | None) -> str:
    name = (raw or "").strip() or DEFAULT_TZ
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return DEFAULT_TZ
    return name


def load_settings(env_file: Path | None = None) -> Settings:
    _load_env_file(env_file or Path(".env"))

    db_path = Path(os.getenv("DATABASE_PATH", "./data/hub.db"))
    port_raw = os.getenv("API_PORT", "8000")
    try:
        api_port = int(port_raw)
    except ValueError:
        api_port = 8000

    return Settings(
        database_path=db_path,
        tz=_resolve_tz(os.getenv("TZ")),
        admin_token=os.getenv("ADMIN_TOKEN") or None,
        cron_secret=os.getenv("CRON_SECRET") or None,
        api_host=os.getenv("API_HOST", "127.0.0.1"),
        api_port=api_port,
    )
