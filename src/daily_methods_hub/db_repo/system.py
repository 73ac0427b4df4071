from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Any, Protocol

from daily_methods_hub.db_constants import APP_CONFIG_DEFAULTS, JOB_CONFIG_KEYS
from daily_methods_hub.db_converters import _ts
from daily_methods_hub.points import DEFAULT_POINTS_TUNING


class DbProtocol(Protocol):
    def _connect(self) -> sqlite3.Connection: ...
    def get_app_config(self) -> dict[str, Any]: ...
    def get_app_config_value(self, key: str) -> Any: ...


class SystemMixin:
    def get_app_config(self: DbProtocol) -> dict[str, Any]:
        config = dict(APP_CONFIG_DEFAULTS)
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value_json FROM app_config").fetchall()
        for row in rows:
            key = str(row["key"])
            if key not in APP_CONFIG_DEFAULTS:
                continue
            try:
                config[key] = json.loads(str(row["value_json"]))
            except json.JSONDecodeError:
                continue
        return config

    def set_app_config(
        self: DbProtocol,
        updates: dict[str, Any],
        now: datetime,
        actor: str = "system",
        note: str | None = None,
    ) -> dict[str, Any]:
        """Persist known keys and audit each change. Unknown keys are ignored."""
        if not updates:
            return self.get_app_config()
        stamp = _ts(now)
        with self._connect() as conn:
            for key, value in updates.items():
                if key not in APP_CONFIG_DEFAULTS:
                    continue
                conn.execute(
                    """
                    INSERT INTO app_config(key, value_json, updated_at, updated_by)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value_json=excluded.value_json,
                        updated_at=excluded.updated_at,
                        updated_by=excluded.updated_by
                    """,
                    (key, json.dumps(value), stamp, actor),
                )
                conn.execute(
                    """
                    INSERT INTO admin_audit_log(actor, action, target, payload_json, created_at)
                    VALUES (?, 'config.update', ?, ?, ?)
                    """,
                    (actor, key, json.dumps({"value": value, "note": note}), stamp),
                )
        return self.get_app_config()

    def get_app_config_value(self: DbProtocol, key: str) -> Any:
        config = self.get_app_config()
        return config.get(key, APP_CONFIG_DEFAULTS.get(key))

    def is_feature_enabled(self: DbProtocol, feature_name: str) -> bool:
        value = self.get_app_config_value(f"feature.{feature_name}_enabled")
        if value is None:
            return True
        return bool(value)

    def is_job_enabled(self: DbProtocol, job_name: str) -> bool:
        key = JOB_CONFIG_KEYS.get(job_name)
        if not key:
            return True
        value = self.get_app_config_value(key)
        if value is None:
            return True
        return bool(value)

    def get_points_tuning(self: DbProtocol) -> dict[str, int]:
        config = self.get_app_config()
        tuning: dict[str, int] = {}
        for name, default in DEFAULT_POINTS_TUNING.items():
            try:
                tuning[name] = max(0, int(config.get(f"points.{name}", default)))
            except (TypeError, ValueError):
                tuning[name] = default
        return tuning

    def list_admin_audit(self: DbProtocol, limit: int = 100) -> list[dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT id, actor, action, target, payload_json, created_at
                FROM admin_audit_log
                ORDER BY id DESC
                LIMIT ?
                """,
                (max(1, limit),),
            ).fetchall()
        return [dict(r) for r in rows]

    def was_event_sent(self: DbProtocol, user_id: str, event_key: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM reminder_events WHERE user_id = ? AND event_key = ?",
                (user_id, event_key),
            ).fetchone()
        return row is not None

    def mark_event_sent(self: DbProtocol, user_id: str, event_key: str, sent_at: datetime) -> bool:
        """Record ``event_key`` once. Returns False when it was already recorded."""
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO reminder_events(user_id, event_key, sent_at) VALUES (?, ?, ?)",
                (user_id, event_key, _ts(sent_at)),
            )
        return cur.rowcount > 0
