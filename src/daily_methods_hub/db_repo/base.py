from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path


class BaseDatabase:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = {row["version"] for row in conn.execute("SELECT version FROM schema_migrations")}

            migrations: dict[int, str] = {
                1: """
                    CREATE TABLE user_profiles (
                        user_id TEXT PRIMARY KEY,
                        email TEXT,
                        is_admin INTEGER NOT NULL DEFAULT 0,
                        plan_type TEXT NOT NULL DEFAULT 'free',
                        subscription_status TEXT,
                        created_at TEXT NOT NULL,
                        last_seen_at TEXT NOT NULL
                    );

                    CREATE TABLE methods (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        title TEXT NOT NULL,
                        description TEXT NOT NULL DEFAULT '',
                        category TEXT NOT NULL,
                        earnings TEXT NOT NULL DEFAULT '',
                        difficulty TEXT NOT NULL CHECK(difficulty IN ('Easy', 'Medium', 'Hard')),
                        time_required TEXT NOT NULL DEFAULT '',
                        link TEXT,
                        referral_code TEXT,
                        icon_url TEXT,
                        is_active INTEGER NOT NULL DEFAULT 1,
                        is_public INTEGER NOT NULL DEFAULT 0,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );

                    CREATE INDEX idx_methods_user ON methods(user_id, is_active);
                    CREATE INDEX idx_methods_public ON methods(is_public, category);

                    CREATE TABLE daily_earnings (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        method_id INTEGER NOT NULL,
                        amount REAL NOT NULL CHECK(amount >= 0),
                        entry_date TEXT NOT NULL,
                        notes TEXT,
                        created_at TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        UNIQUE(user_id, method_id, entry_date)
                    );

                    CREATE INDEX idx_earnings_user_date ON daily_earnings(user_id, entry_date);

                    CREATE TABLE method_completions (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        method_id INTEGER NOT NULL,
                        completed_at TEXT NOT NULL
                    );

                    CREATE INDEX idx_completions_user_completed ON method_completions(user_id, completed_at);

                    CREATE TABLE streaks (
                        user_id TEXT PRIMARY KEY,
                        current_streak INTEGER NOT NULL DEFAULT 0,
                        longest_streak INTEGER NOT NULL DEFAULT 0,
                        last_entry_date TEXT,
                        updated_at TEXT NOT NULL
                    );
                """,
                2: """
                    CREATE TABLE referral_points (
                        user_id TEXT PRIMARY KEY,
                        points INTEGER NOT NULL DEFAULT 0,
                        lifetime_points INTEGER NOT NULL DEFAULT 0,
                        updated_at TEXT NOT NULL
                    );

                    CREATE TABLE referrals (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        referrer_id TEXT NOT NULL,
                        referred_user_id TEXT NOT NULL UNIQUE,
                        created_at TEXT NOT NULL
                    );

                    CREATE INDEX idx_referrals_referrer ON referrals(referrer_id, created_at DESC);
                """,
                3: """
                    CREATE TABLE notifications (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id TEXT NOT NULL,
                        title TEXT NOT NULL,
                        message TEXT NOT NULL,
                        kind TEXT NOT NULL DEFAULT 'info' CHECK(kind IN ('info', 'warning', 'success')),
                        is_read INTEGER NOT NULL DEFAULT 0,
                        created_at TEXT NOT NULL
                    );

                    CREATE INDEX idx_notifications_user_created ON notifications(user_id, created_at DESC);

                    CREATE TABLE reminder_events (
                        user_id TEXT NOT NULL,
                        event_key TEXT NOT NULL,
                        sent_at TEXT NOT NULL,
                        PRIMARY KEY(user_id, event_key)
                    );
                """,
                4: """
                    CREATE TABLE IF NOT EXISTS app_config (
                        key TEXT PRIMARY KEY,
                        value_json TEXT NOT NULL,
                        updated_at TEXT NOT NULL,
                        updated_by TEXT
                    );

                    CREATE TABLE IF NOT EXISTS admin_audit_log (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        actor TEXT,
                        action TEXT NOT NULL,
                        target TEXT NOT NULL,
                        payload_json TEXT,
                        created_at TEXT NOT NULL
                    );
                """,
            }

            now = datetime.now(tz=timezone.utc).isoformat(timespec="seconds")
            for version in sorted(migrations):
                if version in current:
                    continue
                conn.executescript(migrations[version])
                conn.execute(
                    "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, now),
                )
