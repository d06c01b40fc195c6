# SPDX-License-Identifier: MIT
# src/signal_alerts/alerts/store.py
"""
Subscriber and delivery-log storage.
"""
from __future__ import annotations
import sqlite3
import logging
from pathlib import Path
from contextlib import contextmanager
from typing import Dict, Any, Iterable, Iterator, List, Optional, Sequence
from datetime import datetime, timezone

from signal_alerts.errors import DependencyError
from signal_alerts.signals.models import (
    ACTIVE_STATUSES,
    CHANNELS,
    DESTINATION_FIELDS,
    ChannelSettings,
    DeliveryLogEntry,
    Subscriber,
)

logger = logging.getLogger(__name__)


def utc_timestamp(when: Optional[datetime] = None) -> str:
    """UTC ISO-8601 with fixed microsecond precision so rows sort as strings."""
    when = when or datetime.now(timezone.utc)
    return when.astimezone(timezone.utc).isoformat(timespec="microseconds")


class SubscriberStore:
    """
    Read access to subscribers and append access to the delivery log.

    Uses SQLite for local storage with the following tables:
    - subscribers: one row per user with destinations and subscription state
    - alert_settings: per (subscriber, channel) preferences
    - alert_delivery_log: append-only record of delivery attempts

    Every call opens its own connection, so one store can serve concurrent
    lookups from worker threads.
    """

    def __init__(self, db_path: Optional[Path] = None, timeout: float = 5.0):
        """
        Initialize the subscriber store.

        Args:
            db_path: Path to SQLite database file (default: data/state/signal_alerts.db)
            timeout: Seconds to wait on a locked database before failing
        """
        if db_path is None:
            db_path = Path("data/state/signal_alerts.db")

        self.db_path = Path(db_path)
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """One connection per call: commit (or roll back) then close."""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS subscribers (
                    id                  TEXT    PRIMARY KEY,
                    email_address       TEXT,
                    telegram_chat_id    TEXT,
                    subscription_tier   TEXT    NOT NULL,
                    subscription_status TEXT    NOT NULL,
                    created_at          TEXT    NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS alert_settings (
                    subscriber_id       TEXT    NOT NULL REFERENCES subscribers(id),
                    channel             TEXT    NOT NULL,
                    enabled             INTEGER NOT NULL DEFAULT 1,
                    min_signal_score    INTEGER NOT NULL DEFAULT 0,
                    max_alerts_per_day  INTEGER,
                    PRIMARY KEY (subscriber_id, channel)
                )
            """)

            # No UNIQUE constraint: a failed attempt and a later successful one
            # for the same (signal, subscriber, channel) are both kept
            conn.execute("""
                CREATE TABLE IF NOT EXISTS alert_delivery_log (
                    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
                    subscriber_id       TEXT    NOT NULL,
                    signal_id           TEXT    NOT NULL,
                    channel             TEXT    NOT NULL,
                    status              TEXT    NOT NULL,
                    created_at          TEXT    NOT NULL,
                    error_message       TEXT
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_delivery_subscriber "
                "ON alert_delivery_log(subscriber_id, channel, status, created_at)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_delivery_signal "
                "ON alert_delivery_log(signal_id, channel)"
            )

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def save_subscriber(self, subscriber: Subscriber):
        """Insert or update a subscriber and their per-channel settings."""
        with self._connect() as conn:
            conn.execute("""
                INSERT INTO subscribers (
                    id, email_address, telegram_chat_id,
                    subscription_tier, subscription_status, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email_address = excluded.email_address,
                    telegram_chat_id = excluded.telegram_chat_id,
                    subscription_tier = excluded.subscription_tier,
                    subscription_status = excluded.subscription_status
            """, (
                subscriber.id,
                subscriber.email_address,
                subscriber.telegram_chat_id,
                subscriber.subscription_tier,
                subscriber.subscription_status,
                utc_timestamp(),
            ))

            for channel, settings in subscriber.alert_settings.items():
                conn.execute("""
                    INSERT OR REPLACE INTO alert_settings (
                        subscriber_id, channel, enabled, min_signal_score, max_alerts_per_day
                    ) VALUES (?, ?, ?, ?, ?)
                """, (
                    subscriber.id,
                    channel,
                    int(settings.enabled),
                    settings.min_signal_score,
                    settings.max_alerts_per_day,
                ))

        logger.info(f"Saved subscriber {subscriber.id}")

    def find_candidates(
        self,
        channel: str,
        final_score: int,
        statuses: Sequence[str] = ACTIVE_STATUSES,
        tiers: Optional[Sequence[str]] = None,
    ) -> List[Subscriber]:
        """
        Subscribers who may receive an alert on ``channel`` for ``final_score``.

        Filters on status, destination presence, channel enabled flag and
        minimum score. Rows come back in store order (insertion order).

        Raises:
            DependencyError: if the query fails
        """
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel: {channel}")
        destination_col = DESTINATION_FIELDS[channel]

        sql = f"""
            SELECT s.id, s.email_address, s.telegram_chat_id,
                   s.subscription_tier, s.subscription_status,
                   a.enabled, a.min_signal_score, a.max_alerts_per_day
            FROM subscribers s
            JOIN alert_settings a ON a.subscriber_id = s.id AND a.channel = ?
            WHERE s.subscription_status IN ({",".join("?" for _ in statuses)})
              AND s.{destination_col} IS NOT NULL
              AND TRIM(s.{destination_col}) != ''
              AND a.enabled = 1
              AND a.min_signal_score <= ?
        """
        params: List[Any] = [channel, *statuses, final_score]
        if tiers:
            sql += f" AND s.subscription_tier IN ({','.join('?' for _ in tiers)})"
            params.extend(tiers)
        sql += " ORDER BY s.rowid"

        try:
            with self._connect() as conn:
                conn.row_factory = sqlite3.Row
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to query {channel} candidates: {e}", exc_info=True)
            raise DependencyError(f"Subscriber query failed: {e}") from e

        return [self._row_to_subscriber(row, channel) for row in rows]

    @staticmethod
    def _row_to_subscriber(row: sqlite3.Row, channel: str) -> Subscriber:
        settings = ChannelSettings(
            enabled=bool(row["enabled"]),
            min_signal_score=row["min_signal_score"],
            max_alerts_per_day=row["max_alerts_per_day"],
        )
        return Subscriber(
            id=row["id"],
            email_address=row["email_address"],
            telegram_chat_id=row["telegram_chat_id"],
            subscription_tier=row["subscription_tier"],
            subscription_status=row["subscription_status"],
            alert_settings={channel: settings},
        )

    # ------------------------------------------------------------------
    # Delivery log
    # ------------------------------------------------------------------

    def count_deliveries(
        self,
        subscriber_id: str,
        channel: str,
        status: str,
        start: str,
        end: str,
    ) -> int:
        """Count log rows for one subscriber/channel/status in [start, end)."""
        with self._connect() as conn:
            row = conn.execute("""
                SELECT COUNT(*) FROM alert_delivery_log
                WHERE subscriber_id = ? AND channel = ? AND status = ?
                  AND created_at >= ? AND created_at < ?
            """, (subscriber_id, channel, status, start, end)).fetchone()
        return int(row[0])

    def has_delivery(self, signal_id: str, subscriber_id: str, channel: str, status: str) -> bool:
        with self._connect() as conn:
            row = conn.execute("""
                SELECT 1 FROM alert_delivery_log
                WHERE signal_id = ? AND subscriber_id = ? AND channel = ? AND status = ?
                LIMIT 1
            """, (signal_id, subscriber_id, channel, status)).fetchone()
        return row is not None

    def append_deliveries(self, entries: Iterable[DeliveryLogEntry]) -> int:
        """Append ledger rows in one transaction. Returns the number written."""
        rows = [
            (e.subscriber_id, e.signal_id, e.channel, e.status, e.timestamp, e.error_message)
            for e in entries
        ]
        if not rows:
            return 0
        with self._connect() as conn:
            conn.executemany("""
                INSERT INTO alert_delivery_log (
                    subscriber_id, signal_id, channel, status, created_at, error_message
                ) VALUES (?, ?, ?, ?, ?, ?)
            """, rows)
        return len(rows)

    def get_deliveries(
        self,
        signal_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """Most recent delivery log rows, optionally for one signal."""
        sql = "SELECT * FROM alert_delivery_log"
        params: List[Any] = []
        if signal_id is not None:
            sql += " WHERE signal_id = ?"
            params.append(signal_id)
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        with self._connect() as conn:
            conn.row_factory = sqlite3.Row
            return [dict(row) for row in conn.execute(sql, params)]
