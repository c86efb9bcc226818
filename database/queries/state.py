# database/queries/state.py
"""Watcher state persistence queries"""

from typing import Optional
from database.connection import get_cursor


class EngineStateQueries:
    """Database operations for the persisted watcher state blob."""

    @staticmethod
    def ensure_table():
        """Create the state table if it does not exist yet."""
        with get_cursor() as cursor:
            cursor.execute(
                """CREATE TABLE IF NOT EXISTS log_watcher_state (
                       state_key VARCHAR(64) NOT NULL PRIMARY KEY,
                       state MEDIUMTEXT NOT NULL,
                       updated_at DATETIME NOT NULL
                   )"""
            )

    @staticmethod
    def get_state(state_key: str) -> Optional[str]:
        """Get the stored JSON blob, or None."""
        with get_cursor() as cursor:
            cursor.execute(
                "SELECT state FROM log_watcher_state WHERE state_key = %s",
                (state_key,)
            )
            row = cursor.fetchone()
            return row['state'] if row else None

    @staticmethod
    def save_state(state_key: str, state: str):
        """Insert or replace the JSON blob."""
        with get_cursor() as cursor:
            cursor.execute(
                """INSERT INTO log_watcher_state (state_key, state, updated_at)
                   VALUES (%s, %s, NOW())
                   ON DUPLICATE KEY UPDATE
                       state = VALUES(state),
                       updated_at = NOW()""",
                (state_key, state)
            )

