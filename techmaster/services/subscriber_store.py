"""
SQLite-backed subscriber list.
Replaces the hosted subscribers table the signup page wrote to.
"""

import logging
import re
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import aiosqlite
import pytz


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class Subscriber:
    id: int
    email: str
    subscribed_at: Optional[datetime]


class SubscriberStoreError(Exception):
    """Base exception for subscriber store failures"""
    pass


class InvalidEmailError(SubscriberStoreError):
    pass


class DuplicateSubscriberError(SubscriberStoreError):
    pass


def normalize_email(email: Optional[str]) -> str:
    """Trim and lowercase; raise InvalidEmailError if the result is not an address."""
    normalized = (email or "").strip().lower()
    if not normalized or not EMAIL_PATTERN.match(normalized):
        raise InvalidEmailError(f"Please enter a valid email address: {email!r}")
    return normalized


class SubscriberStore:
    def __init__(self, db_path: str = "data/subscribers.db", timezone: str = "America/New_York"):
        self.db_path = db_path
        self.tz = pytz.timezone(timezone)
        self.logger = logging.getLogger(__name__)
        # Call await initialize_db() after constructing.

    async def initialize_db(self) -> None:
        """Create the subscribers table if missing."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS subscribers (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT UNIQUE NOT NULL,
                    subscribed_at TEXT NOT NULL
                )
                """
            )
            await db.commit()

    async def add_subscriber(self, email: str) -> Subscriber:
        address = normalize_email(email)
        subscribed_at = datetime.now(self.tz)
        async with aiosqlite.connect(self.db_path) as db:
            try:
                cur = await db.execute(
                    "INSERT INTO subscribers (email, subscribed_at) VALUES (?, ?)",
                    (address, subscribed_at.isoformat()),
                )
                await db.commit()
            except sqlite3.IntegrityError as e:
                raise DuplicateSubscriberError(f"Email already subscribed: {address}") from e
            subscriber_id = cur.lastrowid

        self.logger.info("✅ New subscriber added: %s", address)
        return Subscriber(id=subscriber_id, email=address, subscribed_at=subscribed_at)

    async def list_subscribers(self) -> List[Subscriber]:
        """All subscribers in signup order."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cur = await db.execute("SELECT id, email, subscribed_at FROM subscribers ORDER BY id")
            rows = await cur.fetchall()

        return [
            Subscriber(
                id=row["id"],
                email=row["email"],
                subscribed_at=self._parse_timestamp(row["subscribed_at"]),
            )
            for row in rows
        ]

    async def count_subscribers(self) -> int:
        async with aiosqlite.connect(self.db_path) as db:
            cur = await db.execute("SELECT COUNT(*) FROM subscribers")
            row = await cur.fetchone()
        return int(row[0]) if row else 0

    def _parse_timestamp(self, raw: Optional[str]) -> Optional[datetime]:
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            self.logger.warning("Unparseable subscribed_at value: %r", raw)
            return None
