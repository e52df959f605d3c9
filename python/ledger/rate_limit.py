"""
Import Admission Control

Sliding-window limit on statement imports, keyed by user id. Attempts live in
an injected AttemptStore so that every server instance sees the same window;
the in-memory store is only correct for a single process.
"""

import logging
import os
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import delete, func, select
from sqlalchemy.engine import Engine

from .errors import RateLimitExceeded
from .schema import import_attempts

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMPORTS = 60
DEFAULT_WINDOW_SECONDS = 1800


class AttemptStore(ABC):
    """Shared record of admission attempts."""

    @abstractmethod
    def record(self, key: str, at: datetime) -> None:
        """Record one attempt."""

    @abstractmethod
    def attempts_since(self, key: str, since: datetime) -> list[datetime]:
        """Return attempt timestamps newer than ``since``, oldest first."""

    @abstractmethod
    def prune(self, key: str, before: datetime) -> None:
        """Forget attempts at or before ``before``."""


class InMemoryAttemptStore(AttemptStore):
    """Process-local attempt store."""

    def __init__(self):
        self._attempts: dict[str, list[datetime]] = defaultdict(list)

    def record(self, key: str, at: datetime) -> None:
        self._attempts[key].append(at)

    def attempts_since(self, key: str, since: datetime) -> list[datetime]:
        return sorted(t for t in self._attempts.get(key, []) if t > since)

    def prune(self, key: str, before: datetime) -> None:
        remaining = [t for t in self._attempts.get(key, []) if t > before]
        if remaining:
            self._attempts[key] = remaining
        else:
            self._attempts.pop(key, None)


class SqlAttemptStore(AttemptStore):
    """Attempt store shared through the database."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def record(self, key: str, at: datetime) -> None:
        with self.engine.begin() as conn:
            conn.execute(import_attempts.insert().values(rate_key=key, attempted_at=at))

    def attempts_since(self, key: str, since: datetime) -> list[datetime]:
        stmt = (
            select(import_attempts.c.attempted_at)
            .where(
                import_attempts.c.rate_key == key,
                import_attempts.c.attempted_at > since,
            )
            .order_by(import_attempts.c.attempted_at)
        )
        with self.engine.connect() as conn:
            return list(conn.execute(stmt).scalars())

    def prune(self, key: str, before: datetime) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                delete(import_attempts).where(
                    import_attempts.c.rate_key == key,
                    import_attempts.c.attempted_at <= before,
                )
            )

    def count(self, key: str) -> int:
        stmt = select(func.count()).select_from(import_attempts).where(
            import_attempts.c.rate_key == key
        )
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar_one()


class SlidingWindowRateLimiter:
    """Allows at most ``max_attempts`` recorded attempts per ``window``."""

    def __init__(
        self,
        store: AttemptStore | None = None,
        max_attempts: int = DEFAULT_MAX_IMPORTS,
        window: timedelta = timedelta(seconds=DEFAULT_WINDOW_SECONDS),
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the limiter.

        Args:
            store: Attempt store (in-memory when omitted)
            max_attempts: Attempts allowed inside one window
            window: Sliding window length
            clock: Time source
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store or InMemoryAttemptStore()
        self.max_attempts = max_attempts
        self.window = window
        self._now = clock or datetime.now

    @classmethod
    def from_env(cls, store: AttemptStore | None = None) -> "SlidingWindowRateLimiter":
        """Build a limiter from IMPORT_RATE_LIMIT_* environment variables."""
        max_attempts = int(os.getenv("IMPORT_RATE_LIMIT_MAX_IMPORTS", str(DEFAULT_MAX_IMPORTS)))
        window_seconds = int(os.getenv("IMPORT_RATE_LIMIT_WINDOW_SECONDS", str(DEFAULT_WINDOW_SECONDS)))
        return cls(store=store, max_attempts=max_attempts, window=timedelta(seconds=window_seconds))

    def _recent(self, key: str) -> list[datetime]:
        cutoff = self._now() - self.window
        self.store.prune(key, cutoff)
        return self.store.attempts_since(key, cutoff)

    def is_allowed(self, key: str) -> bool:
        return len(self._recent(key)) < self.max_attempts

    def remaining(self, key: str) -> int:
        return max(0, self.max_attempts - len(self._recent(key)))

    def check(self, key: str) -> None:
        """Raise if the key has used up its window.

        Raises:
            RateLimitExceeded: With the seconds until the oldest attempt expires
        """
        recent = self._recent(key)
        if len(recent) < self.max_attempts:
            return

        retry_after = (recent[0] + self.window - self._now()).total_seconds()
        logger.warning(f"Import rate limit reached for {key}")
        raise RateLimitExceeded(
            f"Import limit of {self.max_attempts} per {int(self.window.total_seconds())}s reached",
            retry_after_seconds=max(0.0, retry_after),
        )

    def record(self, key: str) -> None:
        self.store.record(key, self._now())
