"""
Worker status registry.

Persists the last execution time, drain progress and rate-limit backoff
between scheduled runs in a small JSON file.
"""

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class QueueStatus(BaseModel):
    last_execution_time: Optional[datetime] = None
    progress: float = 0.0
    processed: int = 0
    total: int = 0
    rate_limit_streak: int = 0
    backoff_until: Optional[datetime] = None


class QueueStatusService:
    """File-backed status registry shared by consecutive worker runs."""

    def __init__(self, status_file: Path):
        self.status_file = Path(status_file)
        self.status_file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def load(self) -> QueueStatus:
        with self._lock:
            if not self.status_file.exists():
                return QueueStatus()
            try:
                with open(self.status_file, "r", encoding="utf-8") as f:
                    return QueueStatus(**json.load(f))
            except json.JSONDecodeError as e:
                # A broken status file only loses progress information
                logger.warning(f"Ignoring unreadable status file {self.status_file}: {e}")
                return QueueStatus()

    def save(self, status: QueueStatus) -> None:
        with self._lock:
            with open(self.status_file, "w", encoding="utf-8") as f:
                json.dump(status.model_dump(mode="json"), f, indent=2)

    def get_last_execution_time(self) -> Optional[datetime]:
        return self.load().last_execution_time

    def set_last_execution_time(self, when: Optional[datetime] = None) -> None:
        status = self.load()
        status.last_execution_time = when or datetime.now(timezone.utc)
        self.save(status)

    def update_progress(self, processed: int, total: int) -> float:
        """Store drain progress and return it as a percentage."""
        status = self.load()
        status.processed = processed
        status.total = total
        status.progress = 100.0 if total == 0 else round(processed / total * 100.0, 2)
        self.save(status)
        return status.progress

    def get_progress(self) -> float:
        return self.load().progress

    def get_backoff_remaining(self, now: Optional[datetime] = None) -> float:
        """Seconds until the rate-limit backoff window closes, 0 if none is active."""
        backoff_until = self.load().backoff_until
        if backoff_until is None:
            return 0.0
        now = now or datetime.now(timezone.utc)
        return max(0.0, (backoff_until - now).total_seconds())

    def record_rate_limit(self, delay: float, now: Optional[datetime] = None) -> QueueStatus:
        status = self.load()
        now = now or datetime.now(timezone.utc)
        status.rate_limit_streak += 1
        status.backoff_until = now + timedelta(seconds=delay)
        self.save(status)
        return status

    def get_rate_limit_streak(self) -> int:
        return self.load().rate_limit_streak

    def reset_rate_limit(self) -> None:
        status = self.load()
        if status.rate_limit_streak == 0 and status.backoff_until is None:
            return
        status.rate_limit_streak = 0
        status.backoff_until = None
        self.save(status)
