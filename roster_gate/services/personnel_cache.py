"""
Client-side TTL cache for the roster snapshot.

Entries are JSON in an injected ``KeyValueStorage``. Eviction is lazy: an
entry older than the TTL, or one that cannot be parsed, is removed the next
time it is read and reported as absent.
"""

import json
import logging
import math
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from roster_gate.clients.local_storage import KeyValueStorage
from roster_gate.config import CacheConfig
from roster_gate.models.internal_models import PersonnelCacheEntry

logger = logging.getLogger(__name__)


class PersonnelCache:
    """Roster snapshot with a fixed time-to-live and manual-refresh tracking."""

    def __init__(
        self,
        storage: KeyValueStorage,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.config = config or CacheConfig()
        self.clock = clock

    def get(self) -> Optional[PersonnelCacheEntry]:
        """Return the cached entry if present and fresh, otherwise None."""
        try:
            raw = self.storage.get_item(self.config.storage_key)
            if raw is None:
                return None

            payload = json.loads(raw)
            if not isinstance(payload["data"], list):
                raise TypeError("cached roster data is not a list")
            entry = PersonnelCacheEntry(
                data=payload["data"],
                timestamp=float(payload["timestamp"]),
                last_manual_refresh=(
                    float(payload["lastManualRefresh"])
                    if payload.get("lastManualRefresh") is not None else None
                ),
            )
        except (ValueError, KeyError, TypeError, OSError) as e:
            logger.warning(f"Failed to read cached personnel data: {e}")
            self.clear()
            return None

        age_seconds = self.clock() - entry.timestamp
        if not math.isfinite(age_seconds) or age_seconds < 0:
            logger.warning("Cached personnel data has an invalid timestamp")
            self.clear()
            return None

        if age_seconds > self.config.ttl.total_seconds():
            logger.info("Cached personnel data expired")
            self.clear()
            return None

        return entry

    def set(self, data: List[Dict[str, Any]], is_manual_refresh: bool = False) -> None:
        """Store a roster snapshot stamped with the current time."""
        now = self.clock()
        payload = {
            "data": data,
            "timestamp": now,
            "lastManualRefresh": now if is_manual_refresh else None,
        }
        try:
            self.storage.set_item(self.config.storage_key, json.dumps(payload, ensure_ascii=False))
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to cache personnel data: {e}")

    def clear(self) -> None:
        try:
            self.storage.remove_item(self.config.storage_key)
        except OSError as e:
            logger.warning(f"Failed to clear personnel cache: {e}")

    def is_valid(self) -> bool:
        return self.get() is not None

    def age(self) -> Optional[timedelta]:
        """Age of the valid entry, or None when there is none."""
        entry = self.get()
        if entry is None:
            return None
        return timedelta(seconds=self.clock() - entry.timestamp)

    def last_manual_refresh(self) -> Optional[datetime]:
        entry = self.get()
        if entry is None or entry.last_manual_refresh is None:
            return None
        return datetime.fromtimestamp(entry.last_manual_refresh, tz=timezone.utc)
