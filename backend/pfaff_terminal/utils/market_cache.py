"""
Advisory market cache for Pfaff Terminal

Remembers the last value the service handed out per category and key so the
dashboard can show "last updated" times and the health check can report what
has been served. Nothing reads from it to answer a data request: every
request still goes upstream (or to fallback) on its own.

One instance is created by the app factory and passed into MarketDataService.
"""

import threading
from typing import Any, Dict, Optional
from datetime import datetime
import logging
from collections import defaultdict

from .clock import SystemClock

logger = logging.getLogger(__name__)

CATEGORIES = ("stocks", "etfs", "crypto", "forex", "history", "news", "fundamentals")


class MarketCache:
    """
    Thread-safe record of the most recent value per (category, key)
    """

    def __init__(self, clock=None, max_entries_per_category: int = 500):
        self.clock = clock or SystemClock()
        self.max_entries_per_category = max_entries_per_category
        self.entries: Dict[str, Dict[str, Any]] = {category: {} for category in CATEGORIES}
        self.source_counts: Dict[str, int] = defaultdict(int)
        self.last_updated: Optional[datetime] = None
        self.lock = threading.RLock()

    def record(self, category: str, key: str, value: Any, data_source: str) -> None:
        """
        Remember the latest value served for a key

        Args:
            category: One of CATEGORIES
            key: Symbol, pair or any other request identifier
            value: The payload that was returned
            data_source: 'live' or 'fallback'
        """
        if category not in self.entries:
            raise KeyError(f"Unknown cache category: {category}")

        with self.lock:
            bucket = self.entries[category]
            bucket.pop(key, None)
            bucket[key] = value
            # Oldest insertion goes first
            while len(bucket) > self.max_entries_per_category:
                oldest = next(iter(bucket))
                del bucket[oldest]

            self.source_counts[data_source] += 1
            self.last_updated = self.clock.now()
            logger.debug(f"Recorded {category}:{key} ({data_source})")

    def get(self, category: str, key: str) -> Optional[Any]:
        with self.lock:
            return self.entries.get(category, {}).get(key)

    def clear(self) -> int:
        with self.lock:
            count = sum(len(bucket) for bucket in self.entries.values())
            for bucket in self.entries.values():
                bucket.clear()
            self.source_counts.clear()
            self.last_updated = None
            logger.info(f"Market cache cleared: {count} entries")
            return count

    def get_stats(self) -> Dict[str, Any]:
        """Summary for the health check"""
        with self.lock:
            return {
                "entries": {category: len(bucket) for category, bucket in self.entries.items()},
                "liveResponses": self.source_counts.get("live", 0),
                "fallbackResponses": self.source_counts.get("fallback", 0),
                "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
            }
