"""
Market Hours Utility for Pfaff Terminal

Tells the dashboard whether US equity markets are trading right now. The
status shows up in the quote board, the request log and /api/market/status.

Features:
- US market hours detection (NYSE, NASDAQ)
- Holiday detection for US markets
- Timezone handling (EST/EDT)
- Pre-market and after-hours detection
- Weekend detection
"""

from datetime import datetime, time, timedelta
import pytz
from typing import Dict, Optional
import logging

from .clock import SystemClock

logger = logging.getLogger(__name__)

# NYSE full-day closures
MARKET_HOLIDAYS = {
    "2025-01-01",  # New Year's Day
    "2025-01-20",  # Martin Luther King Jr. Day
    "2025-02-17",  # Presidents Day
    "2025-04-18",  # Good Friday
    "2025-05-26",  # Memorial Day
    "2025-06-19",  # Juneteenth
    "2025-07-04",  # Independence Day
    "2025-09-01",  # Labor Day
    "2025-11-27",  # Thanksgiving
    "2025-12-25",  # Christmas Day
    "2026-01-01",  # New Year's Day
    "2026-01-19",  # Martin Luther King Jr. Day
    "2026-02-16",  # Presidents Day
    "2026-04-03",  # Good Friday
    "2026-05-25",  # Memorial Day
    "2026-06-19",  # Juneteenth
    "2026-07-03",  # Independence Day (observed)
    "2026-09-07",  # Labor Day
    "2026-11-26",  # Thanksgiving
    "2026-12-25",  # Christmas Day
}


class MarketHours:
    """
    Utility class for market hours and trading status detection
    """

    def __init__(self, clock=None):
        self.clock = clock or SystemClock()
        self.eastern_tz = pytz.timezone('US/Eastern')

        # Regular market hours (9:30 AM - 4:00 PM ET)
        self.market_open_time = time(9, 30)
        self.market_close_time = time(16, 0)

        # Pre-market: 4:00 AM - 9:30 AM ET
        self.pre_market_start = time(4, 0)
        self.pre_market_end = time(9, 30)

        # After-hours: 4:00 PM - 8:00 PM ET
        self.after_hours_start = time(16, 0)
        self.after_hours_end = time(20, 0)

    def get_eastern_time(self) -> datetime:
        """Get current time in Eastern timezone"""
        return self.clock.now().astimezone(self.eastern_tz)

    def _to_eastern(self, dt: Optional[datetime]) -> datetime:
        if dt is None:
            return self.get_eastern_time()
        if dt.tzinfo is None:
            return self.eastern_tz.localize(dt)
        return dt.astimezone(self.eastern_tz)

    def is_trading_day(self, dt: datetime = None) -> bool:
        """Weekdays that are not exchange holidays"""
        dt = self._to_eastern(dt)
        if dt.weekday() >= 5:  # Saturday = 5, Sunday = 6
            return False
        return dt.date().strftime("%Y-%m-%d") not in MARKET_HOLIDAYS

    def is_market_open(self, dt: datetime = None) -> bool:
        dt = self._to_eastern(dt)
        if not self.is_trading_day(dt):
            return False
        return self.market_open_time <= dt.time() < self.market_close_time

    def is_pre_market(self, dt: datetime = None) -> bool:
        dt = self._to_eastern(dt)
        if not self.is_trading_day(dt):
            return False
        return self.pre_market_start <= dt.time() < self.pre_market_end

    def is_after_hours(self, dt: datetime = None) -> bool:
        dt = self._to_eastern(dt)
        if not self.is_trading_day(dt):
            return False
        return self.after_hours_start <= dt.time() < self.after_hours_end

    def get_market_status(self, dt: datetime = None) -> str:
        """
        Get current market status

        Returns:
            'open', 'pre_market', 'after_hours', 'closed'
        """
        dt = self._to_eastern(dt)

        if not self.is_trading_day(dt):
            return 'closed'

        if self.is_market_open(dt):
            return 'open'
        elif self.is_pre_market(dt):
            return 'pre_market'
        elif self.is_after_hours(dt):
            return 'after_hours'
        else:
            return 'closed'

    def get_next_market_open(self, dt: datetime = None) -> datetime:
        """Get the next market open datetime"""
        dt = self._to_eastern(dt)

        # Past today's open, so the next one is on a later day
        if dt.time() >= self.market_open_time:
            dt = dt + timedelta(days=1)

        while not self.is_trading_day(dt):
            dt = dt + timedelta(days=1)

        naive_open = datetime.combine(dt.date(), self.market_open_time)
        return self.eastern_tz.localize(naive_open)

    def get_market_info(self) -> Dict:
        """Get comprehensive market information"""
        current_time = self.get_eastern_time()

        return {
            "currentTime": current_time.isoformat(),
            "marketStatus": self.get_market_status(current_time),
            "isTradingDay": self.is_trading_day(current_time),
            "nextMarketOpen": self.get_next_market_open(current_time).isoformat(),
            "timezone": "US/Eastern",
            "regularHours": {
                "open": self.market_open_time.strftime("%H:%M"),
                "close": self.market_close_time.strftime("%H:%M")
            },
            "extendedHours": {
                "preMarket": f"{self.pre_market_start.strftime('%H:%M')} - {self.pre_market_end.strftime('%H:%M')}",
                "afterHours": f"{self.after_hours_start.strftime('%H:%M')} - {self.after_hours_end.strftime('%H:%M')}"
            }
        }
