"""
Signal deduplication and rate limiting.

Tracks recently emitted signals per symbol so the engine can enforce a
per-type cooldown, a per-symbol hourly cap and bar-level duplicate
suppression. All checks take the current time explicitly; nothing here
reads the wall clock.
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)

MAX_SIGNALS_PER_SYMBOL = 100


@dataclass(frozen=True)
class SignalRecord:
    symbol: str
    opportunity_type: str
    timestamp: datetime
    bar_time_key: str


class SignalDeduplication:
    """In-memory record of recent signals, bounded per symbol."""

    def __init__(self, max_per_symbol: int = MAX_SIGNALS_PER_SYMBOL):
        self.max_per_symbol = max_per_symbol
        self._signals: dict[str, deque[SignalRecord]] = {}

    def add_signal(self, symbol: str, opportunity_type: str, timestamp: datetime, bar_time_key: str) -> None:
        history = self._signals.setdefault(symbol, deque(maxlen=self.max_per_symbol))
        history.append(SignalRecord(symbol, opportunity_type, timestamp, bar_time_key))
        logger.debug(
            "Signal recorded",
            symbol=symbol,
            opportunity_type=opportunity_type,
            bar_time_key=bar_time_key,
            tracked=len(history),
        )

    def is_in_cooldown(
        self,
        symbol: str,
        opportunity_type: str,
        now: datetime,
        cooldown_minutes: int
    ) -> bool:
        """True while the latest signal of this type is younger than the cooldown."""
        latest: Optional[SignalRecord] = None
        for record in self._signals.get(symbol, ()):
            if record.opportunity_type == opportunity_type:
                if latest is None or record.timestamp > latest.timestamp:
                    latest = record
        if latest is None:
            return False
        return now - latest.timestamp < timedelta(minutes=cooldown_minutes)

    def exceeds_max_signals_per_hour(self, symbol: str, now: datetime, max_per_hour: int) -> bool:
        hour_ago = now - timedelta(hours=1)
        recent = sum(1 for record in self._signals.get(symbol, ()) if record.timestamp > hour_ago)
        return recent >= max_per_hour

    def is_duplicate(self, bar_time_key: str) -> bool:
        return any(
            record.bar_time_key == bar_time_key
            for history in self._signals.values()
            for record in history
        )

    def get_recent_signals(self, symbol: str, now: datetime, max_age_minutes: int = 60) -> list[SignalRecord]:
        cutoff = now - timedelta(minutes=max_age_minutes)
        return [record for record in self._signals.get(symbol, ()) if record.timestamp > cutoff]

    def cleanup(self, now: datetime, max_age_minutes: int = 120) -> int:
        """
        Drop records older than `max_age_minutes`.

        Returns:
            Number of records removed
        """
        cutoff = now - timedelta(minutes=max_age_minutes)
        removed = 0
        for symbol in list(self._signals):
            history = self._signals[symbol]
            kept = [record for record in history if record.timestamp > cutoff]
            removed += len(history) - len(kept)
            if kept:
                self._signals[symbol] = deque(kept, maxlen=self.max_per_symbol)
            else:
                del self._signals[symbol]

        if removed:
            logger.debug("Signal history cleaned", removed=removed, symbols=len(self._signals))
        return removed

    def clear_symbol(self, symbol: str) -> None:
        self._signals.pop(symbol, None)

    def clear(self) -> None:
        self._signals.clear()

    def get_stats(self) -> dict[str, Any]:
        counts = {symbol: len(history) for symbol, history in self._signals.items()}
        return {
            "symbols_tracked": len(counts),
            "total_signals": sum(counts.values()),
            "signals_by_symbol": counts,
        }
