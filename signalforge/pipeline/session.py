"""Market session clock — DST-aware trading sessions and kill zones.

Session hours are defined in each venue's local time and converted through
``zoneinfo``, so London and New York opens track daylight saving on their
own calendars. Kill zones are the 15 minutes either side of the London open,
the New York open and the New York close, where spreads widen and stops get
run.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

KILL_ZONE_MINUTES = 15

# (name, zone, local open hour, local close hour)
SESSIONS: tuple[tuple[str, str, int, int], ...] = (
    ("ASIA", "Asia/Tokyo", 9, 18),
    ("LONDON", "Europe/London", 7, 16),
    ("NEW_YORK", "America/New_York", 8, 17),
)

# (label, zone, local time)
KILL_ZONES: tuple[tuple[str, str, time], ...] = (
    ("London open", "Europe/London", time(8, 0)),
    ("New York open", "America/New_York", time(9, 30)),
    ("New York close", "America/New_York", time(16, 0)),
)


@dataclass(frozen=True)
class SessionState:
    active: tuple[str, ...]
    primary: str
    overlap: bool
    kill_zone: Optional[str] = None

    @property
    def in_kill_zone(self) -> bool:
        return self.kill_zone is not None


class MarketSession:
    """Answers which sessions are open at a given instant."""

    def analyze(self, now: datetime) -> SessionState:
        """Session state at *now*; naive datetimes are taken as UTC."""
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        active = tuple(
            name
            for name, zone, start, end in SESSIONS
            if start <= now.astimezone(ZoneInfo(zone)).hour < end
        )
        overlap = "LONDON" in active and "NEW_YORK" in active
        # New York dominates flow when open, then London, then Asia.
        primary = next(
            (name for name in ("NEW_YORK", "LONDON", "ASIA") if name in active), "OTHER"
        )
        return SessionState(
            active=active,
            primary="OVERLAP" if overlap else primary,
            overlap=overlap,
            kill_zone=self.kill_zone(now),
        )

    def kill_zone(self, now: datetime) -> Optional[str]:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        window = timedelta(minutes=KILL_ZONE_MINUTES)
        for label, zone, at in KILL_ZONES:
            local = now.astimezone(ZoneInfo(zone))
            anchor = local.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
            if abs(local - anchor) <= window:
                return label
        return None
