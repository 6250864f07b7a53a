"""Time source. Everything is stored and compared in UTC."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Current instant, timezone-aware UTC."""
    return datetime.now(timezone.utc)


class Clock:
    """
    Clock with a fixed regional offset.
    The offset only changes how an instant is displayed: aware datetimes
    compare by instant, so now() can be compared with UTC kickoff times directly.
    """

    def __init__(self, offset: timedelta = timedelta(0), source=utc_now):
        self.tz = timezone(offset)
        self._source = source

    def now(self) -> datetime:
        return self._source().astimezone(self.tz)

    def local(self, instant: datetime) -> datetime:
        """Express a stored instant in this clock's offset (naive means UTC)."""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self.tz)

    def format(self, instant: datetime | None) -> str:
        """dd.mm HH:MM in local time, or empty string."""
        if instant is None:
            return ""
        return self.local(instant).strftime("%d.%m %H:%M")
