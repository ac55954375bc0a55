"""Date and time operations"""

from datetime import datetime
import zoneinfo

from ..core.errors import InvalidArguments

FORMATS = ["iso", "readable", "date_only", "time_only", "unix"]


def _format(now: datetime, fmt: str) -> str:
    if fmt == "iso":
        return now.isoformat()
    if fmt == "date_only":
        return now.strftime("%A, %B %d, %Y")
    if fmt == "time_only":
        return now.strftime("%I:%M:%S %p %Z")
    if fmt == "unix":
        return str(int(now.timestamp()))
    return now.strftime("%A, %B %d, %Y at %I:%M:%S %p %Z")


async def get_current_datetime(ctx, timezone: str = "", format: str = "readable") -> str:
    """
    Get the current date and time, optionally in a specific timezone.

    Args:
        timezone: IANA timezone name (e.g., "America/New_York", "Europe/London", "Asia/Tokyo"). Defaults to the server timezone.
        format: Output format: "iso", "readable", "date_only", "time_only" or "unix"
    """
    if timezone:
        try:
            tz = zoneinfo.ZoneInfo(timezone)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            raise InvalidArguments(f"Unknown timezone: {timezone}")
        now = datetime.now(tz)
        label = timezone
    else:
        now = datetime.now().astimezone()
        label = now.tzname() or "local"

    fmt = format if format in FORMATS else "readable"
    return f"Current date/time ({label}): {_format(now, fmt)}"
