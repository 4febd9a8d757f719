from datetime import datetime, timedelta

WEEK_LENGTH = timedelta(days=7)


def week_bounds(now: datetime = None) -> tuple:
    """Return (monday 00:00, next monday 00:00) for the ISO week containing `now`."""
    now = now or datetime.utcnow()
    start = (now - timedelta(days=now.weekday())).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + WEEK_LENGTH


def iso_week_label(moment: datetime) -> str:
    year, week, _ = moment.isocalendar()
    return f"{year}-W{week:02d}"
