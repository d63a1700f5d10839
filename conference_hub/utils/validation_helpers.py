from datetime import datetime, timezone


def utcnow():
    """Naive UTC now, matching how timestamps are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_datetime(value):
    """Convert aware datetimes to naive UTC; naive values are taken as UTC."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def validate_interval(start_time, end_time):
    if start_time is not None and end_time is not None and end_time <= start_time:
        raise ValueError("End time must be after start time")
