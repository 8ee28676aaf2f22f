from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column is stored as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
