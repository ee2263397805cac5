"""
UTC clock helpers shared by the services
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive timestamps from the store are UTC"""
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
