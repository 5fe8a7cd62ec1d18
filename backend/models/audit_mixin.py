from sqlalchemy import Column, DateTime
from datetime import datetime, timedelta
import pytz


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def next_timestamp(previous: datetime = None) -> datetime:
    """Return the current UTC time, bumped past ``previous`` so updated_at strictly increases.

    Naive values (SQLite drops tzinfo on read) are treated as UTC.
    """
    now = utc_now()
    if previous is None:
        return now
    if previous.tzinfo is None:
        previous = pytz.utc.localize(previous)
    if now <= previous:
        now = previous + timedelta(microseconds=1)
    return now


class TimestampMixin:
    """Mixin that provides created/updated timestamps.

    Both values are assigned by the record stores rather than by column defaults, so a
    freshly created row has created_at == updated_at and every mutation refreshes
    updated_at explicitly.
    """
    # DateTime(timezone=True) ensures the timezone info is persisted in the database.
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
