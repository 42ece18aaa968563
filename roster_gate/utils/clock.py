"""Clock used by components that take an injectable ``clock`` callable."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
