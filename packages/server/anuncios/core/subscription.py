"""
Subscription cookie codec.

The gate cannot query the database, so the current subscription state travels
in a single cookie whose value is ``"<status>|<RFC 3339 timestamp>"``. The
cookie is (re)issued by the auth and subscription endpoints and only read by
the gate.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from anuncios_shared.schemas.common import SubscriptionStatus

SUBSCRIPTION_COOKIE_NAME = "subscription-status"

# Where users without a valid subscription are sent
SUBSCRIPTION_PAGE = "/subscribe"

# Routes that require an active subscription (prefix match on path segments)
SUBSCRIPTION_REQUIRED_ROUTES: tuple[str, ...] = ("/anuncios", "/casa", "/floodrisk")

# Pipe avoids clashing with the colons inside ISO timestamps
COOKIE_SEPARATOR = "|"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite hands them back without tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_timestamp(raw: str) -> Optional[datetime]:
    text = raw.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except (ValueError, OverflowError):
        return None


def _format_timestamp(value: datetime) -> str:
    value = ensure_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class SubscriptionState:
    status: str
    expires_at: datetime

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["SubscriptionState"]:
        """Parse a cookie value; ``None`` for anything that is not exactly two fields."""
        if not value:
            return None

        status, sep, expires_raw = value.partition(COOKIE_SEPARATOR)
        if not sep or not status or not expires_raw:
            return None

        expires_at = _parse_timestamp(expires_raw)
        if expires_at is None:
            return None

        return cls(status=status, expires_at=expires_at)

    def serialize(self) -> str:
        return f"{self.status}{COOKIE_SEPARATOR}{_format_timestamp(self.expires_at)}"

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        now = ensure_utc(now) if now else utcnow()
        return self.status == SubscriptionStatus.ACTIVE.value and ensure_utc(self.expires_at) > now


def is_subscription_valid(cookie_value: Optional[str], now: Optional[datetime] = None) -> bool:
    """True only for a well-formed, active, unexpired cookie value."""
    state = SubscriptionState.parse(cookie_value)
    if state is None:
        return False
    return state.is_valid(now)


def requires_subscription(path: str) -> bool:
    return any(
        path == route or path.startswith(f"{route}/")
        for route in SUBSCRIPTION_REQUIRED_ROUTES
    )
