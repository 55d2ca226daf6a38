import hashlib
import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

_TTL_UNITS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 60 * 60 * 24,
}

_TTL_PATTERN = re.compile(r"^(\d+)([a-zA-Z]?)$")


# =========================
# TTL parsing
# =========================
def parse_ttl(value: Optional[str], fallback: int) -> int:
    """Parse a TTL such as "900", "900s", "15m", "1h" or "30d" into seconds.

    Empty values fall back silently. Anything unparsable falls back to
    ``fallback`` and logs a warning instead of failing startup.
    """
    if value is None:
        return fallback
    trimmed = str(value).strip()
    if not trimmed:
        return fallback

    match = _TTL_PATTERN.match(trimmed)
    if not match:
        logger.warning(f"Unable to parse TTL value '{value}', using fallback {fallback}")
        return fallback

    amount, unit = match.groups()
    if not unit:
        return int(amount)

    multiplier = _TTL_UNITS.get(unit.lower())
    if multiplier is None:
        logger.warning(f"Unknown TTL unit '{unit}' in '{value}', using fallback {fallback}")
        return fallback
    return int(amount) * multiplier


# =========================
# Timestamps
# =========================
def utcnow() -> datetime:
    """Timezone-aware current UTC time; every stored timestamp uses this."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive values read back from backends that drop the offset (SQLite)."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# =========================
# Random values
# =========================
def generate_otp(length: int = 6) -> str:
    """Uniformly random numeric code from the OS CSPRNG."""
    return str(secrets.randbelow(10 ** length)).zfill(length)


def generate_token(nbytes: int = 32) -> str:
    """URL-safe random string; never contains '.'."""
    return secrets.token_urlsafe(nbytes)


def hash_phone_number(phone: str) -> str:
    """Hash phone number for logs (one-way hash)"""
    return hashlib.sha256(phone.encode()).hexdigest()
