"""Helper functions: now_ms, b64e, b64d, md5_hex, gateway_timestamp, random_boundary."""

import base64
import hashlib
import time
from datetime import datetime, timedelta, timezone


# Request timestamps are always rendered in UTC+8
GATEWAY_TZ = timezone(timedelta(hours=8))
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def now_ms() -> int:
    """Return current Unix timestamp in milliseconds"""
    return int(time.time() * 1000)


def b64e(b: bytes) -> str:
    """Base64 encode bytes and return as string"""
    return base64.b64encode(b).decode("ascii")


def b64d(s: str) -> bytes:
    """Strict base64 decode; raises binascii.Error on bad input"""
    return base64.b64decode(s, validate=True)


def md5_hex(data: bytes) -> str:
    """Compute MD5 hash and return as hex string"""
    return hashlib.md5(data).hexdigest()


def gateway_timestamp(now: datetime = None) -> str:
    """
    Format a timestamp the way the gateway expects it.

    Args:
        now: Aware datetime to format (defaults to the current time)

    Returns:
        ``YYYY-MM-DD HH:MM:SS`` in UTC+8
    """
    if now is None:
        now = datetime.now(timezone.utc)
    return now.astimezone(GATEWAY_TZ).strftime(TIMESTAMP_FORMAT)


def random_boundary() -> str:
    """Multipart boundary derived from the current time"""
    return str(now_ms())
