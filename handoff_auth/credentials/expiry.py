"""
Presigned URL Expiry
====================
Expiry checks for V2 and V4 presigned URLs.

Every parse failure counts as expired. A URL whose expiry cannot be
determined is never treated as unbounded.
"""

import re
from datetime import datetime, timezone
from typing import Mapping, Optional

import structlog

from .header import (
    V2_ACCESS_KEY_PARAM,
    V2_EXPIRES_PARAM,
    V4_CREDENTIAL_PARAM,
    V4_DATE_PARAM,
    V4_EXPIRES_PARAM,
)

logger = structlog.get_logger(__name__)

AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"

_INT_RE = re.compile(r"[+-]?\d+")
_AMZ_DATE_RE = re.compile(r"\d{8}T\d{6}Z")


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None or not _INT_RE.fullmatch(value):
        return None
    return int(value)


def parse_amz_date(value: Optional[str]) -> Optional[int]:
    """``20231012T153745Z`` -> UNIX seconds, or None if malformed."""
    if value is None or not _AMZ_DATE_RE.fullmatch(value):
        return None
    try:
        parsed = datetime.strptime(value, AMZ_DATE_FORMAT)
    except ValueError:
        return None
    return int(parsed.replace(tzinfo=timezone.utc).timestamp())


def v2_expiry(args: Mapping[str, str]) -> Optional[int]:
    """V2 ``Expires`` is already an absolute UNIX timestamp."""
    expires = _parse_int(args.get(V2_EXPIRES_PARAM))
    if expires is None:
        logger.info("presigned_expiry_unparseable", version="v2", param=V2_EXPIRES_PARAM)
    return expires


def v4_expiry(args: Mapping[str, str]) -> Optional[int]:
    """V4 expiry is the request date plus the ``X-Amz-Expires`` delta."""
    start = parse_amz_date(args.get(V4_DATE_PARAM))
    if start is None:
        logger.info("presigned_expiry_unparseable", version="v4", param=V4_DATE_PARAM)
        return None
    delta = _parse_int(args.get(V4_EXPIRES_PARAM))
    if delta is None:
        logger.info("presigned_expiry_unparseable", version="v4", param=V4_EXPIRES_PARAM)
        return None
    return start + delta


def presigned_expiry(args: Mapping[str, str]) -> Optional[int]:
    """Absolute expiry of a presigned URL, or None if it cannot be found."""
    if V2_ACCESS_KEY_PARAM in args:
        return v2_expiry(args)
    if V4_CREDENTIAL_PARAM in args:
        return v4_expiry(args)
    return None


def valid_presigned_time(args: Mapping[str, str], now: int) -> bool:
    """
    Check a presigned URL has not expired.

    Args:
        args: Normalized query arguments
        now: Current UNIX time in seconds

    Returns:
        True if ``now`` is at or before the expiry time
    """
    expiry = presigned_expiry(args)
    if expiry is None:
        return False
    if now > expiry:
        logger.info("presigned_url_expired", expiry=expiry, now=now)
        return False
    return True
