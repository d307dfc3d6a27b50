"""
Signing Key Fetcher
===================
Retrieves the per-request signing key needed to validate chunked uploads.
"""

from typing import Optional

import structlog

from .metrics import record_signing_key
from .transport.base import Verifier

logger = structlog.get_logger(__name__)


async def fetch_signing_key(
    verifier: Verifier,
    authorization: str,
    trans_id: str,
) -> Optional[bytes]:
    """
    Ask the Authenticator for the signing key of a chunked upload.

    Args:
        verifier: Verifier from the current channel snapshot
        authorization: The (possibly synthesized) Authorization header
        trans_id: Transaction identifier

    Returns:
        The key bytes, or None on any failure
    """
    key = await verifier.get_signing_key(authorization, trans_id)
    record_signing_key(key is not None)
    if key is None:
        logger.warning("signing_key_unavailable", transport=verifier.transport)
    else:
        logger.debug("signing_key_fetched", length=len(key))
    return key
