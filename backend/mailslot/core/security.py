# mailslot/core/security.py

import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def hash_origin(origin_id: str) -> str:
    """Hash an origin identifier (caller IP) so it is never stored or logged raw"""
    return hashlib.sha256(origin_id.encode("utf-8")).hexdigest()[:12]


def verify_access_key(expected: str, provided: Optional[str]) -> bool:
    """
    Constant-time comparison of a pre-shared key.
    An unset expected key denies everyone.
    """
    if not expected:
        logger.error("ACCESS_KEY is not configured; rejecting keyed request")
        return False
    if not provided:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), provided.encode("utf-8"))
