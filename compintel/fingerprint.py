"""
Deduplication identity for raw items.
"""

import hashlib

from .models import RawItem

# Unit separator keeps ("a-b", "c") and ("a", "b-c") from colliding.
_SEPARATOR = "\x1f"


def subject_identity(item: RawItem) -> str:
    """The business the signal is about, falling back to the competitor."""
    return item.metadata.business_id or item.metadata.competitor_id or ""


def fingerprint(item: RawItem) -> str:
    """Stable sha256 digest of (source, kind, content, subject).

    Tenant and timestamps are not part of the digest; a re-crawled event
    maps onto the record already stored for the tenant. Empty content
    still yields a digest.
    """
    parts = (item.source.value, item.kind.value, item.content, subject_identity(item))
    return hashlib.sha256(_SEPARATOR.join(parts).encode("utf-8")).hexdigest()
