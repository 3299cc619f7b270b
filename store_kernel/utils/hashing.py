"""
PIN hashing.

PINs are stored as the hex SHA-256 digest of their UTF-8 bytes.  This is a
fixed-output one-way digest, not a slow adaptive hash: the PIN space is
small by design and PIN login is low-assurance.  The format is part of the
operational contract (existing databases and the documented bootstrap
credential depend on it), so it must not change silently.
"""

import hashlib
import hmac


def hash_pin(pin: str) -> str:
    """
    Compute the stored credential for a PIN.

    Args:
        pin: Raw PIN as entered by the operator.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    return hashlib.sha256(pin.encode("utf-8")).hexdigest()


def pin_matches(pin: str, pin_hash: str) -> bool:
    """Constant-time comparison of a raw PIN against a stored credential."""
    return hmac.compare_digest(hash_pin(pin), pin_hash)
