"""HMAC signatures over gateway order and payment identifiers."""

import hashlib
import hmac


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Return ``hex(HMAC-SHA256(secret, "order_id|payment_id"))``."""
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signatures_match(expected: str, supplied: str) -> bool:
    """Compare two signatures in constant time."""
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))
