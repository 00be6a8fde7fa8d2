"""Receipt identifiers sent to the gateway with each order.

A receipt is ``<hint>_<time>_<random>``: a short caller hint, the current
time in milliseconds encoded in base 36, and 48 random bits as 12 hex
characters. The gateway limits receipts to 40 characters, so the
``<hint>_<time>`` head is cut from the right when needed; the random
suffix is always kept whole.

Uniqueness is probabilistic. The ledger's unique index on the gateway
order id is the real uniqueness guard.
"""

import re
import secrets
import time

RECEIPT_MAX_LENGTH = 40
RANDOM_BYTES = 6  # 48 bits -> 12 hex chars
HINT_LENGTH = 12
# Room for one head character, the separator and the whole suffix.
MIN_RECEIPT_LENGTH = RANDOM_BYTES * 2 + 2
DEFAULT_HINT = "rcpt"

_HINT_RE = re.compile(r"[^A-Za-z0-9]")
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_DIGITS[r])
    return "".join(reversed(out))


def receipt_hint(user_id) -> str:
    """Return the last characters of ``user_id`` used as receipt hint."""
    return str(user_id or "")[-HINT_LENGTH:]


def generate_receipt(hint: str | None = None, max_length: int = RECEIPT_MAX_LENGTH, now_ms: int | None = None) -> str:
    """Build a short, probably-unique receipt.

    Args:
        hint: Short caller-supplied prefix. Characters outside
            ``[A-Za-z0-9]`` are dropped; an empty hint becomes ``rcpt``.
        max_length: Upper bound on the receipt length.
        now_ms: Current time in epoch milliseconds (defaults to the clock).

    Returns:
        str: A non-empty receipt of at most ``max_length`` characters.

    Raises:
        ValueError: When ``max_length`` is below ``MIN_RECEIPT_LENGTH``.
    """
    if max_length < MIN_RECEIPT_LENGTH:
        raise ValueError(f"receipt max_length must be at least {MIN_RECEIPT_LENGTH}, got {max_length}")
    hint = _HINT_RE.sub("", hint or "") or DEFAULT_HINT
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = secrets.token_hex(RANDOM_BYTES)

    head = f"{hint}_{_base36(now_ms)}"
    budget = max_length - len(suffix) - 1
    return f"{head[:budget]}_{suffix}"
