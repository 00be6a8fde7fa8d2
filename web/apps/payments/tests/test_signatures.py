import hashlib
import hmac

from apps.payments.signatures import compute_signature, signatures_match


def test_signature_is_hmac_sha256_over_order_and_payment_ids():
    expected = hmac.new(b"secret", b"order_abc|pay_xyz", hashlib.sha256).hexdigest()
    assert compute_signature("secret", "order_abc", "pay_xyz") == expected


def test_signatures_match():
    sig = compute_signature("secret", "order_abc", "pay_xyz")
    assert signatures_match(sig, sig)
    assert not signatures_match(sig, "tampered")
    assert not signatures_match(sig, compute_signature("secret", "order_abc", "pay_other"))
