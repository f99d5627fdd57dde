"""
Signature Verifier — The only trust gate for gateway callbacks.

A callback body is attacker-controlled until `verify` returns True for it.
The gateway signs `order_ref|payment_ref` with HMAC-SHA256 using the shared
API secret and sends the lower-case hex digest.
"""
import hmac

from casepay.utils.hashing import hmac_sha256_hex

_HEX_DIGITS = frozenset("0123456789abcdef")


class SignatureVerifier:
    """HMAC-SHA256 callback authentication."""

    SEPARATOR = "|"

    @classmethod
    def compute(cls, order_ref: str, payment_ref: str, secret: str) -> str:
        """Signature the gateway would send for this order/payment pair."""
        return hmac_sha256_hex(secret, f"{order_ref}{cls.SEPARATOR}{payment_ref}")

    @classmethod
    def verify(cls, order_ref, payment_ref, signature, secret) -> bool:
        """Check a claimed signature.

        Returns False, never raises, for anything malformed: missing or
        non-string fields, an empty secret, a digest of the wrong length or
        with characters outside lower-case hex. The final comparison is
        constant-time.
        """
        for value in (order_ref, payment_ref, signature, secret):
            if not isinstance(value, str) or not value:
                return False
        if cls.SEPARATOR in order_ref:
            # "a|b" + "c" and "a" + "b|c" must not collide
            return False

        # Exact lower-case hex only
        if len(signature) != 64 or not set(signature) <= _HEX_DIGITS:
            return False

        try:
            expected = cls.compute(order_ref, payment_ref, secret)
        except UnicodeEncodeError:
            return False
        return hmac.compare_digest(expected, signature)
