"""Per-order tracking tokens.

A token is ``<payload>.<signature>`` where the payload is the URL-safe
base64 of ``<merchant_code>:<order_number>`` and the signature is the
URL-safe base64 HMAC-SHA256 of the encoded payload. Padding is stripped
from both parts.
"""

import base64
import binascii
import hashlib
import hmac


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(encoded: str) -> bytes:
    padding = -len(encoded) % 4
    return base64.urlsafe_b64decode(encoded + "=" * padding)


def _sign(secret: str, payload_b64: str) -> bytes:
    return hmac.new(
        secret.encode("utf-8"), payload_b64.encode("ascii"), hashlib.sha256
    ).digest()


def create_order_tracking_token(secret: str, merchant_code: str, order_number: str) -> str:
    payload_b64 = _b64url_encode(f"{merchant_code}:{order_number}".encode("utf-8"))
    return f"{payload_b64}.{_b64url_encode(_sign(secret, payload_b64))}"


def verify_order_tracking_token(
    secret: str,
    token: str | None,
    merchant_code: str,
    order_number: str,
) -> bool:
    """Check the signature and that the token was issued for this order."""
    if not token:
        return False

    parts = token.split(".")
    if len(parts) != 2:
        return False
    payload_b64, signature_b64 = parts

    try:
        expected = _sign(secret, payload_b64)
        actual = _b64url_decode(signature_b64)
        if not hmac.compare_digest(actual, expected):
            return False
        payload = _b64url_decode(payload_b64).decode("utf-8")
    except (binascii.Error, ValueError):
        return False

    return payload == f"{merchant_code}:{order_number}"
