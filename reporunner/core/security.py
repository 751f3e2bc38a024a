"""Request verification helpers: webhook signatures and admin basic auth."""

import base64
import binascii
import hashlib
import hmac
from typing import Optional

ADMIN_USER = "admin"

# GitHub sends "sha256=<hex>", Forgejo/Gitea send bare hex.
SIGNATURE_HEADERS = ("X-Hub-Signature-256", "X-Forgejo-Signature", "X-Gitea-Signature")


def verify_webhook_signature(payload: bytes, signature_header: Optional[str], secret: str) -> bool:
    """
    Verify a webhook HMAC-SHA256 signature.

    Args:
        payload: Raw request body bytes
        signature_header: Value of the signature header
        secret: Webhook secret configured on the forge

    Returns:
        True if signature is valid
    """
    if not signature_header:
        return False

    received_sig = signature_header.strip()
    if received_sig.startswith("sha256="):
        received_sig = received_sig[7:]  # Strip "sha256=" prefix

    expected_sig = hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256
    ).hexdigest()

    return hmac.compare_digest(expected_sig.encode("ascii"), received_sig.lower().encode("utf-8"))


def verify_basic_auth(authorization_header: Optional[str], password: str) -> bool:
    """Check an ``Authorization: Basic`` header against ``admin:<password>``.

    Malformed headers are treated as wrong credentials, never as errors.
    """
    if not authorization_header:
        return False
    scheme, _, encoded = authorization_header.partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return False
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False
    user, sep, given = decoded.partition(":")
    if not sep:
        return False
    user_ok = hmac.compare_digest(user.encode("utf-8"), ADMIN_USER.encode("utf-8"))
    password_ok = hmac.compare_digest(given.encode("utf-8"), password.encode("utf-8"))
    return user_ok and password_ok
