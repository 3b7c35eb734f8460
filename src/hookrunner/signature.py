"""GitHub webhook signature verification (``X-Hub-Signature-256``)."""

from __future__ import annotations

import binascii
import hashlib
import hmac

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="


def sign(body: bytes, secret: str) -> str:
    """Return the header value GitHub would send for ``body``."""

    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(body: bytes, signature_header: str, secret: str) -> bool:
    """Check ``signature_header`` against an HMAC-SHA256 of ``body``.

    Fails closed: an empty secret never authenticates anything.
    """

    if not secret:
        return False
    if not signature_header.startswith(SIGNATURE_PREFIX):
        return False

    try:
        received = binascii.unhexlify(signature_header[len(SIGNATURE_PREFIX) :])
    except ValueError:
        return False

    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return hmac.compare_digest(received, expected)
