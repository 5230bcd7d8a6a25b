"""HMAC signing helpers with domain-separated keys.

Keys are derived from a configured secret (Django's SECRET_KEY unless an
explicit secret is supplied) combined with a domain string, so that tokens
minted for one purpose can never validate for another.

Security:
    - HMAC-SHA256 over a caller-defined message
    - Uses hmac.compare_digest() to prevent timing attacks
"""

import hashlib
import hmac

from django.conf import settings

__all__ = [
    "derive_key",
    "generate_signature",
    "verify_signature",
]


def derive_key(domain: str, secret: str | None = None) -> bytes:
    """Derive a signing key for a domain.

    Args:
        domain: Purpose identifier, e.g. "loyalty:wallet-pass:v1".
        secret: Explicit secret. Falls back to SECRET_KEY when empty.

    Returns:
        32 bytes suitable for HMAC-SHA256 signing.
    """
    # Simple domain separation: hash(domain || secret)
    base = secret or settings.SECRET_KEY
    return hashlib.sha256(f"{domain}:{base}".encode()).digest()


def generate_signature(message: str, *, domain: str, secret: str | None = None) -> str:
    """Generate a hex HMAC-SHA256 signature of a message.

    Args:
        message: The message to sign.
        domain: Purpose identifier used for key derivation.
        secret: Explicit secret, see derive_key().

    Returns:
        Hex-encoded signature (64 chars).
    """
    return hmac.new(derive_key(domain, secret), message.encode(), hashlib.sha256).hexdigest()


def verify_signature(message: str, signature: str, *, domain: str, secret: str | None = None) -> bool:
    """Verify a signature produced by generate_signature()."""
    expected = generate_signature(message, domain=domain, secret=secret)
    return hmac.compare_digest(signature, expected)
