"""HMAC-signed check-in codes.

A check-in code is generated once, when a registration is created, and stored on the
record. At the door the presented code is compared against the stored one; the
signature only makes codes unguessable and ties them to a registration, event and user.

Code Format:
    <registration_id>.<nonce>.<signature>

Security:
    - Uses Django's SECRET_KEY with a domain-specific prefix for isolation
    - 128-bit random nonce so two codes for the same triple never collide
    - Uses hmac.compare_digest() to prevent timing attacks
"""

import hashlib
import hmac
import secrets
from functools import lru_cache

from django.conf import settings

__all__ = [
    "SIGNATURE_LENGTH",
    "generate_check_in_code",
    "verify_check_in_code",
    "codes_match",
]

# Signature length in hex characters (128 bits = 32 hex chars)
SIGNATURE_LENGTH = 32

# Domain separator for key derivation
_KEY_DOMAIN = "tems:check-in-code:v1"


@lru_cache(maxsize=1)
def _get_signing_key() -> bytes:
    """Get the signing key, derived from Django's SECRET_KEY.

    The key is lazily computed on first use and cached for the lifetime
    of the process.
    """
    return hashlib.sha256(f"{_KEY_DOMAIN}:{settings.SECRET_KEY}".encode()).digest()


def _sign(registration_id: str, event_id: str, user_id: str, nonce: str) -> str:
    message = f"{registration_id}:{event_id}:{user_id}:{nonce}"
    return hmac.new(_get_signing_key(), message.encode(), hashlib.sha256).hexdigest()[:SIGNATURE_LENGTH]


def generate_check_in_code(registration_id: object, event_id: object, user_id: object) -> str:
    """Generate a signed, opaque check-in code for a registration.

    Args:
        registration_id: The registration the code belongs to.
        event_id: The event the registration is for.
        user_id: The registered user.

    Returns:
        The code string, safe to embed in a QR image.
    """
    nonce = secrets.token_hex(16)
    signature = _sign(str(registration_id), str(event_id), str(user_id), nonce)
    return f"{registration_id}.{nonce}.{signature}"


def verify_check_in_code(code: str, event_id: object, user_id: object) -> bool:
    """Check that a code was issued by us for the given event and user."""
    try:
        registration_id, nonce, signature = code.split(".")
    except ValueError:
        return False
    expected = _sign(registration_id, str(event_id), str(user_id), nonce)
    return hmac.compare_digest(signature, expected)


def codes_match(presented: str, stored: str) -> bool:
    """Compare a presented code with the stored one in constant time."""
    return hmac.compare_digest(presented.encode(), stored.encode())
