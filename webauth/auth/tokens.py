"""
State token generation for CSRF protection.
"""

import secrets

from webauth.auth.errors import EntropySourceError

# 32 bytes = 256 bits of entropy
STATE_NBYTES = 32


def generate_state(nbytes: int = STATE_NBYTES) -> str:
    """
    Generate an unguessable, URL-safe state value.

    Args:
        nbytes: Number of random bytes (at least 32)

    Returns:
        Base64-URL-encoded random string

    Raises:
        EntropySourceError: If the operating system random source fails
    """
    if nbytes < STATE_NBYTES:
        raise ValueError(f"State values need at least {STATE_NBYTES} random bytes")

    try:
        return secrets.token_urlsafe(nbytes)
    except (OSError, NotImplementedError) as e:
        raise EntropySourceError(f"Secure random source unavailable: {e}") from e
