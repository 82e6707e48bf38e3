"""Random identifiers for admin paths and session cookies."""

import secrets
import string

ALPHABET = string.ascii_letters + string.digits


def random_string(length: int) -> str:
    """Return a random alphanumeric string from a CSPRNG."""
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
