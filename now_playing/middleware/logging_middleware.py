"""Redaction of credentials before URLs reach the logs."""

import re

# Query parameters whose values must never be logged
SENSITIVE_PARAMS = [
    "code",
    "state",
    "token",
    "secret",
    "refresh_token",
    "access_token",
    "client_secret",
    "authorization",
]

_SENSITIVE_PATTERN = re.compile(rf"(?<![A-Za-z_])({'|'.join(SENSITIVE_PARAMS)})=([^&\s\"]+)", re.IGNORECASE)


def redact_sensitive_data(url: str) -> str:
    """Replace the values of sensitive query parameters with a marker."""
    return _SENSITIVE_PATTERN.sub(r"\1=***REDACTED***", url)


def redact_path(path: str, secrets_in_path: list[str]) -> str:
    """Mask secret path segments such as the randomized admin path."""
    redacted = path
    for secret in secrets_in_path:
        if secret:
            redacted = redacted.replace(secret, "***")
    return redacted
