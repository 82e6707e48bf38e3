"""Admin session checks and client identification."""

import hashlib

from fastapi import Depends, Request

from now_playing.config import Settings, get_settings
from now_playing.dependencies import get_admin_session
from now_playing.exceptions import AdminSessionException
from now_playing.logging_config import get_logger, log_with_context
from now_playing.state_managers import AdminSessionManager

logger = get_logger(__name__)


def get_client_ip(request: Request, settings: Settings) -> str:
    """Resolve the caller's IP address.

    The service runs behind a reverse proxy (Cloudflare by default) that
    puts the real client address in `settings.proxy_header`.
    """
    if settings.proxy_header:
        forwarded = request.headers.get(settings.proxy_header, "")
        # X-Forwarded-For style headers may carry a chain; the first hop is the client
        client_ip = forwarded.split(",")[0].strip()
        if client_ip:
            return client_ip
    return request.client.host if request.client else "unknown"


def hash_ip(ip: str) -> str:
    """Hex SHA-256 digest of an IP address, so raw IPs are never kept in memory."""
    return hashlib.sha256(ip.encode("utf-8")).hexdigest()


async def verify_admin_session(
    request: Request,
    settings: Settings = Depends(get_settings),
    admin_session: AdminSessionManager = Depends(get_admin_session),
) -> None:
    """Require the admin cookie and the IP that received it.

    Raises:
        AdminSessionException: If the cookie is missing or wrong, or the
            request comes from a different IP than the admin visit
    """
    cookie_value = request.cookies.get(admin_session.cookie_name)
    client_ip = get_client_ip(request, settings)

    if not await admin_session.verify(cookie_value, hash_ip(client_ip)):
        log_with_context(
            logger,
            "warning",
            "Rejected admin callback",
            has_cookie=cookie_value is not None,
            ip=client_ip,
            event_type="auth_failure",
        )
        raise AdminSessionException()


def get_cors_origins(settings: Settings) -> list[str]:
    """Get allowed CORS origins from settings.

    Returns:
        List of allowed origin patterns
    """
    return [origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()]
