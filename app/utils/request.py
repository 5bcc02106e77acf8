"""Request metadata helpers for audit logging."""

from fastapi import Request


def get_client_ip(request: Request) -> str | None:
    """Client IP: first ``x-forwarded-for`` entry, then ``x-real-ip``, then the peer."""
    forwarded: str | None = request.headers.get("x-forwarded-for")
    if forwarded:
        first: str = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip: str | None = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


def get_client_info(request: Request) -> dict[str, str | None]:
    """IP address and user agent of the caller."""
    return {
        "ip_address": get_client_ip(request),
        "user_agent": request.headers.get("user-agent"),
    }
