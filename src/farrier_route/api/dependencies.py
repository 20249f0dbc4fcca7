"""Request-scoped dependencies."""

from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Header, HTTPException, status

from ..models.domain import SessionContext


def get_session(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
    x_timezone: str | None = Header(default=None),
    accept_language: str | None = Header(default=None),
) -> SessionContext:
    """Build the caller's session from headers set by the authenticating proxy."""
    if x_timezone:
        try:
            ZoneInfo(x_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown timezone '{x_timezone}'",
            ) from exc
    locale = (accept_language or "it").split(",")[0].split("-")[0].strip() or "it"
    return SessionContext(
        user_id=x_user_id or "anonymous",
        role=x_user_role or "farrier",
        locale=locale,
        timezone=x_timezone,
    )
