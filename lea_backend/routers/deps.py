"""
Shared FastAPI dependencies: service lookup, admin API-key check and
pagination parsing.
"""
import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from lea_backend.services import AppServices

MAX_LIMIT = 200
MAX_OFFSET = 100000
DEFAULT_LIMIT = 50
DEFAULT_OFFSET = 0


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def _presented_key(request: Request) -> Optional[str]:
    api_key = request.headers.get("x-api-key")
    if api_key:
        return api_key
    authorization = request.headers.get("authorization")
    if authorization:
        return authorization.replace("Bearer ", "", 1)
    return None


def require_admin_key(request: Request, services: AppServices = Depends(get_services)) -> str:
    """
    Check the admin API key from ``x-api-key`` or ``Authorization: Bearer``.

    Returns the reviewer id recorded in audit entries: the Ozone admin DID,
    or ``"admin"`` when none is configured.
    """
    api_key = _presented_key(request)
    if not api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    expected = services.settings.admin_api_key
    if not expected or not hmac.compare_digest(api_key.encode(), expected.encode()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API key")

    return services.settings.ozone.admin_did or "admin"


@dataclass
class Pagination:
    limit: int = DEFAULT_LIMIT
    offset: int = DEFAULT_OFFSET


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


def pagination(limit: Optional[str] = None, offset: Optional[str] = None) -> Pagination:
    """Clamp ``limit``/``offset`` query parameters; unusable values get the defaults."""
    parsed_limit = _parse_int(limit)
    parsed_offset = _parse_int(offset)
    return Pagination(
        limit=DEFAULT_LIMIT if parsed_limit is None or parsed_limit < 1 else min(parsed_limit, MAX_LIMIT),
        offset=DEFAULT_OFFSET if parsed_offset is None or parsed_offset < 0 else min(parsed_offset, MAX_OFFSET),
    )
