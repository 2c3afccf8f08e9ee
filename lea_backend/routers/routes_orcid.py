"""
ORCID OAuth sign-in for researchers on the public verify page.

``/authorize`` sends the browser to ORCID with a random ``state`` kept in a
short-lived cookie; ``/callback`` checks it, exchanges the code and sends
the browser back to ``<FRONTEND_URL>/verify`` with either ``error`` or the
authenticated ``orcid`` and ``name``.
"""
import hmac
import re
import uuid
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from lea_backend.services import AppServices
from lea_backend.services.orcid import ORCID_PATTERN
from lea_backend.utils.logger import logger

from .deps import get_services

router = APIRouter()

STATE_COOKIE = "orcid_oauth_state"
AUTHENTICATED_COOKIE = "orcid_authenticated"
STATE_MAX_AGE = 600
AUTHENTICATED_MAX_AGE = 3600


def sanitize_for_redirect(value: str, max_length: int = 200) -> str:
    """Keep only characters safe to echo on the verify page."""
    value = re.sub(r"[<>\"'&]", "", value[:max_length])
    return re.sub(r"[^\w\s.,!?@()-]", "", value).strip()


def _callback_url(request: Request) -> str:
    return str(request.url_for("orcid_callback"))


def _verify_redirect(services: AppServices, **params: str) -> RedirectResponse:
    return RedirectResponse(f"{services.settings.frontend_url.rstrip('/')}/verify?{urlencode(params)}")


@router.get("/orcid/authorize")
def orcid_authorize(request: Request, services: AppServices = Depends(get_services)):
    if not services.settings.orcid.client_id:
        return JSONResponse(status_code=500, content={"error": "ORCID client ID not configured"})

    state = str(uuid.uuid4())
    redirect_uri = services.settings.orcid.redirect_uri or _callback_url(request)
    response = RedirectResponse(services.orcid.get_authorization_url(state, redirect_uri))
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=STATE_MAX_AGE,
        httponly=True,
        secure=services.settings.is_production,
        samesite="lax",
    )
    return response


@router.get("/orcid/callback", name="orcid_callback")
def orcid_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    services: AppServices = Depends(get_services),
):
    if error:
        description = sanitize_for_redirect(error_description or "Unknown error", 100)
        return _verify_redirect(services, error=description or "Authentication error")

    stored_state = request.cookies.get(STATE_COOKIE)
    if not state or not stored_state or not hmac.compare_digest(state.encode(), stored_state.encode()):
        return _verify_redirect(services, error="Invalid state parameter")

    if not code:
        return _verify_redirect(services, error="No authorization code received")

    orcid_settings = services.settings.orcid
    if not orcid_settings.client_id or not orcid_settings.client_secret:
        return _verify_redirect(services, error="ORCID not configured")

    redirect_uri = orcid_settings.redirect_uri or _callback_url(request)
    token = services.orcid.exchange_auth_code(code, redirect_uri)
    if token is None:
        return _verify_redirect(services, error="Failed to authenticate with ORCID")

    if not ORCID_PATTERN.match(token.orcid):
        logger.warning("ORCID token response carried a malformed iD")
        return _verify_redirect(services, error="Invalid ORCID format received")

    response = _verify_redirect(
        services,
        orcid=token.orcid,
        name=sanitize_for_redirect(token.name or "", 100),
        authenticated="true",
    )
    response.delete_cookie(STATE_COOKIE)
    response.set_cookie(
        AUTHENTICATED_COOKIE,
        token.orcid,
        max_age=AUTHENTICATED_MAX_AGE,
        httponly=True,
        secure=services.settings.is_production,
        samesite="lax",
    )
    return response
