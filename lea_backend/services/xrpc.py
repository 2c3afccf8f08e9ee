"""
Minimal ATProto XRPC client.

Queries are ``GET /xrpc/<nsid>`` and procedures are ``POST /xrpc/<nsid>``.
After ``login()`` the session's access token is sent with every call. When
the PDS answers that the access token has expired, the session is renewed
(``refreshSession``, falling back to a fresh login) and the call is retried
once. Calls meant for the labeler's Ozone instance are proxied through the
PDS with the ``atproto-proxy`` header.
"""
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

import httpx

from lea_backend.utils.logger import logger

from .base_api_client import APIError, BaseAPIClient

CREATE_SESSION = "com.atproto.server.createSession"
REFRESH_SESSION = "com.atproto.server.refreshSession"
EXPIRED_TOKEN_ERRORS = ("ExpiredToken", "InvalidToken")
PAGE_SIZE = 100


@dataclass
class XrpcSession:
    did: str
    handle: str
    access_jwt: str
    refresh_jwt: str = ""


def labeler_proxy(labeler_did: str) -> str:
    """Value of the ``atproto-proxy`` header targeting a labeler service."""
    return f"{labeler_did}#atproto_labeler"


def is_expired_token(error: APIError) -> bool:
    """True for a 401 or an ``ExpiredToken``/``InvalidToken`` XRPC error."""
    if error.status_code == 401:
        return True
    body = error.response if isinstance(error.response, dict) else {}
    return body.get("error") in EXPIRED_TOKEN_ERRORS


class XrpcClient(BaseAPIClient):
    """XRPC calls against one PDS/AppView service."""

    def __init__(self, service_url: str, timeout: float = 30.0, transport: Optional[httpx.BaseTransport] = None):
        super().__init__(service_url, timeout=timeout, transport=transport)
        self.session: Optional[XrpcSession] = None
        self._credentials: Optional[Tuple[str, str]] = None
        # Handlers share one client across the server's thread pool
        self._auth_lock = threading.Lock()

    def _headers(self, proxy: Optional[str], token: Optional[str] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        token = token or (self.session.access_jwt if self.session is not None else None)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if proxy:
            headers["atproto-proxy"] = proxy
        return headers

    def _session_from(self, data: Dict[str, Any], handle: str) -> XrpcSession:
        return XrpcSession(
            did=data.get("did", ""),
            handle=data.get("handle", handle),
            access_jwt=data["accessJwt"],
            refresh_jwt=data.get("refreshJwt", ""),
        )

    def _with_renewal(self, call):
        """Run *call*; on an expired token renew the session and run it once more."""
        stale = self.session
        try:
            return call()
        except APIError as e:
            if stale is None or not is_expired_token(e):
                raise
            logger.info("XRPC session for %s expired, renewing", stale.handle)
            self.renew_session(stale)
            return call()

    def query(self, nsid: str, params: Optional[Dict[str, Any]] = None, proxy: Optional[str] = None) -> Any:
        clean = {k: v for k, v in (params or {}).items() if v is not None}
        return self._with_renewal(lambda: self.get(f"xrpc/{nsid}", params=clean, headers=self._headers(proxy)))

    def procedure(self, nsid: str, body: Optional[Dict[str, Any]] = None, proxy: Optional[str] = None) -> Any:
        return self._with_renewal(
            lambda: self.post(f"xrpc/{nsid}", json=body or {}, headers=self._headers(proxy))
        )

    def paginate(
        self, nsid: str, params: Dict[str, Any], key: str, proxy: Optional[str] = None
    ) -> Iterator[Dict[str, Any]]:
        """Yield every item under *key* across cursor pages."""
        cursor: Optional[str] = None
        while True:
            data = self.query(nsid, {**params, "limit": PAGE_SIZE, "cursor": cursor}, proxy=proxy)
            for item in data.get(key) or []:
                yield item
            cursor = data.get("cursor")
            if not cursor:
                break

    def _create_session(self, identifier: str, password: str) -> XrpcSession:
        data = self.post(f"xrpc/{CREATE_SESSION}", json={"identifier": identifier, "password": password})
        return self._session_from(data, identifier)

    def login(self, identifier: str, password: str) -> XrpcSession:
        """Create a session (com.atproto.server.createSession)."""
        with self._auth_lock:
            self.session = None
            self.session = self._create_session(identifier, password)
            self._credentials = (identifier, password)
            return self.session

    def renew_session(self, stale: Optional[XrpcSession] = None) -> XrpcSession:
        """
        Replace an expired session.

        Uses the refresh token when there is one and logs in again with the
        stored credentials when refreshing fails. A session already replaced
        by another thread since *stale* was read is returned as is.
        """
        with self._auth_lock:
            current = self.session
            if current is not None and stale is not None and current.access_jwt != stale.access_jwt:
                return current

            if current is not None and current.refresh_jwt:
                try:
                    data = self.post(f"xrpc/{REFRESH_SESSION}", headers=self._headers(None, current.refresh_jwt))
                    self.session = self._session_from(data, current.handle)
                    return self.session
                except APIError as e:
                    logger.warning("Session refresh failed, logging in again: %s", e)

            self.session = None
            if self._credentials is None:
                raise APIError("Session expired and no credentials to log in again", 401)
            self.session = self._create_session(*self._credentials)
            return self.session

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None
