import json
from typing import Callable, Dict
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from lea_backend.config.settings import BlueskySettings, OrcidSettings, Settings
from lea_backend.main import create_app

ADMIN_KEY = "test-admin-key"
LABELER_DID = "did:plc:labeler"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        admin_api_key=ADMIN_KEY,
        frontend_url="http://frontend.test",
        bluesky=BlueskySettings(
            service_url="https://pds.test",
            labeler_did=LABELER_DID,
            labeler_handle="labeler.test",
            labeler_password="labeler-pw",
        ),
        orcid=OrcidSettings(client_id="client-id", client_secret="client-secret"),
    )


@pytest.fixture
def services(settings) -> MagicMock:
    """Stand-in for AppServices: every repository and client is a MagicMock."""
    services = MagicMock()
    services.settings = settings
    return services


@pytest.fixture
def client(services) -> TestClient:
    return TestClient(create_app(services=services))


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return {"x-api-key": ADMIN_KEY}


def json_response(status_code: int, payload) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload), headers={"content-type": "application/json"})


def routing_transport(routes: Dict[str, Callable[[httpx.Request], httpx.Response]], calls: list = None) -> httpx.MockTransport:
    """MockTransport dispatching on the request path; unknown paths answer 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return json_response(404, {"error": "NotFound", "message": f"no route for {request.url.path}"})
        return route(request)

    return httpx.MockTransport(handler)


class RotatingPds:
    """
    PDS stand-in whose access token can be expired on demand.

    Guarded routes answer ``400 ExpiredToken`` unless the request carries the
    current access token. ``refreshSession`` hands out a new pair when
    *refresh_works*, otherwise it fails like a revoked refresh token.
    """

    def __init__(self, did: str = LABELER_DID, refresh_works: bool = True):
        self.did = did
        self.refresh_works = refresh_works
        self.generation = 1
        self.logins = 0
        self.refreshes = 0

    @property
    def access_token(self) -> str:
        return f"jwt-{self.generation}"

    @property
    def refresh_token(self) -> str:
        return f"refresh-{self.generation}"

    def expire(self):
        self.generation += 1

    def _session(self) -> httpx.Response:
        return json_response(200, {
            "did": self.did,
            "handle": "labeler.test",
            "accessJwt": self.access_token,
            "refreshJwt": self.refresh_token,
        })

    def _create_session(self, request: httpx.Request) -> httpx.Response:
        self.logins += 1
        return self._session()

    def _refresh_session(self, request: httpx.Request) -> httpx.Response:
        if not self.refresh_works or not request.headers.get("Authorization", "").startswith("Bearer refresh-"):
            return json_response(400, {"error": "ExpiredToken", "message": "Token has been revoked"})
        self.refreshes += 1
        return self._session()

    def guard(self, handler: Callable[[httpx.Request], httpx.Response]):
        def guarded(request: httpx.Request) -> httpx.Response:
            if request.headers.get("Authorization") != f"Bearer {self.access_token}":
                return json_response(400, {"error": "ExpiredToken", "message": "Token has expired"})
            return handler(request)
        return guarded

    def routes(self, protected: Dict[str, Callable[[httpx.Request], httpx.Response]]):
        routes = {path: self.guard(handler) for path, handler in protected.items()}
        routes["/xrpc/com.atproto.server.createSession"] = self._create_session
        routes["/xrpc/com.atproto.server.refreshSession"] = self._refresh_session
        return routes
