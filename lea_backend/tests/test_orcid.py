from urllib.parse import parse_qs, urlparse

import httpx

from lea_backend.config.settings import OrcidSettings
from lea_backend.services.orcid import (
    OrcidService,
    extract_orcid_id,
    orcid_checksum_is_valid,
    validate_orcid_format,
)

from .conftest import json_response, routing_transport

VALID_ORCID = "0000-0002-1825-0097"


class TestOrcidIds:
    """ORCID iD extraction and validation."""

    def test_extract_from_url(self):
        assert extract_orcid_id(f"https://orcid.org/{VALID_ORCID}") == VALID_ORCID

    def test_extract_dashed(self):
        assert extract_orcid_id(VALID_ORCID) == VALID_ORCID

    def test_extract_compact(self):
        assert extract_orcid_id("0000000218250097") == VALID_ORCID

    def test_unknown_form_is_returned_unchanged(self):
        assert extract_orcid_id("not-an-orcid") == "not-an-orcid"

    def test_checksum(self):
        assert orcid_checksum_is_valid(VALID_ORCID)
        assert not orcid_checksum_is_valid("0000-0002-1825-0098")

    def test_checksum_with_x(self):
        assert orcid_checksum_is_valid("0000-0002-9079-593X")

    def test_validate_format(self):
        assert validate_orcid_format(VALID_ORCID)
        assert validate_orcid_format(f"https://orcid.org/{VALID_ORCID}")
        assert not validate_orcid_format("0000-0002-1825-0098")
        assert not validate_orcid_format("1234")


class TestOrcidService:
    """OAuth URL building, token exchange and profile reads."""

    def _service(self, routes=None, sandbox=False):
        settings = OrcidSettings(
            client_id="client-id",
            client_secret="client-secret",
            redirect_uri="https://lea.test/api/orcid/callback",
            sandbox=sandbox,
        )
        return OrcidService(settings, transport=routing_transport(routes or {}))

    def test_authorization_url(self):
        url = urlparse(self._service().get_authorization_url("state-123"))
        params = parse_qs(url.query)
        assert url.netloc == "orcid.org"
        assert url.path == "/oauth/authorize"
        assert params["client_id"] == ["client-id"]
        assert params["scope"] == ["/authenticate"]
        assert params["state"] == ["state-123"]
        assert params["redirect_uri"] == ["https://lea.test/api/orcid/callback"]

    def test_sandbox_authorization_url(self):
        url = urlparse(self._service(sandbox=True).get_authorization_url("s"))
        assert url.netloc == "sandbox.orcid.org"

    def test_exchange_auth_code(self):
        def token(request: httpx.Request):
            form = parse_qs(request.content.decode())
            assert form["code"] == ["the-code"]
            assert form["grant_type"] == ["authorization_code"]
            return json_response(200, {"orcid": VALID_ORCID, "access_token": "tok", "name": "Josiah Carberry"})

        result = self._service({"/oauth/token": token}).exchange_auth_code("the-code")
        assert result.orcid == VALID_ORCID
        assert result.access_token == "tok"
        assert result.name == "Josiah Carberry"

    def test_exchange_auth_code_failure(self):
        routes = {"/oauth/token": lambda request: json_response(401, {"error": "invalid_grant"})}
        assert self._service(routes).exchange_auth_code("bad") is None

    def test_get_profile(self):
        person = {
            "name": {
                "given-names": {"value": "Josiah"},
                "family-name": {"value": "Carberry"},
                "credit-name": None,
            }
        }
        routes = {f"/v3.0/{VALID_ORCID}/person": lambda request: json_response(200, person)}
        profile = self._service(routes).get_profile(f"https://orcid.org/{VALID_ORCID}")
        assert profile.orcid == VALID_ORCID
        assert profile.given_names == "Josiah"
        assert profile.family_name == "Carberry"
        assert profile.name is None

    def test_get_profile_not_found(self):
        assert self._service().get_profile(VALID_ORCID) is None
