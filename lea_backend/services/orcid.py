"""
ORCID identifiers, OAuth and public profile lookups.
"""
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx

from lea_backend.config.settings import OrcidSettings
from lea_backend.utils.logger import logger

from .base_api_client import APIError, BaseAPIClient

ORCID_PATTERN = re.compile(r"^\d{4}-\d{4}-\d{4}-\d{3}[\dX]$")
_ORCID_URL_PATTERN = re.compile(r"orcid\.org/(\d{4}-\d{4}-\d{4}-\d{3}[\dX])", re.IGNORECASE)
_COMPACT_ORCID_PATTERN = re.compile(r"^\d{15}[\dX]$")


@dataclass
class OrcidProfile:
    orcid: str
    name: Optional[str] = None
    given_names: Optional[str] = None
    family_name: Optional[str] = None


@dataclass
class OrcidToken:
    orcid: str
    access_token: str
    name: Optional[str] = None


def extract_orcid_id(value: str) -> str:
    """Extract the bare ``0000-0000-0000-000X`` id from a URL or compact form.

    Input that matches none of the known forms is returned unchanged.
    """
    url_match = _ORCID_URL_PATTERN.search(value)
    if url_match:
        return url_match.group(1)

    if ORCID_PATTERN.match(value):
        return value

    if _COMPACT_ORCID_PATTERN.match(value):
        return f"{value[0:4]}-{value[4:8]}-{value[8:12]}-{value[12:16]}"

    return value


def orcid_checksum_is_valid(orcid: str) -> bool:
    """ISO 7064 Mod 11-2 check of the final character."""
    digits = orcid.replace("-", "")
    total = 0
    for char in digits[:-1]:
        total = (total + int(char)) * 2
    check = (12 - total % 11) % 11
    expected = "X" if check == 10 else str(check)
    return digits[-1].upper() == expected


def validate_orcid_format(value: str) -> bool:
    """Validate ORCID format and checksum."""
    orcid = extract_orcid_id(value)
    if not ORCID_PATTERN.match(orcid):
        return False
    return orcid_checksum_is_valid(orcid)


class OrcidService:
    """ORCID OAuth (authorize + token exchange) and public API profile reads."""

    def __init__(self, settings: OrcidSettings, transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings
        self.api = BaseAPIClient(settings.api_url, transport=transport)
        self.oauth = BaseAPIClient(settings.oauth_base_url, transport=transport)

    extract_orcid_id = staticmethod(extract_orcid_id)
    validate_orcid_format = staticmethod(validate_orcid_format)

    def get_authorization_url(self, state: str, redirect_uri: Optional[str] = None) -> str:
        """Generate the ORCID OAuth authorization URL."""
        params = urlencode({
            "client_id": self.settings.client_id,
            "response_type": "code",
            "scope": "/authenticate",
            "redirect_uri": redirect_uri or self.settings.redirect_uri,
            "state": state,
        })
        return f"{self.settings.oauth_base_url}/oauth/authorize?{params}"

    def exchange_auth_code(self, code: str, redirect_uri: Optional[str] = None) -> Optional[OrcidToken]:
        """Exchange an authorization code for an access token and the ORCID iD."""
        try:
            data = self.oauth.post(
                "oauth/token",
                data={
                    "client_id": self.settings.client_id,
                    "client_secret": self.settings.client_secret,
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri or self.settings.redirect_uri,
                },
            )
        except APIError as e:
            logger.error("ORCID token exchange failed: %s", e.response)
            return None
        except httpx.HTTPError as e:
            logger.error("Failed to exchange ORCID auth code: %s", e)
            return None

        if not data.get("orcid") or not data.get("access_token"):
            logger.error("ORCID token response missing orcid/access_token")
            return None
        return OrcidToken(orcid=data["orcid"], access_token=data["access_token"], name=data.get("name"))

    def get_profile(self, orcid: str) -> Optional[OrcidProfile]:
        """Fetch the person record from the public API; None when not found."""
        clean = extract_orcid_id(orcid)
        try:
            data = self.api.get(f"{clean}/person")
        except APIError as e:
            if e.status_code != 404:
                logger.error("Failed to fetch ORCID profile %s: %s", clean, e)
            return None
        except httpx.HTTPError as e:
            logger.error("Failed to fetch ORCID profile %s: %s", clean, e)
            return None

        name = data.get("name") or {}

        def _value(key: str) -> Optional[str]:
            return (name.get(key) or {}).get("value")

        return OrcidProfile(
            orcid=clean,
            name=_value("credit-name"),
            given_names=_value("given-names"),
            family_name=_value("family-name"),
        )
