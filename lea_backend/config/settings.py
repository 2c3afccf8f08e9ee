"""
Application settings loaded from environment variables.

``Settings.from_env()`` takes a snapshot of the environment once and returns
an immutable value. Components receive the value at construction time, so
tests build their own ``Settings`` without touching ``os.environ``.

Hard failures are deferred to ``validate_config()``, which only enforces the
required variables when running with ``NODE_ENV=production``.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional


class ConfigError(RuntimeError):
    """Raised when a required configuration value is missing."""
    pass


# --------------------------------------------------
# Defaults
# --------------------------------------------------
DEFAULT_PORT = 3001
DEFAULT_NODE_ENV = "development"
DEFAULT_BLUESKY_SERVICE_URL = "https://bsky.social"
DEFAULT_ORCID_API_URL = "https://pub.orcid.org/v3.0"
DEFAULT_OPENALEX_API_URL = "https://api.openalex.org"
DEFAULT_FRONTEND_URL = "http://localhost:3000"
DEFAULT_VERIFIED_RESEARCHER_LABEL = "verified-researcher"

ORCID_PRODUCTION_BASE = "https://orcid.org"
ORCID_SANDBOX_BASE = "https://sandbox.orcid.org"

# Checked by validate_config() in production, in this order
PRODUCTION_REQUIRED_VARS = (
    "POSTGRES_URL",
    "BLUESKY_LABELER_DID",
    "BLUESKY_LABELER_PASSWORD",
    "ADMIN_API_KEY",
)


@dataclass(frozen=True)
class BlueskySettings:
    service_url: str = DEFAULT_BLUESKY_SERVICE_URL
    labeler_did: str = ""
    labeler_handle: str = ""
    labeler_password: str = ""


@dataclass(frozen=True)
class OzoneSettings:
    service_url: str = ""
    admin_did: str = ""
    admin_password: str = ""


@dataclass(frozen=True)
class OrcidSettings:
    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""
    api_url: str = DEFAULT_ORCID_API_URL
    sandbox: bool = False

    @property
    def oauth_base_url(self) -> str:
        """Base URL of the ORCID OAuth endpoints (authorize/token)."""
        return ORCID_SANDBOX_BASE if self.sandbox else ORCID_PRODUCTION_BASE


@dataclass(frozen=True)
class OpenAlexSettings:
    api_url: str = DEFAULT_OPENALEX_API_URL
    email: str = ""


@dataclass(frozen=True)
class Settings:
    """Immutable configuration snapshot for the whole application."""

    port: int = DEFAULT_PORT
    node_env: str = DEFAULT_NODE_ENV

    bluesky: BlueskySettings = field(default_factory=BlueskySettings)
    ozone: OzoneSettings = field(default_factory=OzoneSettings)
    orcid: OrcidSettings = field(default_factory=OrcidSettings)
    openalex: OpenAlexSettings = field(default_factory=OpenAlexSettings)

    frontend_url: str = DEFAULT_FRONTEND_URL
    admin_api_key: str = ""
    verified_researcher_label: str = DEFAULT_VERIFIED_RESEARCHER_LABEL

    # Databases
    postgres_url: str = ""
    ozone_database_url: str = ""

    @property
    def is_production(self) -> bool:
        return self.node_env == "production"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from *environ* (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ

        def optional(name: str, default: str = "") -> str:
            # Empty strings fall back to the default, like unset variables
            return env.get(name) or default

        return cls(
            port=_parse_port(optional("PORT", str(DEFAULT_PORT))),
            node_env=optional("NODE_ENV", DEFAULT_NODE_ENV),
            bluesky=BlueskySettings(
                service_url=optional("BLUESKY_SERVICE_URL", DEFAULT_BLUESKY_SERVICE_URL),
                labeler_did=optional("BLUESKY_LABELER_DID"),
                labeler_handle=optional("BLUESKY_LABELER_HANDLE"),
                labeler_password=optional("BLUESKY_LABELER_PASSWORD"),
            ),
            ozone=OzoneSettings(
                service_url=optional("OZONE_SERVICE_URL"),
                admin_did=optional("OZONE_ADMIN_DID"),
                admin_password=optional("OZONE_ADMIN_PASSWORD"),
            ),
            orcid=OrcidSettings(
                client_id=optional("ORCID_CLIENT_ID"),
                client_secret=optional("ORCID_CLIENT_SECRET"),
                redirect_uri=optional("ORCID_REDIRECT_URI"),
                api_url=optional("ORCID_API_URL", DEFAULT_ORCID_API_URL),
                sandbox=optional("ORCID_SANDBOX", "false").lower() == "true",
            ),
            openalex=OpenAlexSettings(
                api_url=optional("OPENALEX_API_URL", DEFAULT_OPENALEX_API_URL),
                email=optional("OPENALEX_EMAIL"),
            ),
            frontend_url=optional("FRONTEND_URL", DEFAULT_FRONTEND_URL),
            admin_api_key=optional("ADMIN_API_KEY"),
            verified_researcher_label=optional(
                "VERIFIED_RESEARCHER_LABEL", DEFAULT_VERIFIED_RESEARCHER_LABEL
            ),
            postgres_url=optional("POSTGRES_URL"),
            ozone_database_url=optional("OZONE_DATABASE_URL"),
        )


def _parse_port(value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"PORT must be a valid integer, got {value!r}")


def _required_values(settings: Settings) -> Mapping[str, str]:
    return {
        "POSTGRES_URL": settings.postgres_url,
        "BLUESKY_LABELER_DID": settings.bluesky.labeler_did,
        "BLUESKY_LABELER_PASSWORD": settings.bluesky.labeler_password,
        "ADMIN_API_KEY": settings.admin_api_key,
    }


def validate_config(settings: Settings) -> None:
    """
    Enforce required configuration for production deployments.

    Outside ``NODE_ENV=production`` this never raises, so local runs can work
    with blank secrets.

    Raises:
        ConfigError: naming the first required variable that is blank
    """
    if not settings.is_production:
        return

    values = _required_values(settings)
    for name in PRODUCTION_REQUIRED_VARS:
        if not values[name]:
            raise ConfigError(f"Missing required environment variable: {name}")
