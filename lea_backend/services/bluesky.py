"""
Bluesky identity lookups: handle resolution and profile fetches.
"""
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from lea_backend.config.settings import BlueskySettings
from lea_backend.utils.logger import logger

from .xrpc import XrpcClient

# Invisible characters that sneak in when handles are copy-pasted from web
# pages or documents: zero-width and directional marks, embeddings/overrides,
# word joiner and invisible operators, BOM, soft hyphen, combining grapheme
# joiner, Arabic letter mark, Hangul/Khmer/Mongolian fillers.
_INVISIBLE_CHARS = re.compile(
    "[\u200B-\u200F\u202A-\u202E\u2060-\u2064\uFEFF\u00AD\u034F\u061C"
    "\u115F\u1160\u17B4\u17B5\u180E\u3164\uFFA0]"
)

DEFAULT_HANDLE_DOMAIN = "bsky.social"


@dataclass
class ResolvedHandle:
    did: str
    handle: str


@dataclass
class BlueskyProfile:
    did: str
    handle: str
    display_name: Optional[str] = None
    avatar: Optional[str] = None


def sanitize_handle(handle: str) -> str:
    """Strip invisible Unicode characters, trim and lower-case a handle."""
    return _INVISIBLE_CHARS.sub("", handle).strip().lower()


def normalize_handle(handle: str) -> str:
    """Sanitize, drop a leading ``@`` and default the domain to bsky.social."""
    normalized = sanitize_handle(handle)
    if normalized.startswith("@"):
        normalized = normalized[1:]
    if "." not in normalized:
        normalized = f"{normalized}.{DEFAULT_HANDLE_DOMAIN}"
    return normalized


class BlueskyService:
    """Resolves handles and reads profiles through the configured PDS."""

    def __init__(self, settings: BlueskySettings, transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings
        self.xrpc = XrpcClient(settings.service_url, transport=transport)

    def resolve_handle(self, handle: str) -> Optional[ResolvedHandle]:
        """Resolve a Bluesky handle to a DID (com.atproto.identity.resolveHandle)."""
        normalized = normalize_handle(handle)
        try:
            data = self.xrpc.query("com.atproto.identity.resolveHandle", {"handle": normalized})
        except Exception as e:
            logger.error("Failed to resolve handle %s: %s", normalized, e, exc_info=True)
            return None

        did = data.get("did") if isinstance(data, dict) else None
        if not did:
            logger.error("resolveHandle returned no DID for handle: %s", normalized)
            return None
        return ResolvedHandle(did=did, handle=normalized)

    def validate_handle(self, handle: str) -> bool:
        """Check that a handle exists and resolves."""
        return self.resolve_handle(handle) is not None

    def login_as_labeler(self) -> bool:
        """Login to the labeler account (getProfile requires auth)."""
        if not self.settings.labeler_handle or not self.settings.labeler_password:
            logger.error("Labeler credentials not configured")
            return False
        try:
            self.xrpc.login(self.settings.labeler_handle, self.settings.labeler_password)
            return True
        except Exception as e:
            logger.error("Failed to login as labeler: %s", e)
            return False

    def get_profile(self, did_or_handle: str) -> Optional[BlueskyProfile]:
        """Get profile information for a DID or handle."""
        try:
            if not self.xrpc.is_authenticated:
                self.login_as_labeler()

            data = self.xrpc.query("app.bsky.actor.getProfile", {"actor": did_or_handle})
            return BlueskyProfile(
                did=data["did"],
                handle=data["handle"],
                display_name=data.get("displayName"),
                avatar=data.get("avatar"),
            )
        except Exception as e:
            logger.error("Failed to get profile for %s: %s", did_or_handle, e)
            return None
