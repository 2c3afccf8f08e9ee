"""
Management of the labeler's declared label values.

The definitions live in the labeler account's ``app.bsky.labeler.service``
record (rkey ``self``) under ``policies``. Updates rewrite that record and
keep its original ``createdAt``.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from lea_backend.config.settings import BlueskySettings
from lea_backend.data_models.schemas import LabelDefinition, LabelDefinitionUpdate
from lea_backend.utils.logger import logger
from lea_backend.utils.serialization import iso_timestamp

from .ozone import active_labeled_dids, label_events
from .xrpc import XrpcClient

SERVICE_COLLECTION = "app.bsky.labeler.service"
SERVICE_RKEY = "self"


@dataclass
class LabelerConfig:
    did: str
    label_values: List[str] = field(default_factory=list)
    label_value_definitions: List[Dict[str, Any]] = field(default_factory=list)
    created_at: str = ""


@dataclass
class LabelerResult:
    success: bool
    error: Optional[str] = None


def _now_iso() -> str:
    return iso_timestamp(datetime.now(timezone.utc))


class LabelerService:
    """Reads and edits label definitions on the labeler service record."""

    def __init__(self, settings: BlueskySettings, transport: Optional[httpx.BaseTransport] = None):
        self.settings = settings
        self.xrpc = XrpcClient(settings.service_url, transport=transport)

    def _authenticated_did(self) -> Optional[str]:
        """Log in as the labeler account if needed and return its DID."""
        if self.xrpc.session is not None:
            return self.xrpc.session.did

        if not self.settings.labeler_handle or not self.settings.labeler_password:
            logger.error("Labeler credentials not configured")
            return None
        try:
            return self.xrpc.login(self.settings.labeler_handle, self.settings.labeler_password).did
        except Exception as e:
            logger.error("Failed to authenticate labeler: %s", e)
            return None

    def get_labeler_config(self) -> Optional[LabelerConfig]:
        did = self._authenticated_did()
        if not did:
            return None
        try:
            data = self.xrpc.query(
                "com.atproto.repo.getRecord",
                {"repo": did, "collection": SERVICE_COLLECTION, "rkey": SERVICE_RKEY},
            )
        except Exception as e:
            logger.error("Failed to get labeler config: %s", e)
            return None

        record = data.get("value") or {}
        policies = record.get("policies") or {}
        return LabelerConfig(
            did=did,
            label_values=policies.get("labelValues") or [],
            label_value_definitions=policies.get("labelValueDefinitions") or [],
            created_at=record.get("createdAt") or _now_iso(),
        )

    def update_labeler_config(self, definitions: List[Dict[str, Any]]) -> LabelerResult:
        """Replace the label definitions on the service record."""
        did = self._authenticated_did()
        if not did:
            return LabelerResult(success=False, error="Failed to authenticate")

        current = self.get_labeler_config()
        record = {
            "$type": SERVICE_COLLECTION,
            "policies": {
                "labelValues": [d["identifier"] for d in definitions],
                "labelValueDefinitions": definitions,
            },
            "createdAt": current.created_at if current else _now_iso(),
        }
        try:
            self.xrpc.procedure(
                "com.atproto.repo.putRecord",
                {"repo": did, "collection": SERVICE_COLLECTION, "rkey": SERVICE_RKEY, "record": record},
            )
        except Exception as e:
            logger.error("Failed to update labeler config: %s", e)
            return LabelerResult(success=False, error=str(e))
        return LabelerResult(success=True)

    def add_label(self, definition: LabelDefinition) -> LabelerResult:
        current = self.get_labeler_config()
        if current is None:
            return LabelerResult(success=False, error="Failed to get current config")

        if any(d.get("identifier") == definition.identifier for d in current.label_value_definitions):
            return LabelerResult(success=False, error="Label with this identifier already exists")

        new_definition = definition.model_dump(by_alias=True)
        return self.update_labeler_config([*current.label_value_definitions, new_definition])

    def update_label(self, identifier: str, updates: LabelDefinitionUpdate) -> LabelerResult:
        """Merge *updates* into an existing definition. The identifier never changes."""
        current = self.get_labeler_config()
        if current is None:
            return LabelerResult(success=False, error="Failed to get current config")

        definitions = list(current.label_value_definitions)
        index = next((i for i, d in enumerate(definitions) if d.get("identifier") == identifier), None)
        if index is None:
            return LabelerResult(success=False, error="Label not found")

        if updates.identifier is not None and updates.identifier != identifier:
            return LabelerResult(success=False, error="Cannot change label identifier")

        changes = updates.model_dump(by_alias=True, exclude_none=True, exclude={"identifier"})
        definitions[index] = {**definitions[index], **changes, "identifier": identifier}
        return self.update_labeler_config(definitions)

    def delete_label(self, identifier: str) -> LabelerResult:
        """Remove a definition. Accounts carrying the label stop showing it."""
        current = self.get_labeler_config()
        if current is None:
            return LabelerResult(success=False, error="Failed to get current config")

        remaining = [d for d in current.label_value_definitions if d.get("identifier") != identifier]
        if len(remaining) == len(current.label_value_definitions):
            return LabelerResult(success=False, error="Label not found")
        return self.update_labeler_config(remaining)

    def get_label_usage_count(self, identifier: str) -> int:
        """Number of accounts currently carrying *identifier*."""
        if not self._authenticated_did():
            return 0
        try:
            events = list(label_events(self.xrpc, self.settings.labeler_did))
        except Exception as e:
            logger.error("Failed to get label usage count: %s", e)
            return 0
        return len(active_labeled_dids(events, identifier))
