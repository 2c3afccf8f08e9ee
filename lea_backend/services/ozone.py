"""
Label application through the labeler's Ozone moderation service.

Every call goes through the PDS with the ``atproto-proxy`` header, using
``tools.ozone.moderation.*`` endpoints.
"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

import httpx

from lea_backend.config.settings import Settings
from lea_backend.utils.logger import logger

from .xrpc import XrpcClient, labeler_proxy

REPO_REF = "com.atproto.admin.defs#repoRef"
MOD_EVENT_LABEL = "tools.ozone.moderation.defs#modEventLabel"
QUERY_EVENTS = "tools.ozone.moderation.queryEvents"
REVIEW_OPEN = "tools.ozone.moderation.defs#reviewOpen"


@dataclass
class LabelResult:
    success: bool
    error: Optional[str] = None


@dataclass
class PendingReport:
    did: str
    reported_at: str
    comment: Optional[str] = None


def active_labeled_dids(events: List[Dict[str, Any]], label_value: str) -> List[str]:
    """DIDs whose label events add *label_value* and never negate it, in first-seen order."""
    added: Dict[str, None] = {}
    negated = set()
    for event in events:
        subject = event.get("subject") or {}
        if subject.get("$type") != REPO_REF or not subject.get("did"):
            continue
        did = subject["did"]
        body = event.get("event") or {}
        if label_value in (body.get("createLabelVals") or []):
            added.setdefault(did, None)
        if label_value in (body.get("negateLabelVals") or []):
            negated.add(did)
    return [did for did in added if did not in negated]


def label_events(xrpc: XrpcClient, labeler_did: str) -> Iterator[Dict[str, Any]]:
    """Every modEventLabel event in the labeler's Ozone, across all pages."""
    return xrpc.paginate(QUERY_EVENTS, {"types": [MOD_EVENT_LABEL]}, "events", proxy=labeler_proxy(labeler_did))


class OzoneService:
    """Applies, removes and queries labels emitted by the labeler account."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.xrpc = XrpcClient(settings.bluesky.service_url, transport=transport)
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep

    @property
    def labeler_did(self) -> str:
        return self.settings.bluesky.labeler_did

    @property
    def _proxy(self) -> str:
        return labeler_proxy(self.labeler_did)

    def _ensure_session(self) -> bool:
        """Authenticate to the PDS as the labeler account if needed."""
        if self.xrpc.is_authenticated:
            return True

        identifier = self.settings.bluesky.labeler_handle
        password = self.settings.ozone.admin_password or self.settings.bluesky.labeler_password
        if not identifier or not password:
            logger.error("Labeler credentials not configured")
            return False

        logger.info("Authenticating to %s as: %s", self.settings.bluesky.service_url, identifier)
        self.xrpc.login(identifier, password)
        return True

    def _emit_label_event(self, target_did: str, label_value: str, action: str) -> LabelResult:
        """Emit a modEventLabel for *target_did* (action is 'add' or 'negate')."""
        if not self._ensure_session():
            return LabelResult(success=False, error="Failed to authenticate")

        verb = "applying" if action == "add" else "removing"
        logger.info("%s label %r on %s via labeler %s", verb.capitalize(), label_value, target_did, self.labeler_did)
        self.xrpc.procedure(
            "tools.ozone.moderation.emitEvent",
            {
                "subject": {"$type": REPO_REF, "did": target_did},
                "event": {
                    "$type": MOD_EVENT_LABEL,
                    "createLabelVals": [label_value] if action == "add" else [],
                    "negateLabelVals": [label_value] if action == "negate" else [],
                    "comment": f"Lea verification system: {verb} {label_value} label",
                },
                "createdBy": self.labeler_did,
            },
            proxy=self._proxy,
        )
        return LabelResult(success=True)

    def apply_label(self, target_did: str, label_value: str) -> LabelResult:
        """Apply a label, retrying failed attempts with linear back-off."""
        last_error: Optional[str] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                # Only raised errors are retried; a missing-credentials result is final
                result = self._emit_label_event(target_did, label_value, "add")
                if result.success:
                    logger.info("Successfully applied label %r to %s", label_value, target_did)
                return result
            except Exception as e:
                last_error = str(e)
                logger.error("Attempt %d/%d failed: %s", attempt, self.max_retries, last_error)
                # Session may have expired
                self.xrpc.session = None
                if attempt < self.max_retries:
                    self._sleep(self.retry_delay_seconds * attempt)

        return LabelResult(success=False, error=last_error or "Failed to apply label after retries")

    def apply_verified_researcher_label(self, target_did: str) -> LabelResult:
        return self.apply_label(target_did, self.settings.verified_researcher_label)

    def remove_label(self, target_did: str, label_value: str) -> LabelResult:
        """Negate a label (single attempt)."""
        try:
            return self._emit_label_event(target_did, label_value, "negate")
        except Exception as e:
            logger.error("emitLabelEvent error: %s", e)
            return LabelResult(success=False, error=str(e))

    def has_verified_researcher_label(self, target_did: str) -> bool:
        """Check whether the DID currently carries the verified-researcher label."""
        try:
            if not self._ensure_session():
                return False
            data = self.xrpc.query(
                "com.atproto.label.queryLabels",
                {"uriPatterns": [target_did], "sources": [self.labeler_did]},
            )
        except Exception as e:
            logger.error("Failed to check existing labels: %s", e)
            return False

        return any(
            label.get("val") == self.settings.verified_researcher_label and not label.get("neg")
            for label in data.get("labels") or []
        )

    def _paginate(self, nsid: str, params: Dict[str, Any], key: str) -> Iterator[Dict[str, Any]]:
        return self.xrpc.paginate(nsid, params, key, proxy=self._proxy)

    def iter_label_events(self) -> Iterator[Dict[str, Any]]:
        """All modEventLabel events recorded by the labeler's Ozone."""
        return label_events(self.xrpc, self.labeler_did)

    def get_all_labeled_dids(self) -> List[str]:
        """DIDs that currently carry the verified-researcher label."""
        try:
            if not self._ensure_session():
                logger.error("Failed to authenticate for label query")
                return []
            events = list(self.iter_label_events())
        except Exception as e:
            logger.error("Failed to fetch labeled DIDs: %s", e)
            return []

        dids = active_labeled_dids(events, self.settings.verified_researcher_label)
        logger.info("Found %d actively labeled accounts from Ozone events", len(dids))
        return dids

    def get_pending_reports(self) -> List[PendingReport]:
        """Reported accounts awaiting review (reviewOpen subject statuses)."""
        try:
            if not self._ensure_session():
                logger.error("Failed to authenticate for pending reports query")
                return []
            statuses = list(self._paginate(
                "tools.ozone.moderation.queryStatuses",
                {"reviewState": REVIEW_OPEN},
                "subjectStatuses",
            ))
        except Exception as e:
            logger.error("Failed to fetch pending reports: %s", e)
            return []

        reports = [
            PendingReport(
                did=status["subject"]["did"],
                reported_at=status.get("createdAt", ""),
                comment=status.get("comment") or None,
            )
            for status in statuses
            if (status.get("subject") or {}).get("$type") == REPO_REF and status["subject"].get("did")
        ]
        logger.info("Found %d pending reports from Ozone", len(reports))
        return reports
