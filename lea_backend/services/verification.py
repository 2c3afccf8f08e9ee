"""
Moderator-driven researcher verification.

Composes the Bluesky, ORCID, OpenAlex and Ozone clients with the researcher
and audit repositories. A researcher is verified when the label has been
applied in Ozone and an active ``verified_researchers`` row exists.
"""
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from lea_backend.db.audit import AuditLogRepository
from lea_backend.db.researchers import VerifiedResearcherRepository
from lea_backend.utils.logger import logger
from lea_backend.utils.serialization import camelize

from .bluesky import BlueskyService
from .openalex import OpenAlexAuthor, OpenAlexService, PublicationCheckResult
from .orcid import extract_orcid_id
from .ozone import OzoneService

ALREADY_VERIFIED = "User is already verified"
MAX_BULK_ENTRIES = 100
BULK_PAUSE_SECONDS = 0.2
PREVIEW_PUBLICATIONS = 10


@dataclass
class VerifyInput:
    bluesky_handle: str
    open_alex_id: Optional[str] = None
    orcid_id: Optional[str] = None
    website: Optional[str] = None
    display_name: Optional[str] = None


@dataclass
class VerifyResult:
    success: bool
    member: Optional[Dict[str, Any]] = None
    publication_data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


@dataclass
class BulkEntryResult:
    bluesky_handle: str
    orcid_id: str
    status: str
    message: str
    display_name: Optional[str] = None


@dataclass
class SyncResult:
    total: int = 0
    imported: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)


def publication_summary(check: PublicationCheckResult) -> Dict[str, Any]:
    return {
        "totalWorks": check.total_works,
        "worksAtEstablishedVenues": check.works_at_established_venues,
        "recentWorks": check.recent_works,
        "meetsAutoApprovalCriteria": check.meets_auto_approval_criteria,
    }


class VerificationService:

    def __init__(
        self,
        bluesky: BlueskyService,
        openalex: OpenAlexService,
        ozone: OzoneService,
        researchers: VerifiedResearcherRepository,
        audit: AuditLogRepository,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.bluesky = bluesky
        self.openalex = openalex
        self.ozone = ozone
        self.researchers = researchers
        self.audit = audit
        self._sleep = sleep

    def _lookup_openalex(self, open_alex_id: Optional[str], orcid_id: Optional[str]):
        """Fetch the OpenAlex author (when an id is given) and fill a missing ORCID from it."""
        author: Optional[OpenAlexAuthor] = None
        if open_alex_id:
            author = self.openalex.get_author_by_id(open_alex_id)
            if author is not None and author.orcid and not orcid_id:
                orcid_id = author.orcid
        return author, orcid_id

    def _publication_check(
        self, orcid: Optional[str], author: Optional[OpenAlexAuthor]
    ) -> Optional[PublicationCheckResult]:
        if orcid:
            return self.openalex.check_auto_approval_criteria(orcid)
        if author is not None:
            return self.openalex.summarize_author(author, "No ORCID available")
        return None

    def is_already_verified(self, did: str, orcid_id: Optional[str] = None) -> bool:
        orcid = extract_orcid_id(orcid_id) if orcid_id else None
        return self.researchers.find_active(did, orcid) is not None

    def verify_researcher(self, data: VerifyInput, reviewer_id: str) -> VerifyResult:
        """Resolve, check, label and record a researcher."""
        resolved = self.bluesky.resolve_handle(data.bluesky_handle)
        if resolved is None:
            return VerifyResult(success=False, error="Could not resolve Bluesky handle")

        author, orcid_id = self._lookup_openalex(data.open_alex_id, data.orcid_id)
        orcid = extract_orcid_id(orcid_id) if orcid_id else None

        if self.researchers.find_active(resolved.did, orcid) is not None:
            return VerifyResult(success=False, error=ALREADY_VERIFIED)

        check = self._publication_check(orcid, author)

        display_name = (
            data.display_name
            or (check.author.display_name if check and check.author else None)
            or (author.display_name if author else None)
            or resolved.handle
        )

        label = self.ozone.apply_verified_researcher_label(resolved.did)
        if not label.success:
            return VerifyResult(success=False, error=f"Failed to apply label: {label.error}")

        record = dict(
            handle=resolved.handle,
            name=display_name,
            verified_by=reviewer_id,
            orcid=orcid,
            open_alex_id=data.open_alex_id or None,
            website=data.website or None,
        )
        existing = self.researchers.get_by_did(resolved.did)
        if existing is not None:
            # Previously removed; the DID column is unique
            member_id = existing["id"]
            self.researchers.reactivate(member_id, **record)
            logger.info("Reactivated verified researcher %s (%s)", resolved.handle, resolved.did)
        else:
            member_id = self.researchers.insert(did=resolved.did, **record)
            logger.info("Verified researcher %s (%s)", resolved.handle, resolved.did)

        self.audit.log("researcher_verified", reviewer_id, member_id, "researcher", {
            "handle": resolved.handle,
            "orcid": orcid,
            "openAlexId": data.open_alex_id,
            "website": data.website,
        })

        return VerifyResult(
            success=True,
            member={
                "id": member_id,
                "handle": resolved.handle,
                "did": resolved.did,
                "name": display_name,
                "orcid": orcid,
                "openAlexId": data.open_alex_id or None,
            },
            publication_data=publication_summary(check) if check else None,
        )

    def preview(self, bluesky_handle: str, open_alex_id: Optional[str] = None, orcid_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """The lookups of ``verify_researcher`` without labeling or writing anything.

        Returns None when the handle does not resolve.
        """
        resolved = self.bluesky.resolve_handle(bluesky_handle)
        if resolved is None:
            return None

        author, orcid_id = self._lookup_openalex(open_alex_id, orcid_id)
        already_verified = self.is_already_verified(resolved.did, orcid_id)

        check = self._publication_check(extract_orcid_id(orcid_id) if orcid_id else None, author)
        if check is None:
            check = PublicationCheckResult(reason="No OpenAlex data available")

        return {
            "bluesky": {"handle": resolved.handle, "did": resolved.did},
            "alreadyVerified": already_verified,
            "openAlexId": open_alex_id or None,
            "orcidId": orcid_id or None,
            "publicationData": {
                "author": camelize(check.author),
                **publication_summary(check),
                "reason": check.reason,
                "publications": camelize(check.publications[:PREVIEW_PUBLICATIONS]),
            },
        }

    def bulk_verify(self, entries: List[Dict[str, Optional[str]]], reviewer_id: str) -> Dict[str, Any]:
        """Verify up to 100 handle/ORCID pairs one after another.

        Each entry is reported as ``success``, ``skipped`` (already verified)
        or ``error``. One entry failing does not stop the batch.
        """
        if len(entries) > MAX_BULK_ENTRIES:
            raise ValueError(f"Maximum {MAX_BULK_ENTRIES} researchers per batch")

        results: List[BulkEntryResult] = []
        for entry in entries:
            handle = entry.get("bluesky_handle")
            orcid_id = entry.get("orcid_id")

            if not handle or not orcid_id:
                results.append(BulkEntryResult(
                    bluesky_handle=handle or "(missing)",
                    orcid_id=orcid_id or "(missing)",
                    status="error",
                    message="Missing blueskyHandle or orcidId",
                ))
                continue

            try:
                result = self.verify_researcher(
                    VerifyInput(bluesky_handle=handle, orcid_id=orcid_id, display_name=entry.get("display_name")),
                    reviewer_id,
                )
                if result.success:
                    results.append(BulkEntryResult(
                        bluesky_handle=result.member["handle"],
                        orcid_id=result.member["orcid"] or orcid_id,
                        status="success",
                        message="Verified successfully",
                        display_name=result.member["name"],
                    ))
                elif result.error == ALREADY_VERIFIED:
                    results.append(BulkEntryResult(handle, orcid_id, "skipped", "Already verified"))
                else:
                    results.append(BulkEntryResult(handle, orcid_id, "error", result.error or "Unknown error"))
            except Exception as e:
                logger.error("Bulk verify failed for %s: %s", handle, e, exc_info=True)
                results.append(BulkEntryResult(handle, orcid_id, "error", str(e)))

            # Rate limiting for the external APIs
            self._sleep(BULK_PAUSE_SECONDS)

        summary = {
            "total": len(results),
            "success": sum(1 for r in results if r.status == "success"),
            "skipped": sum(1 for r in results if r.status == "skipped"),
            "errors": sum(1 for r in results if r.status == "error"),
        }
        self.audit.log("bulk_verify", reviewer_id, "bulk", "researcher", summary)
        logger.info("Bulk verify finished: %s", summary)

        return {"summary": summary, "results": camelize(results)}

    def remove_verification(self, member_id: str, reviewer_id: str) -> bool:
        """Negate the label and deactivate the row. False when the id is unknown."""
        member = self.researchers.get(member_id)
        if member is None:
            return False

        result = self.ozone.remove_label(member["did"], self.ozone.settings.verified_researcher_label)
        if not result.success:
            logger.warning("Label removal failed for %s: %s", member["did"], result.error)

        self.researchers.deactivate(member_id)
        self.audit.log("researcher_unverified", reviewer_id, member_id, "researcher", {
            "handle": member["handle"],
            "did": member["did"],
        })
        return True

    def get_verified_members(self, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        members = self.researchers.list_members(limit, offset)
        return {"members": camelize(members), "total": self.researchers.count_active()}

    def sync_from_ozone(self, reviewer_id: str) -> SyncResult:
        """Import accounts labeled in Ozone that have no local row."""
        labeled = self.ozone.get_all_labeled_dids()
        result = SyncResult(total=len(labeled))
        if not labeled:
            return result

        existing = self.researchers.existing_dids(labeled)
        result.skipped = len(existing)

        for did in labeled:
            if did in existing:
                continue
            try:
                profile = self.bluesky.get_profile(did)
                handle = profile.handle if profile else did
                name = (profile.display_name or profile.handle) if profile else did

                self.researchers.insert(did=did, handle=handle, name=name, verified_by=reviewer_id)
                self.audit.log("imported_from_ozone", reviewer_id, did, "researcher", {"did": did, "handle": handle})
                result.imported += 1
            except Exception as e:
                logger.error("Failed to import %s from Ozone: %s", did, e)
                result.errors.append(f"Failed to import {did}: {e}")

        logger.info("Imported %d of %d labeled accounts from Ozone", result.imported, result.total)
        return result
