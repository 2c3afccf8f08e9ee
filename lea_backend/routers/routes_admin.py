"""
Admin API for researcher verification and label management.

Every route requires the admin API key (see ``deps.require_admin_key``).
Unexpected failures are logged and answered with a generic 500.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from lea_backend.data_models.schemas import (
    BulkVerifyRequest,
    LabelDefinition,
    LabelDefinitionUpdate,
    LabelDeleteConfirmation,
    QuickVerifyRequest,
    VerifyPreviewRequest,
)
from lea_backend.services import AppServices
from lea_backend.services.verification import MAX_BULK_ENTRIES, VerifyInput
from lea_backend.utils.logger import logger
from lea_backend.utils.serialization import camelize

from .deps import Pagination, get_services, pagination, require_admin_key

router = APIRouter(dependencies=[Depends(require_admin_key)])

OPENALEX_SEARCH_LIMIT = 8


def _error(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})


def _internal_error(context: str, e: Exception) -> JSONResponse:
    logger.error("%s error: %s", context, e, exc_info=True)
    return _error(500, "Internal server error")


# --------------------------------------------------
# Researcher verification
# --------------------------------------------------

@router.post("/quick-verify")
def quick_verify(
    payload: QuickVerifyRequest,
    reviewer_id: str = Depends(require_admin_key),
    services: AppServices = Depends(get_services),
):
    """Verify a researcher by handle plus an OpenAlex id, ORCID or website."""
    try:
        result = services.verification.verify_researcher(
            VerifyInput(
                bluesky_handle=payload.bluesky_handle,
                open_alex_id=payload.open_alex_id,
                orcid_id=payload.orcid_id,
                website=payload.website_url,
                display_name=payload.display_name,
            ),
            reviewer_id,
        )
    except Exception as e:
        return _internal_error("Quick verify", e)

    if not result.success:
        return _error(400, result.error)

    return {
        "success": True,
        "message": "Researcher verified successfully",
        "member": result.member,
        "publicationData": result.publication_data,
    }


@router.post("/quick-verify/preview")
def quick_verify_preview(payload: VerifyPreviewRequest, services: AppServices = Depends(get_services)):
    """Resolve the handle and fetch publication data without labeling anyone."""
    if not payload.bluesky_handle:
        return _error(400, "blueskyHandle is required")
    if not payload.open_alex_id and not payload.orcid_id:
        return _error(400, "Either openAlexId or orcidId is required")

    try:
        preview = services.verification.preview(payload.bluesky_handle, payload.open_alex_id, payload.orcid_id)
    except Exception as e:
        return _internal_error("Quick verify preview", e)

    if preview is None:
        return _error(400, "Could not resolve Bluesky handle")
    return preview


@router.get("/resolve-handle")
def resolve_handle(handle: Optional[str] = None, services: AppServices = Depends(get_services)):
    if not handle:
        return _error(400, "Handle is required")

    try:
        resolved = services.bluesky.resolve_handle(handle)
        if resolved is None:
            return _error(400, "Could not resolve Bluesky handle")
        profile = services.bluesky.get_profile(resolved.did)
    except Exception as e:
        return _internal_error("Resolve handle", e)

    return {
        "handle": resolved.handle,
        "did": resolved.did,
        "displayName": profile.display_name if profile else None,
        "avatar": profile.avatar if profile else None,
    }


@router.post("/bulk-verify")
def bulk_verify(
    payload: BulkVerifyRequest,
    reviewer_id: str = Depends(require_admin_key),
    services: AppServices = Depends(get_services),
):
    if not payload.researchers:
        return _error(400, "researchers array is required")
    if len(payload.researchers) > MAX_BULK_ENTRIES:
        return _error(400, f"Maximum {MAX_BULK_ENTRIES} researchers per batch")

    try:
        outcome = services.verification.bulk_verify(
            [entry.model_dump() for entry in payload.researchers],
            reviewer_id,
        )
    except Exception as e:
        return _internal_error("Bulk verify", e)

    return {"success": True, **outcome}


@router.get("/members")
def list_members(page: Pagination = Depends(pagination), services: AppServices = Depends(get_services)):
    try:
        return services.verification.get_verified_members(page.limit, page.offset)
    except Exception as e:
        return _internal_error("Admin list members", e)


@router.delete("/members/{member_id}")
def remove_member(
    member_id: str,
    reviewer_id: str = Depends(require_admin_key),
    services: AppServices = Depends(get_services),
):
    try:
        removed = services.verification.remove_verification(member_id, reviewer_id)
    except Exception as e:
        return _internal_error("Admin remove member", e)

    if not removed:
        return _error(404, "Member not found")
    return {"success": True, "message": "Verification removed"}


@router.get("/openalex-search")
def openalex_search(q: Optional[str] = None, services: AppServices = Depends(get_services)):
    if not q or len(q) < 2:
        return {"results": []}

    try:
        results = services.openalex.search_authors_by_name(q, OPENALEX_SEARCH_LIMIT)
    except Exception as e:
        return _internal_error("OpenAlex search", e)
    return {"results": camelize(results)}


@router.get("/stats")
def stats(services: AppServices = Depends(get_services)):
    try:
        return {"researchers": services.researchers.count_active()}
    except Exception as e:
        return _internal_error("Admin stats", e)


@router.get("/audit")
def audit_log(
    action: Optional[str] = None,
    page: Pagination = Depends(pagination),
    services: AppServices = Depends(get_services),
):
    try:
        logs = services.audit.list_entries(action=action, limit=page.limit, offset=page.offset)
    except Exception as e:
        return _internal_error("Admin audit log", e)
    return {"logs": camelize(logs)}


@router.post("/sync-from-ozone")
def sync_from_ozone(reviewer_id: str = Depends(require_admin_key), services: AppServices = Depends(get_services)):
    """Import accounts labeled in Ozone that are missing from the database."""
    try:
        result = services.verification.sync_from_ozone(reviewer_id)
    except Exception as e:
        return _internal_error("Ozone sync", e)

    return {
        "success": True,
        "message": f"Imported {result.imported} accounts from Ozone",
        "total": result.total,
        "imported": result.imported,
        "skipped": result.skipped,
        "errors": result.errors,
    }


# --------------------------------------------------
# Label definitions
# --------------------------------------------------

@router.get("/labels")
def list_labels(services: AppServices = Depends(get_services)):
    try:
        config = services.labeler.get_labeler_config()
    except Exception as e:
        return _internal_error("Get labels", e)

    if config is None:
        return _error(500, "Failed to fetch labeler configuration")
    return {
        "did": config.did,
        "labels": config.label_value_definitions,
        "labelValues": config.label_values,
        "createdAt": config.created_at,
    }


@router.get("/labels/{identifier}/usage")
def label_usage(identifier: str, services: AppServices = Depends(get_services)):
    try:
        count = services.labeler.get_label_usage_count(identifier)
    except Exception as e:
        return _internal_error("Get label usage", e)
    return {"identifier": identifier, "usageCount": count}


@router.post("/labels", status_code=201)
def create_label(
    definition: LabelDefinition,
    reviewer_id: str = Depends(require_admin_key),
    services: AppServices = Depends(get_services),
):
    try:
        result = services.labeler.add_label(definition)
        if not result.success:
            return _error(400, result.error)

        label = definition.model_dump(by_alias=True)
        services.audit.log("label_created", reviewer_id, definition.identifier, "label", {"definition": label})
    except Exception as e:
        return _internal_error("Create label", e)

    return {
        "success": True,
        "message": f'Label "{definition.identifier}" created successfully',
        "label": label,
    }


@router.patch("/labels/{identifier}")
def update_label(
    identifier: str,
    updates: LabelDefinitionUpdate,
    reviewer_id: str = Depends(require_admin_key),
    services: AppServices = Depends(get_services),
):
    try:
        result = services.labeler.update_label(identifier, updates)
        if not result.success:
            return _error(400, result.error)

        services.audit.log("label_updated", reviewer_id, identifier, "label", {
            "updates": updates.model_dump(by_alias=True, exclude_none=True),
        })
    except Exception as e:
        return _internal_error("Update label", e)

    return {"success": True, "message": f'Label "{identifier}" updated successfully'}


@router.delete("/labels/{identifier}")
def delete_label(
    identifier: str,
    body: Optional[Dict[str, Any]] = Body(default=None),
    reviewer_id: str = Depends(require_admin_key),
    services: AppServices = Depends(get_services),
):
    """Delete a label definition. The body must repeat the identifier and the confirmation phrase."""
    try:
        confirmation = LabelDeleteConfirmation.model_validate(body or {})
    except ValidationError as e:
        return _error(
            400,
            "Validation failed",
            details=jsonable_encoder(e.errors(include_url=False, include_context=False)),
            message="You must confirm deletion by providing confirmIdentifier and confirmPhrase",
        )

    if confirmation.confirm_identifier != identifier:
        return _error(400, "Confirmation identifier does not match")

    try:
        usage_count = services.labeler.get_label_usage_count(identifier)
        result = services.labeler.delete_label(identifier)
        if not result.success:
            return _error(400, result.error)

        services.audit.log("label_deleted", reviewer_id, identifier, "label", {
            "usageCount": usage_count,
            "deletedAt": datetime.now(timezone.utc).isoformat(),
        })
    except Exception as e:
        return _internal_error("Delete label", e)

    response: Dict[str, Any] = {"success": True, "message": f'Label "{identifier}" deleted successfully'}
    if usage_count > 0:
        response["warning"] = (
            f"This label was applied to {usage_count} accounts. "
            "Those accounts will no longer show this badge."
        )
    return response
