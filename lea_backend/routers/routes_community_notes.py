from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lea_backend.data_models.stored_fields import NOTE_REASONS
from lea_backend.services import AppServices
from lea_backend.utils.logger import logger
from lea_backend.utils.serialization import iso_timestamp

from .deps import get_services

router = APIRouter()

# Authority of the social.pmsky.proposal records published for community notes
LEA_LABELER_DID = "did:plc:7c7tx56n64jhzezlwox5dja6"


def to_proposal(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "uri": f"at://{LEA_LABELER_DID}/social.pmsky.proposal/{row['id']}",
        "subject": row["post_uri"],
        "body": row["summary"],
        "reasons": NOTE_REASONS.decode(row["reasons"]),
        "aid": row["aid"] if row["aid"] is not None else "",
        "status": row["status"] if row["status"] is not None else "NMR",
        "labelStatus": row["label_status"] if row["label_status"] is not None else "none",
        "createdAt": iso_timestamp(row["created_at"]),
    }


@router.get("/community-notes/proposals")
def list_proposals(uri: Optional[str] = None, services: AppServices = Depends(get_services)):
    """Community notes for a post, as ``social.pmsky.proposal`` records."""
    if not uri:
        return JSONResponse(status_code=400, content={"error": "uri query parameter is required"})

    try:
        rows = services.community_notes.list_post_proposals(uri)
        proposals = [to_proposal(row) for row in rows]
    except Exception as e:
        logger.error("Error fetching community note proposals: %s", e, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "An error occurred"})

    return {"proposals": proposals}
