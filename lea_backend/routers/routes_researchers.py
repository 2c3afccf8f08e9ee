from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lea_backend.data_models.stored_fields import RESEARCH_TOPICS
from lea_backend.services import AppServices
from lea_backend.utils.logger import logger
from lea_backend.utils.serialization import iso_timestamp

from .deps import get_services

router = APIRouter()

LISTING_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=600"
RECENT_LIMIT = 20


def to_researcher(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "did": row["did"],
        "handle": row["handle"],
        "orcid": row["orcid"],
        "name": row["name"],
        "institution": row["institution"],
        "researchTopics": RESEARCH_TOPICS.decode(row["research_topics"]),
        "verifiedAt": iso_timestamp(row["verified_at"]),
        "isActive": row["is_active"],
        "openAlexId": row["open_alex_id"],
    }


@router.get("/researchers")
def list_researchers(services: AppServices = Depends(get_services)):
    """All active verified researchers, most recently verified first."""
    try:
        researchers = [to_researcher(row) for row in services.researchers.list_active()]
    except Exception as e:
        logger.error("Failed to fetch researchers: %s", e, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to fetch researchers"})

    return JSONResponse(
        content={"researchers": researchers},
        headers={"Cache-Control": LISTING_CACHE_CONTROL},
    )


@router.get("/researchers/recent")
def list_recent_researchers(services: AppServices = Depends(get_services)):
    # Served from the Ozone database's verified_members table
    try:
        rows = services.members.list_recent(RECENT_LIMIT)
    except Exception as e:
        logger.error("Failed to fetch recent researchers: %s", e, exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to fetch recent researchers"})

    return {
        "researchers": [
            {
                "did": row["bluesky_did"],
                "handle": row["bluesky_handle"],
                "name": row["display_name"],
                "verifiedAt": iso_timestamp(row["verified_at"]),
            }
            for row in rows
        ]
    }
