from fastapi import APIRouter

from .routes_admin import router as admin_router
from .routes_community_notes import router as community_notes_router
from .routes_orcid import router as orcid_router
from .routes_researchers import router as researchers_router

router = APIRouter(prefix="/api")
router.include_router(community_notes_router)
router.include_router(researchers_router)
router.include_router(orcid_router)
router.include_router(admin_router, prefix="/admin")
