"""
Service wiring.

``AppServices`` holds every long-lived object a request handler may need:
the two connection pools, the repositories built on them and the external
API clients. ``build_services`` constructs it from a ``Settings`` value.
"""
from dataclasses import dataclass
from typing import Optional

import httpx

from lea_backend.config.settings import Settings
from lea_backend.db import (
    AuditLogRepository,
    CommunityNoteRepository,
    EstablishedVenueRepository,
    VerifiedMemberRepository,
    VerifiedResearcherRepository,
)
from lea_backend.utils.logger import logger

from .bluesky import BlueskyService
from .connection_pool import DatabaseConnectionPool
from .labeler import LabelerService
from .openalex import OpenAlexService
from .orcid import OrcidService
from .ozone import OzoneService
from .verification import VerificationService


@dataclass
class AppServices:
    settings: Settings
    community_notes: CommunityNoteRepository
    researchers: VerifiedResearcherRepository
    members: VerifiedMemberRepository
    audit: AuditLogRepository
    bluesky: BlueskyService
    openalex: OpenAlexService
    orcid: OrcidService
    ozone: OzoneService
    labeler: LabelerService
    verification: VerificationService
    main_pool: Optional[DatabaseConnectionPool] = None
    ozone_pool: Optional[DatabaseConnectionPool] = None

    def close(self):
        for pool in (self.main_pool, self.ozone_pool):
            if pool is not None:
                pool.close()


def build_services(settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> AppServices:
    """Create pools, repositories and clients. Pools connect on first use."""
    main_pool = DatabaseConnectionPool(settings.postgres_url, name="main")
    ozone_pool = DatabaseConnectionPool(settings.ozone_database_url, name="ozone")

    researchers = VerifiedResearcherRepository(main_pool)
    audit = AuditLogRepository(main_pool)
    venues = EstablishedVenueRepository(main_pool)

    bluesky = BlueskyService(settings.bluesky, transport=transport)
    openalex = OpenAlexService(settings.openalex, venue_ids_provider=venues.active_source_ids, transport=transport)
    ozone = OzoneService(settings, transport=transport)

    logger.info("Services configured (environment: %s)", settings.node_env)
    return AppServices(
        settings=settings,
        community_notes=CommunityNoteRepository(main_pool),
        researchers=researchers,
        members=VerifiedMemberRepository(ozone_pool),
        audit=audit,
        bluesky=bluesky,
        openalex=openalex,
        orcid=OrcidService(settings.orcid, transport=transport),
        ozone=ozone,
        labeler=LabelerService(settings.bluesky, transport=transport),
        verification=VerificationService(bluesky, openalex, ozone, researchers, audit),
        main_pool=main_pool,
        ozone_pool=ozone_pool,
    )
