from .audit import AuditLogRepository
from .community_notes import CommunityNoteRepository
from .paper_stats import PaperStatsRepository
from .researchers import VerifiedMemberRepository, VerifiedResearcherRepository
from .venues import EstablishedVenueRepository

__all__ = [
    "AuditLogRepository",
    "CommunityNoteRepository",
    "EstablishedVenueRepository",
    "PaperStatsRepository",
    "VerifiedMemberRepository",
    "VerifiedResearcherRepository",
]
