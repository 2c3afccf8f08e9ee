"""
Verified researcher records.

The main database keeps ``verified_researchers`` (one row per DID, never
deleted; ``is_active`` gates visibility). The Ozone database keeps the older
``verified_members`` table, still read by the "recently verified" listing.
"""
import uuid
from typing import Any, Dict, List, Optional, Sequence

from .base import Repository

RESEARCHER_COLUMNS = """
    id, did, handle, orcid, open_alex_id, website, name, institution,
    research_topics, verified_at, verification_method, verified_by, is_active
"""


class VerifiedResearcherRepository(Repository):

    def list_active(self) -> List[Dict[str, Any]]:
        return self._fetch_all(
            f"""
            SELECT {RESEARCHER_COLUMNS}
            FROM verified_researchers
            WHERE is_active = true
            ORDER BY verified_at DESC
            """
        )

    def list_members(self, limit: int, offset: int) -> List[Dict[str, Any]]:
        return self._fetch_all(
            """
            SELECT id, did, handle, name, orcid, open_alex_id, verified_at
            FROM verified_researchers
            WHERE is_active = true
            ORDER BY verified_at DESC
            LIMIT %s OFFSET %s
            """,
            (limit, offset),
        )

    def count_active(self) -> int:
        row = self._fetch_one("SELECT COUNT(*) AS count FROM verified_researchers WHERE is_active = true")
        return row["count"] if row else 0

    def get(self, researcher_id: str) -> Optional[Dict[str, Any]]:
        return self._fetch_one(
            f"SELECT {RESEARCHER_COLUMNS} FROM verified_researchers WHERE id = %s",
            (researcher_id,),
        )

    def get_by_did(self, did: str) -> Optional[Dict[str, Any]]:
        return self._fetch_one(
            f"SELECT {RESEARCHER_COLUMNS} FROM verified_researchers WHERE did = %s",
            (did,),
        )

    def find_active(self, did: str, orcid: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """An active row with the same DID, or the same ORCID when one is given."""
        if orcid:
            sql = "WHERE is_active = true AND (did = %s OR orcid = %s)"
            params: Sequence[Any] = (did, orcid)
        else:
            sql = "WHERE is_active = true AND did = %s"
            params = (did,)
        return self._fetch_one(
            f"SELECT {RESEARCHER_COLUMNS} FROM verified_researchers {sql} LIMIT 1",
            params,
        )

    def existing_dids(self, dids: Sequence[str]) -> set:
        """The subset of *dids* that already have a row, active or not."""
        if not dids:
            return set()
        rows = self._fetch_all(
            "SELECT did FROM verified_researchers WHERE did = ANY(%s)",
            (list(dids),),
        )
        return {row["did"] for row in rows}

    def insert(
        self,
        did: str,
        handle: Optional[str],
        name: Optional[str],
        verified_by: str,
        orcid: Optional[str] = None,
        open_alex_id: Optional[str] = None,
        website: Optional[str] = None,
        verification_method: str = "manual",
    ) -> str:
        researcher_id = str(uuid.uuid4())
        self._execute(
            """
            INSERT INTO verified_researchers
                (id, did, handle, orcid, open_alex_id, website, name,
                 verification_method, verified_by, is_active, verified_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, true, NOW())
            """,
            (researcher_id, did, handle, orcid, open_alex_id, website, name, verification_method, verified_by),
        )
        return researcher_id

    def reactivate(
        self,
        researcher_id: str,
        handle: Optional[str],
        name: Optional[str],
        verified_by: str,
        orcid: Optional[str] = None,
        open_alex_id: Optional[str] = None,
        website: Optional[str] = None,
    ) -> None:
        self._execute(
            """
            UPDATE verified_researchers
            SET handle = %s, orcid = %s, open_alex_id = %s, website = %s, name = %s,
                verified_by = %s, verification_method = 'manual',
                is_active = true, verified_at = NOW()
            WHERE id = %s
            """,
            (handle, orcid, open_alex_id, website, name, verified_by, researcher_id),
        )

    def deactivate(self, researcher_id: str) -> bool:
        return self._execute(
            "UPDATE verified_researchers SET is_active = false WHERE id = %s",
            (researcher_id,),
        ) > 0


class VerifiedMemberRepository(Repository):
    """``verified_members`` on the Ozone database."""

    def list_recent(self, limit: int = 20) -> List[Dict[str, Any]]:
        return self._fetch_all(
            """
            SELECT bluesky_did, bluesky_handle, display_name, verified_at
            FROM verified_members
            WHERE verified_at IS NOT NULL
            ORDER BY verified_at DESC
            LIMIT %s
            """,
            (limit,),
        )
