from typing import Set

from .base import Repository


class EstablishedVenueRepository(Repository):

    def active_source_ids(self) -> Set[str]:
        """OpenAlex source ids of the venues that count towards auto-approval."""
        rows = self._fetch_all(
            """
            SELECT openalex_source_id
            FROM established_venues
            WHERE is_active = true AND openalex_source_id IS NOT NULL
            """
        )
        return {row["openalex_source_id"] for row in rows}
