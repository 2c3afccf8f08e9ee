from typing import Any, Dict, List

from .base import Repository


class PaperStatsRepository(Repository):
    """Read-only aggregates over discovered papers and their mentions."""

    def _scalar(self, sql: str) -> Any:
        row = self._fetch_one(sql)
        return next(iter(row.values())) if row else None

    def total_papers(self) -> int:
        return self._scalar("SELECT COUNT(*) AS count FROM discovered_papers")

    def total_mentions(self) -> int:
        return self._scalar("SELECT COUNT(*) AS count FROM paper_mentions")

    def verified_mentions(self) -> int:
        return self._scalar("SELECT COUNT(*) AS count FROM paper_mentions WHERE is_verified_researcher = true")

    def distinct_authors(self) -> int:
        return self._scalar("SELECT COUNT(DISTINCT author_did) AS count FROM paper_mentions")

    def date_range(self) -> Dict[str, Any]:
        return self._fetch_one(
            'SELECT MIN(first_seen_at) AS first, MAX(last_seen_at) AS last FROM discovered_papers'
        ) or {"first": None, "last": None}

    def mentions_last_day(self) -> int:
        return self._scalar(
            "SELECT COUNT(*) AS count FROM paper_mentions WHERE created_at > NOW() - INTERVAL '24 hours'"
        )

    def papers_by_source(self) -> List[Dict[str, Any]]:
        return self._fetch_all(
            "SELECT source, COUNT(*) AS count FROM discovered_papers GROUP BY source ORDER BY count DESC"
        )
