"""
OpenAlex author and works lookups, plus the publication-based auto-approval
check used when verifying researchers.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

import httpx

from lea_backend.config.settings import OpenAlexSettings
from lea_backend.utils.logger import logger

from .base_api_client import APIError, BaseAPIClient

ORCID_URL_PREFIX = "https://orcid.org/"

# Auto-approval thresholds
MIN_ESTABLISHED_VENUE_WORKS = 3
MIN_RECENT_WORKS = 1
RECENT_YEARS = 5


@dataclass
class Institution:
    id: str
    display_name: str
    country_code: Optional[str] = None


@dataclass
class OpenAlexAuthor:
    id: str
    display_name: str
    works_count: int = 0
    cited_by_count: int = 0
    orcid: Optional[str] = None
    last_known_institutions: List[Institution] = field(default_factory=list)
    works_api_url: Optional[str] = None


@dataclass
class WorkSource:
    id: str
    display_name: str
    type: Optional[str] = None
    issn: Optional[List[str]] = None


@dataclass
class OpenAlexWork:
    id: str
    title: str
    publication_year: Optional[int] = None
    publication_date: Optional[str] = None
    doi: Optional[str] = None
    type: Optional[str] = None
    source: Optional[WorkSource] = None


@dataclass
class AuthorSearchResult:
    id: str
    open_alex_id: str
    display_name: str
    works_count: int
    cited_by_count: int
    orcid: Optional[str] = None
    affiliations: List[Dict[str, Any]] = field(default_factory=list)
    recent_works: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class PublicationCheckResult:
    meets_auto_approval_criteria: bool = False
    total_works: int = 0
    works_at_established_venues: int = 0
    recent_works: int = 0
    author: Optional[OpenAlexAuthor] = None
    publications: List[OpenAlexWork] = field(default_factory=list)
    reason: Optional[str] = None


def short_id(openalex_id: str) -> str:
    """``https://openalex.org/A123`` -> ``A123``."""
    return openalex_id.rstrip("/").split("/")[-1] if openalex_id else openalex_id


def strip_orcid_url(orcid: Optional[str]) -> Optional[str]:
    return orcid.replace(ORCID_URL_PREFIX, "") if orcid else None


def recent_cutoff_year(now: Optional[datetime] = None) -> int:
    return (now or datetime.now()).year - RECENT_YEARS


def count_recent(works: List[OpenAlexWork], cutoff_year: int) -> int:
    return sum(1 for w in works if w.publication_year is not None and w.publication_year >= cutoff_year)


def _parse_author(data: Dict[str, Any]) -> OpenAlexAuthor:
    return OpenAlexAuthor(
        id=data["id"],
        orcid=strip_orcid_url(data.get("orcid")),
        display_name=data.get("display_name") or "",
        works_count=data.get("works_count") or 0,
        cited_by_count=data.get("cited_by_count") or 0,
        last_known_institutions=[
            Institution(
                id=inst.get("id", ""),
                display_name=inst.get("display_name", ""),
                country_code=inst.get("country_code"),
            )
            for inst in data.get("last_known_institutions") or []
        ],
        works_api_url=data.get("works_api_url"),
    )


def _parse_work(data: Dict[str, Any]) -> OpenAlexWork:
    source = ((data.get("primary_location") or {}).get("source")) or None
    return OpenAlexWork(
        id=data["id"],
        title=data.get("title") or "Untitled",
        publication_year=data.get("publication_year"),
        publication_date=data.get("publication_date"),
        doi=data.get("doi"),
        type=data.get("type"),
        source=WorkSource(
            id=source.get("id", ""),
            display_name=source.get("display_name", ""),
            type=source.get("type"),
            issn=source.get("issn"),
        ) if source else None,
    )


def _affiliations(author: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Affiliations with the most years first, else last known institutions."""
    affiliations = author.get("affiliations") or []
    if affiliations:
        ranked = sorted(affiliations, key=lambda a: len(a.get("years") or []), reverse=True)
        return [
            {
                "institution": (a.get("institution") or {}).get("display_name") or "Unknown",
                "countryCode": (a.get("institution") or {}).get("country_code"),
            }
            for a in ranked
        ]
    return [
        {"institution": inst.get("display_name"), "countryCode": inst.get("country_code")}
        for inst in author.get("last_known_institutions") or []
    ]


class OpenAlexService:
    """Client for the OpenAlex REST API."""

    def __init__(
        self,
        settings: OpenAlexSettings,
        venue_ids_provider: Optional[Callable[[], Set[str]]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {}
        if settings.email:
            # Polite pool access
            headers["User-Agent"] = f"LeaVerify/1.0 (mailto:{settings.email})"
        self.client = BaseAPIClient(settings.api_url, headers=headers, transport=transport)
        self._venue_ids_provider = venue_ids_provider or (lambda: set())

    def _get_author(self, path: str, label: str) -> Optional[OpenAlexAuthor]:
        try:
            return _parse_author(self.client.get(path))
        except APIError as e:
            if e.status_code == 404:
                logger.info("No OpenAlex author found for %s", label)
            else:
                logger.error("Failed to fetch author from OpenAlex (%s): %s", label, e)
            return None
        except httpx.HTTPError as e:
            logger.error("Failed to fetch author from OpenAlex (%s): %s", label, e)
            return None

    def get_author_by_orcid(self, orcid: str) -> Optional[OpenAlexAuthor]:
        return self._get_author(f"authors/orcid:{orcid}", f"ORCID {orcid}")

    def get_author_by_id(self, openalex_id: str) -> Optional[OpenAlexAuthor]:
        return self._get_author(f"authors/{openalex_id}", f"ID {openalex_id}")

    def _works_page(self, author_id: str, per_page: int) -> List[Dict[str, Any]]:
        data = self.client.get(
            "works",
            params={
                "filter": f"author.id:{short_id(author_id)}",
                "per_page": per_page,
                "sort": "publication_year:desc",
            },
        )
        return data.get("results") or []

    def get_author_works(self, author_id: str, limit: int = 100) -> List[OpenAlexWork]:
        """Works for an author, newest first."""
        try:
            return [_parse_work(w) for w in self._works_page(author_id, limit)]
        except (APIError, httpx.HTTPError) as e:
            logger.error("Failed to fetch works from OpenAlex: %s", e)
            return []

    def search_authors_by_name(self, name: str, limit: int = 10) -> List[AuthorSearchResult]:
        """
        Fuzzy author search.

        Each result carries its ORCID (if any), affiliations and three most
        recent works. A failed works lookup leaves that author's works empty.
        """
        try:
            data = self.client.get("authors", params={"search": name, "per_page": limit})
        except (APIError, httpx.HTTPError) as e:
            logger.error("OpenAlex search error: %s", e)
            return []

        results: List[AuthorSearchResult] = []
        for author in data.get("results") or []:
            openalex_id = short_id(author.get("id", ""))

            recent_works: List[Dict[str, Any]] = []
            try:
                for work in self._works_page(openalex_id, 3):
                    recent_works.append({
                        "title": work.get("title") or "Untitled",
                        "year": work.get("publication_year"),
                        "venue": ((work.get("primary_location") or {}).get("source") or {}).get("display_name"),
                        "doi": work.get("doi"),
                    })
            except (APIError, httpx.HTTPError) as e:
                logger.error("Failed to fetch works for author %s: %s", openalex_id, e)

            results.append(AuthorSearchResult(
                id=author.get("id", ""),
                open_alex_id=openalex_id,
                orcid=strip_orcid_url(author.get("orcid")),
                display_name=author.get("display_name") or "",
                works_count=author.get("works_count") or 0,
                cited_by_count=author.get("cited_by_count") or 0,
                affiliations=_affiliations(author),
                recent_works=recent_works,
            ))
        return results

    def summarize_author(self, author: OpenAlexAuthor, reason: str) -> PublicationCheckResult:
        """Publication data for an author found without an ORCID (no venue check)."""
        works = self.get_author_works(author.id)
        return PublicationCheckResult(
            meets_auto_approval_criteria=False,
            total_works=author.works_count,
            works_at_established_venues=0,
            recent_works=count_recent(works, recent_cutoff_year()),
            author=author,
            publications=works,
            reason=reason,
        )

    def check_auto_approval_criteria(self, orcid: str) -> PublicationCheckResult:
        """
        Check whether an ORCID meets the auto-approval criteria:

        - at least 3 works at established venues
        - at least 1 work in the last 5 years
        """
        result = PublicationCheckResult()

        author = self.get_author_by_orcid(orcid)
        if author is None:
            result.reason = "Author not found in OpenAlex"
            return result
        result.author = author
        result.total_works = author.works_count

        works = self.get_author_works(author.id)
        result.publications = works

        established = self._venue_ids_provider()
        cutoff_year = recent_cutoff_year()

        result.recent_works = count_recent(works, cutoff_year)
        result.works_at_established_venues = sum(
            1 for w in works if w.source is not None and w.source.id in established
        )

        enough_established = result.works_at_established_venues >= MIN_ESTABLISHED_VENUE_WORKS
        has_recent = result.recent_works >= MIN_RECENT_WORKS
        result.meets_auto_approval_criteria = enough_established and has_recent

        if not enough_established:
            result.reason = (
                f"Only {result.works_at_established_venues}/{MIN_ESTABLISHED_VENUE_WORKS} "
                "works at established venues"
            )
        elif not has_recent:
            result.reason = f"No works published in the last {RECENT_YEARS} years"

        return result
