from datetime import datetime

from lea_backend.config.settings import OpenAlexSettings
from lea_backend.services.openalex import OpenAlexService, short_id

from .conftest import json_response, routing_transport

ORCID = "0000-0002-1825-0097"
THIS_YEAR = datetime.now().year
ESTABLISHED = "https://openalex.org/S1"


def _author(orcid=f"https://orcid.org/{ORCID}"):
    return {
        "id": "https://openalex.org/A123",
        "orcid": orcid,
        "display_name": "Josiah Carberry",
        "works_count": 42,
        "cited_by_count": 7,
        "last_known_institutions": [{"id": "I1", "display_name": "Brown University", "country_code": "US"}],
    }


def _work(n, year, source_id):
    return {
        "id": f"https://openalex.org/W{n}",
        "title": f"Paper {n}",
        "publication_year": year,
        "doi": f"https://doi.org/10.1/{n}",
        "primary_location": {"source": {"id": source_id, "display_name": f"Venue {source_id}"}},
    }


def _service(works, author=None, calls=None, email=""):
    routes = {
        f"/authors/orcid:{ORCID}": lambda request: json_response(200, author or _author()),
        "/authors/A123": lambda request: json_response(200, author or _author()),
        "/works": lambda request: json_response(200, {"results": works}),
    }
    return OpenAlexService(
        OpenAlexSettings(api_url="https://api.openalex.test", email=email),
        venue_ids_provider=lambda: {ESTABLISHED},
        transport=routing_transport(routes, calls),
    )


class TestAuthorLookups:
    """Author and works fetches."""

    def test_get_author_by_orcid_strips_orcid_url(self):
        author = _service([]).get_author_by_orcid(ORCID)
        assert author.orcid == ORCID
        assert author.works_count == 42
        assert author.last_known_institutions[0].display_name == "Brown University"

    def test_get_author_not_found(self):
        assert _service([]).get_author_by_id("A999") is None

    def test_get_author_works_filters_by_short_id(self):
        calls = []
        works = _service([_work(1, THIS_YEAR, ESTABLISHED)], calls=calls).get_author_works("https://openalex.org/A123")
        assert works[0].title == "Paper 1"
        assert works[0].source.id == ESTABLISHED
        assert calls[0].url.params["filter"] == "author.id:A123"
        assert calls[0].url.params["sort"] == "publication_year:desc"

    def test_polite_pool_user_agent(self):
        calls = []
        _service([], calls=calls, email="ops@example.org").get_author_by_id("A123")
        assert "mailto:ops@example.org" in calls[0].headers["User-Agent"]

    def test_short_id(self):
        assert short_id("https://openalex.org/A123") == "A123"


class TestAutoApprovalCriteria:
    """Established-venue and recency thresholds."""

    def test_meets_criteria(self):
        works = [_work(i, THIS_YEAR - i, ESTABLISHED) for i in range(3)]
        result = _service(works).check_auto_approval_criteria(ORCID)
        assert result.meets_auto_approval_criteria is True
        assert result.works_at_established_venues == 3
        assert result.recent_works == 3
        assert result.reason is None

    def test_too_few_established_works(self):
        works = [_work(1, THIS_YEAR, ESTABLISHED), _work(2, THIS_YEAR, "https://openalex.org/S9")]
        result = _service(works).check_auto_approval_criteria(ORCID)
        assert result.meets_auto_approval_criteria is False
        assert result.reason == "Only 1/3 works at established venues"

    def test_no_recent_works(self):
        works = [_work(i, THIS_YEAR - 10, ESTABLISHED) for i in range(3)]
        result = _service(works).check_auto_approval_criteria(ORCID)
        assert result.meets_auto_approval_criteria is False
        assert result.reason == "No works published in the last 5 years"

    def test_author_not_found(self):
        service = OpenAlexService(OpenAlexSettings(api_url="https://api.openalex.test"), transport=routing_transport({}))
        result = service.check_auto_approval_criteria(ORCID)
        assert result.reason == "Author not found in OpenAlex"
        assert result.author is None


class TestSearchAuthors:
    """Name search with affiliations and recent works."""

    def test_search(self):
        author = {
            **_author(),
            "affiliations": [
                {"institution": {"display_name": "Short Stay"}, "years": [2020]},
                {"institution": {"display_name": "Long Stay", "country_code": "US"}, "years": [2018, 2019, 2020]},
            ],
        }
        routes = {
            "/authors": lambda request: json_response(200, {"results": [author]}),
            "/works": lambda request: json_response(200, {"results": [_work(1, THIS_YEAR, ESTABLISHED)]}),
        }
        service = OpenAlexService(OpenAlexSettings(api_url="https://api.openalex.test"), transport=routing_transport(routes))

        results = service.search_authors_by_name("carberry", limit=5)

        assert len(results) == 1
        assert results[0].open_alex_id == "A123"
        assert results[0].orcid == ORCID
        assert results[0].affiliations[0] == {"institution": "Long Stay", "countryCode": "US"}
        assert results[0].recent_works[0]["venue"] == f"Venue {ESTABLISHED}"

    def test_search_failure_returns_empty(self):
        service = OpenAlexService(OpenAlexSettings(api_url="https://api.openalex.test"), transport=routing_transport({}))
        assert service.search_authors_by_name("nobody") == []
