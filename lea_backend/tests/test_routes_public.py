from datetime import datetime

LEA_PROPOSAL_PREFIX = "at://did:plc:7c7tx56n64jhzezlwox5dja6/social.pmsky.proposal/"


def _note_row(**overrides):
    row = {
        "id": "note-1",
        "post_uri": "at://did:plc:bob/app.bsky.feed.post/1",
        "summary": "This paper was retracted.",
        "reasons": '["factual_error"]',
        "aid": "abc",
        "label_status": "rated_helpful",
        "created_at": datetime(2024, 1, 2, 3, 4, 5, 678000),
        "status": "CRH",
    }
    row.update(overrides)
    return row


def _researcher_row(**overrides):
    row = {
        "id": "r1",
        "did": "did:plc:alice",
        "handle": "alice.bsky.social",
        "orcid": "0000-0002-1825-0097",
        "name": "Alice",
        "institution": "Brown University",
        "research_topics": '["astronomy"]',
        "verified_at": datetime(2024, 5, 6, 7, 8, 9),
        "is_active": True,
        "open_alex_id": "A1",
    }
    row.update(overrides)
    return row


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_unknown_route(self, client):
        response = client.get("/api/nope")
        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}


class TestCommunityNoteProposals:
    """GET /api/community-notes/proposals"""

    def test_uri_required(self, client):
        response = client.get("/api/community-notes/proposals")
        assert response.status_code == 400
        assert response.json() == {"error": "uri query parameter is required"}

    def test_empty(self, client, services):
        services.community_notes.list_post_proposals.return_value = []
        response = client.get("/api/community-notes/proposals", params={"uri": "at://x"})
        assert response.status_code == 200
        assert response.json() == {"proposals": []}

    def test_proposal_shape(self, client, services):
        services.community_notes.list_post_proposals.return_value = [_note_row()]

        response = client.get("/api/community-notes/proposals", params={"uri": "at://did:plc:bob/app.bsky.feed.post/1"})

        assert response.json() == {"proposals": [{
            "uri": LEA_PROPOSAL_PREFIX + "note-1",
            "subject": "at://did:plc:bob/app.bsky.feed.post/1",
            "body": "This paper was retracted.",
            "reasons": ["factual_error"],
            "aid": "abc",
            "status": "CRH",
            "labelStatus": "rated_helpful",
            "createdAt": "2024-01-02T03:04:05.678Z",
        }]}
        services.community_notes.list_post_proposals.assert_called_once_with("at://did:plc:bob/app.bsky.feed.post/1")

    def test_defaults_for_missing_values(self, client, services):
        services.community_notes.list_post_proposals.return_value = [
            _note_row(reasons="not json", aid=None, status=None, label_status=None),
        ]
        proposal = client.get("/api/community-notes/proposals", params={"uri": "at://x"}).json()["proposals"][0]
        assert proposal["reasons"] == []
        assert proposal["aid"] == ""
        assert proposal["status"] == "NMR"
        assert proposal["labelStatus"] == "none"

    def test_database_failure(self, client, services):
        services.community_notes.list_post_proposals.side_effect = RuntimeError("db down")
        response = client.get("/api/community-notes/proposals", params={"uri": "at://x"})
        assert response.status_code == 500
        assert response.json() == {"error": "An error occurred"}


class TestResearchers:
    """GET /api/researchers and /api/researchers/recent"""

    def test_list(self, client, services):
        services.researchers.list_active.return_value = [_researcher_row()]

        response = client.get("/api/researchers")

        assert response.status_code == 200
        assert response.headers["cache-control"] == "public, s-maxage=300, stale-while-revalidate=600"
        assert response.json() == {"researchers": [{
            "did": "did:plc:alice",
            "handle": "alice.bsky.social",
            "orcid": "0000-0002-1825-0097",
            "name": "Alice",
            "institution": "Brown University",
            "researchTopics": ["astronomy"],
            "verifiedAt": "2024-05-06T07:08:09.000Z",
            "isActive": True,
            "openAlexId": "A1",
        }]}

    def test_invalid_topics_become_null(self, client, services):
        services.researchers.list_active.return_value = [_researcher_row(research_topics="{broken")]
        researcher = client.get("/api/researchers").json()["researchers"][0]
        assert researcher["researchTopics"] is None

    def test_list_failure(self, client, services):
        services.researchers.list_active.side_effect = RuntimeError("db down")
        response = client.get("/api/researchers")
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch researchers"}

    def test_recent(self, client, services):
        services.members.list_recent.return_value = [{
            "bluesky_did": "did:plc:alice",
            "bluesky_handle": "alice.bsky.social",
            "display_name": "Alice",
            "verified_at": datetime(2024, 5, 6, 7, 8, 9),
        }]

        response = client.get("/api/researchers/recent")

        assert response.json() == {"researchers": [{
            "did": "did:plc:alice",
            "handle": "alice.bsky.social",
            "name": "Alice",
            "verifiedAt": "2024-05-06T07:08:09.000Z",
        }]}
        services.members.list_recent.assert_called_once_with(20)
        assert "cache-control" not in response.headers

    def test_recent_failure(self, client, services):
        services.members.list_recent.side_effect = RuntimeError("db down")
        response = client.get("/api/researchers/recent")
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to fetch recent researchers"}
