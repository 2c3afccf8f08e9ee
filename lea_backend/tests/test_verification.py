from unittest.mock import MagicMock

import pytest

from lea_backend.config.settings import Settings
from lea_backend.services.bluesky import BlueskyProfile, ResolvedHandle
from lea_backend.services.openalex import OpenAlexAuthor, PublicationCheckResult
from lea_backend.services.ozone import LabelResult
from lea_backend.services.verification import (
    ALREADY_VERIFIED,
    VerificationService,
    VerifyInput,
)

ORCID = "0000-0002-1825-0097"
DID = "did:plc:alice"


@pytest.fixture
def collaborators():
    bluesky = MagicMock()
    bluesky.resolve_handle.return_value = ResolvedHandle(did=DID, handle="alice.bsky.social")
    openalex = MagicMock()
    openalex.check_auto_approval_criteria.return_value = PublicationCheckResult(
        meets_auto_approval_criteria=True,
        total_works=12,
        works_at_established_venues=4,
        recent_works=2,
        author=OpenAlexAuthor(id="https://openalex.org/A1", display_name="Alice Author", orcid=ORCID),
    )
    ozone = MagicMock()
    ozone.settings = Settings()
    ozone.apply_verified_researcher_label.return_value = LabelResult(success=True)
    ozone.remove_label.return_value = LabelResult(success=True)
    researchers = MagicMock()
    researchers.find_active.return_value = None
    researchers.get_by_did.return_value = None
    researchers.insert.return_value = "member-1"
    audit = MagicMock()
    return bluesky, openalex, ozone, researchers, audit


@pytest.fixture
def service(collaborators):
    return VerificationService(*collaborators, sleep=MagicMock())


class TestVerifyResearcher:
    """Single verification."""

    def test_verifies_with_orcid(self, service, collaborators):
        _, _, ozone, researchers, audit = collaborators

        result = service.verify_researcher(VerifyInput(bluesky_handle="alice", orcid_id=ORCID), "admin")

        assert result.success is True
        assert result.member == {
            "id": "member-1",
            "handle": "alice.bsky.social",
            "did": DID,
            "name": "Alice Author",
            "orcid": ORCID,
            "openAlexId": None,
        }
        assert result.publication_data["meetsAutoApprovalCriteria"] is True
        ozone.apply_verified_researcher_label.assert_called_once_with(DID)
        assert researchers.insert.call_args.kwargs["did"] == DID
        assert audit.log.call_args.args[:4] == ("researcher_verified", "admin", "member-1", "researcher")

    def test_unresolvable_handle(self, service, collaborators):
        collaborators[0].resolve_handle.return_value = None
        result = service.verify_researcher(VerifyInput(bluesky_handle="ghost", orcid_id=ORCID), "admin")
        assert result.success is False
        assert result.error == "Could not resolve Bluesky handle"

    def test_already_verified(self, service, collaborators):
        _, _, ozone, researchers, _ = collaborators
        researchers.find_active.return_value = {"id": "member-1"}

        result = service.verify_researcher(VerifyInput(bluesky_handle="alice", orcid_id=ORCID), "admin")

        assert result.error == ALREADY_VERIFIED
        ozone.apply_verified_researcher_label.assert_not_called()

    def test_label_failure_writes_nothing(self, service, collaborators):
        _, _, ozone, researchers, audit = collaborators
        ozone.apply_verified_researcher_label.return_value = LabelResult(success=False, error="timeout")

        result = service.verify_researcher(VerifyInput(bluesky_handle="alice", orcid_id=ORCID), "admin")

        assert result.error == "Failed to apply label: timeout"
        researchers.insert.assert_not_called()
        audit.log.assert_not_called()

    def test_reactivates_removed_researcher(self, service, collaborators):
        researchers = collaborators[3]
        researchers.get_by_did.return_value = {"id": "member-old", "is_active": False}

        result = service.verify_researcher(VerifyInput(bluesky_handle="alice", orcid_id=ORCID), "admin")

        assert result.member["id"] == "member-old"
        researchers.reactivate.assert_called_once()
        researchers.insert.assert_not_called()

    def test_website_only_uses_handle_as_name(self, service, collaborators):
        openalex = collaborators[1]
        result = service.verify_researcher(
            VerifyInput(bluesky_handle="alice", website="https://alice.example"), "admin",
        )
        assert result.success is True
        assert result.member["name"] == "alice.bsky.social"
        assert result.publication_data is None
        openalex.check_auto_approval_criteria.assert_not_called()

    def test_orcid_filled_from_openalex_author(self, service, collaborators):
        openalex = collaborators[1]
        openalex.get_author_by_id.return_value = OpenAlexAuthor(id="A1", display_name="Alice Author", orcid=ORCID)

        result = service.verify_researcher(VerifyInput(bluesky_handle="alice", open_alex_id="A1"), "admin")

        assert result.member["orcid"] == ORCID
        assert result.member["openAlexId"] == "A1"
        openalex.check_auto_approval_criteria.assert_called_once_with(ORCID)


class TestPreview:

    def test_preview_does_not_label(self, service, collaborators):
        ozone = collaborators[2]
        preview = service.preview("alice", orcid_id=ORCID)
        assert preview["bluesky"] == {"handle": "alice.bsky.social", "did": DID}
        assert preview["alreadyVerified"] is False
        assert preview["publicationData"]["author"]["displayName"] == "Alice Author"
        ozone.apply_verified_researcher_label.assert_not_called()

    def test_preview_without_openalex_data(self, service, collaborators):
        collaborators[1].get_author_by_id.return_value = None
        preview = service.preview("alice", open_alex_id="A404")
        assert preview["publicationData"]["reason"] == "No OpenAlex data available"
        assert preview["publicationData"]["totalWorks"] == 0

    def test_preview_unresolved_handle(self, service, collaborators):
        collaborators[0].resolve_handle.return_value = None
        assert service.preview("ghost", orcid_id=ORCID) is None


class TestBulkVerify:

    def test_mixed_outcomes(self, service, collaborators):
        researchers, audit = collaborators[3], collaborators[4]
        researchers.find_active.side_effect = [None, {"id": "x"}]

        outcome = service.bulk_verify(
            [
                {"bluesky_handle": "alice", "orcid_id": ORCID},
                {"bluesky_handle": "bob", "orcid_id": ORCID},
                {"bluesky_handle": "carol", "orcid_id": None},
            ],
            "admin",
        )

        assert outcome["summary"] == {"total": 3, "success": 1, "skipped": 1, "errors": 1}
        statuses = [r["status"] for r in outcome["results"]]
        assert statuses == ["success", "skipped", "error"]
        assert outcome["results"][2]["orcidId"] == "(missing)"
        assert audit.log.call_args.args[0] == "bulk_verify"

    def test_exception_in_one_entry_does_not_stop_batch(self, service, collaborators):
        bluesky = collaborators[0]
        bluesky.resolve_handle.side_effect = [RuntimeError("network down"), ResolvedHandle(did=DID, handle="b.test")]

        outcome = service.bulk_verify(
            [{"bluesky_handle": "a", "orcid_id": ORCID}, {"bluesky_handle": "b", "orcid_id": ORCID}],
            "admin",
        )

        assert [r["status"] for r in outcome["results"]] == ["error", "success"]
        assert outcome["results"][0]["message"] == "network down"

    def test_pauses_between_entries(self, collaborators):
        sleep = MagicMock()
        service = VerificationService(*collaborators, sleep=sleep)
        service.bulk_verify([{"bluesky_handle": "a", "orcid_id": ORCID}], "admin")
        sleep.assert_called_once_with(0.2)

    def test_too_many_entries(self, service):
        with pytest.raises(ValueError):
            service.bulk_verify([{"bluesky_handle": "a", "orcid_id": ORCID}] * 101, "admin")


class TestRemoveVerification:

    def test_remove(self, service, collaborators):
        _, _, ozone, researchers, audit = collaborators
        researchers.get.return_value = {"id": "member-1", "did": DID, "handle": "alice.bsky.social"}

        assert service.remove_verification("member-1", "admin") is True
        ozone.remove_label.assert_called_once_with(DID, "verified-researcher")
        researchers.deactivate.assert_called_once_with("member-1")
        assert audit.log.call_args.args[0] == "researcher_unverified"

    def test_remove_still_deactivates_when_label_removal_fails(self, service, collaborators):
        _, _, ozone, researchers, _ = collaborators
        researchers.get.return_value = {"id": "member-1", "did": DID, "handle": "alice"}
        ozone.remove_label.return_value = LabelResult(success=False, error="boom")

        assert service.remove_verification("member-1", "admin") is True
        researchers.deactivate.assert_called_once_with("member-1")

    def test_remove_unknown(self, service, collaborators):
        collaborators[3].get.return_value = None
        assert service.remove_verification("nope", "admin") is False


class TestMembersAndSync:

    def test_get_verified_members(self, service, collaborators):
        researchers = collaborators[3]
        researchers.list_members.return_value = [{"id": "m1", "open_alex_id": "A1"}]
        researchers.count_active.return_value = 7

        page = service.get_verified_members(10, 20)

        assert page == {"members": [{"id": "m1", "openAlexId": "A1"}], "total": 7}
        researchers.list_members.assert_called_once_with(10, 20)

    def test_sync_imports_missing_dids(self, service, collaborators):
        bluesky, _, ozone, researchers, audit = collaborators
        ozone.get_all_labeled_dids.return_value = ["did:a", "did:b", "did:c"]
        researchers.existing_dids.return_value = {"did:a"}
        bluesky.get_profile.side_effect = [
            BlueskyProfile(did="did:b", handle="b.test", display_name="Bee"),
            None,
        ]

        result = service.sync_from_ozone("admin")

        assert (result.total, result.imported, result.skipped) == (3, 2, 1)
        assert researchers.insert.call_args_list[0].kwargs["name"] == "Bee"
        assert researchers.insert.call_args_list[1].kwargs["handle"] == "did:c"
        assert audit.log.call_count == 2

    def test_sync_records_errors(self, service, collaborators):
        bluesky, _, ozone, researchers, _ = collaborators
        ozone.get_all_labeled_dids.return_value = ["did:a"]
        researchers.existing_dids.return_value = set()
        bluesky.get_profile.return_value = None
        researchers.insert.side_effect = RuntimeError("duplicate key")

        result = service.sync_from_ozone("admin")

        assert result.imported == 0
        assert result.errors == ["Failed to import did:a: duplicate key"]

    def test_sync_with_nothing_labeled(self, service, collaborators):
        collaborators[2].get_all_labeled_dids.return_value = []
        result = service.sync_from_ozone("admin")
        assert result.total == 0
        collaborators[3].existing_dids.assert_not_called()
