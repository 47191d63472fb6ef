"""
Unit tests for subject identity types.
"""

import pytest

from modledger.datatypes.subject_datatypes import (
    AccountSubject,
    BlobSubject,
    RecordSubject,
    SubjectType,
    ensure_subject,
    subject_columns,
    subject_from_dict,
    subject_from_row,
)
from modledger.moderation.errors import InvalidSubject

POST_URI = "at://did:example:alice/app.bsky.feed.post/3jzfcijpj2z2a"
POST_CID = "bafyreihxrwd3wbd7kc5mnyyv5gekyzhvzgxzcxq4blqmkhdxyg57qzrskm"


class TestAccountSubject:
    def test_valid_did(self):
        subject = AccountSubject("did:example:alice")
        assert subject.subject_type is SubjectType.ACCOUNT
        assert subject.key == "account:did:example:alice"
        assert str(subject) == "did:example:alice"

    def test_plc_did(self):
        assert AccountSubject("did:plc:ewvi7nxzyoun6zhxrhs64oiz").did.startswith("did:plc:")

    @pytest.mark.parametrize("did", ["", "alice", "did:", "did:example:", "DID:example:alice", None, 42])
    def test_invalid_did_rejected(self, did):
        with pytest.raises(InvalidSubject):
            AccountSubject(did)

    def test_equality_and_hash(self):
        assert AccountSubject("did:example:alice") == AccountSubject("did:example:alice")
        assert len({AccountSubject("did:example:alice"), AccountSubject("did:example:alice")}) == 1


class TestRecordSubject:
    def test_uri_parts(self):
        subject = RecordSubject(POST_URI, POST_CID)
        assert subject.authority == "did:example:alice"
        assert subject.collection == "app.bsky.feed.post"
        assert subject.rkey == "3jzfcijpj2z2a"
        assert subject.key == f"record:{POST_URI}#{POST_CID}"

    def test_handle_authority_allowed(self):
        subject = RecordSubject("at://alice.test/app.bsky.actor.profile/self", POST_CID)
        assert subject.authority == "alice.test"

    @pytest.mark.parametrize(
        "uri, cid",
        [
            ("https://example.com/post/1", POST_CID),
            ("at://did:example:alice/app.bsky.feed.post", POST_CID),
            (POST_URI, ""),
            (POST_URI, "not a cid"),
            (POST_URI, None),
        ],
    )
    def test_malformed_rejected(self, uri, cid):
        with pytest.raises(InvalidSubject):
            RecordSubject(uri, cid)

    def test_different_cid_is_different_subject(self):
        assert RecordSubject(POST_URI, POST_CID) != RecordSubject(POST_URI, "bafyreiother")


class TestBlobSubject:
    def test_owner_hint_not_part_of_equality(self):
        assert BlobSubject("bafkreiavatar", "did:example:alice") == BlobSubject("bafkreiavatar")
        assert BlobSubject("bafkreiavatar").key == "blob:bafkreiavatar"

    def test_invalid_owner_rejected(self):
        with pytest.raises(InvalidSubject):
            BlobSubject("bafkreiavatar", "alice")

    def test_empty_cid_rejected(self):
        with pytest.raises(InvalidSubject):
            BlobSubject("")


class TestSubjectFromDict:
    def test_tagged_shapes(self):
        assert subject_from_dict({"$type": "repoRef", "did": "did:example:alice"}) == AccountSubject("did:example:alice")
        assert subject_from_dict({"$type": "com.atproto.repo.strongRef", "uri": POST_URI, "cid": POST_CID}) == RecordSubject(POST_URI, POST_CID)
        blob = subject_from_dict({"$type": "blobRef", "cid": "bafkreiavatar", "did": "did:example:alice"})
        assert blob == BlobSubject("bafkreiavatar")
        assert blob.did == "did:example:alice"

    def test_inferred_shapes(self):
        assert isinstance(subject_from_dict({"did": "did:example:alice"}), AccountSubject)
        assert isinstance(subject_from_dict({"uri": POST_URI, "cid": POST_CID}), RecordSubject)
        assert isinstance(subject_from_dict({"cid": "bafkreiavatar"}), BlobSubject)

    @pytest.mark.parametrize("data", [{}, {"$type": "unknown", "did": "did:example:a"}, "did:example:alice", {"did": ""}])
    def test_rejects_unrecognised(self, data):
        with pytest.raises(InvalidSubject):
            subject_from_dict(data)

    def test_round_trip_through_to_dict(self):
        subject = RecordSubject(POST_URI, POST_CID)
        assert subject_from_dict(subject.to_dict()) == subject

    def test_ensure_subject_passthrough(self):
        subject = AccountSubject("did:example:alice")
        assert ensure_subject(subject) is subject


class TestStorageColumns:
    def test_record_columns_keep_repo_did(self):
        subject_type, key, did, uri, cid = subject_columns(RecordSubject(POST_URI, POST_CID))
        assert (subject_type, did, uri, cid) == ("record", "did:example:alice", POST_URI, POST_CID)
        assert subject_from_row(subject_type, did, uri, cid) == RecordSubject(POST_URI, POST_CID)

    def test_handle_record_has_no_repo_did(self):
        _, _, did, _, _ = subject_columns(RecordSubject("at://alice.test/app.bsky.actor.profile/self", POST_CID))
        assert did is None

    def test_blob_row_restores_owner(self):
        row = subject_columns(BlobSubject("bafkreiavatar", "did:example:alice"))
        restored = subject_from_row(row[0], row[2], row[3], row[4])
        assert restored.did == "did:example:alice"
