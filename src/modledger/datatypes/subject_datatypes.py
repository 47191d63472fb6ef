"""
Subject identity types.

A subject is what a moderation action or report targets: an account
(identified by its DID), a record (AT URI + content hash) or a blob
(content hash). Subjects are immutable values compared by type and fields;
construction validates the identifiers and raises ``InvalidSubject``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from modledger.moderation.errors import InvalidSubject

DID_PATTERN = re.compile(r"^did:[a-z]+:[a-zA-Z0-9._:%-]*[a-zA-Z0-9._-]$")
CID_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")
AT_URI_PATTERN = re.compile(r"^at://(?P<authority>[^/\s]+)/(?P<collection>[a-zA-Z0-9.-]+)/(?P<rkey>[a-zA-Z0-9._:~-]+)$")


class SubjectType(Enum):
    """Tag of the subject union."""

    ACCOUNT = "account"
    RECORD = "record"
    BLOB = "blob"

    def __str__(self) -> str:
        return self.value


def _check_did(did: Any) -> str:
    if not isinstance(did, str) or not DID_PATTERN.match(did):
        raise InvalidSubject(f"invalid DID: {did!r}")
    return did


def _check_cid(cid: Any) -> str:
    if not isinstance(cid, str) or not CID_PATTERN.match(cid):
        raise InvalidSubject(f"invalid content hash: {cid!r}")
    return cid


@dataclass(frozen=True, slots=True)
class AccountSubject:
    """An account, identified by its DID."""

    did: str

    def __post_init__(self) -> None:
        _check_did(self.did)

    @property
    def subject_type(self) -> SubjectType:
        return SubjectType.ACCOUNT

    @property
    def key(self) -> str:
        return f"account:{self.did}"

    def to_dict(self) -> Dict[str, Any]:
        return {"$type": "repoRef", "did": self.did}

    def __str__(self) -> str:
        return self.did


@dataclass(frozen=True, slots=True)
class RecordSubject:
    """A specific version of a record: its AT URI plus content hash."""

    uri: str
    cid: str

    def __post_init__(self) -> None:
        if not isinstance(self.uri, str) or not AT_URI_PATTERN.match(self.uri):
            raise InvalidSubject(f"invalid record URI: {self.uri!r}")
        _check_cid(self.cid)

    @property
    def subject_type(self) -> SubjectType:
        return SubjectType.RECORD

    @property
    def key(self) -> str:
        return f"record:{self.uri}#{self.cid}"

    @property
    def authority(self) -> str:
        """The repository part of the URI (a DID or a handle)."""
        return AT_URI_PATTERN.match(self.uri).group("authority")

    @property
    def collection(self) -> str:
        return AT_URI_PATTERN.match(self.uri).group("collection")

    @property
    def rkey(self) -> str:
        return AT_URI_PATTERN.match(self.uri).group("rkey")

    def to_dict(self) -> Dict[str, Any]:
        return {"$type": "strongRef", "uri": self.uri, "cid": self.cid}

    def __str__(self) -> str:
        return self.uri


@dataclass(frozen=True, slots=True)
class BlobSubject:
    """A media blob, identified by its content hash.

    ``did`` optionally names the repository the blob was uploaded to. It is
    an ownership hint only and takes no part in equality.
    """

    cid: str
    did: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        _check_cid(self.cid)
        if self.did is not None:
            _check_did(self.did)

    @property
    def subject_type(self) -> SubjectType:
        return SubjectType.BLOB

    @property
    def key(self) -> str:
        return f"blob:{self.cid}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"$type": "blobRef", "cid": self.cid}
        if self.did is not None:
            data["did"] = self.did
        return data

    def __str__(self) -> str:
        return self.cid


Subject = Union[AccountSubject, RecordSubject, BlobSubject]

_TYPE_ALIASES = {
    "repoRef": SubjectType.ACCOUNT,
    "com.atproto.admin.defs#repoRef": SubjectType.ACCOUNT,
    "account": SubjectType.ACCOUNT,
    "strongRef": SubjectType.RECORD,
    "com.atproto.repo.strongRef": SubjectType.RECORD,
    "record": SubjectType.RECORD,
    "blobRef": SubjectType.BLOB,
    "blob": SubjectType.BLOB,
}


def subject_from_dict(data: Mapping[str, Any]) -> Subject:
    """Build a subject from its API shape.

    The ``$type`` tag is optional: without it the shape is inferred from the
    fields present (``uri`` means a record, ``cid`` alone a blob, ``did``
    alone an account).

    Raises:
        InvalidSubject: If the mapping is not a recognisable subject.
    """
    if not isinstance(data, Mapping):
        raise InvalidSubject(f"subject must be a mapping, got {type(data).__name__}")

    tag = data.get("$type")
    if tag is not None:
        subject_type = _TYPE_ALIASES.get(tag)
        if subject_type is None:
            raise InvalidSubject(f"unknown subject type: {tag!r}")
    elif "uri" in data:
        subject_type = SubjectType.RECORD
    elif "cid" in data:
        subject_type = SubjectType.BLOB
    elif "did" in data:
        subject_type = SubjectType.ACCOUNT
    else:
        raise InvalidSubject(f"cannot infer subject type from {dict(data)!r}")

    if subject_type is SubjectType.ACCOUNT:
        return AccountSubject(data.get("did"))
    if subject_type is SubjectType.RECORD:
        return RecordSubject(data.get("uri"), data.get("cid"))
    return BlobSubject(data.get("cid"), data.get("did"))


def subject_from_row(subject_type: str, did: Optional[str], uri: Optional[str], cid: Optional[str]) -> Subject:
    """Rebuild a subject from its stored columns."""
    kind = SubjectType(subject_type)
    if kind is SubjectType.ACCOUNT:
        return AccountSubject(did)
    if kind is SubjectType.RECORD:
        return RecordSubject(uri, cid)
    return BlobSubject(cid, did)


def subject_columns(subject: Subject) -> tuple:
    """Return ``(subject_type, subject_key, did, uri, cid)`` for storage."""
    if isinstance(subject, AccountSubject):
        return (subject.subject_type.value, subject.key, subject.did, None, None)
    if isinstance(subject, RecordSubject):
        repo = subject.authority if subject.authority.startswith("did:") else None
        return (subject.subject_type.value, subject.key, repo, subject.uri, subject.cid)
    if isinstance(subject, BlobSubject):
        return (subject.subject_type.value, subject.key, subject.did, None, subject.cid)
    raise InvalidSubject(f"not a subject: {subject!r}")


def ensure_subject(subject: Any) -> Subject:
    """Accept a subject instance or its API mapping; reject anything else."""
    if isinstance(subject, (AccountSubject, RecordSubject, BlobSubject)):
        return subject
    return subject_from_dict(subject)
