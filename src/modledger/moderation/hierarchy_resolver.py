"""
Ownership lookup for the account -> content hierarchy.

The hierarchy has exactly two levels: an account, and the records and
blobs its repository holds. ``ancestors_of`` returns the owning account of
a piece of content, or nothing. It never raises; when ownership cannot be
determined the content is treated as having no ancestors.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from modledger.datatypes.directive_datatypes import SubjectLevel
from modledger.datatypes.subject_datatypes import (
    AccountSubject,
    BlobSubject,
    RecordSubject,
    Subject,
    DID_PATTERN,
)
from modledger.util.logger import get_logger

logger = get_logger("hierarchy_resolver")


class OwnershipDirectory(Protocol):
    """Identity/graph lookup: which DID owns a record authority or blob."""

    def owner_of(self, subject: Subject) -> Optional[str]:
        ...


class StaticOwnershipDirectory:
    """In-memory ownership directory.

    Maps handles to DIDs (for record URIs written with a handle authority)
    and blob content hashes to the DID whose repository holds them.
    """

    def __init__(
        self,
        handles: Optional[Dict[str, str]] = None,
        blobs: Optional[Dict[str, str]] = None,
    ) -> None:
        self._handles: Dict[str, str] = dict(handles or {})
        self._blobs: Dict[str, str] = dict(blobs or {})

    def register_handle(self, handle: str, did: str) -> None:
        self._handles[handle.lower()] = did

    def register_blob(self, cid: str, did: str) -> None:
        self._blobs[cid] = did

    def owner_of(self, subject: Subject) -> Optional[str]:
        if isinstance(subject, RecordSubject):
            return self._handles.get(subject.authority.lower())
        if isinstance(subject, BlobSubject):
            return self._blobs.get(subject.cid)
        return None


def level_of(subject: Subject) -> SubjectLevel:
    return SubjectLevel.ACCOUNT if isinstance(subject, AccountSubject) else SubjectLevel.CONTENT


class HierarchyResolver:
    """Resolves the ancestor chain of a subject."""

    def __init__(self, directory: Optional[OwnershipDirectory] = None) -> None:
        self._directory = directory

    def ancestors_of(self, subject: Subject) -> List[Subject]:
        """
        Owning account of a record or blob as ``[AccountSubject]``;
        ``[]`` for an account or when the owner is unknown.
        """
        if isinstance(subject, AccountSubject):
            return []

        owner = self._owner_did(subject)
        if owner is None:
            logger.warning("[HIERARCHY] Owner of %s could not be resolved, treating as root", subject.key)
            return []
        if not DID_PATTERN.match(owner):
            logger.warning("[HIERARCHY] Owner %r of %s is not a DID, treating as root", owner, subject.key)
            return []
        return [AccountSubject(owner)]

    def _owner_did(self, subject: Subject) -> Optional[str]:
        if isinstance(subject, RecordSubject) and subject.authority.startswith("did:"):
            return subject.authority
        if isinstance(subject, BlobSubject) and subject.did is not None:
            return subject.did
        if self._directory is None:
            return None
        try:
            return self._directory.owner_of(subject)
        except Exception:
            logger.exception("[HIERARCHY] Ownership lookup failed for %s", subject.key)
            return None
