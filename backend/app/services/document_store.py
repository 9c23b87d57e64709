"""Read-side document store interface used by purchase verification.

The verifier only ever needs two reads: fetch a document by id, and run an
equality query over a collection. Adapters implement those two calls and
signal transient failures with ``DocumentStoreError``.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


class DocumentStoreError(Exception):
    """A store read failed (network, timeout, backend unavailable)."""


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time view of a single document."""

    collection: str
    id: str
    exists: bool
    data: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @classmethod
    def missing(cls, collection: str, document_id: str) -> "DocumentSnapshot":
        return cls(collection=collection, id=document_id, exists=False)


class DocumentStore(ABC):
    """Abstract document store client."""

    @abstractmethod
    async def fetch(self, collection: str, document_id: str) -> DocumentSnapshot:
        """Return the document, or a snapshot with ``exists=False`` if absent."""
        ...

    @abstractmethod
    async def query(self, collection: str, filters: Mapping[str, Any]) -> List[DocumentSnapshot]:
        """Return every document whose fields equal all of ``filters``."""
        ...


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed store for development and tests.

    ``fail_next(n)`` makes the next ``n`` reads raise ``DocumentStoreError``,
    and ``calls`` records every read so tests can count attempts.
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._pending_failures = 0
        self.calls: List[dict] = []

    def put(self, collection: str, document_id: str, data: Mapping[str, Any]) -> None:
        """Create or replace a document."""
        self._collections.setdefault(collection, {})[document_id] = dict(data)

    def update(self, collection: str, document_id: str, changes: Mapping[str, Any]) -> None:
        """Merge fields into an existing document."""
        try:
            self._collections[collection][document_id].update(changes)
        except KeyError:
            raise KeyError(f"{collection}/{document_id} does not exist") from None

    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        """Insert a document under a generated id and return the id."""
        docs = self._collections.setdefault(collection, {})
        document_id = f"{collection}-{len(docs) + 1}"
        docs[document_id] = dict(data)
        return document_id

    def fail_next(self, count: int = 1) -> None:
        self._pending_failures = count

    def _maybe_fail(self, method: str) -> None:
        if self._pending_failures > 0:
            self._pending_failures -= 1
            raise DocumentStoreError(f"Simulated {method} failure")

    async def fetch(self, collection: str, document_id: str) -> DocumentSnapshot:
        self.calls.append({"method": "fetch", "collection": collection, "id": document_id})
        self._maybe_fail("fetch")

        data = self._collections.get(collection, {}).get(document_id)
        if data is None:
            return DocumentSnapshot.missing(collection, document_id)
        return DocumentSnapshot(collection=collection, id=document_id, exists=True, data=dict(data))

    async def query(self, collection: str, filters: Mapping[str, Any]) -> List[DocumentSnapshot]:
        self.calls.append({"method": "query", "collection": collection, "filters": dict(filters)})
        self._maybe_fail("query")

        return [
            DocumentSnapshot(collection=collection, id=doc_id, exists=True, data=dict(data))
            for doc_id, data in self._collections.get(collection, {}).items()
            if all(data.get(key) == value for key, value in filters.items())
        ]

    def fetch_calls(self) -> int:
        return sum(1 for call in self.calls if call["method"] == "fetch")

    def query_calls(self) -> int:
        return sum(1 for call in self.calls if call["method"] == "query")

    def snapshot_of(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        data = self._collections.get(collection, {}).get(document_id)
        return dict(data) if data is not None else None
