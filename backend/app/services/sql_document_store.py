"""Document store adapter over async SQLAlchemy.

Each collection name maps to an ORM model; a document is a row keyed by the
model's ``uuid`` primary key and its field map is the row's column values.
Every read opens its own session so a poll never sees a stale identity map.
"""
import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Type

from sqlalchemy import inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.database import AsyncSessionLocal, Base
from app.models.artwork import Artwork
from app.models.purchase import Purchase
from app.services.document_store import DocumentSnapshot, DocumentStore, DocumentStoreError

logger = logging.getLogger(__name__)


def default_collections() -> Dict[str, Type[Base]]:
    """Collection names from settings mapped to their models."""
    return {
        settings.ARTWORKS_COLLECTION: Artwork,
        settings.PURCHASES_COLLECTION: Purchase,
    }


def row_to_dict(row: Base) -> Dict[str, Any]:
    return {attr.key: getattr(row, attr.key) for attr in inspect(row).mapper.column_attrs}


class SQLDocumentStore(DocumentStore):
    """Read-only document view of the relational tables."""

    def __init__(
        self,
        session_factory: sessionmaker = AsyncSessionLocal,
        collections: Optional[Mapping[str, Type[Base]]] = None,
    ):
        """
        Args:
            session_factory: Async session factory; one session per read
            collections: Collection name to model mapping (defaults from settings)
        """
        self.session_factory = session_factory
        self.collections = dict(collections or default_collections())

    def _model_for(self, collection: str) -> Type[Base]:
        try:
            return self.collections[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}") from None

    async def fetch(self, collection: str, document_id: str) -> DocumentSnapshot:
        model = self._model_for(collection)
        try:
            async with self.session_factory() as session:
                row = await session.get(model, document_id)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Fetch {collection}/{document_id} failed: {e}")
            raise DocumentStoreError(str(e)) from e

        if row is None:
            return DocumentSnapshot.missing(collection, document_id)
        return DocumentSnapshot(
            collection=collection,
            id=document_id,
            exists=True,
            data=row_to_dict(row),
        )

    async def query(self, collection: str, filters: Mapping[str, Any]) -> List[DocumentSnapshot]:
        model = self._model_for(collection)
        columns = inspect(model).columns
        unknown = [key for key in filters if key not in columns]
        if unknown:
            raise ValueError(f"Unknown fields for {collection}: {', '.join(unknown)}")

        stmt = select(model).where(*[columns[key] == value for key, value in filters.items()])
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = result.scalars().all()
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Query on {collection} failed: {e}")
            raise DocumentStoreError(str(e)) from e

        return [
            DocumentSnapshot(collection=collection, id=row.uuid, exists=True, data=row_to_dict(row))
            for row in rows
        ]


def get_document_store() -> DocumentStore:
    """FastAPI dependency for the verifier's store."""
    return SQLDocumentStore()
