"""Storage service — persistence of mapped properties, keyed by reference.

Every operation opens its own session from the factory and commits or rolls
back before returning; no session outlives a single call.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.exceptions import ConstraintViolationError, RecordUpsertError, StorageError
from app.core.logging import get_logger
from app.models.property_model import Property
from app.schemas.property_schema import MappedProperty
from app.services.mapper_service import property_to_row

logger = get_logger(__name__)

_UNIQUE_VIOLATION_SQLSTATE = "23505"

# Columns an import may overwrite. Editorial flags set from the admin side
# (featured, exclusive, lifestyle, brochure, disabled) are left alone.
MUTABLE_COLUMNS = (
    "listing_type",
    "property_type",
    "sub_community",
    "community",
    "region",
    "country",
    "agent",
    "price",
    "currency",
    "bedrooms",
    "bathrooms",
    "property_status",
    "title",
    "description",
    "sqfeet_area",
    "sqfeet_builtup",
    "amenities",
    "is_fitted",
    "is_furnished",
    "permit",
    "images",
    "development",
    "neighbourhood",
    "sold",
)


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when an IntegrityError comes from a unique constraint / index."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == _UNIQUE_VIOLATION_SQLSTATE:
        return True
    return "unique" in str(orig).lower()


def _insert_for(db: AsyncSession):
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert
    return sqlite_insert


class PropertyStorage:
    """Async repository over the `properties` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], chunk_size: int = 200):
        self._session_factory = session_factory
        self.chunk_size = chunk_size

    async def bulk_upsert_by_reference(self, records: List[MappedProperty]) -> None:
        """INSERT … ON CONFLICT (reference) DO UPDATE for all records, in one transaction.

        Raises:
            ConstraintViolationError: a uniqueness constraint rejected the batch.
            StorageError: any other database failure.
        """
        if not records:
            return

        rows = [property_to_row(record) for record in records]
        now = datetime.now(timezone.utc)

        async with self._session_factory() as db:
            insert = _insert_for(db)
            try:
                for start in range(0, len(rows), self.chunk_size):
                    stmt = insert(Property).values(rows[start:start + self.chunk_size])
                    stmt = stmt.on_conflict_do_update(
                        index_elements=[Property.reference],
                        set_={
                            **{column: stmt.excluded[column] for column in MUTABLE_COLUMNS},
                            "updated_at": now,
                        },
                    )
                    await db.execute(stmt)
                await db.commit()
            except IntegrityError as e:
                await db.rollback()
                if is_unique_violation(e):
                    raise ConstraintViolationError(
                        f"Bulk upsert violated a unique constraint: {e.orig}",
                        detail={"records": len(records)},
                    ) from e
                raise StorageError(f"Bulk upsert failed: {e.orig}") from e
            except SQLAlchemyError as e:
                await db.rollback()
                raise StorageError(f"Bulk upsert failed: {e}") from e

        logger.info("Bulk upserted %d properties", len(records))

    async def existing_rows(self, references: List[str]) -> Dict[str, Dict[str, Any]]:
        """Stored id and import-managed column values, keyed by reference.

        References with no row are absent from the result.
        """
        columns = [Property.id, Property.reference] + [getattr(Property, c) for c in MUTABLE_COLUMNS]
        unique_refs = list(dict.fromkeys(references))
        found: Dict[str, Dict[str, Any]] = {}
        try:
            async with self._session_factory() as db:
                for start in range(0, len(unique_refs), self.chunk_size):
                    chunk = unique_refs[start:start + self.chunk_size]
                    result = await db.execute(select(*columns).where(Property.reference.in_(chunk)))
                    for row in result.mappings():
                        found[row["reference"]] = dict(row)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load existing properties: {e}") from e
        return found

    async def get_by_reference(self, reference: str) -> Optional[Property]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(Property).where(Property.reference == reference))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load property {reference}: {e}") from e

    async def update_by_reference(self, record: MappedProperty) -> Optional[Property]:
        """Update the row holding record.reference. Returns None when no such row exists."""
        async with self._session_factory() as db:
            try:
                result = await db.execute(select(Property).where(Property.reference == record.reference))
                existing = result.scalar_one_or_none()
                if existing is None:
                    return None

                row = property_to_row(record)
                for column in MUTABLE_COLUMNS:
                    setattr(existing, column, row[column])
                existing.updated_at = datetime.now(timezone.utc)
                await db.commit()
                return existing
            except SQLAlchemyError as e:
                await db.rollback()
                raise RecordUpsertError(
                    f"Failed to update property {record.reference}: {e}",
                    detail={"reference": record.reference},
                ) from e

    async def insert(self, record: MappedProperty) -> Property:
        async with self._session_factory() as db:
            try:
                prop = Property(**property_to_row(record))
                db.add(prop)
                await db.commit()
                return prop
            except SQLAlchemyError as e:
                await db.rollback()
                raise RecordUpsertError(
                    f"Failed to insert property {record.reference}: {e}",
                    detail={"reference": record.reference},
                ) from e
