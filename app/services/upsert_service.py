"""Upsert service — change-aware bulk insert-or-update with a per-record fallback.

Before writing, the stored rows for the batch are loaded by reference and each
record is classified:
- no row → created
- row whose import-managed columns differ → updated
- row identical on those columns → unchanged, and not written at all

Created and updated records go out in one bulk statement. When a uniqueness
constraint rejects it, each of them is retried on its own (update by
reference, insert when no row exists) so one bad record only costs itself.
Any other storage failure is fatal for the import and propagates.
"""
import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Union

from app.core.exceptions import ConstraintViolationError
from app.core.logging import get_logger
from app.models.property_model import Property
from app.schemas.import_schema import ImportOutcome, RecordError, UpsertResult
from app.schemas.property_schema import MappedProperty
from app.services.mapper_service import property_to_row
from app.services.storage_service import MUTABLE_COLUMNS

logger = get_logger(__name__)


class PropertyStore(Protocol):
    async def existing_rows(self, references: List[str]) -> Dict[str, Dict[str, Any]]: ...

    async def bulk_upsert_by_reference(self, records: List[MappedProperty]) -> None: ...

    async def update_by_reference(self, record: MappedProperty) -> Optional[Property]: ...

    async def insert(self, record: MappedProperty) -> Property: ...


def change_fingerprint(values: Mapping[str, Any]) -> str:
    """Stable digest of the columns an import writes, for change detection."""
    return json.dumps(
        {column: values.get(column) for column in MUTABLE_COLUMNS},
        sort_keys=True,
        default=str,
    )


def fold_outcomes(items: Iterable[Union[ImportOutcome, RecordError]]) -> UpsertResult:
    """Aggregate per-record results into (success count, errors, outcomes)."""
    result = UpsertResult()
    for item in items:
        if isinstance(item, RecordError):
            result.errors.append(item)
        else:
            result.outcomes.append(item)
            result.success += 1
    return result


async def _upsert_one(storage: PropertyStore, record: MappedProperty) -> Union[ImportOutcome, RecordError]:
    try:
        row = await storage.update_by_reference(record)
        if row is not None:
            return ImportOutcome(reference=record.reference, action="updated", id=row.id)
        row = await storage.insert(record)
        return ImportOutcome(reference=record.reference, action="created", id=row.id)
    except Exception as e:
        logger.error("Upsert failed for %s: %s", record.reference, str(e), extra={"reference": record.reference})
        return RecordError(reference=record.reference, error=str(e))


async def _write(
    storage: PropertyStore,
    records: List[MappedProperty],
    existing: Dict[str, Dict[str, Any]],
) -> List[Union[ImportOutcome, RecordError]]:
    if not records:
        return []

    try:
        await storage.bulk_upsert_by_reference(records)
    except ConstraintViolationError as e:
        logger.warning(
            "Bulk upsert failed, falling back to individual processing: %s", e.message,
        )
    else:
        return [
            ImportOutcome(
                reference=record.reference,
                action="updated" if record.reference in existing else "created",
                id=existing.get(record.reference, {}).get("id"),
            )
            for record in records
        ]

    outcomes = [await _upsert_one(storage, record) for record in records]
    logger.info(
        "Individual upsert finished: %d succeeded, %d failed",
        sum(1 for o in outcomes if isinstance(o, ImportOutcome)),
        sum(1 for o in outcomes if isinstance(o, RecordError)),
    )
    return outcomes


async def upsert_properties(storage: PropertyStore, records: List[MappedProperty]) -> UpsertResult:
    """Persist new and changed records, skipping rows that already match.

    Raises:
        StorageError: loading existing rows failed, or a bulk failure other
            than a uniqueness violation.
    """
    if not records:
        return UpsertResult()

    existing = await storage.existing_rows([record.reference for record in records])

    unchanged: Dict[str, ImportOutcome] = {}
    pending: List[MappedProperty] = []
    for record in records:
        stored = existing.get(record.reference)
        if stored is not None and change_fingerprint(stored) == change_fingerprint(property_to_row(record)):
            unchanged[record.reference] = ImportOutcome(
                reference=record.reference, action="unchanged", id=stored.get("id"),
            )
        else:
            pending.append(record)

    written = await _write(storage, pending, existing)
    by_reference = {item.reference: item for item in written}

    result = fold_outcomes(
        unchanged.get(record.reference) or by_reference[record.reference]
        for record in records
    )
    logger.info(
        "Upsert finished: %d created, %d updated, %d unchanged, %d failed",
        result.count("created"),
        result.count("updated"),
        result.count("unchanged"),
        len(result.errors),
    )
    return result
