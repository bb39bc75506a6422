"""Tests for upsert service — change detection, bulk path, constraint fallback."""
from types import SimpleNamespace
from typing import List

import pytest

from app.core.exceptions import ConstraintViolationError, RecordUpsertError, StorageError
from app.schemas.import_schema import ImportOutcome, RecordError
from app.schemas.property_schema import MappedProperty
from app.services.mapper_service import property_to_row
from app.services.upsert_service import change_fingerprint, fold_outcomes, upsert_properties


def _records(count: int, **fields) -> List[MappedProperty]:
    return [MappedProperty(reference=f"NS{i}", **fields) for i in range(1, count + 1)]


class FakeStorage:
    """In-memory storage whose bulk path and individual records can be made to fail.

    `existing` references start with a bare row (id only), so they always
    differ from a mapped record; `stored` records start with their full values.
    """

    def __init__(self, bulk_error=None, failing=(), existing=(), stored=()):
        self.bulk_error = bulk_error
        self.failing = set(failing)
        self.rows = {}
        for reference in existing:
            self.rows[reference] = {"id": len(self.rows) + 1}
        for record in stored:
            self.rows[record.reference] = {"id": len(self.rows) + 1, **property_to_row(record)}
        self.bulk_calls = 0
        self.bulk_written: List[str] = []
        self.individual_calls: List[str] = []

    def _save(self, record) -> int:
        row_id = self.rows.get(record.reference, {}).get("id") or len(self.rows) + 1
        self.rows[record.reference] = {"id": row_id, **property_to_row(record)}
        return row_id

    async def existing_rows(self, references):
        return {r: dict(self.rows[r]) for r in references if r in self.rows}

    async def bulk_upsert_by_reference(self, records):
        self.bulk_calls += 1
        if self.bulk_error is not None:
            raise self.bulk_error
        for record in records:
            self.bulk_written.append(record.reference)
            self._save(record)

    async def update_by_reference(self, record):
        self.individual_calls.append(record.reference)
        if record.reference in self.failing:
            raise RecordUpsertError(f"Failed to update property {record.reference}: boom")
        if record.reference not in self.rows:
            return None
        return SimpleNamespace(id=self._save(record))

    async def insert(self, record):
        return SimpleNamespace(id=self._save(record))


@pytest.mark.asyncio
async def test_bulk_path_new_records_created():
    storage = FakeStorage()
    result = await upsert_properties(storage, _records(3))
    assert result.success == 3
    assert result.errors == []
    assert [o.action for o in result.outcomes] == ["created"] * 3
    assert storage.individual_calls == []


@pytest.mark.asyncio
async def test_bulk_path_classifies_existing_rows():
    unchanged = MappedProperty(reference="NS1", price=100)
    storage = FakeStorage(stored=[unchanged, MappedProperty(reference="NS2", price=100)])

    records = [unchanged, MappedProperty(reference="NS2", price=250), MappedProperty(reference="NS3")]
    result = await upsert_properties(storage, records)

    assert [(o.reference, o.action) for o in result.outcomes] == [
        ("NS1", "unchanged"),
        ("NS2", "updated"),
        ("NS3", "created"),
    ]
    assert result.outcomes[0].id == 1
    assert result.outcomes[1].id == 2
    assert result.success == 3
    assert storage.bulk_written == ["NS2", "NS3"]
    assert (result.count("created"), result.count("updated"), result.count("unchanged")) == (1, 1, 1)


@pytest.mark.asyncio
async def test_all_unchanged_skips_writes():
    records = _records(4, price=900)
    storage = FakeStorage(stored=records)
    result = await upsert_properties(storage, records)

    assert result.success == 4
    assert result.count("unchanged") == 4
    assert storage.bulk_calls == 0
    assert storage.individual_calls == []


@pytest.mark.asyncio
async def test_empty_batch_skips_storage():
    storage = FakeStorage()
    result = await upsert_properties(storage, [])
    assert result.success == 0
    assert storage.bulk_calls == 0


@pytest.mark.asyncio
async def test_constraint_violation_falls_back_per_record():
    storage = FakeStorage(
        bulk_error=ConstraintViolationError("duplicate key value violates unique constraint"),
        failing={"NS3", "NS7"},
        existing={"NS1", "NS2"},
    )
    result = await upsert_properties(storage, _records(10))

    assert storage.individual_calls == [f"NS{i}" for i in range(1, 11)]
    assert result.success == 8
    assert [e.reference for e in result.errors] == ["NS3", "NS7"]
    assert "boom" in result.errors[0].error

    actions = {o.reference: o.action for o in result.outcomes}
    assert actions["NS1"] == "updated"
    assert actions["NS2"] == "updated"
    assert actions["NS4"] == "created"
    assert all(o.id is not None for o in result.outcomes)


@pytest.mark.asyncio
async def test_fallback_leaves_unchanged_records_alone():
    same = MappedProperty(reference="NS1", price=5)
    storage = FakeStorage(
        bulk_error=ConstraintViolationError("unique constraint"),
        stored=[same],
    )
    result = await upsert_properties(storage, [same, MappedProperty(reference="NS2")])

    assert storage.individual_calls == ["NS2"]
    assert [o.action for o in result.outcomes] == ["unchanged", "created"]


@pytest.mark.asyncio
async def test_other_storage_error_propagates():
    storage = FakeStorage(bulk_error=StorageError("connection reset"))
    with pytest.raises(StorageError, match="connection reset"):
        await upsert_properties(storage, _records(2))
    assert storage.individual_calls == []


class TestChangeFingerprint:
    def test_ignores_id_and_admin_columns(self):
        row = property_to_row(MappedProperty(reference="NS1", title="A"))
        stored = {**row, "id": 9, "is_featured": True, "lifestyle": "Beach"}
        assert change_fingerprint(stored) == change_fingerprint(row)

    def test_detects_changed_column(self):
        row = property_to_row(MappedProperty(reference="NS1", images=["a.jpg"]))
        changed = property_to_row(MappedProperty(reference="NS1", images=["a.jpg", "b.jpg"]))
        assert change_fingerprint(row) != change_fingerprint(changed)

    def test_key_order_in_json_values_irrelevant(self):
        first = {"agent": [{"id": "1", "name": "Jane"}]}
        second = {"agent": [{"name": "Jane", "id": "1"}]}
        assert change_fingerprint(first) == change_fingerprint(second)


def test_fold_outcomes():
    result = fold_outcomes([
        ImportOutcome(reference="A", action="created", id=1),
        RecordError(reference="B", error="bad"),
        ImportOutcome(reference="C", action="updated", id=2),
    ])
    assert result.success == 2
    assert [o.reference for o in result.outcomes] == ["A", "C"]
    assert [str(e) for e in result.errors] == ["B: bad"]


def test_fold_outcomes_empty():
    result = fold_outcomes([])
    assert result.success == 0
    assert result.errors == []
    assert result.outcomes == []
