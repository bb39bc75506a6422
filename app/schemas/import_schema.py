"""Pydantic schemas for the import report."""
from typing import List, Literal, Optional

from pydantic import BaseModel


class RecordError(BaseModel):
    reference: str
    error: str

    def __str__(self) -> str:
        return f"{self.reference}: {self.error}"


class ImportOutcome(BaseModel):
    reference: str
    action: Literal["created", "updated", "unchanged"]
    id: Optional[int] = None


class UpsertResult(BaseModel):
    """Aggregate of a batch upsert: successes plus per-record failures."""
    success: int = 0
    errors: List[RecordError] = []
    outcomes: List[ImportOutcome] = []

    def count(self, action: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.action == action)


class ImportResult(BaseModel):
    """Report returned once per import run. Not persisted."""
    message: str
    total: int
    processed: int
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: int
    error_details: List[str] = []
    results: List[ImportOutcome] = []
    processing_time_ms: int
    timestamp: str
