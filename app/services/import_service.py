"""Import service — runs one vendor feed import end to end.

Stages, strictly in order:
1. Acquire the feed (inline POST body, or remote fetch via FeedClient)
2. Parse the XML into property nodes (parser_service)
3. Map every node to a MappedProperty, collecting per-record errors (mapper_service)
4. Upsert new and changed records, bulk with per-record fallback (upsert_service)
5. Build the ImportResult report

Per-record failures never stop the run. Acquisition, parse and storage-wide
failures abort it; those exceptions leave here with `timestamp` and
`processing_time_ms` added to their detail.

NOTE: FeedClient uses synchronous `requests`, so the fetch is wrapped with
`asyncio.to_thread()` to avoid blocking the event loop.
"""
import asyncio
import time
from datetime import datetime, timezone
from typing import Optional

from app.core.exceptions import AppException, NoValidRecordsError
from app.core.logging import get_logger, set_import_id
from app.schemas.import_schema import ImportResult
from app.services.feed_service import FeedClient
from app.services.mapper_service import DEFAULT_TABLES, MappingTables, map_feed
from app.services.parser_service import parse_feed
from app.services.upsert_service import PropertyStore, upsert_properties

logger = get_logger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _with_timing(exc: AppException, started: float) -> None:
    detail = dict(exc.detail) if isinstance(exc.detail, dict) else {}
    detail.setdefault("error", exc.message)
    detail["timestamp"] = getattr(exc, "timestamp", None) or _now_iso()
    detail["processing_time_ms"] = _elapsed_ms(started)
    exc.detail = detail


async def run_import(
    payload: Optional[str],
    storage: PropertyStore,
    feed_client: FeedClient,
    results_limit: int = 100,
    tables: MappingTables = DEFAULT_TABLES,
) -> ImportResult:
    """Import one feed. `payload` is an inline feed document, or None to fetch remotely."""
    import_id = set_import_id()
    started = time.perf_counter()
    logger.info("Starting property import %s (%s feed)", import_id, "inline" if payload is not None else "remote")

    try:
        raw = payload if payload is not None else await asyncio.to_thread(feed_client.fetch)
        nodes = parse_feed(raw)

        records, errors = map_feed(nodes, tables)
        if not records:
            raise NoValidRecordsError(
                "No valid properties to import",
                detail={"errors": [str(e) for e in errors]},
            )

        upserted = await upsert_properties(storage, records)
    except AppException as e:
        logger.error(
            "Import %s aborted: %s", import_id, e.message,
            extra={"duration": _elapsed_ms(started)},
        )
        _with_timing(e, started)
        raise

    all_errors = [str(e) for e in errors + upserted.errors]
    processing_time = _elapsed_ms(started)

    logger.info(
        "Import %s finished: %d/%d processed, %d errors",
        import_id, upserted.success, len(nodes), len(all_errors),
        extra={
            "duration": processing_time,
            "total": len(nodes),
            "processed": upserted.success,
            "errors": len(all_errors),
        },
    )

    return ImportResult(
        message=(
            "Import completed successfully" if not all_errors
            else "Import completed with some errors"
        ),
        total=len(nodes),
        processed=upserted.success,
        inserted=upserted.count("created"),
        updated=upserted.count("updated"),
        unchanged=upserted.count("unchanged"),
        errors=len(all_errors),
        error_details=all_errors,
        results=upserted.outcomes[:results_limit],
        processing_time_ms=processing_time,
        timestamp=_now_iso(),
    )
