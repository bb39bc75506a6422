"""Property import router.
/api/v1/import-properties"""
from fastapi import APIRouter, Depends, Request, Response

from app.api.deps import RequireApiKey, get_feed_client, get_property_storage
from app.api.responses import ok
from app.config import settings
from app.schemas.base_schema import ApiResponse
from app.schemas.import_schema import ImportResult
from app.services.feed_service import FeedClient, extract_inline_feed
from app.services.import_service import run_import
from app.services.storage_service import PropertyStorage

router = APIRouter()


@router.api_route(
    "",
    methods=["GET", "POST"],
    response_model=ApiResponse[ImportResult],
    dependencies=[RequireApiKey],
)
async def import_properties(
    request: Request,
    storage: PropertyStorage = Depends(get_property_storage),
    feed_client: FeedClient = Depends(get_feed_client),
):
    """Import the vendor XML feed.

    POST with an XML <list> document as the body imports that document;
    GET (or a POST without one) fetches the configured vendor URL.
    """
    body = await request.body() if request.method == "POST" else None
    payload = extract_inline_feed(request.method, body)

    result = await run_import(
        payload,
        storage,
        feed_client,
        results_limit=settings.import_results_limit,
    )
    return ok(result, result.message, request)


@router.options("")
async def import_properties_preflight() -> Response:
    """CORS preflight — no import is run."""
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type, Authorization, X-API-Key",
        },
    )
