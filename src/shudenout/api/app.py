"""HTTP surface for the hotel search service."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shudenout.config.settings import Settings
from shudenout.hotels.models import Hotel
from shudenout.links.affiliate import is_allowed_link
from shudenout.pipeline.search import MESSAGE_UNAVAILABLE, HotelSearchService
from shudenout.services.base import ConfigurationError, ProviderError
from shudenout.utils.dates import is_after_last_train, now_jst

from .query import QueryError, SearchQuery

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store, no-cache, max-age=0, must-revalidate"}


def _json(payload: Dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(payload, status_code=status_code, headers=NO_STORE)


def _error(message: str, status_code: int) -> JSONResponse:
    return _json({"error": message}, status_code=status_code)


def create_app(settings: Optional[Settings] = None, service: Optional[HotelSearchService] = None) -> FastAPI:
    """Build the application; ``service`` may be injected for tests."""
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = service is None
        app.state.service = service or HotelSearchService(settings)
        try:
            yield
        finally:
            if owned:
                await app.state.service.aclose()

    app = FastAPI(title="ShudenOut Hotel Search API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service

    @app.exception_handler(QueryError)
    async def _query_error(request: Request, exc: QueryError) -> JSONResponse:
        return _error(str(exc), 400)

    @app.get("/api/health")
    async def health() -> JSONResponse:
        return _json(
            {
                "status": "ok",
                "environment": settings.environment,
                "primaryConfigured": settings.has_primary_credentials(),
                "secondaryConfigured": bool(settings.jalan_api_key),
                "sampleData": settings.sample_data_enabled(),
                "afterLastTrain": is_after_last_train(),
                "ts": now_jst().isoformat(),
            }
        )

    @app.get("/api/hotels")
    async def hotels(request: Request) -> JSONResponse:
        query = SearchQuery.parse(dict(request.query_params))
        criteria = query.to_criteria(settings)
        response = await request.app.state.service.search(criteria, inspect=query.inspect)
        return _json(response.to_dict())

    @app.get("/api/rakuten/detail")
    async def hotel_detail(request: Request) -> JSONResponse:
        hotel_no = (request.query_params.get("hotelNo") or "").strip()
        if not hotel_no.isdigit():
            return _error("hotelNo parameter is required and must be a number", 400)

        search_service: HotelSearchService = request.app.state.service
        try:
            hotel: Optional[Hotel] = await search_service.rakuten.get_hotel_detail(hotel_no)
        except ConfigurationError:
            logger.warning("Detail lookup requested without primary credentials")
            return _json({"hotel": None, "fallback": True, "message": MESSAGE_UNAVAILABLE})
        except ProviderError as exc:
            logger.warning("Detail lookup for %s failed: %s", hotel_no, exc)
            return _json({"hotel": None, "fallback": True, "error": exc.message})

        if hotel is None:
            return _error("Hotel not found", 404)
        return _json({"hotel": hotel.to_dict(), "fallback": False})

    @app.get("/api/rakuten/trace")
    async def trace_link(request: Request) -> JSONResponse:
        url = (request.query_params.get("url") or "").strip()
        if not url:
            return _error("url parameter is required", 400)
        if not is_allowed_link(url):
            return _error("url must point to an allowed booking domain", 400)
        search_service: HotelSearchService = request.app.state.service
        report = await search_service.verifier.trace(url)
        return _json(report)

    return app
