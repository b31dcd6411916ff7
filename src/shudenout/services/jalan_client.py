"""Client for the secondary provider's hotel search API.

The secondary provider is best-effort enrichment: every failure is logged and
turned into an empty list so it can never hold up the primary search.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

import httpx

from shudenout.config.settings import Settings
from shudenout.geo.distance import AREA_CENTERS, AREA_SLUGS, nearest_area_name
from shudenout.hotels.models import Hotel, SearchCriteria
from shudenout.hotels.normalizer import build_jalan_hotels

from .base import ProviderResult

logger = logging.getLogger(__name__)

HOTEL_SEARCH_URL = "https://jws.jalan.net/APICommon/HotelSearch"
MAX_COUNT = 100
ORDER_BY_PRICE = "1"

AREA_MAP: Dict[str, str] = AREA_SLUGS


class JalanClient:
    name = "jalan"

    def __init__(self, settings: Settings, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(
            timeout=settings.http_timeout_s,
            headers={"User-Agent": settings.user_agent, "Cache-Control": "no-cache"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "JalanClient":
        return self

    async def __aexit__(self, exc_type, exc, exc_tb) -> None:
        await self.aclose()

    def _build_params(
        self,
        *,
        area: Optional[str],
        price_min: Optional[int],
        price_max: Optional[int],
        page: int,
        hits: int,
        lat: Optional[float],
        lng: Optional[float],
    ) -> Dict[str, str]:
        params = {
            "key": self.settings.jalan_api_key or "",
            "format": "json",
            "count": str(min(hits, MAX_COUNT)),
            "start": str((max(page, 1) - 1) * hits + 1),
            "order": ORDER_BY_PRICE,
        }
        if lat is not None and lng is not None:
            params["area"] = nearest_area_name(lat, lng)
        elif area:
            mapped = AREA_MAP.get(area.lower()) or (area if area in AREA_CENTERS else None)
            if mapped:
                params["area"] = mapped
        if price_min:
            params["price_min"] = str(price_min)
        if price_max:
            params["price_max"] = str(price_max)
        return params

    async def search(
        self,
        area: Optional[str] = None,
        price_min: Optional[int] = None,
        price_max: Optional[int] = None,
        page: int = 1,
        hits: int = 30,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
    ) -> List[Hotel]:
        if not self.settings.jalan_api_key:
            logger.debug("Secondary provider key not set; skipping search")
            return []

        params = self._build_params(
            area=area,
            price_min=price_min,
            price_max=price_max,
            page=page,
            hits=hits,
            lat=lat,
            lng=lng,
        )
        try:
            response = await self._client.get(HOTEL_SEARCH_URL, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Secondary provider request failed: %s", exc)
            return []
        if not response.is_success:
            logger.warning("Secondary provider returned HTTP %s", response.status_code)
            return []
        try:
            payload = response.json()
        except ValueError:
            logger.warning("Secondary provider returned malformed JSON: %s", response.text[:300])
            return []
        if not isinstance(payload, dict):
            logger.warning("Secondary provider returned an unexpected payload type")
            return []

        hotels = build_jalan_hotels(payload)
        logger.info("Secondary provider returned %s hotels", len(hotels))
        return hotels

    async def find_hotels(self, criteria: SearchCriteria) -> ProviderResult:
        """Enrichment lookup: the first, cheapest page of up to ``MAX_COUNT`` hotels."""
        hotels = await self.search(
            area=criteria.area,
            price_min=criteria.min_charge,
            price_max=criteria.max_charge,
            page=1,
            hits=MAX_COUNT,
            lat=criteria.latitude,
            lng=criteria.longitude,
        )
        return ProviderResult(hotels=hotels)
