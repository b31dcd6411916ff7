"""Aggregation orchestrator: fan out to both providers, merge, filter and finalise links."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from shudenout.config.settings import Settings
from shudenout.data.sample_hotels import sample_hotels
from shudenout.filters.couple import filter_couple_friendly
from shudenout.filters.quality import filter_quality_hotels
from shudenout.hotels.models import (
    Hotel,
    SearchCriteria,
    SearchOutcome,
    SearchResponse,
    dedupe_by_id,
    has_all_amenities,
    paginate,
)
from shudenout.links.affiliate import add_stay_params, safe_hotel_link
from shudenout.links.verification import LinkVerifier
from shudenout.services.jalan_client import JalanClient
from shudenout.services.rakuten_client import RakutenClient
from shudenout.storage.ttl_cache import RequestDeduplicator, TtlCache, make_key

from .merge import dedupe_and_merge
from .vacancy import VacancyOutcome, VacancyPipeline, VacancyStatus

logger = logging.getLogger(__name__)

MESSAGE_NO_CANDIDATES = "周辺にホテルが見つかりませんでした。範囲やエリアを変えてお試しください。"
MESSAGE_NO_VACANCY = "周辺のホテルは見つかりましたが、本日空室のあるホテルはありませんでした。"
MESSAGE_NO_MATCH = "条件に合うホテルが見つかりませんでした。"
MESSAGE_UNAVAILABLE = "ただいまホテル情報を取得できません。しばらくしてから再度お試しください。"
MESSAGE_SAMPLE = "現在はサンプルデータを表示しています。"

_PRIMARY_ID_PREFIX = "rakuten_"


@dataclass(slots=True)
class _Candidates:
    hotels: List[Hotel]
    secondary_count: int
    merged_count: int


def _hotel_number(hotel: Hotel) -> Optional[str]:
    if hotel.id.startswith(_PRIMARY_ID_PREFIX):
        return hotel.id[len(_PRIMARY_ID_PREFIX) :]
    return None


def _cacheable(response: SearchResponse) -> bool:
    return response.outcome not in (SearchOutcome.FAILED, SearchOutcome.NOT_CONFIGURED)


class HotelSearchService:
    """Run one same-night search across both providers.

    Provider problems never escape :meth:`search`; they become a normal
    response with ``fallback`` set and an explanatory message. Identical
    concurrent searches share one computation.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        rakuten: Optional[RakutenClient] = None,
        jalan: Optional[JalanClient] = None,
        verifier: Optional[LinkVerifier] = None,
        dedup: Optional[RequestDeduplicator[SearchResponse]] = None,
    ) -> None:
        self.settings = settings
        self.rakuten = rakuten if rakuten is not None else RakutenClient(settings)
        self.jalan = jalan if jalan is not None else JalanClient(settings)
        self.verifier = verifier if verifier is not None else LinkVerifier(settings)
        self.pipeline = VacancyPipeline(self.rakuten)
        self._dedup: RequestDeduplicator[SearchResponse] = (
            dedup
            if dedup is not None
            else RequestDeduplicator(TtlCache(settings.search_cache_ttl_s), cacheable=_cacheable)
        )

    async def aclose(self) -> None:
        await self.rakuten.aclose()
        await self.jalan.aclose()

    async def __aenter__(self) -> "HotelSearchService":
        return self

    async def __aexit__(self, exc_type, exc, exc_tb) -> None:
        await self.aclose()

    async def search(self, criteria: SearchCriteria, *, inspect: bool = False) -> SearchResponse:
        if inspect:
            return await self._search(criteria, inspect=True)
        key = make_key("hotels", criteria.cache_params())
        return await self._dedup.run(key, lambda: self._search(criteria, inspect=False))

    async def _search(self, criteria: SearchCriteria, *, inspect: bool) -> SearchResponse:
        if not self.settings.has_primary_credentials():
            logger.warning("Primary provider is not configured; serving degraded response")
            return self._degraded(criteria, SearchOutcome.NOT_CONFIGURED, inspect=inspect)

        vacancy, secondary = await asyncio.gather(
            self.pipeline.run(criteria, inspect=inspect),
            self._secondary(criteria),
        )

        if vacancy.status is VacancyStatus.CONFIGURATION_ERROR:
            return self._degraded(criteria, SearchOutcome.NOT_CONFIGURED, inspect=inspect, vacancy=vacancy)
        if vacancy.status is VacancyStatus.FAILED:
            return self._degraded(criteria, SearchOutcome.FAILED, inspect=inspect, vacancy=vacancy)
        if vacancy.status is VacancyStatus.NO_CANDIDATES:
            return self._empty(criteria, SearchOutcome.NO_CANDIDATES, MESSAGE_NO_CANDIDATES, inspect, vacancy)
        if vacancy.status is VacancyStatus.NO_VACANCY:
            return self._empty(criteria, SearchOutcome.NO_VACANCY, MESSAGE_NO_VACANCY, inspect, vacancy)

        candidates = self._refine(vacancy.hotels, secondary, criteria)
        linked = self._apply_safe_links(candidates.hotels)
        page_items, paging = paginate(linked, criteria.page, criteria.hits)
        page_items = await self._verify_links(page_items, criteria)

        diagnostics = None
        if inspect:
            diagnostics = self._diagnostics(
                SearchOutcome.AVAILABLE,
                vacancy,
                secondary_count=candidates.secondary_count,
                merged_count=candidates.merged_count,
                final_count=len(linked),
            )
        return SearchResponse(
            items=page_items,
            paging=paging,
            outcome=SearchOutcome.AVAILABLE,
            message="" if linked else MESSAGE_NO_MATCH,
            diagnostics=diagnostics,
        )

    async def _secondary(self, criteria: SearchCriteria) -> List[Hotel]:
        try:
            result = await self.jalan.find_hotels(criteria)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Secondary provider search failed; continuing without it")
            return []
        return result.hotels

    def _refine(self, primary: List[Hotel], secondary: List[Hotel], criteria: SearchCriteria) -> _Candidates:
        merged = dedupe_and_merge(primary, secondary)
        hotels = filter_quality_hotels(merged)
        if criteria.couple_only:
            hotels = filter_couple_friendly(hotels)
        if criteria.amenities:
            hotels = [hotel for hotel in hotels if has_all_amenities(hotel, criteria.amenities)]
        hotels = [hotel.with_distance_from(criteria.latitude, criteria.longitude) for hotel in hotels]
        hotels = dedupe_by_id(sorted(hotels, key=lambda hotel: hotel.price))
        return _Candidates(hotels=hotels, secondary_count=len(secondary), merged_count=len(merged))

    @staticmethod
    def _apply_safe_links(hotels: List[Hotel]) -> List[Hotel]:
        linked: List[Hotel] = []
        for hotel in hotels:
            url = safe_hotel_link(hotel.affiliate_url, _hotel_number(hotel))
            if not url:
                logger.debug("Dropping %s: no bookable link", hotel.id)
                continue
            linked.append(hotel if url == hotel.affiliate_url else hotel.with_affiliate_url(url))
        return linked

    async def _verify_links(self, hotels: List[Hotel], criteria: SearchCriteria) -> List[Hotel]:
        verified = await asyncio.gather(
            *(self.verifier.verify(hotel.affiliate_url, _hotel_number(hotel)) for hotel in hotels)
        )
        finished: List[Hotel] = []
        for hotel, url in zip(hotels, verified):
            url = add_stay_params(
                url,
                check_in=criteria.check_in,
                check_out=criteria.check_out,
                adults=criteria.adults,
                rooms=criteria.rooms,
            )
            finished.append(hotel if url == hotel.affiliate_url else hotel.with_affiliate_url(url))
        return finished

    def _empty(
        self,
        criteria: SearchCriteria,
        outcome: SearchOutcome,
        message: str,
        inspect: bool,
        vacancy: VacancyOutcome,
    ) -> SearchResponse:
        _, paging = paginate([], criteria.page, criteria.hits)
        diagnostics = self._diagnostics(outcome, vacancy) if inspect else None
        return SearchResponse(items=[], paging=paging, outcome=outcome, message=message, diagnostics=diagnostics)

    def _degraded(
        self,
        criteria: SearchCriteria,
        outcome: SearchOutcome,
        *,
        inspect: bool,
        vacancy: Optional[VacancyOutcome] = None,
    ) -> SearchResponse:
        """Fallback response: placeholder hotels when allowed, otherwise an empty list."""
        hotels: List[Hotel] = []
        is_sample = self.settings.sample_data_enabled()
        if is_sample:
            hotels = sample_hotels(
                area=criteria.area,
                min_charge=criteria.min_charge,
                max_charge=criteria.max_charge,
                amenities=criteria.amenities,
            )
            hotels = filter_quality_hotels(hotels)
            if criteria.couple_only:
                hotels = filter_couple_friendly(hotels)
            hotels = [hotel.with_distance_from(criteria.latitude, criteria.longitude) for hotel in hotels]
            hotels = sorted(hotels, key=lambda hotel: hotel.price)
        page_items, paging = paginate(hotels, criteria.page, criteria.hits)
        diagnostics = self._diagnostics(outcome, vacancy) if inspect else None
        return SearchResponse(
            items=page_items,
            paging=paging,
            outcome=outcome,
            is_sample=is_sample,
            fallback=True,
            message=MESSAGE_SAMPLE if is_sample else MESSAGE_UNAVAILABLE,
            diagnostics=diagnostics,
        )

    def _diagnostics(
        self,
        outcome: SearchOutcome,
        vacancy: Optional[VacancyOutcome] = None,
        *,
        secondary_count: Optional[int] = None,
        merged_count: Optional[int] = None,
        final_count: Optional[int] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "outcome": outcome.value,
            "environment": self.settings.environment,
            "hasAppId": self.settings.has_primary_credentials(),
            "appId": self.settings.masked_app_id(),
            "affiliateIdPresent": bool(self.settings.rakuten_affiliate_id),
            "secondaryConfigured": bool(self.settings.jalan_api_key),
        }
        if vacancy is not None:
            payload["pipeline"] = vacancy.diagnostics()
        counts = {"secondaryCount": secondary_count, "mergedCount": merged_count, "finalCount": final_count}
        payload.update({key: value for key, value in counts.items() if value is not None})
        return payload
