"""Client for the primary provider's travel search APIs."""
from __future__ import annotations

import asyncio
import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import httpx

from shudenout.config.settings import Settings
from shudenout.core.retry import (
    LISTING_RETRY,
    VACANCY_RETRY,
    RetryableStatusError,
    RetryPolicy,
    Sleep,
    retry_async,
)
from shudenout.hotels.models import MAX_HITS, ChunkTrace, Hotel, SearchCriteria, dedupe_by_id
from shudenout.hotels.normalizer import (
    MAPPING_ERRORS,
    build_rakuten_hotel,
    build_rakuten_hotels,
    extract_candidate_numbers,
)

from .base import CandidateResult, ConfigurationError, ProviderError, ProviderResult, VacancyResult

logger = logging.getLogger(__name__)

API_BASE = "https://app.rakuten.co.jp/services/api/Travel"
API_VERSION = "20170426"
SIMPLE_HOTEL_SEARCH = f"{API_BASE}/SimpleHotelSearch/{API_VERSION}"
VACANT_HOTEL_SEARCH = f"{API_BASE}/VacantHotelSearch/{API_VERSION}"
HOTEL_DETAIL_SEARCH = f"{API_BASE}/HotelDetailSearch/{API_VERSION}"

SNIPPET_LENGTH = 300
# Tokyo Station, used by the diagnostic ping.
PING_COORDINATES = (35.681236, 139.767125)


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def clamp_adults(value: Optional[int]) -> int:
    return int(_clamp(value or 1, 1, 9))


def clamp_rooms(value: Optional[int]) -> int:
    return int(_clamp(value or 1, 1, 10))


def clamp_vacancy_radius(value: Optional[float]) -> float:
    return float(_clamp(value if value is not None else 3.0, 1.0, 10.0))


def clamp_listing_radius(value: Optional[float]) -> float:
    return float(_clamp(value if value is not None else 3.0, 0.1, 3.0))


def clamp_hits(value: Optional[int]) -> int:
    return int(_clamp(value or 1, 1, MAX_HITS))


def _snippet(text: str) -> str:
    return text[:SNIPPET_LENGTH]


def _error_description(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _is_not_found(response: httpx.Response) -> bool:
    return response.status_code == 404 and _error_description(response).get("error") == "not_found"


class RakutenClient:
    """Async wrapper around the primary provider's listing, vacancy and detail endpoints.

    Every call first checks that an application id is configured and raises
    :class:`ConfigurationError` otherwise. Upstream failures are returned as
    :class:`ProviderError` values inside the result objects.
    """

    name = "rakuten"

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
        retry_policy: RetryPolicy = LISTING_RETRY,
        vacancy_retry_policy: RetryPolicy = VACANCY_RETRY,
    ) -> None:
        self.settings = settings
        self._sleep = sleep
        self._retry_policy = retry_policy
        self._vacancy_retry_policy = vacancy_retry_policy
        self._client = httpx.AsyncClient(
            timeout=settings.http_timeout_s,
            headers={
                "Accept": "application/json",
                "User-Agent": settings.user_agent,
                "Cache-Control": "no-cache",
                "Pragma": "no-cache",
            },
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RakutenClient":
        return self

    async def __aexit__(self, exc_type, exc, exc_tb) -> None:
        await self.aclose()

    def ensure_configured(self) -> str:
        if not self.settings.rakuten_app_id:
            raise ConfigurationError("SHUDENOUT_RAKUTEN_APP_ID is not set")
        return self.settings.rakuten_app_id

    def _base_params(self) -> Dict[str, str]:
        params = {
            "applicationId": self.ensure_configured(),
            "format": "json",
            "datumType": "1",
        }
        if self.settings.rakuten_affiliate_id:
            params["affiliateId"] = self.settings.rakuten_affiliate_id
        return params

    async def _get(self, url: str, params: Dict[str, str], policy: RetryPolicy, label: str) -> httpx.Response:
        async def attempt() -> httpx.Response:
            response = await self._client.get(url, params=params)
            if response.status_code == 429 or response.status_code >= 500:
                raise RetryableStatusError(response.status_code, response.text)
            return response

        return await retry_async(
            attempt,
            policy,
            retry_on=(RetryableStatusError, httpx.TransportError),
            sleep=self._sleep,
            label=label,
        )

    @staticmethod
    def _parse(response: httpx.Response, label: str) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            snippet = _snippet(response.text)
            logger.error("%s returned malformed JSON: %s", label, snippet)
            raise ProviderError(
                f"{label} returned malformed JSON", status_code=502, details={"snippet": snippet}
            ) from exc
        if not isinstance(payload, dict):
            raise ProviderError(f"{label} returned an unexpected payload", details={"snippet": _snippet(response.text)})
        return payload

    @staticmethod
    def _failure(exc: Exception, label: str) -> ProviderError:
        if isinstance(exc, ProviderError):
            return exc
        if isinstance(exc, RetryableStatusError):
            return ProviderError(
                f"{label} failed with status {exc.status}",
                status_code=exc.status,
                details={"snippet": _snippet(exc.body)},
            )
        if isinstance(exc, httpx.TimeoutException):
            return ProviderError(f"{label} timed out", status_code=504)
        return ProviderError(f"{label} failed: {exc}", status_code=502)

    @staticmethod
    def _rejected(response: httpx.Response, label: str) -> ProviderError:
        body = _error_description(response)
        message = body.get("error_description") or body.get("error") or f"HTTP {response.status_code}"
        logger.warning("%s rejected the request (%s): %s", label, response.status_code, message)
        return ProviderError(
            f"{label} rejected the request: {message}",
            status_code=response.status_code,
            details={"snippet": _snippet(response.text)},
        )

    async def search_hotels(self, criteria: SearchCriteria) -> ProviderResult:
        """Listing search; hotels are not vacancy-confirmed."""
        params = self._base_params()
        if criteria.has_coordinates:
            params.update(
                latitude=str(criteria.latitude),
                longitude=str(criteria.longitude),
                searchRadius=str(clamp_listing_radius(criteria.radius_km)),
            )
        elif criteria.area_code:
            params.update(largeClassCode="japan", middleClassCode=criteria.area_code)
        else:
            return ProviderResult.failure(ProviderError("Coordinates or an area code are required", status_code=400))
        params.update(
            page=str(max(criteria.page, 1)),
            hits=str(clamp_hits(criteria.hits)),
            sort="+roomCharge",
            responseType="large",
        )

        label = "SimpleHotelSearch"
        try:
            response = await self._get(SIMPLE_HOTEL_SEARCH, params, self._retry_policy, label)
            if _is_not_found(response):
                logger.info("%s found no hotels", label)
                return ProviderResult(hotels=[], status_code=404, not_found=True)
            if response.status_code != 200:
                return ProviderResult.failure(self._rejected(response, label))
            payload = self._parse(response, label)
            hotels = build_rakuten_hotels(payload, tracking_id=self.settings.rakuten_affiliate_id, area=criteria.area)
        except (RetryableStatusError, httpx.HTTPError, ProviderError) as exc:
            return ProviderResult.failure(self._failure(exc, label))

        if criteria.min_charge is not None:
            hotels = [hotel for hotel in hotels if hotel.price >= criteria.min_charge]
        if criteria.max_charge is not None:
            hotels = [hotel for hotel in hotels if hotel.price <= criteria.max_charge]
        logger.info("%s returned %s hotels", label, len(hotels))
        return ProviderResult(hotels=hotels, status_code=response.status_code)

    async def find_hotels(self, criteria: SearchCriteria) -> ProviderResult:
        return await self.search_hotels(criteria)

    async def fetch_candidates(self, latitude: float, longitude: float, radius_km: float) -> CandidateResult:
        """Stage one: facility numbers within ``radius_km`` of the point, in response order."""
        base = self._base_params()
        base.update(
            latitude=str(latitude),
            longitude=str(longitude),
            searchRadius=str(clamp_vacancy_radius(radius_km)),
            hits=str(MAX_HITS),
            responseType="small",
        )
        max_pages = max(1, math.ceil(self.settings.candidate_hits / MAX_HITS))
        numbers: List[str] = []
        label = "SimpleHotelSearch(candidates)"
        page = 1
        status: Optional[int] = None

        while page <= max_pages:
            params = dict(base, page=str(page))
            try:
                response = await self._get(SIMPLE_HOTEL_SEARCH, params, self._retry_policy, label)
                status = response.status_code
                if _is_not_found(response):
                    break
                if response.status_code != 200:
                    error = self._rejected(response, label)
                    return CandidateResult(hotel_nos=numbers, error=error, status_code=response.status_code)
                payload = self._parse(response, label)
                found = extract_candidate_numbers(payload)
                page_count = int((payload.get("pagingInfo") or {}).get("pageCount") or 1)
            except (RetryableStatusError, httpx.HTTPError, ProviderError, *MAPPING_ERRORS) as exc:
                error = self._failure(exc, label)
                return CandidateResult(hotel_nos=numbers, error=error, status_code=error.status_code)

            for hotel_no in found:
                if hotel_no not in numbers:
                    numbers.append(hotel_no)
            if page >= page_count or len(numbers) >= self.settings.candidate_hits:
                break
            page += 1

        numbers = numbers[: self.settings.candidate_hits]
        logger.info("Candidate discovery found %s facilities", len(numbers))
        return CandidateResult(hotel_nos=numbers, status_code=status, not_found=not numbers and status == 404)

    async def check_vacancy(
        self,
        hotel_nos: Sequence[str],
        criteria: SearchCriteria,
        *,
        inspect: bool = False,
    ) -> VacancyResult:
        """Stage two: confirm vacancy for ``hotel_nos`` in concurrent fixed-size chunks."""
        self.ensure_configured()
        size = self.settings.vacancy_chunk_size
        chunks = [(start, list(hotel_nos[start : start + size])) for start in range(0, len(hotel_nos), size)]
        if not chunks:
            return VacancyResult()

        results = await asyncio.gather(
            *(self._check_chunk(start, chunk, criteria, inspect) for start, chunk in chunks)
        )
        hotels: List[Hotel] = []
        traces: List[ChunkTrace] = []
        for chunk_hotels, trace in results:
            hotels.extend(chunk_hotels)
            traces.append(trace)
        traces.sort(key=lambda trace: trace.start)

        error = None
        if all(trace.status not in (200, 404) for trace in traces):
            statuses = sorted({trace.status for trace in traces})
            error = ProviderError(
                "Vacancy search failed for every chunk",
                status_code=502,
                details={"statuses": statuses},
            )
        logger.info("Vacancy confirmation: %s hotels across %s chunks", len(hotels), len(traces))
        return VacancyResult(hotels=dedupe_by_id(hotels), traces=traces, error=error)

    async def _check_chunk(
        self,
        start: int,
        chunk: List[str],
        criteria: SearchCriteria,
        inspect: bool,
    ) -> tuple[List[Hotel], ChunkTrace]:
        params = self._base_params()
        params.update(
            checkinDate=criteria.check_in.isoformat(),
            checkoutDate=criteria.check_out.isoformat(),
            adultNum=str(clamp_adults(criteria.adults)),
            roomNum=str(clamp_rooms(criteria.rooms)),
            hotelNo=",".join(chunk),
            responseType="small",
        )
        if criteria.min_charge is not None:
            params["minCharge"] = str(criteria.min_charge)
        if criteria.max_charge is not None:
            params["maxCharge"] = str(criteria.max_charge)

        label = f"VacantHotelSearch[{start}]"
        trace = ChunkTrace(start=start, end=start + len(chunk) - 1, hotel_nos=chunk, status=0, elapsed_ms=0)
        started = time.perf_counter()
        hotels: List[Hotel] = []
        try:
            response = await self._get(VACANT_HOTEL_SEARCH, params, self._vacancy_retry_policy, label)
            trace.status = response.status_code
            if inspect:
                trace.body_snippet = _snippet(response.text)
            if response.status_code == 200:
                payload = self._parse(response, label)
                hotels = build_rakuten_hotels(
                    payload,
                    tracking_id=self.settings.rakuten_affiliate_id,
                    vacancy_confirmed=True,
                    adults=criteria.adults,
                    area=criteria.area,
                )
            elif response.status_code == 404:
                logger.debug("%s: no vacancy", label)
            else:
                self._rejected(response, label)
        except (RetryableStatusError, httpx.HTTPError, ProviderError) as exc:
            error = self._failure(exc, label)
            logger.warning("%s failed: %s", label, error)
            if isinstance(exc, RetryableStatusError):
                trace.status = exc.status
            elif isinstance(exc, ProviderError):
                trace.status = 502
            if inspect:
                trace.body_snippet = _snippet(str(error))
        finally:
            trace.elapsed_ms = int((time.perf_counter() - started) * 1000)
        trace.count = len(hotels)
        return hotels, trace

    async def get_hotel_detail(self, hotel_no: int | str) -> Optional[Hotel]:
        """Full record for one facility; ``None`` when the provider does not know it.

        Raises :class:`ProviderError` when the lookup itself fails.
        """
        params = self._base_params()
        params.update(hotelNo=str(hotel_no), responseType="large")
        label = "HotelDetailSearch"
        try:
            response = await self._get(HOTEL_DETAIL_SEARCH, params, self._retry_policy, label)
        except (RetryableStatusError, httpx.HTTPError) as exc:
            raise self._failure(exc, label) from exc
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise self._rejected(response, label)
        payload = self._parse(response, label)
        entries = payload.get("hotels")
        if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
            return None
        try:
            return build_rakuten_hotel(entries[0], tracking_id=self.settings.rakuten_affiliate_id)
        except MAPPING_ERRORS as exc:
            logger.error("%s returned a record that could not be mapped: %s", label, exc)
            raise ProviderError(f"{label} returned a record that could not be mapped", status_code=502) from exc

    async def ping(self) -> Dict[str, Any]:
        """Small listing call near Tokyo Station; the application id is masked in the output."""
        report: Dict[str, Any] = {
            "ok": False,
            "status": 0,
            "hasAppId": self.settings.has_primary_credentials(),
            "ts": datetime.now(timezone.utc).isoformat(),
        }
        if not self.settings.has_primary_credentials():
            report["error"] = "application id not set"
            return report

        params = self._base_params()
        params.update(
            latitude=str(PING_COORDINATES[0]),
            longitude=str(PING_COORDINATES[1]),
            searchRadius="1.0",
            hits="3",
        )
        masked = dict(params, applicationId=self.settings.masked_app_id())
        report["urlSample"] = str(httpx.URL(SIMPLE_HOTEL_SEARCH, params=masked))
        try:
            response = await self._client.get(SIMPLE_HOTEL_SEARCH, params=params)
        except httpx.HTTPError as exc:
            report["error"] = str(exc)
            return report
        report.update(
            ok=response.is_success,
            status=response.status_code,
            bodySample=response.text[:200],
        )
        return report
