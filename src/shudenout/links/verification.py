"""Liveness checks for tracked affiliate links."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import httpx

from shudenout.config.settings import Settings
from shudenout.storage.ttl_cache import TtlCache

from .affiliate import (
    DETAIL_HOSTS,
    MARKETPLACE_HOST,
    TRACKING_HOST,
    HotelIdentifier,
    canonical_detail_url,
    parse_link_host,
)

logger = logging.getLogger(__name__)

CHECKER_USER_AGENT = "Mozilla/5.0 (compatible; ShuDenOut-LinkChecker/1.0)"
MARKETPLACE_HOSTS = frozenset({MARKETPLACE_HOST, "rakuten.co.jp"})


class LinkVerifier:
    """Detect tracked links that redirect to the generic marketplace instead of the hotel page.

    Checks only run in production. Verdicts are cached per ``(hotel, host)`` for
    ``settings.link_cache_ttl_s``; network failures leave the link untouched and
    are not cached.
    """

    def __init__(
        self,
        settings: Settings,
        cache: Optional[TtlCache[str, bool]] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.cache: TtlCache[str, bool] = cache if cache is not None else TtlCache(settings.link_cache_ttl_s)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.link_check_timeout_s,
            follow_redirects=False,
            headers={"User-Agent": CHECKER_USER_AGENT},
            transport=self._transport,
        )

    async def verify(self, url: str, hotel_no: HotelIdentifier) -> str:
        if not self.settings.is_production():
            return url
        host = parse_link_host(url)
        if host != TRACKING_HOST or hotel_no is None or not str(hotel_no).isdigit():
            return url

        cache_key = f"{hotel_no}-{host}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return url if cached else canonical_detail_url(hotel_no)

        try:
            async with self._client() as client:
                response = await client.head(url)
        except httpx.HTTPError as exc:
            logger.warning("Link verification failed for hotel %s: %s", hotel_no, exc)
            return url

        is_valid = True
        if 300 <= response.status_code < 400:
            location = response.headers.get("location")
            if location:
                target_host = parse_link_host(urljoin(url, location))
                if target_host in MARKETPLACE_HOSTS:
                    is_valid = False

        self.cache.set(cache_key, is_valid)
        if not is_valid:
            logger.warning("Tracked link for hotel %s lands on the marketplace; using detail URL", hotel_no)
            return canonical_detail_url(hotel_no)
        return url

    async def trace(self, url: str, *, max_hops: int = 3) -> Dict[str, Any]:
        """Follow up to ``max_hops`` redirects with HEAD requests and describe the chain."""
        hops: List[Dict[str, Any]] = []
        current = url
        async with self._client() as client:
            for _ in range(max_hops):
                entry: Dict[str, Any] = {"url": current, "hostname": parse_link_host(current) or "unknown"}
                try:
                    response = await client.head(current)
                except httpx.HTTPError as exc:
                    entry.update(status=0, location=f"Error: {exc}")
                    hops.append(entry)
                    break
                entry["status"] = response.status_code
                location = response.headers.get("location")
                if 300 <= response.status_code < 400 and location:
                    entry["location"] = location
                    hops.append(entry)
                    current = urljoin(current, location)
                    continue
                hops.append(entry)
                break

        final_host = hops[-1]["hostname"] if hops else None
        return {
            "inputUrl": url,
            "trace": hops,
            "analysis": {
                "finalDestination": final_host,
                "isDetailPage": final_host in DETAIL_HOSTS,
                "isMarketplace": final_host in MARKETPLACE_HOSTS,
                "isAffiliateLink": any(hop["hostname"] == TRACKING_HOST for hop in hops),
                "hopCount": len(hops),
            },
        }
