"""Dataclasses for normalised hotel records and search requests/responses."""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from shudenout.geo.distance import haversine_km, walking_minutes

AMENITY_SHOWER = "シャワー"
AMENITY_WIFI = "WiFi"
AMENITY_TWO_PERSON = "2人可"
AMENITY_PARKING = "駐車場"
AMENITY_LARGE_BATH = "大浴場"
AMENITY_HOT_SPRING = "温泉"

AMENITIES: Tuple[str, ...] = (
    AMENITY_SHOWER,
    AMENITY_WIFI,
    AMENITY_TWO_PERSON,
    AMENITY_PARKING,
    AMENITY_LARGE_BATH,
    AMENITY_HOT_SPRING,
)

MAX_HITS = 30


class Source(str, Enum):
    RAKUTEN = "rakuten"
    JALAN = "jalan"
    SAMPLE = "sample"


@dataclass(frozen=True, slots=True)
class Hotel:
    """Canonical hotel record produced by every provider mapping."""

    id: str
    name: str
    area: str = ""
    nearest: str = ""
    price: int = 0
    rating: Optional[float] = None
    amenities: Tuple[str, ...] = ()
    image_url: str = ""
    affiliate_url: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_km: Optional[float] = None
    walking_time_minutes: Optional[int] = None
    is_same_day_available: bool = False
    source: Source = Source.RAKUTEN
    review_count: Optional[int] = None
    address: Optional[str] = None
    access: Optional[str] = None

    def __post_init__(self) -> None:
        if self.price is None or self.price < 0:
            object.__setattr__(self, "price", 0)
        if not isinstance(self.amenities, tuple):
            object.__setattr__(self, "amenities", tuple(self.amenities))

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def with_distance_from(self, lat: Optional[float], lng: Optional[float]) -> "Hotel":
        """Return a copy annotated with distance and walking time from ``(lat, lng)``."""
        if lat is None or lng is None or not self.has_coordinates:
            return self
        distance = haversine_km(lat, lng, self.latitude, self.longitude)  # type: ignore[arg-type]
        return replace(
            self,
            distance_km=round(distance, 3),
            walking_time_minutes=walking_minutes(distance),
        )

    def with_affiliate_url(self, url: str) -> "Hotel":
        return replace(self, affiliate_url=url)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.id,
            "name": self.name,
            "area": self.area,
            "nearest": self.nearest,
            "price": self.price,
            "amenities": list(self.amenities),
            "imageUrl": self.image_url,
            "affiliateUrl": self.affiliate_url,
            "isSameDayAvailable": self.is_same_day_available,
            "source": self.source.value,
        }
        optional = {
            "rating": self.rating,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "distanceKm": self.distance_km,
            "walkingTimeMinutes": self.walking_time_minutes,
            "reviewCount": self.review_count,
            "address": self.address,
            "access": self.access,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload

    @classmethod
    def from_iterable(cls, records: Iterable["Hotel"]) -> List[dict[str, object]]:
        return [record.to_dict() for record in records]


@dataclass(slots=True)
class SearchCriteria:
    """Validated search request shared by both providers and the pipeline."""

    check_in: date
    check_out: date
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_km: float = 3.0
    adults: int = 1
    rooms: int = 1
    min_charge: Optional[int] = None
    max_charge: Optional[int] = None
    area: Optional[str] = None
    area_code: Optional[str] = None
    amenities: Tuple[str, ...] = ()
    page: int = 1
    hits: int = 10
    couple_only: bool = False

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def cache_params(self) -> dict[str, object]:
        return {
            "lat": self.latitude,
            "lng": self.longitude,
            "radius": self.radius_km,
            "checkin": self.check_in.isoformat(),
            "checkout": self.check_out.isoformat(),
            "adults": self.adults,
            "rooms": self.rooms,
            "min": self.min_charge,
            "max": self.max_charge,
            "area": self.area,
            "areaCode": self.area_code,
            "amenities": ",".join(self.amenities),
            "page": self.page,
            "hits": self.hits,
            "couple": self.couple_only,
        }


@dataclass(frozen=True, slots=True)
class Paging:
    total: int
    page: int
    total_pages: int
    has_next: bool

    @classmethod
    def build(cls, total: int, page: int, hits: int) -> "Paging":
        hits = max(hits, 1)
        return cls(
            total=total,
            page=page,
            total_pages=math.ceil(total / hits) if total else 0,
            has_next=page * hits < total,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "page": self.page,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
        }


class SearchOutcome(str, Enum):
    AVAILABLE = "available"
    NO_CANDIDATES = "no_candidates"
    NO_VACANCY = "no_vacancy"
    NOT_CONFIGURED = "not_configured"
    FAILED = "failed"


@dataclass(slots=True)
class SearchResponse:
    items: List[Hotel]
    paging: Paging
    outcome: SearchOutcome
    is_sample: bool = False
    fallback: bool = False
    message: str = ""
    diagnostics: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "items": Hotel.from_iterable(self.items),
            "paging": self.paging.to_dict(),
            "isSample": self.is_sample,
            "fallback": self.fallback,
            "message": self.message,
            "outcome": self.outcome.value,
        }
        if self.diagnostics is not None:
            payload["debug"] = self.diagnostics
        return payload


def paginate(items: List[Hotel], page: int, hits: int) -> tuple[List[Hotel], Paging]:
    page = max(page, 1)
    hits = min(max(hits, 1), MAX_HITS)
    start = (page - 1) * hits
    return items[start : start + hits], Paging.build(len(items), page, hits)


def dedupe_by_id(hotels: Iterable[Hotel]) -> List[Hotel]:
    """Keep the first record for every id."""
    seen: set[str] = set()
    unique: List[Hotel] = []
    for hotel in hotels:
        if hotel.id in seen:
            continue
        seen.add(hotel.id)
        unique.append(hotel)
    return unique


def has_all_amenities(hotel: Hotel, required: Iterable[str]) -> bool:
    return all(amenity in hotel.amenities for amenity in required)


@dataclass(slots=True)
class ChunkTrace:
    """Diagnostics for one vacancy search call."""

    start: int
    end: int
    hotel_nos: List[str]
    status: int
    elapsed_ms: int
    count: int = 0
    body_snippet: Optional[str] = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "from": self.start,
            "to": self.end,
            "hotelNos": list(self.hotel_nos),
            "status": self.status,
            "elapsedMs": self.elapsed_ms,
            "count": self.count,
        }
        if self.body_snippet is not None:
            payload["bodySnippet"] = self.body_snippet
        return payload

