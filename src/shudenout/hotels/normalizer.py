"""Utilities to transform raw provider payloads into normalised :class:`Hotel` records."""
from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional

from shudenout.links.affiliate import resolve_affiliate_url

from .models import (
    AMENITY_HOT_SPRING,
    AMENITY_LARGE_BATH,
    AMENITY_PARKING,
    AMENITY_SHOWER,
    AMENITY_TWO_PERSON,
    AMENITY_WIFI,
    Hotel,
    Source,
)

logger = logging.getLogger(__name__)

DEFAULT_AREA = "その他"
DEFAULT_JALAN_AREA = "東京"
_MUNICIPALITY = re.compile(r"^(?:東京都|北海道|(?:京都|大阪)府|.{2,3}県)?(.+?[区市町村])")
# Jalan coordinates are expressed in milliseconds of arc.
_MILLIARCSECONDS_PER_DEGREE = 3_600_000
# Raised by a single malformed upstream record while it is being mapped.
MAPPING_ERRORS: tuple[type[Exception], ...] = (TypeError, ValueError, AttributeError, OverflowError)

_AMENITY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (AMENITY_PARKING, ("駐車場",)),
    (AMENITY_LARGE_BATH, ("大浴場",)),
    (AMENITY_HOT_SPRING, ("温泉",)),
    (AMENITY_WIFI, ("WiFi", "Wi-Fi", "無線LAN")),
    (AMENITY_SHOWER, ("シャワー",)),
)


def _to_float(value: Any) -> Optional[float]:
    if value in (None, ""):
        return None
    try:
        converted = float(value)
    except (TypeError, ValueError):
        return None
    return converted if math.isfinite(converted) else None


def _to_int(value: Any) -> Optional[int]:
    converted = _to_float(value)
    return int(converted) if converted is not None else None


def _entries(payload: dict[str, Any]) -> List[dict[str, Any]]:
    entries = payload.get("hotels")
    if not isinstance(entries, list):
        return []
    return [entry for entry in entries if isinstance(entry, dict)]


def _non_zero(value: Optional[float]) -> Optional[float]:
    return value if value else None


def infer_area(address: Optional[str], fallback: Optional[str] = None) -> str:
    """Municipality (e.g. ``新宿区``) taken from a Japanese address."""
    if address:
        match = _MUNICIPALITY.match(address.strip())
        if match:
            return match.group(1)
    return fallback or DEFAULT_AREA


def infer_amenities(text: Optional[str], *, adults: Optional[int] = None) -> tuple[str, ...]:
    amenities: List[str] = []
    if text:
        for amenity, keywords in _AMENITY_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                amenities.append(amenity)
    if adults is not None and adults >= 2:
        amenities.append(AMENITY_TWO_PERSON)
    return tuple(amenities)


def _segments(entry: dict[str, Any]) -> Iterable[dict[str, Any]]:
    segments = entry.get("hotel")
    if isinstance(segments, list):
        return [segment for segment in segments if isinstance(segment, dict)]
    return [entry]


def _basic_info(entry: dict[str, Any]) -> Optional[dict[str, Any]]:
    for segment in _segments(entry):
        info = segment.get("hotelBasicInfo")
        if isinstance(info, dict):
            return info
    return None


def _room_min_charge(entry: dict[str, Any]) -> Optional[int]:
    charges: List[int] = []
    for segment in _segments(entry):
        for room in segment.get("roomInfo") or []:
            daily = room.get("dailyCharge") if isinstance(room, dict) else None
            if not isinstance(daily, dict):
                continue
            total = _to_int(daily.get("total") or daily.get("rakutenCharge"))
            if total:
                charges.append(total)
    return min(charges) if charges else None


def _affiliate_candidate(info: dict[str, Any]) -> Optional[str]:
    value = info.get("hotelAffiliateUrl")
    if isinstance(value, dict):
        return value.get("pc") or value.get("mobile")
    if isinstance(value, str):
        return value
    return None


def build_rakuten_hotel(
    entry: dict[str, Any],
    *,
    tracking_id: Optional[str],
    vacancy_confirmed: bool = False,
    adults: Optional[int] = None,
    area: Optional[str] = None,
) -> Optional[Hotel]:
    """Map one element of a primary-provider ``hotels`` array; ``None`` when unusable."""
    info = _basic_info(entry)
    if info is None or info.get("hotelNo") in (None, ""):
        return None
    hotel_no = str(info["hotelNo"])
    address = "".join(part for part in (info.get("address1"), info.get("address2")) if part)

    price = _to_int(info.get("hotelMinCharge"))
    if vacancy_confirmed:
        price = _room_min_charge(entry) or price

    text = " ".join(part for part in (info.get("hotelSpecial"), info.get("hotelName")) if part)
    affiliate_url = resolve_affiliate_url(
        hotel_no,
        provider_affiliate_url=_affiliate_candidate(info),
        information_url=info.get("hotelInformationUrl"),
        tracking_id=tracking_id,
    )

    return Hotel(
        id=f"rakuten_{hotel_no}",
        name=info.get("hotelName") or "ホテル名不明",
        area=infer_area(address, area),
        nearest=info.get("nearestStation") or "",
        price=price or 0,
        rating=_non_zero(_to_float(info.get("reviewAverage"))),
        amenities=infer_amenities(text, adults=adults if vacancy_confirmed else None),
        image_url=info.get("hotelImageUrl") or info.get("hotelThumbnailUrl") or "",
        affiliate_url=affiliate_url,
        latitude=_non_zero(_to_float(info.get("latitude"))),
        longitude=_non_zero(_to_float(info.get("longitude"))),
        is_same_day_available=vacancy_confirmed,
        source=Source.RAKUTEN,
        review_count=_to_int(info.get("reviewCount")),
        address=address or None,
        access=info.get("access") or None,
    )


def build_rakuten_hotels(
    payload: dict[str, Any],
    *,
    tracking_id: Optional[str],
    vacancy_confirmed: bool = False,
    adults: Optional[int] = None,
    area: Optional[str] = None,
) -> List[Hotel]:
    hotels: List[Hotel] = []
    for entry in _entries(payload):
        try:
            hotel = build_rakuten_hotel(
                entry,
                tracking_id=tracking_id,
                vacancy_confirmed=vacancy_confirmed,
                adults=adults,
                area=area,
            )
        except MAPPING_ERRORS as exc:
            logger.warning("Skipping malformed primary-provider entry: %s", exc)
            continue
        if hotel is None:
            logger.debug("Skipping primary-provider entry without hotelNo")
            continue
        hotels.append(hotel)
    return hotels


def extract_candidate_numbers(payload: dict[str, Any]) -> List[str]:
    """Unique facility numbers from a discovery response, in response order."""
    seen: set[str] = set()
    numbers: List[str] = []
    for entry in _entries(payload):
        info = _basic_info(entry)
        hotel_no = info.get("hotelNo") if info else None
        if hotel_no in (None, ""):
            continue
        key = str(hotel_no)
        if key not in seen:
            seen.add(key)
            numbers.append(key)
    return numbers


def _jalan_coordinate(value: Any) -> Optional[float]:
    converted = _non_zero(_to_float(value))
    if converted is None:
        return None
    if abs(converted) > 1000:
        return converted / _MILLIARCSECONDS_PER_DEGREE
    return converted


def build_jalan_hotel(hotel: Dict[str, Any], index: int) -> Optional[Hotel]:
    name = hotel.get("HotelName")
    if not name:
        return None
    return Hotel(
        id=f"jalan_{name}_{index}",
        name=name,
        area=hotel.get("SmallArea") or DEFAULT_JALAN_AREA,
        nearest=hotel.get("NearStation") or "",
        price=_to_int(hotel.get("HotelMinCharge")) or 0,
        rating=_non_zero(_to_float(hotel.get("CustomerEvaluationAverage") or hotel.get("Rating"))),
        image_url=hotel.get("PictureURL") or hotel.get("PictureUrl") or "",
        affiliate_url=hotel.get("SalesformUrl") or "",
        latitude=_jalan_coordinate(hotel.get("Y")),
        longitude=_jalan_coordinate(hotel.get("X")),
        source=Source.JALAN,
        address=hotel.get("HotelAddress") or None,
        access=hotel.get("AccessInformation") or None,
    )


def build_jalan_hotels(payload: Dict[str, Any]) -> List[Hotel]:
    results = payload.get("Results")
    if not isinstance(results, dict):
        return []
    raw_hotels = results.get("Hotel") or []
    if isinstance(raw_hotels, dict):
        raw_hotels = [raw_hotels]
    if not isinstance(raw_hotels, list):
        return []
    hotels: List[Hotel] = []
    for index, raw in enumerate(raw_hotels):
        if not isinstance(raw, dict):
            continue
        try:
            hotel = build_jalan_hotel(raw, index)
        except MAPPING_ERRORS as exc:
            logger.warning("Skipping malformed secondary-provider entry: %s", exc)
            continue
        if hotel is not None:
            hotels.append(hotel)
    return hotels
