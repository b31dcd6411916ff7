"""Cross-provider duplicate detection and field-level merging."""
from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Iterable, List, Optional

from shudenout.geo.distance import distance_meters
from shudenout.hotels.models import Hotel
from shudenout.utils.text import normalize_name, normalize_station

logger = logging.getLogger(__name__)

DUPLICATE_RADIUS_M = 300.0
STATION_PREFIX_LENGTH = 3
TRUSTED_IMAGE_HOST = "rakuten"
_IMAGE_SIZE = re.compile(r"(\d+)x(\d+)")


def similar_station(first: Optional[str], second: Optional[str]) -> bool:
    """Both stations are named and one starts with the other's first three characters."""
    a = normalize_station(first)
    b = normalize_station(second)
    if not a or not b:
        return False
    return a.startswith(b[:STATION_PREFIX_LENGTH]) or b.startswith(a[:STATION_PREFIX_LENGTH])


def is_duplicate(existing: Hotel, candidate: Hotel) -> bool:
    if normalize_name(existing.name) == normalize_name(candidate.name):
        return True
    if existing.has_coordinates and candidate.has_coordinates:
        distance = distance_meters(
            existing.latitude, existing.longitude, candidate.latitude, candidate.longitude  # type: ignore[arg-type]
        )
        if distance <= DUPLICATE_RADIUS_M:
            return True
    if existing.nearest and candidate.nearest:
        return similar_station(existing.nearest, candidate.nearest)
    return False


def _image_area(url: str) -> Optional[int]:
    match = _IMAGE_SIZE.search(url)
    if not match:
        return None
    return int(match.group(1)) * int(match.group(2))


def better_image_url(first: str, second: str) -> str:
    if not first:
        return second
    if not second:
        return first
    first_area, second_area = _image_area(first), _image_area(second)
    if first_area is not None and second_area is not None:
        return first if first_area >= second_area else second
    if TRUSTED_IMAGE_HOST in first:
        return first
    if TRUSTED_IMAGE_HOST in second:
        return second
    return first


def _merged_rating(first: Optional[float], second: Optional[float]) -> Optional[float]:
    if first and second:
        return round((first + second) / 2, 1)
    return first or second


def merge_pair(primary: Hotel, secondary: Hotel) -> Hotel:
    """Fold ``secondary`` into ``primary``; identity and booking link stay with ``primary``."""
    return replace(
        primary,
        price=min(primary.price, secondary.price),
        image_url=better_image_url(primary.image_url, secondary.image_url),
        rating=_merged_rating(primary.rating, secondary.rating),
        affiliate_url=primary.affiliate_url,
    )


def dedupe_and_merge(primary: Iterable[Hotel], secondary: Iterable[Hotel]) -> List[Hotel]:
    """Merge secondary records into the primary list and sort by price.

    Primary records sharing a normalised name are folded together first. The
    final sort is stable, so equal prices keep the primary list's order
    followed by appended secondary records.
    """
    result: List[Hotel] = []
    names: List[str] = []
    merged = 0
    for record in primary:
        name = normalize_name(record.name)
        if name in names:
            index = names.index(name)
            result[index] = merge_pair(result[index], record)
            merged += 1
            continue
        names.append(name)
        result.append(record)

    for candidate in secondary:
        index = next((i for i, existing in enumerate(result) if is_duplicate(existing, candidate)), None)
        if index is None:
            result.append(candidate)
            continue
        result[index] = merge_pair(result[index], candidate)
        merged += 1
    if merged:
        logger.debug("Merged %s secondary records into primary results", merged)
    return sorted(result, key=lambda hotel: hotel.price)
