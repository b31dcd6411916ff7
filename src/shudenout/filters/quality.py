"""Exclusion-list filter for non-traditional lodging (capsules, hostels, net cafes, ...)."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from shudenout.hotels.models import Hotel
from shudenout.utils.text import contains_any

logger = logging.getLogger(__name__)

LOW_QUALITY_WORDS: tuple[str, ...] = (
    # capsule
    "カプセル", "カプセルホテル", "capsule", "caps",
    # cabin
    "キャビン", "cabin", "キャビンホテル",
    # pod
    "ポッド", "pod", "pods",
    # dormitory
    "ドミトリー", "dorm", "dormitory", "相部屋", "男女混合", "shared",
    # hostel
    "ホステル", "hostel", "ゲストハウス", "guest house", "guesthouse",
    # net cafe
    "ネットカフェ", "net cafe", "netcafe", "漫画喫茶", "manga cafe",
    "コンパクト", "compact", "ミニマル", "minimal", "シンプル宿泊",
    # backpacker
    "バックパッカー", "backpacker", "youth", "ユース",
    # basic lodging
    "簡易宿泊", "簡易ホテル", "格安宿泊", "ワンルーム宿泊",
    # sauna stays
    "サウナ", "sauna",
)


def excluded_word(hotel: Hotel) -> Optional[str]:
    return contains_any(hotel.name, LOW_QUALITY_WORDS)


def is_quality_hotel(
    hotel: Hotel,
    *,
    min_price: Optional[int] = None,
    min_rating: Optional[float] = None,
) -> bool:
    """True unless the name hits the exclusion list or an opted-in threshold fails.

    ``min_rating`` only applies to rated hotels.
    """
    if min_price is not None and hotel.price < min_price:
        return False
    if min_rating is not None and hotel.rating and hotel.rating < min_rating:
        return False
    return excluded_word(hotel) is None


def filter_quality_hotels(
    hotels: Iterable[Hotel],
    *,
    min_price: Optional[int] = None,
    min_rating: Optional[float] = None,
) -> List[Hotel]:
    hotels = list(hotels)
    kept = [hotel for hotel in hotels if is_quality_hotel(hotel, min_price=min_price, min_rating=min_rating)]
    if len(kept) != len(hotels):
        logger.debug("Quality filter removed %s of %s hotels", len(hotels) - len(kept), len(hotels))
    return kept
