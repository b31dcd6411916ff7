"""Optional couple-friendly filter, enabled per request."""
from __future__ import annotations

from typing import Iterable, List

from shudenout.hotels.models import Hotel
from shudenout.utils.text import normalize_for_match

NG_WORDS: tuple[str, ...] = (
    "ホステル", "ゲストハウス", "カプセル", "カプセルホテル", "ドミトリー", "相部屋", "男女混合",
    "キャビン", "cabin", "ポッド", "pod", "コンパクト", "compact",
    "hostel", "capsule", "dorm", "guest house", "shared", "dormitory",
)

POSITIVE_WORDS: tuple[str, ...] = (
    "ダブル", "セミダブル", "クイーン", "キング", "カップル", "couple",
    "ラブホテル", "ラブホ",
)

GOOD_RATING = 4.0
GOOD_PRICE = 6000


def couple_score(hotel: Hotel, additional_text: str = "") -> int:
    """Gate points plus positive-word hits; -1 when an NG word is present or the gate fails."""
    text = normalize_for_match(f"{hotel.name} {additional_text}")
    if any(normalize_for_match(word) in text for word in NG_WORDS):
        return -1

    good_rating = bool(hotel.rating and hotel.rating >= GOOD_RATING)
    good_price = hotel.price >= GOOD_PRICE
    if not (good_rating or good_price):
        return -1

    score = int(good_rating) + int(good_price)
    score += sum(1 for word in POSITIVE_WORDS if normalize_for_match(word) in text)
    return score


def is_couple_friendly(hotel: Hotel, additional_text: str = "") -> bool:
    return couple_score(hotel, additional_text) >= 1


def filter_couple_friendly(hotels: Iterable[Hotel]) -> List[Hotel]:
    return [hotel for hotel in hotels if is_couple_friendly(hotel)]
