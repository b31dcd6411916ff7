from __future__ import annotations

from shudenout.filters.couple import couple_score, filter_couple_friendly, is_couple_friendly
from shudenout.filters.quality import excluded_word, filter_quality_hotels, is_quality_hotel
from shudenout.hotels.models import Hotel


def _hotel(name: str, price: int = 5000, rating: float | None = None) -> Hotel:
    return Hotel(id=f"rakuten_{name}", name=name, price=price, rating=rating)


def test_quality_filter_removes_capsule_hotels() -> None:
    hotels = [_hotel("新宿カプセルホテル"), _hotel("渋谷センターホテル")]

    assert [hotel.name for hotel in filter_quality_hotels(hotels)] == ["渋谷センターホテル"]


def test_exclusion_words_match_anywhere_and_ignore_case() -> None:
    assert excluded_word(_hotel("カプセルホテル新宿")) is not None
    assert excluded_word(_hotel("SHINJUKU HOSTEL")) == "hostel"
    assert is_quality_hotel(_hotel("ABCホテル"))


def test_quality_thresholds_are_opt_in() -> None:
    cheap = _hotel("ABCホテル", price=2000, rating=2.5)
    unrated = _hotel("XYZホテル", price=6000)

    assert is_quality_hotel(cheap)
    assert not is_quality_hotel(cheap, min_price=3000)
    assert not is_quality_hotel(cheap, min_rating=3.0)
    assert is_quality_hotel(unrated, min_rating=3.0)


def test_couple_filter_requires_rating_or_price_gate() -> None:
    well_rated = _hotel("ホテル新宿", price=4000, rating=4.2)
    pricey = _hotel("ホテル渋谷", price=8000)
    neither = _hotel("ホテル上野", price=4000, rating=3.5)

    assert is_couple_friendly(well_rated)
    assert is_couple_friendly(pricey)
    assert not is_couple_friendly(neither)
    assert filter_couple_friendly([well_rated, neither, pricey]) == [well_rated, pricey]


def test_couple_filter_rejects_ng_words_and_rewards_positive_ones() -> None:
    assert couple_score(_hotel("ホステル新宿", price=9000, rating=4.8)) == -1
    assert not is_couple_friendly(_hotel("ホテル新宿", price=9000), additional_text="男女混合ドミトリー")
    assert couple_score(_hotel("ホテル新宿", price=9000, rating=4.5), additional_text="ダブルルーム") == 3
