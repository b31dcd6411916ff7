"""Synthetic placeholder hotels served outside production when live data is unavailable."""
from __future__ import annotations

from typing import List, Optional, Sequence

from shudenout.hotels.models import (
    AMENITY_SHOWER as SHOWER,
    AMENITY_TWO_PERSON as TWO,
    AMENITY_WIFI as WIFI,
    Hotel,
    Source,
    has_all_amenities,
)

SAMPLE_LINK = "https://travel.rakuten.co.jp/"


def _sample(
    number: int,
    name: str,
    area: str,
    nearest: str,
    price: int,
    amenities: Sequence[str],
    rating: float,
    latitude: float,
    longitude: float,
) -> Hotel:
    return Hotel(
        id=f"sample_{number}",
        name=name,
        area=area,
        nearest=nearest,
        price=price,
        rating=rating,
        amenities=tuple(amenities),
        image_url=f"https://picsum.photos/seed/sample{number}/1200/800",
        affiliate_url=SAMPLE_LINK,
        latitude=latitude,
        longitude=longitude,
        source=Source.SAMPLE,
    )


SAMPLE_HOTELS: tuple[Hotel, ...] = (
    _sample(1, "新宿ビジネスホテル", "新宿区", "新宿駅", 4800, (WIFI, SHOWER), 4.2, 35.6905, 139.6995),
    _sample(2, "渋谷センターホテル", "渋谷区", "渋谷駅", 7200, (WIFI, SHOWER), 4.1, 35.6595, 139.7005),
    _sample(3, "池袋ツインルーム", "豊島区", "池袋駅", 6500, (WIFI, SHOWER, TWO), 4.5, 35.7300, 139.7120),
    _sample(4, "上野プレミアムホテル", "台東区", "上野駅", 4200, (WIFI, SHOWER), 4.0, 35.7130, 139.7765),
    _sample(5, "新宿ラグジュアリーホテル", "新宿区", "新宿駅", 12000, (WIFI, SHOWER, TWO), 4.7, 35.6880, 139.6930),
    _sample(6, "渋谷ビジネスイン", "渋谷区", "渋谷駅", 7200, (WIFI,), 4.0, 35.6570, 139.7030),
    _sample(7, "新橋ステーションホテル", "港区", "新橋駅", 5500, (WIFI, SHOWER), 4.0, 35.6660, 139.7590),
    _sample(8, "六本木プレミアムイン", "港区", "六本木駅", 9800, (WIFI, SHOWER, TWO), 4.3, 35.6630, 139.7320),
    _sample(9, "池袋ナイトホテル", "豊島区", "池袋駅", 4200, (WIFI, SHOWER), 4.0, 35.7285, 139.7100),
    _sample(10, "品川ビューホテル", "品川区", "品川駅", 6800, (WIFI, SHOWER, TWO), 4.1, 35.6285, 139.7390),
    _sample(11, "浅草トラディショナル", "台東区", "浅草駅", 5200, (WIFI, SHOWER), 4.4, 35.7115, 139.7965),
    _sample(12, "秋葉原テックホテル", "千代田区", "秋葉原駅", 5800, (WIFI, SHOWER), 4.0, 35.6990, 139.7740),
    _sample(13, "原宿デザインホテル", "渋谷区", "原宿駅", 8500, (WIFI, SHOWER, TWO), 4.2, 35.6705, 139.7025),
    _sample(14, "銀座エレガントイン", "中央区", "銀座駅", 11500, (WIFI, SHOWER, TWO), 4.6, 35.6715, 139.7650),
    _sample(15, "恵比寿ガーデンホテル", "渋谷区", "恵比寿駅", 7800, (WIFI, SHOWER, TWO), 4.3, 35.6465, 139.7100),
    _sample(16, "新宿サウスタワー", "新宿区", "新宿駅", 6200, (WIFI, SHOWER), 4.0, 35.6875, 139.7010),
    _sample(17, "有楽町セントラルホテル", "千代田区", "有楽町駅", 7500, (WIFI, SHOWER), 4.1, 35.6750, 139.7635),
    _sample(18, "神田ビジネスイン", "千代田区", "神田駅", 4900, (WIFI, SHOWER), 4.0, 35.6920, 139.7710),
    _sample(19, "目黒リバーサイド", "品川区", "目黒駅", 6500, (WIFI, SHOWER, TWO), 4.2, 35.6335, 139.7150),
    _sample(20, "新橋コンフォートホテル", "港区", "新橋駅", 5800, (WIFI, SHOWER), 4.0, 35.6670, 139.7570),
)


def sample_hotels(
    *,
    area: Optional[str] = None,
    min_charge: Optional[int] = None,
    max_charge: Optional[int] = None,
    amenities: Sequence[str] = (),
) -> List[Hotel]:
    """Placeholder hotels narrowed by area, price and amenities."""
    hotels: List[Hotel] = list(SAMPLE_HOTELS)
    if area:
        hotels = [hotel for hotel in hotels if hotel.area.startswith(area) or area in hotel.name]
    if min_charge is not None:
        hotels = [hotel for hotel in hotels if hotel.price >= min_charge]
    if max_charge is not None:
        hotels = [hotel for hotel in hotels if hotel.price <= max_charge]
    if amenities:
        hotels = [hotel for hotel in hotels if has_all_amenities(hotel, amenities)]
    return hotels
