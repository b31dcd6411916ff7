from __future__ import annotations

from typing import Any, Optional

import pytest

from shudenout.hotels import build_jalan_hotels, build_rakuten_hotel, build_rakuten_hotels, extract_candidate_numbers
from shudenout.hotels.models import Source
from shudenout.hotels.normalizer import infer_amenities, infer_area

DETAIL_URL = "https://travel.rakuten.co.jp/HOTEL/12345/12345.html"
ENCODED_DETAIL_URL = "https%3A%2F%2Ftravel.rakuten.co.jp%2FHOTEL%2F12345%2F12345.html"


def _entry(affiliate_url: Optional[Any] = None, rooms: Optional[list[dict[str, Any]]] = None) -> dict[str, Any]:
    info: dict[str, Any] = {
        "hotelNo": 12345,
        "hotelName": "新宿ビジネスホテル",
        "hotelMinCharge": 5000,
        "reviewAverage": 4.2,
        "reviewCount": 120,
        "address1": "東京都",
        "address2": "新宿区西新宿1-1-1",
        "nearestStation": "新宿",
        "hotelImageUrl": "https://img.travel.rakuten.co.jp/share/HOTEL/12345/12345.jpg",
        "hotelInformationUrl": DETAIL_URL,
        "hotelSpecial": "全室Wi-Fi完備・大浴場あり",
        "latitude": 35.69,
        "longitude": 139.70,
        "access": "JR新宿駅西口より徒歩5分",
    }
    if affiliate_url is not None:
        info["hotelAffiliateUrl"] = affiliate_url
    segments: list[dict[str, Any]] = [{"hotelBasicInfo": info}]
    if rooms is not None:
        segments.append({"roomInfo": rooms})
    return {"hotel": segments}


def test_build_rakuten_hotel_maps_listing_fields() -> None:
    hotel = build_rakuten_hotel(_entry(), tracking_id="abc.def")

    assert hotel is not None
    assert hotel.id == "rakuten_12345"
    assert hotel.name == "新宿ビジネスホテル"
    assert hotel.area == "新宿区"
    assert hotel.nearest == "新宿"
    assert hotel.price == 5000
    assert hotel.rating == 4.2
    assert hotel.review_count == 120
    assert hotel.amenities == ("大浴場", "WiFi")
    assert hotel.latitude == 35.69
    assert hotel.address == "東京都新宿区西新宿1-1-1"
    assert hotel.source is Source.RAKUTEN
    assert hotel.is_same_day_available is False
    assert hotel.affiliate_url == f"https://hb.afl.rakuten.co.jp/hgc/abc.def/?pc={ENCODED_DETAIL_URL}"


def test_vacancy_confirmed_hotel_uses_room_charge() -> None:
    rooms = [
        {"roomBasicInfo": {"roomName": "ダブル"}},
        {"dailyCharge": {"total": 6200}},
        {"dailyCharge": {"rakutenCharge": 5800}},
    ]
    hotel = build_rakuten_hotel(_entry(rooms=rooms), tracking_id=None, vacancy_confirmed=True, adults=2)

    assert hotel is not None
    assert hotel.price == 5800
    assert hotel.is_same_day_available is True
    assert "2人可" in hotel.amenities
    assert hotel.affiliate_url == DETAIL_URL


def test_pre_tracked_provider_link_is_kept_verbatim() -> None:
    provided = f"https://hb.afl.rakuten.co.jp/hgc/provided/?pc={ENCODED_DETAIL_URL}"
    hotel = build_rakuten_hotel(_entry({"pc": provided, "mobile": None}), tracking_id="abc.def")

    assert hotel is not None
    assert hotel.affiliate_url == provided


@pytest.mark.parametrize(
    "provided",
    [
        "https://evil.example.com/?pc=https%3A%2F%2Ftravel.rakuten.co.jp%2F",
        "https://hb.afl.rakuten.co.jp/hgc/x/?pc=https%3A%2F%2Fevil.example.com%2F",
    ],
)
def test_untrusted_provider_link_is_replaced(provided: str) -> None:
    hotel = build_rakuten_hotel(_entry(provided), tracking_id="abc.def")

    assert hotel is not None
    assert hotel.affiliate_url.startswith("https://hb.afl.rakuten.co.jp/hgc/abc.def/")
    assert ENCODED_DETAIL_URL in hotel.affiliate_url


def test_entries_without_hotel_number_are_skipped() -> None:
    payload = {"hotels": [_entry(), {"hotel": [{"hotelBasicInfo": {"hotelName": "番号なし"}}]}, "garbage"]}

    hotels = build_rakuten_hotels(payload, tracking_id=None)

    assert [hotel.id for hotel in hotels] == ["rakuten_12345"]


def test_extract_candidate_numbers_keeps_response_order() -> None:
    payload = {
        "hotels": [
            {"hotel": [{"hotelBasicInfo": {"hotelNo": 3}}]},
            {"hotel": [{"hotelBasicInfo": {"hotelNo": "1"}}]},
            {"hotel": [{"hotelBasicInfo": {"hotelNo": 3}}]},
            {"hotel": [{"hotelBasicInfo": {}}]},
        ]
    }

    assert extract_candidate_numbers(payload) == ["3", "1"]
    assert extract_candidate_numbers({}) == []


def test_build_jalan_hotels_accepts_single_record() -> None:
    payload = {
        "Results": {
            "Hotel": {
                "HotelName": "ｓｈｉｎｊｕｋｕ Business Hotel",
                "SmallArea": "新宿",
                "NearStation": "新宿駅",
                "HotelMinCharge": "4800",
                "CustomerEvaluationAverage": "4.0",
                "PictureURL": "https://www.jalan.net/img/800x600.jpg",
                "SalesformUrl": "https://www.jalan.net/yad123/",
                "Y": "128484000",
                "X": "502920000",
            }
        }
    }

    hotels = build_jalan_hotels(payload)

    assert len(hotels) == 1
    hotel = hotels[0]
    assert hotel.id == "jalan_ｓｈｉｎｊｕｋｕ Business Hotel_0"
    assert hotel.price == 4800
    assert hotel.rating == 4.0
    assert hotel.source is Source.JALAN
    assert hotel.affiliate_url == "https://www.jalan.net/yad123/"
    assert hotel.latitude == pytest.approx(35.69)
    assert hotel.longitude == pytest.approx(139.70)


def test_build_jalan_hotels_defaults_missing_fields() -> None:
    payload = {"Results": {"Hotel": [{"HotelName": "ホテルB"}, {"SmallArea": "名前なし"}]}}

    hotels = build_jalan_hotels(payload)

    assert [hotel.name for hotel in hotels] == ["ホテルB"]
    assert hotels[0].area == "東京"
    assert hotels[0].price == 0
    assert hotels[0].latitude is None
    assert build_jalan_hotels({}) == []


@pytest.mark.parametrize("payload", [{"hotels": 7}, {"hotels": "hotel"}, {"hotels": None}])
def test_unexpected_hotels_container_yields_nothing(payload: dict[str, Any]) -> None:
    assert build_rakuten_hotels(payload, tracking_id=None) == []
    assert extract_candidate_numbers(payload) == []


def test_non_finite_numbers_are_dropped_and_unmappable_entries_skipped() -> None:
    odd = _entry()
    odd["hotel"][0]["hotelBasicInfo"].update(hotelNo=1, hotelMinCharge="NaN", reviewAverage="inf", latitude="-inf")
    broken = _entry()
    broken["hotel"][0]["hotelBasicInfo"].update(hotelNo=2, address1=123)

    hotels = build_rakuten_hotels({"hotels": [odd, broken, _entry()]}, tracking_id=None)

    assert [hotel.id for hotel in hotels] == ["rakuten_1", "rakuten_12345"]
    assert hotels[0].price == 0
    assert hotels[0].rating is None
    assert hotels[0].latitude is None

def test_infer_helpers() -> None:
    assert infer_area("大阪府大阪市北区梅田1-1") == "大阪市"
    assert infer_area(None, "新宿") == "新宿"
    assert infer_area("") == "その他"
    assert infer_amenities("無料駐車場・温泉・シャワー") == ("駐車場", "温泉", "シャワー")
    assert infer_amenities(None, adults=1) == ()
