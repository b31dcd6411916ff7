from __future__ import annotations

from datetime import date
from urllib.parse import parse_qs, urlsplit

import pytest

from shudenout.links.affiliate import (
    add_stay_params,
    build_link,
    canonical_detail_url,
    extract_hotel_id,
    is_allowed_link,
    safe_hotel_link,
    validate_link,
)

DETAIL = "https://travel.rakuten.co.jp/HOTEL/123/123.html"
ENCODED = "https%3A%2F%2Ftravel.rakuten.co.jp%2FHOTEL%2F123%2F123.html"
TRACKED = f"https://hb.afl.rakuten.co.jp/hgc/abc.def/?pc={ENCODED}"


@pytest.mark.parametrize(
    "url",
    [
        DETAIL,
        TRACKED,
        "https://hotel.travel.rakuten.co.jp/hotelinfo/plan/123",
    ],
)
def test_safe_hotel_link_keeps_allowed_hosts(url: str) -> None:
    assert safe_hotel_link(url, "123") == url


@pytest.mark.parametrize(
    "url",
    [
        "https://travel.rakuten.co.jp.evil.example.com/HOTEL/123/123.html",
        "https://eviltravel.rakuten.co.jp/",
        "https://evil.example.com/?next=travel.rakuten.co.jp",
        "https://user@travel.rakuten.co.jp/HOTEL/123/123.html",
        "https://travel.rakuten.co.jp:99999/",
        "javascript:alert(1)",
        "//travel.rakuten.co.jp/HOTEL/123/123.html",
        "https://travel.rakuten.co.jp/HOTEL/123/123.html\nSet-Cookie: x",
        "",
        None,
    ],
)
def test_safe_hotel_link_falls_back_to_canonical_detail(url: str | None) -> None:
    assert safe_hotel_link(url, "123") == DETAIL
    assert safe_hotel_link(url, None) == ""


def test_safe_hotel_link_rejects_non_numeric_identifiers() -> None:
    assert safe_hotel_link("https://evil.example.com/", "12a") == ""
    with pytest.raises(ValueError):
        canonical_detail_url("12a")


def test_build_link_wraps_detail_url() -> None:
    assert build_link(DETAIL, "123", "abc.def") == TRACKED
    assert build_link(DETAIL, "123", None) == DETAIL


def test_build_link_keeps_well_formed_tracking_link() -> None:
    assert build_link(TRACKED, "123", "abc.def") == TRACKED


def test_build_link_rebuilds_tracking_link_for_another_id() -> None:
    rebuilt = build_link(TRACKED, "123", "other.id")

    assert rebuilt == f"https://hb.afl.rakuten.co.jp/hgc/other.id/?pc={ENCODED}"


def test_build_link_replaces_non_detail_targets() -> None:
    assert build_link("https://travel.rakuten.co.jp/", "123", "abc.def") == TRACKED
    assert build_link("https://travel.rakuten.co.jp/search?f_no=123", None, "abc.def") == TRACKED
    assert build_link("https://travel.rakuten.co.jp/", None, "abc.def") == "https://travel.rakuten.co.jp/"


def test_validate_link_reports_reasons() -> None:
    detail = validate_link(DETAIL)
    assert detail.is_valid and detail.is_detail and not detail.is_affiliate

    tracked = validate_link(TRACKED)
    assert tracked.is_valid and tracked.is_affiliate

    bad_target = validate_link("https://hb.afl.rakuten.co.jp/hgc/x/?pc=https%3A%2F%2Fevil.example.com%2F")
    assert not bad_target.is_valid
    assert bad_target.reason == "Invalid pc parameter hostname: evil.example.com"

    assert validate_link("not a url").reason == "Invalid URL format"
    assert validate_link("https://evil.example.com/").reason == "Invalid hostname: evil.example.com"


def test_extract_hotel_id_handles_paths_and_queries() -> None:
    assert extract_hotel_id(DETAIL) == "123"
    assert extract_hotel_id("https://travel.rakuten.co.jp/search?f_no=456") == "456"
    assert extract_hotel_id("https://travel.rakuten.co.jp/x?hotel_no=789") == "789"
    assert extract_hotel_id("https://travel.rakuten.co.jp/") is None
    assert extract_hotel_id(None) is None


def test_add_stay_params_only_touches_untracked_detail_links() -> None:
    url = add_stay_params(DETAIL, check_in=date(2024, 1, 1), check_out=date(2024, 1, 2), adults=2, rooms=1)

    query = parse_qs(urlsplit(url).query)
    assert urlsplit(url).path == "/HOTEL/123/123.html"
    assert query == {
        "checkin_date": ["20240101"],
        "checkout_date": ["20240102"],
        "adult_num": ["2"],
        "room_num": ["1"],
    }
    assert add_stay_params(TRACKED, check_in=date(2024, 1, 1)) == TRACKED


def test_add_stay_params_keeps_existing_values() -> None:
    url = add_stay_params(f"{DETAIL}?f_checkin=20231231", check_in=date(2024, 1, 1), adults=2)

    query = parse_qs(urlsplit(url).query)
    assert query["f_checkin"] == ["20231231"]
    assert "checkin_date" not in query
    assert query["adult_num"] == ["2"]


def test_is_allowed_link() -> None:
    assert is_allowed_link(TRACKED)
    assert is_allowed_link(DETAIL)
    assert not is_allowed_link("http://169.254.169.254/latest/meta-data")
    assert not is_allowed_link(None)
