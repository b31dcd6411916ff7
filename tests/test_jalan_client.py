from __future__ import annotations

from datetime import date
from typing import Callable

import httpx
import pytest

from shudenout.config.settings import Settings
from shudenout.hotels.models import SearchCriteria, Source
from shudenout.services.jalan_client import JalanClient

PAYLOAD = {
    "Results": {
        "NumberOfResults": 2,
        "Hotel": [
            {"HotelName": "ホテルA", "HotelMinCharge": "4800", "SmallArea": "新宿", "SalesformUrl": "https://www.jalan.net/yad1/"},
            {"HotelName": "ホテルB", "HotelMinCharge": "5200", "SmallArea": "新宿"},
        ],
    }
}


def _client(handler: Callable[[httpx.Request], httpx.Response], api_key: str | None = "jalan-key") -> JalanClient:
    settings = Settings(_env_file=None, jalan_api_key=api_key)
    return JalanClient(settings, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_search_maps_hotels_and_builds_params() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=PAYLOAD)

    async with _client(handler) as client:
        hotels = await client.search(area="shinjuku", price_max=8000, page=2, hits=20)

    assert [hotel.name for hotel in hotels] == ["ホテルA", "ホテルB"]
    assert all(hotel.source is Source.JALAN for hotel in hotels)
    params = requests[0].url.params
    assert params["key"] == "jalan-key"
    assert params["area"] == "新宿"
    assert params["count"] == "20"
    assert params["start"] == "21"
    assert params["price_max"] == "8000"
    assert "price_min" not in params


@pytest.mark.asyncio
async def test_coordinates_pick_nearest_area() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"Results": {}})

    async with _client(handler) as client:
        hotels = await client.search(lat=35.658, lng=139.7016, hits=500)

    assert hotels == []
    assert requests[0].url.params["area"] == "渋谷"
    assert requests[0].url.params["count"] == "100"


@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(500, text="error"),
        lambda request: httpx.Response(200, text="not json"),
        lambda request: httpx.Response(200, json=["unexpected"]),
        lambda request: httpx.Response(200, json={"Results": "error"}),
        lambda request: httpx.Response(200, json={"Results": [{"Hotel": []}]}),
        lambda request: httpx.Response(200, json={"Results": {"Hotel": 3}}),
    ],
)
@pytest.mark.asyncio
async def test_search_never_raises(handler: Callable[[httpx.Request], httpx.Response]) -> None:
    async with _client(handler) as client:
        assert await client.search(area="shinjuku") == []


@pytest.mark.asyncio
async def test_network_errors_and_missing_key_yield_empty_results() -> None:
    calls: list[httpx.Request] = []

    def failing(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("unreachable", request=request)

    async with _client(failing) as client:
        assert await client.search(area="shinjuku") == []
    async with _client(failing, api_key=None) as client:
        assert await client.search(area="shinjuku") == []
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_find_hotels_requests_first_cheapest_page() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=PAYLOAD)

    criteria = SearchCriteria(check_in=date(2024, 1, 1), check_out=date(2024, 1, 2), latitude=35.69, longitude=139.70)
    async with _client(handler) as client:
        result = await client.find_hotels(criteria)

    assert result.ok
    assert len(result.hotels) == 2
    params = requests[0].url.params
    assert params["start"] == "1"
    assert params["count"] == "100"
    assert params["order"] == "1"


@pytest.mark.asyncio
async def test_non_finite_numbers_are_treated_as_missing() -> None:
    payload = {
        "Results": {
            "Hotel": [
                {"HotelName": "ホテルC", "HotelMinCharge": "NaN", "X": "inf", "Y": "503155000"},
                {"HotelName": "ホテルD", "HotelMinCharge": "6100"},
            ]
        }
    }

    async with _client(lambda request: httpx.Response(200, json=payload)) as client:
        hotels = await client.search(area="shinjuku")

    assert [hotel.name for hotel in hotels] == ["ホテルC", "ホテルD"]
    assert hotels[0].price == 0
    assert hotels[0].longitude is None
    assert hotels[0].latitude == pytest.approx(503155000 / 3_600_000)
    assert hotels[1].price == 6100
