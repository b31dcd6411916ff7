"""Distance and walking-time helpers."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

EARTH_RADIUS_KM = 6371.0
WALKING_SPEED_KMH = 4.8
AREA_MATCH_DEGREES = 0.05
DEFAULT_AREA_NAME = "東京"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


AREA_CENTERS: dict[str, Coordinates] = {
    "新宿": Coordinates(35.6896, 139.6917),
    "渋谷": Coordinates(35.6580, 139.7016),
    "上野": Coordinates(35.7141, 139.7774),
    "新橋": Coordinates(35.6662, 139.7580),
    "池袋": Coordinates(35.7295, 139.7109),
    "六本木": Coordinates(35.6627, 139.7314),
}

AREA_SLUGS: dict[str, str] = {
    "shinjuku": "新宿",
    "shibuya": "渋谷",
    "ueno": "上野",
    "shinbashi": "新橋",
    "ikebukuro": "池袋",
    "roppongi": "六本木",
}


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    return haversine_km(lat1, lng1, lat2, lng2) * 1000


def walking_minutes(distance_km: float) -> int:
    return round(distance_km / WALKING_SPEED_KMH * 60)


def format_distance(distance_km: float) -> str:
    if distance_km < 1:
        return f"{round(distance_km * 1000)}m"
    return f"{distance_km:.1f}km"


def format_walking_time(minutes: int) -> str:
    if minutes < 60:
        return f"徒歩約{minutes}分"
    hours, remainder = divmod(minutes, 60)
    return f"徒歩約{hours}時間{remainder}分"


def format_coordinates(lat: float, lng: float, precision: int = 6) -> str:
    return f"{lat:.{precision}f},{lng:.{precision}f}"


def nearest_area_name(lat: float, lng: float) -> str:
    """Closest known area centre within ~5km (planar degrees), else Tokyo as a whole."""
    closest: Optional[str] = None
    best = math.inf
    for name, centre in AREA_CENTERS.items():
        distance = math.hypot(lat - centre.lat, lng - centre.lng)
        if distance < best:
            best = distance
            closest = name
    if closest is not None and best < AREA_MATCH_DEGREES:
        return closest
    return DEFAULT_AREA_NAME


def resolve_area(area: Optional[str]) -> Optional[str]:
    """Japanese area name for a known slug (``shinjuku`` -> ``新宿``); other values pass through."""
    if not area:
        return None
    cleaned = area.strip()
    return AREA_SLUGS.get(cleaned.lower(), cleaned) or None


def area_center(area: Optional[str]) -> Optional[Coordinates]:
    name = resolve_area(area)
    if name is None:
        return None
    return AREA_CENTERS.get(name)
