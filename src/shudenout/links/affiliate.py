"""Affiliate link construction and domain safety checks for hotel detail pages."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union
from urllib.parse import parse_qs, parse_qsl, quote, urlencode, urlsplit, urlunsplit

logger = logging.getLogger(__name__)

TRACKING_HOST = "hb.afl.rakuten.co.jp"
DETAIL_HOST = "travel.rakuten.co.jp"
DETAIL_HOSTS = frozenset({DETAIL_HOST, "hotel.travel.rakuten.co.jp"})
MARKETPLACE_HOST = "www.rakuten.co.jp"
ALLOWED_DOMAINS = (DETAIL_HOST, TRACKING_HOST)

_DETAIL_PATH = re.compile(r"/HOTEL/(\d+)/\d+\.html")
_ID_PARAM = re.compile(r"[?&](?:hotel_no|id|hotelno)=(\d+)", re.IGNORECASE)
_UNSAFE_CHARS = re.compile(r"[\s\\\x00-\x1f\x7f]")

HotelIdentifier = Union[str, int, None]


@dataclass(frozen=True)
class LinkValidation:
    is_valid: bool
    is_detail: bool
    is_affiliate: bool
    reason: Optional[str] = None


def parse_link_host(url: Optional[str]) -> Optional[str]:
    """Return the lower-cased host of an absolute http(s) URL, or None when unusable."""
    if not url or _UNSAFE_CHARS.search(url):
        return None
    try:
        parts = urlsplit(url)
        # Accessing .port validates it and raises on garbage.
        parts.port
    except ValueError:
        return None
    if parts.scheme not in ("http", "https"):
        return None
    if parts.username is not None or parts.password is not None:
        return None
    host = parts.hostname
    return host.lower() if host else None


def _host_allowed(host: Optional[str]) -> bool:
    if not host:
        return False
    return any(host == domain or host.endswith("." + domain) for domain in ALLOWED_DOMAINS)


def _normalise_identifier(hotel_identifier: HotelIdentifier) -> Optional[str]:
    if hotel_identifier is None:
        return None
    text = str(hotel_identifier).strip()
    return text if text.isdigit() else None


def is_allowed_link(url: Optional[str]) -> bool:
    """True when ``url`` is an absolute http(s) URL on the tracking or detail domain."""
    return _host_allowed(parse_link_host(url))


def canonical_detail_url(hotel_identifier: HotelIdentifier) -> str:
    hotel_no = _normalise_identifier(hotel_identifier)
    if hotel_no is None:
        raise ValueError(f"Invalid hotel identifier: {hotel_identifier!r}")
    return f"https://{DETAIL_HOST}/HOTEL/{hotel_no}/{hotel_no}.html"


def is_detail_url(url: Optional[str]) -> bool:
    host = parse_link_host(url)
    return host in DETAIL_HOSTS and "/HOTEL/" in urlsplit(url).path  # type: ignore[arg-type]


def extract_hotel_id(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = _DETAIL_PATH.search(url)
    if match:
        return match.group(1)
    try:
        query = parse_qs(urlsplit(url).query)
    except ValueError:
        return None
    f_no = query.get("f_no")
    if f_no and f_no[0].isdigit():
        return f_no[0]
    match = _ID_PARAM.search(url)
    return match.group(1) if match else None


def _tracked_target(url: str) -> Optional[str]:
    values = parse_qs(urlsplit(url).query).get("pc")
    if not values:
        return None
    return values[0]


def build_link(native_detail_url: str, hotel_identifier: HotelIdentifier, tracking_id: Optional[str]) -> str:
    """Wrap a hotel detail URL in the tracking redirect ``/hgc/<id>/?pc=<encoded target>``.

    Tracking links that are already well formed for ``tracking_id`` are returned
    unchanged; malformed ones are unwrapped and rebuilt. Targets that are not
    hotel detail pages are replaced by the canonical detail URL when the hotel
    identifier is known.
    """
    target = native_detail_url
    if parse_link_host(target) == TRACKING_HOST:
        inner = _tracked_target(target)
        if inner and is_detail_url(inner) and tracking_id:
            if urlsplit(target).path == f"/hgc/{tracking_id}/":
                return target
        if inner:
            target = inner

    if not is_detail_url(target):
        hotel_no = _normalise_identifier(hotel_identifier) or extract_hotel_id(target)
        if hotel_no is None:
            logger.warning("Cannot build tracked link for non-detail URL %s", target)
            return target
        target = canonical_detail_url(hotel_no)

    if not tracking_id:
        return target
    return f"https://{TRACKING_HOST}/hgc/{tracking_id}/?pc={quote(target, safe='')}"


def safe_hotel_link(candidate_url: Optional[str], hotel_identifier: HotelIdentifier) -> str:
    """Return ``candidate_url`` when its host is allow-listed, else the canonical detail URL.

    An empty string is returned when neither is possible, so a foreign or
    malformed host is never surfaced.
    """
    if _host_allowed(parse_link_host(candidate_url)):
        return candidate_url  # type: ignore[return-value]
    hotel_no = _normalise_identifier(hotel_identifier)
    if hotel_no is not None:
        if candidate_url:
            logger.warning("Replacing link on disallowed host for hotel %s", hotel_no)
        return canonical_detail_url(hotel_no)
    if candidate_url:
        logger.error("Dropping link on disallowed host with no hotel identifier: %s", candidate_url)
    return ""


def validate_link(url: Optional[str]) -> LinkValidation:
    host = parse_link_host(url)
    if host is None:
        return LinkValidation(False, False, False, "Invalid URL format")
    is_detail = host in DETAIL_HOSTS
    is_affiliate = host == TRACKING_HOST
    if not (is_detail or is_affiliate):
        return LinkValidation(False, False, False, f"Invalid hostname: {host}")
    if is_affiliate:
        inner = _tracked_target(url)  # type: ignore[arg-type]
        if inner is not None:
            inner_host = parse_link_host(inner)
            if inner_host is None:
                return LinkValidation(False, False, True, "Invalid pc parameter format")
            if inner_host not in DETAIL_HOSTS:
                return LinkValidation(False, False, True, f"Invalid pc parameter hostname: {inner_host}")
    return LinkValidation(True, is_detail, is_affiliate)


def resolve_affiliate_url(
    hotel_no: HotelIdentifier,
    *,
    provider_affiliate_url: Optional[str] = None,
    information_url: Optional[str] = None,
    tracking_id: Optional[str] = None,
) -> str:
    """Pick the booking link for a primary-provider hotel.

    Precedence: a valid pre-tracked provider link verbatim, then a tracked
    wrapper around the canonical detail URL, then the untracked detail URL.
    """
    hotel_no = _normalise_identifier(hotel_no) or extract_hotel_id(information_url)

    if provider_affiliate_url and parse_link_host(provider_affiliate_url) == TRACKING_HOST:
        if validate_link(provider_affiliate_url).is_valid:
            return safe_hotel_link(provider_affiliate_url, hotel_no)
        logger.debug("Provider affiliate link rejected: %s", provider_affiliate_url)

    if hotel_no is not None:
        detail_url = canonical_detail_url(hotel_no)
    elif information_url and is_detail_url(information_url):
        detail_url = information_url
    else:
        return safe_hotel_link(information_url, None)

    if tracking_id:
        return safe_hotel_link(build_link(detail_url, hotel_no, tracking_id), hotel_no)
    return safe_hotel_link(detail_url, hotel_no)


def add_stay_params(
    url: str,
    *,
    check_in: Optional[date] = None,
    check_out: Optional[date] = None,
    adults: Optional[int] = None,
    rooms: Optional[int] = None,
) -> str:
    """Append stay parameters to an untracked detail URL without overriding existing ones."""
    if not is_detail_url(url):
        return url
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    additions = {
        ("checkin_date", "f_checkin"): check_in.strftime("%Y%m%d") if check_in else None,
        ("checkout_date", "f_checkout"): check_out.strftime("%Y%m%d") if check_out else None,
        ("adult_num", "f_otona"): str(adults) if adults else None,
        ("room_num", "f_heya"): str(rooms) if rooms else None,
    }
    for (key, alias), value in additions.items():
        if value is None or key in query or alias in query:
            continue
        query[key] = value
    return urlunsplit(parts._replace(query=urlencode(query)))
