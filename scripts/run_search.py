"""Run a same-night hotel search from the command line and print the JSON response."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from shudenout.api.query import QueryError, SearchQuery
from shudenout.config.settings import Settings
from shudenout.core.logging import configure_logging
from shudenout.pipeline.search import HotelSearchService
from shudenout.services.base import ConfigurationError, ProviderError


def _query_params(args: argparse.Namespace) -> Dict[str, Any]:
    params = {
        "lat": args.lat,
        "lng": args.lng,
        "area": args.area,
        "radiusKm": args.radius,
        "checkinDate": args.checkin,
        "checkoutDate": args.checkout,
        "adultNum": args.adults,
        "roomNum": args.rooms,
        "minCharge": args.min_charge,
        "maxCharge": args.max_charge,
        "amenities": args.amenities,
        "page": args.page,
        "hits": args.hits,
        "inspect": args.inspect,
        "couple": args.couple,
    }
    return {key: value for key, value in params.items() if value is not None}


async def run(args: argparse.Namespace, settings: Settings) -> Dict[str, Any]:
    async with HotelSearchService(settings) as service:
        if args.ping:
            return await service.rakuten.ping()
        if args.detail:
            hotel = await service.rakuten.get_hotel_detail(args.detail)
            return {"hotel": hotel.to_dict() if hotel else None}
        query = SearchQuery.parse(_query_params(args))
        response = await service.search(query.to_criteria(settings), inspect=query.inspect)
        return response.to_dict()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--lat", type=float)
    parser.add_argument("--lng", type=float)
    parser.add_argument("--area", help="Area slug or name, e.g. shinjuku or 新宿")
    parser.add_argument("--radius", type=float, help="Search radius in km (vacancy search caps this at 3km)")
    parser.add_argument("--checkin", help="YYYY-MM-DD; defaults to today in JST")
    parser.add_argument("--checkout", help="YYYY-MM-DD; defaults to the day after check-in")
    parser.add_argument("--adults", type=int)
    parser.add_argument("--rooms", type=int)
    parser.add_argument("--min-charge", type=int)
    parser.add_argument("--max-charge", type=int)
    parser.add_argument("--amenities", help="Comma separated list, e.g. WiFi,シャワー")
    parser.add_argument("--page", type=int)
    parser.add_argument("--hits", type=int)
    parser.add_argument("--inspect", action="store_true", help="Include upstream diagnostics")
    parser.add_argument("--couple", action="store_true", help="Only couple-friendly hotels")
    parser.add_argument("--ping", action="store_true", help="Check primary provider connectivity and exit")
    parser.add_argument("--detail", help="Look up one hotel number instead of searching")
    parser.add_argument("--output", type=Path, help="Write the JSON response to this file")
    args = parser.parse_args(argv)

    settings = Settings()
    configure_logging(settings.log_level, settings.log_dir)

    try:
        payload = asyncio.run(run(args, settings))
    except QueryError as exc:
        parser.error(str(exc))
    except (ConfigurationError, ProviderError) as exc:
        logging.error("Search failed: %s", exc)
        return 1

    text = json.dumps(payload, ensure_ascii=False, indent=2)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(text, encoding="utf-8")
        logging.info("Wrote response to %s", args.output)
    else:
        sys.stdout.write(text + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
