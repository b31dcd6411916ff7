"""Hotel domain models and normalization helpers."""

from .models import (
    ChunkTrace,
    Hotel,
    Paging,
    SearchCriteria,
    SearchOutcome,
    SearchResponse,
    Source,
)
from .normalizer import (
    build_jalan_hotels,
    build_rakuten_hotel,
    build_rakuten_hotels,
    extract_candidate_numbers,
)

__all__ = [
    "ChunkTrace",
    "Hotel",
    "Paging",
    "SearchCriteria",
    "SearchOutcome",
    "SearchResponse",
    "Source",
    "build_jalan_hotels",
    "build_rakuten_hotel",
    "build_rakuten_hotels",
    "extract_candidate_numbers",
]
