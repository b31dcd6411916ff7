"""Service clients for the hotel search providers."""

from .base import (
    CandidateResult,
    ConfigurationError,
    HotelProvider,
    ProviderError,
    ProviderResult,
    VacancyResult,
)
from .jalan_client import JalanClient
from .rakuten_client import RakutenClient

__all__ = [
    "CandidateResult",
    "ConfigurationError",
    "HotelProvider",
    "JalanClient",
    "ProviderError",
    "ProviderResult",
    "RakutenClient",
    "VacancyResult",
]
