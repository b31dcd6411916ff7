"""Shared result types and the capability contract implemented by provider clients."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from shudenout.hotels.models import ChunkTrace, Hotel, SearchCriteria


class ConfigurationError(RuntimeError):
    """Raised before any network call when a required credential is missing."""


class ProviderError(Exception):
    def __init__(self, message: str, status_code: int = 502, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": self.message, "statusCode": self.status_code}
        if self.details:
            payload["details"] = self.details
        return payload


@dataclass(slots=True)
class ProviderResult:
    """Hotels returned by one provider call, or the error that prevented it."""

    hotels: List[Hotel] = field(default_factory=list)
    error: Optional[ProviderError] = None
    status_code: Optional[int] = 200
    not_found: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: ProviderError) -> "ProviderResult":
        return cls(hotels=[], error=error, status_code=error.status_code)


@dataclass(slots=True)
class CandidateResult:
    """Facility numbers found during discovery, in response order."""

    hotel_nos: List[str] = field(default_factory=list)
    error: Optional[ProviderError] = None
    status_code: Optional[int] = 200
    not_found: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class VacancyResult:
    """Vacancy-confirmed hotels gathered across every chunk."""

    hotels: List[Hotel] = field(default_factory=list)
    traces: List[ChunkTrace] = field(default_factory=list)
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class HotelProvider(Protocol):
    """Anything that can turn search criteria into normalised hotels."""

    name: str

    async def find_hotels(self, criteria: SearchCriteria) -> ProviderResult:
        ...
