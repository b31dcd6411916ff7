"""Two-stage same-night vacancy search: candidate discovery, then chunked vacancy confirmation."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from shudenout.hotels.models import ChunkTrace, Hotel, SearchCriteria
from shudenout.services.base import ConfigurationError, ProviderError
from shudenout.services.rakuten_client import RakutenClient

logger = logging.getLogger(__name__)

# Same-night results must stay walkable.
MAX_VACANCY_RADIUS_KM = 3.0


class PipelineState(str, Enum):
    CANDIDATE_DISCOVERY = "candidate_discovery"
    VACANCY_CONFIRMATION = "vacancy_confirmation"
    DONE = "done"


class VacancyStatus(str, Enum):
    AVAILABLE = "available"
    NO_CANDIDATES = "no_candidates"
    NO_VACANCY = "no_vacancy"
    CONFIGURATION_ERROR = "configuration_error"
    FAILED = "failed"


@dataclass(slots=True)
class VacancyOutcome:
    status: VacancyStatus
    hotels: List[Hotel] = field(default_factory=list)
    candidate_count: int = 0
    states: List[PipelineState] = field(default_factory=list)
    traces: List[ChunkTrace] = field(default_factory=list)
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status in (VacancyStatus.AVAILABLE, VacancyStatus.NO_CANDIDATES, VacancyStatus.NO_VACANCY)

    def diagnostics(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": self.status.value,
            "states": [state.value for state in self.states],
            "candidateCount": self.candidate_count,
            "vacantCount": len(self.hotels),
            "chunks": [trace.to_dict() for trace in self.traces],
        }
        if self.error:
            payload["error"] = self.error
        if self.status_code is not None:
            payload["statusCode"] = self.status_code
        return payload


class VacancyPipeline:
    """Drive the primary provider through discovery and vacancy confirmation.

    Never fabricates data and never raises for upstream problems: every
    failure is reported through :class:`VacancyOutcome`. Cancellation propagates.
    """

    def __init__(self, client: RakutenClient) -> None:
        self.client = client

    async def run(self, criteria: SearchCriteria, *, inspect: bool = False) -> VacancyOutcome:
        states: List[PipelineState] = [PipelineState.CANDIDATE_DISCOVERY]
        try:
            return await self._run(criteria, inspect, states)
        except ConfigurationError as exc:
            logger.error("Vacancy pipeline aborted: %s", exc)
            return VacancyOutcome(VacancyStatus.CONFIGURATION_ERROR, states=states, error=str(exc))
        except Exception as exc:
            logger.exception("Vacancy pipeline failed during %s", states[-1].value)
            return VacancyOutcome(VacancyStatus.FAILED, states=states, error=str(exc) or type(exc).__name__)

    async def _run(
        self,
        criteria: SearchCriteria,
        inspect: bool,
        states: List[PipelineState],
    ) -> VacancyOutcome:
        self.client.ensure_configured()
        if not criteria.has_coordinates:
            # Discovery by area code is not offered upstream.
            logger.info("No coordinates supplied (area code %s); skipping discovery", criteria.area_code)
            states.append(PipelineState.DONE)
            return VacancyOutcome(VacancyStatus.NO_CANDIDATES, states=states)

        radius = min(criteria.radius_km, MAX_VACANCY_RADIUS_KM)
        candidates = await self.client.fetch_candidates(criteria.latitude, criteria.longitude, radius)  # type: ignore[arg-type]
        if candidates.error is not None:
            states.append(PipelineState.DONE)
            return self._failed(candidates.error, states)
        if not candidates.hotel_nos:
            logger.info("No candidates within %.1fkm", radius)
            states.append(PipelineState.DONE)
            return VacancyOutcome(VacancyStatus.NO_CANDIDATES, states=states, status_code=candidates.status_code)

        states.append(PipelineState.VACANCY_CONFIRMATION)
        vacancy = await self.client.check_vacancy(candidates.hotel_nos, criteria, inspect=inspect)
        states.append(PipelineState.DONE)
        if vacancy.error is not None:
            outcome = self._failed(vacancy.error, states)
            outcome.candidate_count = len(candidates.hotel_nos)
            outcome.traces = vacancy.traces
            return outcome

        status = VacancyStatus.AVAILABLE if vacancy.hotels else VacancyStatus.NO_VACANCY
        logger.info(
            "Vacancy pipeline finished: %s of %s candidates available",
            len(vacancy.hotels),
            len(candidates.hotel_nos),
        )
        return VacancyOutcome(
            status,
            hotels=vacancy.hotels,
            candidate_count=len(candidates.hotel_nos),
            states=states,
            traces=vacancy.traces,
        )

    @staticmethod
    def _failed(error: ProviderError, states: List[PipelineState]) -> VacancyOutcome:
        logger.warning("Vacancy pipeline provider failure: %s", error)
        return VacancyOutcome(
            VacancyStatus.FAILED,
            states=states,
            error=str(error),
            status_code=error.status_code,
        )
