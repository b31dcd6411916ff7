"""Parsing of inbound search query strings into :class:`SearchCriteria`."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from shudenout.config.settings import Settings
from shudenout.geo.distance import area_center, resolve_area
from shudenout.hotels.models import MAX_HITS, SearchCriteria
from shudenout.utils.dates import today_tomorrow_jst


class QueryError(ValueError):
    """Raised for malformed search parameters; surfaced as HTTP 400."""


class SearchQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    area: Optional[str] = None
    area_code: Optional[str] = Field(default=None, alias="areaCode")
    radius: Optional[float] = Field(default=None, gt=0)
    radius_km: Optional[float] = Field(default=None, alias="radiusKm", gt=0)
    checkin_date: Optional[date] = Field(default=None, alias="checkinDate")
    checkout_date: Optional[date] = Field(default=None, alias="checkoutDate")
    adult_num: int = Field(default=1, alias="adultNum")
    room_num: int = Field(default=1, alias="roomNum")
    min_charge: Optional[int] = Field(default=None, alias="minCharge", ge=0)
    max_charge: Optional[int] = Field(default=None, alias="maxCharge", ge=0)
    amenities: Tuple[str, ...] = ()
    page: int = Field(default=1, ge=1)
    hits: Optional[int] = Field(default=None, ge=1)
    inspect: bool = False
    couple: bool = False

    @model_validator(mode="before")
    @classmethod
    def _drop_blank(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if not (isinstance(value, str) and not value.strip())}
        return data

    @field_validator("amenities", mode="before")
    @classmethod
    def _split_amenities(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> "SearchQuery":
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must be supplied together")
        if self.min_charge is not None and self.max_charge is not None and self.min_charge > self.max_charge:
            raise ValueError("minCharge must not exceed maxCharge")
        if self.checkin_date and self.checkout_date and self.checkout_date <= self.checkin_date:
            raise ValueError("checkoutDate must be after checkinDate")
        return self

    @classmethod
    def parse(cls, params: dict[str, Any]) -> "SearchQuery":
        try:
            return cls.model_validate(params)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'query'}: {error['msg']}" for error in exc.errors()
            )
            raise QueryError(problems) from exc

    def to_criteria(self, settings: Settings, *, today: Optional[date] = None) -> SearchCriteria:
        """Fill defaults: tonight in JST, the configured radius, and area-centre coordinates."""
        if today is None:
            check_in, check_out = today_tomorrow_jst()
        else:
            check_in, check_out = today, today + timedelta(days=1)
        if self.checkin_date:
            check_in = self.checkin_date
            check_out = self.checkout_date or check_in + timedelta(days=1)
        elif self.checkout_date:
            check_out = self.checkout_date
            if check_out <= check_in:
                raise QueryError("checkoutDate must be after checkinDate")

        latitude, longitude = self.lat, self.lng
        area = resolve_area(self.area)
        if latitude is None:
            centre = area_center(area)
            if centre is not None:
                latitude, longitude = centre.lat, centre.lng

        radius = self.radius_km or self.radius or settings.default_radius_km
        return SearchCriteria(
            check_in=check_in,
            check_out=check_out,
            latitude=latitude,
            longitude=longitude,
            radius_km=radius,
            adults=self.adult_num,
            rooms=self.room_num,
            min_charge=self.min_charge,
            max_charge=self.max_charge,
            area=area,
            area_code=self.area_code,
            amenities=self.amenities,
            page=self.page,
            hits=min(self.hits or settings.default_hits, MAX_HITS),
            couple_only=self.couple,
        )
