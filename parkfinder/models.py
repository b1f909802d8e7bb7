from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Place(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str = Field(min_length=1)
    lat: float
    lng: float


class ParkingLot(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str
    name: str
    lat: float
    lng: float
    capacity: int = Field(ge=1)
    available_spots: int = 0
    price: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("available_spots")
    @classmethod
    def _clamp_to_capacity(cls, v: int, info: ValidationInfo) -> int:
        capacity = info.data.get("capacity")
        if v < 0:
            return 0
        if capacity is not None and v > capacity:
            return capacity
        return v


Availability = Literal["full", "low", "available"]


class DerivedLotView(ParkingLot):
    distance_m: float
    occupancy_pct: int
    availability: Availability


class ResultSnapshot(BaseModel):
    destination: Place
    lots: list[ParkingLot] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=utcnow)

    @property
    def lot_ids(self) -> list[str]:
        return [lot.id for lot in self.lots]


class TravelOption(BaseModel):
    title: str
    text: str
    impact: str


class EnvironmentAdvice(BaseModel):
    intro: str
    options: list[TravelOption]
    nearest_km: float | None = None
    co2_kg: float | None = None


class ResultView(BaseModel):
    destination: Place
    lots: list[DerivedLotView]
    status: str
    advice: EnvironmentAdvice
    fetched_at: datetime


class OccupancyStat(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    car_park: str = Field(alias="carPark")
    percentage: int


class HourCount(BaseModel):
    hour: str
    count: int


class ParkingStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    average_occupancy: list[OccupancyStat] = Field(default_factory=list, alias="averageOccupancy")
    busiest_hours: list[HourCount] = Field(default_factory=list, alias="busiestHours")


class EnvironmentInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    public_transport: str = Field(alias="publicTransport")
    co2_saved_kg: float = Field(alias="co2SavedKg")
