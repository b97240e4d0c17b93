from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LatLng(BaseModel):
    lat: float
    lng: float


class PlaceCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class PlaceLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float | None = None
    longitude: float | None = None
    formatted_address: str | None = None
    address: str | None = None
    locality: str | None = None
    region: str | None = None
    postcode: str | None = None
    country: str | None = None


class DayHours(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: int = Field(..., ge=1, le=7, description="1=Monday, 7=Sunday")
    open: str = Field(..., description='Opening time as "HHMM"')
    close: str = Field(..., description='Closing time as "HHMM"')


class OpeningHours(BaseModel):
    model_config = ConfigDict(frozen=True)

    display: str | None = None
    open_now: bool | None = None
    regular: list[DayHours] = Field(default_factory=list)


class Photo(BaseModel):
    id: str | None = None
    prefix: str
    suffix: str
    width: int | None = None
    height: int | None = None

    def url(self, size: int = 300) -> str:
        return f"{self.prefix}{size}x{size}{self.suffix}"


class Place(BaseModel):
    """A candidate place as returned by the search provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    location: PlaceLocation = Field(default_factory=PlaceLocation)
    categories: list[PlaceCategory] = Field(default_factory=list)
    distance: float | None = Field(default=None, description="Meters from the query origin")
    rating: float | None = Field(default=None, ge=0.0, le=10.0)
    price: int | None = Field(default=None, ge=1, le=4)
    hours: OpeningHours | None = None
    website: str | None = None
    phone: str | None = None
