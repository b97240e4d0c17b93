from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from ..places.models import LatLng, Place

Urgency = Literal["low", "medium", "high"]
Busyness = Literal["low", "medium", "high"]
ActionType = Literal["navigate", "call", "book", "save", "share", "visitWebsite"]
Availability = Literal["available", "limited", "unavailable"]
SortKey = Literal["relevance", "distance", "popularity", "rating"]

ACTION_TYPES: tuple[str, ...] = ("navigate", "call", "visitWebsite", "save", "book", "share")


class UserContext(BaseModel):
    intent: str = "general"
    current_time: datetime
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday")
    group_size: int = Field(default=1, ge=1)
    urgency: Urgency = "medium"
    duration_minutes: int | None = Field(default=None, ge=1)


class PreferredHours(BaseModel):
    start: int = Field(default=8, ge=0, le=23)
    end: int = Field(default=22, ge=0, le=23)


class UserPreferences(BaseModel):
    categories: list[str] = Field(default_factory=list)
    price_range: list[int] = Field(default_factory=lambda: [1, 4], min_length=2, max_length=2)
    max_distance: float = Field(default=1000, gt=0)
    preferred_hours: PreferredHours = Field(default_factory=PreferredHours)

    @model_validator(mode="after")
    def _check_price_range(self) -> UserPreferences:
        low, high = self.price_range
        if not (1 <= low <= high <= 4):
            raise ValueError("price_range must satisfy 1 <= min <= max <= 4")
        return self

    @classmethod
    def default(cls) -> UserPreferences:
        return cls()


class ActionSuggestion(BaseModel):
    type: ActionType
    label: str
    url: str | None = None
    priority: int = Field(..., ge=1, le=5)
    availability: Availability = "available"


class RankedPlace(Place):
    relevance_score: float = Field(..., ge=0.0, le=1.0)
    reasoning: str = ""
    tags: list[str] = Field(default_factory=list)
    estimated_busyness: Busyness = "medium"
    action_suggestions: list[ActionSuggestion] = Field(default_factory=list)


class PlaceSnapshot(BaseModel):
    """Attributes of a rated place, captured when the feedback is given."""

    categories: list[str] = Field(default_factory=list)
    price: int | None = Field(default=None, ge=1, le=4)
    distance: float | None = Field(default=None, ge=0)


class FeedbackItem(BaseModel):
    id: str
    user_id: str
    place_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(default=None, max_length=500)
    context: UserContext
    action_taken: ActionType | None = None
    place: PlaceSnapshot | None = None
    timestamp: datetime


class SearchFilters(BaseModel):
    radius: float | None = None
    categories: list[str] = Field(default_factory=list)
    limit: int | None = None


class SearchHistoryEntry(BaseModel):
    id: str
    user_id: str
    query: str
    center: LatLng
    filters: SearchFilters
    results: list[str]
    user_context: UserContext
    timestamp: datetime


# ── Request / response schemas ──────────────────────────────────────────


class RecommendationRequest(BaseModel):
    query: str = Field(default="", max_length=200)
    lat: float
    lng: float
    radius: float | None = Field(default=None, description="Search radius in meters")
    categories: list[str] | None = Field(default=None, description="Provider category ids")
    limit: int = 20
    sort: SortKey = "relevance"
    group_size: int = Field(default=1, ge=1)
    urgency: Urgency = "medium"
    duration_minutes: int | None = Field(default=None, ge=1)


class RecommendationMetadata(BaseModel):
    total: int
    ranked: int
    confidence: float
    reasoning: str
    search_id: str
    degraded: bool = False


class RecommendationResponse(BaseModel):
    places: list[RankedPlace]
    metadata: RecommendationMetadata
    user_context: UserContext
    suggestions: list[str] = Field(default_factory=list)


class FeedbackRequest(BaseModel):
    place_id: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(default=None, max_length=500)
    query: str = Field(default="", max_length=200)
    group_size: int = Field(default=1, ge=1)
    urgency: Urgency = "medium"
    action_taken: ActionType | None = None
    place: PlaceSnapshot | None = None


class FeedbackResponse(BaseModel):
    status: str
    total_feedback: int


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterRequest(LoginRequest):
    email: str | None = None
    preferences: UserPreferences | None = None
