from __future__ import annotations

import math

from .errors import ValidationError
from .models import RecommendationRequest

MAX_RADIUS = 100_000
MIN_LIMIT = 1
MAX_LIMIT = 50


def coordinate_errors(lat: float, lng: float) -> list[str]:
    errors: list[str] = []
    if not math.isfinite(lat) or not -90 <= lat <= 90:
        errors.append("Latitude must be between -90 and 90")
    if not math.isfinite(lng) or not -180 <= lng <= 180:
        errors.append("Longitude must be between -180 and 180")
    return errors


def validate_coordinates(lat: float, lng: float) -> None:
    errors = coordinate_errors(lat, lng)
    if errors:
        raise ValidationError("Invalid location", details=errors)


def validate_search_request(request: RecommendationRequest) -> None:
    """Raise ``ValidationError`` listing every out-of-range field."""
    errors = coordinate_errors(request.lat, request.lng)

    if request.radius is not None:
        if not math.isfinite(request.radius):
            errors.append("Radius must be a finite number")
        elif not 0 <= request.radius <= MAX_RADIUS:
            errors.append(f"Radius must be between 0 and {MAX_RADIUS} meters")

    if not MIN_LIMIT <= request.limit <= MAX_LIMIT:
        errors.append(f"Limit must be between {MIN_LIMIT} and {MAX_LIMIT}")

    if errors:
        raise ValidationError("Invalid search parameters", details=errors)
