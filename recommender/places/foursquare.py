from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError as SchemaError

from ..recommendations.errors import UpstreamUnavailable
from .cache import cache_get, cache_set
from .config import DEFAULT_FOURSQUARE_CONFIG, FoursquareConfig
from .models import DayHours, LatLng, OpeningHours, Photo, Place, PlaceCategory, PlaceLocation

logger = logging.getLogger(__name__)

MAX_RADIUS = 100_000
SEARCH_FIELDS = "fsq_id,name,location,geocodes,categories,distance,rating,price,hours,website,tel"

_SORT_ORDER = {
    "relevance": "RELEVANCE",
    "distance": "DISTANCE",
    "popularity": "POPULARITY",
    "rating": "RATING",
}


def _to_hours(raw: dict[str, Any] | None) -> OpeningHours | None:
    if not raw:
        return None
    regular = [
        DayHours(day=h["day"], open=str(h["open"]), close=str(h["close"]))
        for h in raw.get("regular") or []
        if {"day", "open", "close"} <= h.keys()
    ]
    return OpeningHours(display=raw.get("display"), open_now=raw.get("open_now"), regular=regular)


def to_place(raw: dict[str, Any]) -> Place:
    """Normalise one Foursquare result into a ``Place``."""
    location = raw.get("location") or {}
    geocode = (raw.get("geocodes") or {}).get("main") or {}
    return Place(
        id=str(raw["fsq_id"]),
        name=raw.get("name", ""),
        location=PlaceLocation(
            latitude=location.get("latitude", geocode.get("latitude")),
            longitude=location.get("longitude", geocode.get("longitude")),
            formatted_address=location.get("formatted_address"),
            address=location.get("address"),
            locality=location.get("locality"),
            region=location.get("region"),
            postcode=location.get("postcode"),
            country=location.get("country"),
        ),
        categories=[
            PlaceCategory(id=str(c.get("id", "")), name=c.get("name", ""))
            for c in raw.get("categories") or []
        ],
        distance=raw.get("distance"),
        rating=raw.get("rating"),
        price=raw.get("price"),
        hours=_to_hours(raw.get("hours")),
        website=raw.get("website"),
        phone=raw.get("tel"),
    )


def _to_places(results: list[dict[str, Any]]) -> list[Place]:
    places: list[Place] = []
    for raw in results:
        try:
            places.append(to_place(raw))
        except (KeyError, SchemaError):
            logger.warning("Skipping malformed Foursquare result %s", raw.get("fsq_id"), exc_info=True)
    return places


class FoursquareClient:
    """Candidate source backed by the Foursquare Places v3 API."""

    def __init__(
        self,
        config: FoursquareConfig = DEFAULT_FOURSQUARE_CONFIG,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        self._client = httpx.Client(
            base_url=config.base_url,
            headers={"Authorization": config.api_key, "Accept": "application/json"},
            timeout=config.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        logger.debug("Foursquare request %s %s", path, params)
        try:
            response = self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Foursquare %s returned %s", path, exc.response.status_code)
            raise UpstreamUnavailable(
                "foursquare", "Place search failed", details={"status": exc.response.status_code},
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Foursquare %s request failed: %s", path, exc)
            raise UpstreamUnavailable("foursquare", "Place search unavailable") from exc

    def search(
        self,
        query: str,
        center: LatLng,
        radius: float | None = None,
        categories: list[str] | None = None,
        limit: int = 20,
        sort: str = "relevance",
    ) -> list[Place]:
        params: dict[str, Any] = {
            "ll": f"{center.lat},{center.lng}",
            "radius": int(min(MAX_RADIUS, max(0, radius if radius is not None else self.config.default_radius))),
            "limit": min(max(1, limit), self.config.max_results),
            "sort": _SORT_ORDER.get(sort, "RELEVANCE"),
            "fields": SEARCH_FIELDS,
        }
        if query:
            params["query"] = query
        if categories:
            params["categories"] = ",".join(categories)

        cached = cache_get(params, ttl=self.config.cache_ttl)
        if cached is not None:
            return cached

        data = self._get("/places/search", params)
        places = _to_places(data.get("results") or [])
        cache_set(params, places)
        return places

    def get_place(self, place_id: str) -> Place | None:
        try:
            response = self._client.get(f"/places/{place_id}", params={"fields": SEARCH_FIELDS})
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable("foursquare", "Place details unavailable") from exc
        if response.status_code == 404:
            logger.warning("Place not found: %s", place_id)
            return None
        try:
            response.raise_for_status()
            return to_place(response.json())
        except httpx.HTTPStatusError as exc:
            raise UpstreamUnavailable(
                "foursquare", "Place details failed", details={"status": exc.response.status_code},
            ) from exc
        except (KeyError, ValueError, SchemaError) as exc:
            raise UpstreamUnavailable("foursquare", "Malformed place details") from exc

    def autocomplete(self, query: str, center: LatLng, limit: int = 10) -> list[str]:
        data = self._get(
            "/autocomplete",
            {"query": query, "ll": f"{center.lat},{center.lng}", "limit": limit},
        )
        suggestions: list[str] = []
        for result in data.get("results") or []:
            text = result.get("text")
            if isinstance(text, dict):
                text = text.get("primary")
            if isinstance(text, str) and text:
                suggestions.append(text)
        return suggestions

    def photos(self, place_id: str, limit: int = 10) -> list[Photo]:
        try:
            data = self._get(f"/places/{place_id}/photos", {"limit": limit})
        except UpstreamUnavailable:
            logger.warning("Could not fetch photos for %s", place_id)
            return []
        raw_photos = data.get("photos", []) if isinstance(data, dict) else data
        photos: list[Photo] = []
        for raw in raw_photos or []:
            try:
                photos.append(Photo(**raw))
            except (TypeError, SchemaError):
                continue
        return photos
