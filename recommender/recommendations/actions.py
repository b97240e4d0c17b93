from __future__ import annotations

import re
from typing import Any

from ..llm.prompts import build_action_prompt
from ..places.models import Place
from .models import ACTION_TYPES, ActionSuggestion, UserContext
from .strategy import ModelOutputError, ModelWithFallback, TextModel, parse_model_json

_CANONICAL_TYPES = {t.lower(): t for t in ACTION_TYPES}

_TYPE_ALIASES = {
    "visit_website": "visitWebsite",
    "website": "visitWebsite",
    "directions": "navigate",
    "favorite": "save",
}

_DEFAULT_LABELS = {
    "navigate": "Get Directions",
    "call": "Call",
    "visitWebsite": "Visit Website",
    "save": "Save to Favorites",
    "book": "Book",
    "share": "Share",
}

_DEFAULT_PRIORITIES = {
    "navigate": 5,
    "call": 4,
    "visitWebsite": 3,
    "save": 2,
    "book": 3,
    "share": 1,
}

_AVAILABILITY = {"available", "limited", "unavailable"}


def navigation_url(place: Place) -> str | None:
    lat, lng = place.location.latitude, place.location.longitude
    if lat is None or lng is None:
        return None
    return f"https://www.google.com/maps/dir/?api=1&destination={lat},{lng}"


def phone_url(phone: str) -> str:
    return "tel:" + re.sub(r"[^\d+]", "", phone)


def order_actions(actions: list[ActionSuggestion]) -> list[ActionSuggestion]:
    """Highest priority first; equal priorities follow the canonical type order."""
    return sorted(actions, key=lambda a: (-a.priority, ACTION_TYPES.index(a.type)))


class RuleActionSuggester:
    """Deterministic action set derived from the fields a place exposes."""

    def __call__(self, place: Place, context: UserContext | None = None) -> list[ActionSuggestion]:
        actions = [
            ActionSuggestion(
                type="navigate",
                label=_DEFAULT_LABELS["navigate"],
                url=navigation_url(place),
                priority=5,
            )
        ]
        if place.phone:
            actions.append(ActionSuggestion(
                type="call", label=_DEFAULT_LABELS["call"], url=phone_url(place.phone), priority=4,
            ))
        if place.website:
            actions.append(ActionSuggestion(
                type="visitWebsite", label=_DEFAULT_LABELS["visitWebsite"], url=place.website, priority=3,
            ))
        actions.append(ActionSuggestion(type="save", label=_DEFAULT_LABELS["save"], priority=2))
        return order_actions(actions)


def _normalise_type(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    key = value.strip().lower()
    return _CANONICAL_TYPES.get(key) or _TYPE_ALIASES.get(key)


def _parse_action(item: Any, place: Place) -> ActionSuggestion | None:
    if not isinstance(item, dict):
        return None
    action_type = _normalise_type(item.get("type"))
    if action_type is None:
        return None

    priority = item.get("priority")
    if isinstance(priority, bool) or not isinstance(priority, (int, float)):
        priority = _DEFAULT_PRIORITIES[action_type]
    priority = min(5, max(1, int(round(priority))))

    label = item.get("label")
    if not isinstance(label, str) or not label.strip():
        label = _DEFAULT_LABELS[action_type]

    availability = item.get("availability")
    if availability not in _AVAILABILITY:
        availability = "available"

    url = item.get("url") if isinstance(item.get("url"), str) else None
    if url is None:
        if action_type == "call" and place.phone:
            url = phone_url(place.phone)
        elif action_type == "visitWebsite":
            url = place.website
        elif action_type == "navigate":
            url = navigation_url(place)

    return ActionSuggestion(
        type=action_type,
        label=label,
        url=url,
        priority=priority,
        availability=availability,
    )


class ModelActionSuggester:
    """Asks the model for actions and keeps the rule set as a floor."""

    def __init__(self, model: TextModel, rules: RuleActionSuggester) -> None:
        self.model = model
        self.rules = rules

    def __call__(self, place: Place, context: UserContext) -> list[ActionSuggestion]:
        parsed = parse_model_json(self.model(build_action_prompt(place, context)))
        items = parsed.get("actions") if isinstance(parsed, dict) else parsed
        if not isinstance(items, list):
            raise ModelOutputError("Model output has no actions array")

        actions: list[ActionSuggestion] = []
        seen: set[str] = set()
        for item in items:
            action = _parse_action(item, place)
            if action is not None and action.type not in seen:
                seen.add(action.type)
                actions.append(action)

        if not actions:
            raise ModelOutputError("Model returned no recognised actions")

        for floor_action in self.rules(place, context):
            if floor_action.type not in seen:
                actions.append(floor_action)
        return order_actions(actions)


class ActionSuggestionEngine:
    """Per-place action suggestions; never raises."""

    def __init__(self, model: TextModel | None = None) -> None:
        self.rules = RuleActionSuggester()
        primary = ModelActionSuggester(model, self.rules) if model is not None else None
        self._suggest = ModelWithFallback(primary, self.rules, "action suggestions")

    def suggest(self, place: Place, context: UserContext) -> list[ActionSuggestion]:
        return self._suggest(place, context)
