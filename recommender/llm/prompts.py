from __future__ import annotations

from ..places.models import Place
from ..recommendations.models import FeedbackItem, UserContext, UserPreferences

_DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# ---------------------------------------------------------------------------
# System prompts
# ---------------------------------------------------------------------------

RANKING_SYSTEM_PROMPT = (
    "You are an intelligent location recommendation assistant. "
    "Your job is to rank places based on user intent, context, and preferences. "
    "Consider relevance to the query, time and day appropriateness, distance, "
    "price and category preferences, opening hours, group size and urgency.\n\n"
    "Return ONLY valid JSON in this exact format:\n"
    '{"rankedPlaces": [{"id": "<place_id>", "relevanceScore": 0.95, '
    '"reasoning": "<one sentence>", "tags": ["tag1", "tag2"], '
    '"estimatedBusyness": "low|medium|high"}], '
    '"reasoning": "<overall explanation>", "confidence": 0.85}\n'
    "Include only places from the provided list. Scores are between 0 and 1."
)

ACTION_SYSTEM_PROMPT = (
    "You are an assistant that suggests contextual actions for places. "
    "Return ONLY valid JSON in this exact format:\n"
    '{"actions": [{"type": "navigate", "label": "Get Directions", "priority": 5, '
    '"availability": "available", "url": null}]}\n'
    "Available action types: navigate, call, book, save, share, visitWebsite. "
    "Priority is 1-5 where 5 is most important. "
    "Availability is one of available, limited, unavailable."
)

PREFERENCE_SYSTEM_PROMPT = (
    "You are an assistant that analyzes user behavior to extract preferences. "
    "Return ONLY valid JSON in this exact format:\n"
    '{"categories": [], "priceRange": [1, 4], "maxDistance": 1000, '
    '"preferredHours": {"start": 8, "end": 22}}\n'
    "priceRange uses 1=cheap to 4=expensive, maxDistance is in meters, "
    "preferredHours use 24h format."
)


def _price_label(price: int | None) -> str:
    return "$" * price if price else "N/A"


def _format_place(index: int, place: Place) -> str:
    hours = place.hours
    open_now = "Unknown"
    if hours is not None and hours.open_now is not None:
        open_now = "Yes" if hours.open_now else "No"
    return "\n".join([
        f"{index}. {place.name} (id: {place.id})",
        f"   - Address: {place.location.formatted_address or 'N/A'}",
        f"   - Categories: {', '.join(c.name for c in place.categories) or 'N/A'}",
        f"   - Distance: {f'{place.distance:.0f}m' if place.distance is not None else 'Unknown'}",
        f"   - Rating: {place.rating if place.rating is not None else 'N/A'}",
        f"   - Price: {_price_label(place.price)}",
        f"   - Hours: {(hours.display if hours else None) or 'N/A'}",
        f"   - Open now: {open_now}",
    ])


def _format_context(context: UserContext) -> list[str]:
    duration = f"{context.duration_minutes} minutes" if context.duration_minutes else "Not specified"
    return [
        "## Current Context",
        f"- Time: {context.current_time.isoformat()}",
        f"- Day: {_DAY_NAMES[context.day_of_week]}",
        f"- Intent: {context.intent}",
        f"- Group size: {context.group_size}",
        f"- Urgency: {context.urgency}",
        f"- Duration: {duration}",
    ]


def build_ranking_prompt(
    candidates: list[Place],
    query: str,
    context: UserContext,
    preferences: UserPreferences | None = None,
    history: list[FeedbackItem] | None = None,
) -> str:
    lines = [f'User query: "{query}"', ""]
    lines.extend(_format_context(context))

    lines.append("\n## User Preferences")
    if preferences is not None:
        low, high = preferences.price_range
        lines.append(f"- Categories: {', '.join(preferences.categories) or 'None specified'}")
        lines.append(f"- Price range: {_price_label(low)}-{_price_label(high)}")
        lines.append(f"- Max distance: {preferences.max_distance:.0f}m")
    else:
        lines.append("- None specified")

    if history:
        lines.append("\n## Recent Feedback")
        for item in history:
            lines.append(f"- Place {item.place_id}: rated {item.rating}/5 ({item.context.intent})")

    lines.append("\n## Available Places")
    for index, place in enumerate(candidates, start=1):
        lines.append(_format_place(index, place))

    lines.append("\nRank these places from most to least relevant.")
    return "\n".join(lines)


def build_action_prompt(place: Place, context: UserContext) -> str:
    lines = [
        "Suggest the most relevant actions the user can take for this place.",
        "",
        "## Place",
        f"- Name: {place.name}",
        f"- Address: {place.location.formatted_address or 'N/A'}",
        f"- Categories: {', '.join(c.name for c in place.categories) or 'N/A'}",
        f"- Rating: {place.rating if place.rating is not None else 'N/A'}",
        f"- Price: {_price_label(place.price)}",
        f"- Website: {place.website or 'N/A'}",
        f"- Phone: {place.phone or 'N/A'}",
        "",
    ]
    lines.extend(_format_context(context))
    return "\n".join(lines)


def build_preference_prompt(feedback: list[FeedbackItem]) -> str:
    lines = ["Analyze this user feedback to extract preferences.", ""]
    for item in feedback:
        lines.append(f"- Rating: {item.rating}/5")
        lines.append(f"  Comment: {item.comment or 'No comment'}")
        lines.append(f"  Context: {item.context.intent} at {item.context.current_time:%H:%M}")
        lines.append(f"  Action: {item.action_taken or 'None'}")
        if item.place is not None:
            lines.append(
                f"  Place: categories={', '.join(item.place.categories) or 'N/A'}, "
                f"price={_price_label(item.place.price)}, "
                f"distance={item.place.distance if item.place.distance is not None else 'N/A'}"
            )
    lines.append("\nBase the preferences on patterns in the feedback data.")
    return "\n".join(lines)
