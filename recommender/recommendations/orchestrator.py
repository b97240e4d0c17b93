from __future__ import annotations

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from ..auth.users import UserStore
from ..history.feedback import FeedbackStore
from ..history.store import SearchHistoryStore
from ..llm.prompts import build_ranking_prompt
from ..places.models import LatLng, Place
from .actions import ActionSuggestionEngine
from .config import DEFAULT_RECOMMENDATION_CONFIG, RecommendationConfig
from .intent import build_user_context
from .models import (
    FeedbackItem,
    RankedPlace,
    RecommendationMetadata,
    RecommendationRequest,
    RecommendationResponse,
    SearchFilters,
    UserContext,
    UserPreferences,
)
from .strategy import TextModel
from .validation import validate_search_request
from .validator import reconcile

logger = logging.getLogger(__name__)

Schedule = Callable[..., Any]

NO_RESULTS_REASONING = "No places found matching your criteria"

# History logging outlives the request when no web framework schedules it.
_background = ThreadPoolExecutor(max_workers=2, thread_name_prefix="search-history")


class RequestState(str, Enum):
    received = "RECEIVED"
    validated = "VALIDATED"
    candidates_fetched = "CANDIDATES_FETCHED"
    ranked = "RANKED"
    actions_generated = "ACTIONS_GENERATED"
    responded = "RESPONDED"
    failed = "FAILED"


def generate_search_id() -> str:
    return f"search_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def no_results_suggestions(request: RecommendationRequest) -> list[str]:
    suggestions = [
        "Try expanding your search radius",
        "Remove specific category filters",
        "Search for broader terms",
        "Check your location is correct",
    ]
    if request.categories:
        suggestions.append("Try searching without category filters")
    if request.radius is not None and request.radius < 1000:
        suggestions.append("Increase search radius to find more options")
    return suggestions


class RecommendationOrchestrator:
    """
    Runs one recommendation request end to end.

    ``source`` is the candidate source (``search(query, center, radius,
    categories, limit, sort) -> list[Place]``). ``ranking_model`` is a
    text-in/text-out callable or ``None`` when no model is configured, in
    which case every request is served by the deterministic scorer.
    """

    def __init__(
        self,
        source: Any,
        users: UserStore,
        feedback: FeedbackStore,
        history: SearchHistoryStore,
        ranking_model: TextModel | None = None,
        actions: ActionSuggestionEngine | None = None,
        config: RecommendationConfig = DEFAULT_RECOMMENDATION_CONFIG,
    ) -> None:
        self.source = source
        self.users = users
        self.feedback = feedback
        self.history = history
        self.ranking_model = ranking_model
        self.actions = actions or ActionSuggestionEngine()
        self.config = config

    # ── Pipeline ────────────────────────────────────────────────────────

    def recommend(
        self,
        request: RecommendationRequest,
        user_id: str | None = None,
        now: datetime | None = None,
        schedule: Schedule | None = None,
    ) -> RecommendationResponse:
        search_id = generate_search_id()
        state = RequestState.received
        logger.debug("%s: %s", search_id, state.value)
        try:
            validate_search_request(request)
            state = self._advance(search_id, RequestState.validated)

            context = build_user_context(
                request.query,
                now=now,
                group_size=request.group_size,
                urgency=request.urgency,
                duration_minutes=request.duration_minutes,
            )
            center = LatLng(lat=request.lat, lng=request.lng)

            # Candidates and profile are independent reads
            with ThreadPoolExecutor(max_workers=2) as pool:
                candidates_future = pool.submit(self._fetch_candidates, request, center)
                profile_future = pool.submit(self._fetch_profile, user_id) if user_id else None
                candidates = candidates_future.result()
                preferences, recent_feedback = (
                    profile_future.result() if profile_future else (None, [])
                )
            state = self._advance(search_id, RequestState.candidates_fetched)

            if not candidates:
                state = self._advance(search_id, RequestState.responded)
                return RecommendationResponse(
                    places=[],
                    metadata=RecommendationMetadata(
                        total=0,
                        ranked=0,
                        confidence=0.0,
                        reasoning=NO_RESULTS_REASONING,
                        search_id=search_id,
                    ),
                    user_context=context,
                    suggestions=no_results_suggestions(request),
                )

            model_output = self._request_ranking(
                candidates, request.query, context, preferences, recent_feedback,
            )
            ranking = reconcile(model_output, candidates, center, preferences)
            state = self._advance(search_id, RequestState.ranked)

            places = self._attach_actions(ranking.places[: request.limit], context)
            state = self._advance(search_id, RequestState.actions_generated)

            response = RecommendationResponse(
                places=places,
                metadata=RecommendationMetadata(
                    total=len(candidates),
                    ranked=len(ranking.places),
                    confidence=ranking.confidence,
                    reasoning=ranking.reasoning,
                    search_id=search_id,
                    degraded=ranking.degraded,
                ),
                user_context=context,
            )

            if user_id:
                self._schedule_history(
                    schedule, user_id, request, center, [p.id for p in places], context,
                )
            state = self._advance(search_id, RequestState.responded)
            return response
        except Exception:
            logger.debug("%s: %s -> %s", search_id, state.value, RequestState.failed.value)
            raise

    def _advance(self, search_id: str, state: RequestState) -> RequestState:
        logger.debug("%s: %s", search_id, state.value)
        return state

    # ── Steps ───────────────────────────────────────────────────────────

    def _fetch_candidates(self, request: RecommendationRequest, center: LatLng) -> list[Place]:
        return self.source.search(
            request.query,
            center,
            radius=request.radius,
            categories=request.categories,
            limit=request.limit,
            sort=request.sort,
        )

    def _fetch_profile(self, user_id: str) -> tuple[UserPreferences | None, list[FeedbackItem]]:
        try:
            preferences = self.users.get_preferences(user_id)
            recent = self.feedback.for_user(user_id, limit=self.config.history_feedback_limit)
        except Exception:
            logger.warning("Could not fetch profile for user %s", user_id, exc_info=True)
            return None, []
        return preferences, recent

    def _request_ranking(
        self,
        candidates: list[Place],
        query: str,
        context: UserContext,
        preferences: UserPreferences | None,
        recent_feedback: list[FeedbackItem],
    ) -> str | None:
        """Return the raw model ranking, or ``None`` on any failure or timeout."""
        if self.ranking_model is None:
            return None

        prompt = build_ranking_prompt(candidates, query, context, preferences, recent_feedback)
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ranking")
        try:
            future = pool.submit(self.ranking_model, prompt)
            return future.result(timeout=self.config.ranking_timeout)
        except FuturesTimeout:
            logger.warning("Ranking model timed out after %.1fs", self.config.ranking_timeout)
            return None
        except Exception:
            logger.warning("Ranking model call failed", exc_info=True)
            return None
        finally:
            pool.shutdown(wait=False)

    def _attach_actions(self, places: list[RankedPlace], context: UserContext) -> list[RankedPlace]:
        top_k = min(self.config.top_k, len(places))
        if top_k == 0:
            return places

        with ThreadPoolExecutor(max_workers=top_k, thread_name_prefix="actions") as pool:
            # map() yields in submission order regardless of completion order
            suggestions = list(pool.map(
                lambda place: self.actions.suggest(place, context), places[:top_k],
            ))

        with_actions = [
            place.model_copy(update={"action_suggestions": actions})
            for place, actions in zip(places[:top_k], suggestions)
        ]
        return with_actions + places[top_k:]

    # ── History ─────────────────────────────────────────────────────────

    def _schedule_history(
        self,
        schedule: Schedule | None,
        user_id: str,
        request: RecommendationRequest,
        center: LatLng,
        result_ids: list[str],
        context: UserContext,
    ) -> None:
        try:
            (schedule or _background.submit)(
                self.log_search, user_id, request, center, result_ids, context,
            )
        except Exception:
            logger.warning("Could not schedule search history for user %s", user_id, exc_info=True)

    def log_search(
        self,
        user_id: str,
        request: RecommendationRequest,
        center: LatLng,
        result_ids: list[str],
        context: UserContext,
    ) -> None:
        """Best-effort history write; failures are logged only."""
        try:
            self.history.log_search(
                user_id,
                request.query,
                center,
                SearchFilters(
                    radius=request.radius,
                    categories=request.categories or [],
                    limit=request.limit,
                ),
                result_ids,
                context,
            )
        except Exception:
            logger.warning("Could not log search history for user %s", user_id, exc_info=True)
