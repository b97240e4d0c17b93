from __future__ import annotations

import logging
import os
from functools import lru_cache

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from .auth.dependencies import (
    current_user_id,
    require_admin,
    require_user,
    start_session,
)
from .auth.users import UserStore
from .history.aggregator import cleanup_expired, popular_searches, user_analytics
from .history.feedback import FeedbackStore
from .history.store import SearchHistoryStore
from .llm.config import DEFAULT_LLM_CONFIG
from .llm.groq_client import build_model, is_enabled
from .llm.prompts import ACTION_SYSTEM_PROMPT, PREFERENCE_SYSTEM_PROMPT, RANKING_SYSTEM_PROMPT
from .places.cache import get_cache_stats, purge_expired
from .places.foursquare import FoursquareClient
from .places.models import LatLng
from .recommendations.actions import ActionSuggestionEngine
from .recommendations.config import DEFAULT_RECOMMENDATION_CONFIG, RecommendationConfig
from .recommendations.errors import NotFound, RecommendationError, ValidationError
from .recommendations.intent import build_user_context
from .recommendations.models import (
    FeedbackRequest,
    FeedbackResponse,
    LoginRequest,
    RecommendationRequest,
    RecommendationResponse,
    RegisterRequest,
    SortKey,
    UserPreferences,
)
from .recommendations.orchestrator import RecommendationOrchestrator
from .recommendations.preferences import PreferenceEstimator, refresh_user_preferences
from .recommendations.strategy import TextModel
from .recommendations.validation import validate_coordinates

logger = logging.getLogger(__name__)

app = FastAPI(title="Place Recommendation API", version="1.0.0")
app.add_middleware(
    SessionMiddleware,
    secret_key=os.environ.get("SESSION_SECRET", "place-recommender-secret-change-in-production"),
)

_users = UserStore()
_feedback = FeedbackStore()
_history = SearchHistoryStore()


# ── Providers (overridable in tests) ─────────────────────────────────────


def get_user_store() -> UserStore:
    return _users


def get_feedback_store() -> FeedbackStore:
    return _feedback


def get_history_store() -> SearchHistoryStore:
    return _history


def get_config() -> RecommendationConfig:
    return DEFAULT_RECOMMENDATION_CONFIG


@lru_cache(maxsize=1)
def get_place_source() -> FoursquareClient:
    return FoursquareClient()


@lru_cache(maxsize=1)
def get_ranking_model() -> TextModel | None:
    return build_model(RANKING_SYSTEM_PROMPT, max_tokens=DEFAULT_LLM_CONFIG.ranking_max_tokens)


@lru_cache(maxsize=1)
def get_action_engine() -> ActionSuggestionEngine:
    return ActionSuggestionEngine(build_model(ACTION_SYSTEM_PROMPT, temperature=0.4))


@lru_cache(maxsize=1)
def get_preference_estimator() -> PreferenceEstimator:
    return PreferenceEstimator(build_model(PREFERENCE_SYSTEM_PROMPT))


def get_orchestrator(
    source: FoursquareClient = Depends(get_place_source),
    users: UserStore = Depends(get_user_store),
    feedback: FeedbackStore = Depends(get_feedback_store),
    history: SearchHistoryStore = Depends(get_history_store),
    ranking_model: TextModel | None = Depends(get_ranking_model),
    actions: ActionSuggestionEngine = Depends(get_action_engine),
    config: RecommendationConfig = Depends(get_config),
) -> RecommendationOrchestrator:
    return RecommendationOrchestrator(
        source,
        users,
        feedback,
        history,
        ranking_model=ranking_model,
        actions=actions,
        config=config,
    )


@app.exception_handler(RecommendationError)
async def recommendation_error_handler(request: Request, exc: RecommendationError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "llm_enabled": is_enabled()}


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/auth/login")
def login(
    body: LoginRequest,
    request: Request,
    users: UserStore = Depends(get_user_store),
) -> dict:
    user = users.authenticate(body.username, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    start_session(request, user)
    return {"status": "ok", "user": user}


@app.post("/auth/register", status_code=201)
def register(
    body: RegisterRequest,
    request: Request,
    users: UserStore = Depends(get_user_store),
) -> dict:
    user = users.create(
        body.username,
        body.password,
        email=body.email,
        preferences=body.preferences,
    )
    start_session(request, user)
    return {"status": "ok", "user": user}


@app.post("/auth/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return {"status": "logged_out"}


@app.get("/auth/me")
def auth_me(
    user: dict = Depends(require_user),
    users: UserStore = Depends(get_user_store),
) -> dict:
    return {
        **user,
        "preferences": users.get_preferences(user["id"]),
        "stats": users.stats(user["id"]),
    }


@app.put("/auth/preferences")
def update_preferences(
    body: UserPreferences,
    user: dict = Depends(require_user),
    users: UserStore = Depends(get_user_store),
) -> UserPreferences:
    users.update_preferences(user["id"], body)
    return body


# ── Recommendation endpoints ─────────────────────────────────────────────


@app.post("/recommendations", response_model=RecommendationResponse)
def recommendations(
    body: RecommendationRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    orchestrator: RecommendationOrchestrator = Depends(get_orchestrator),
) -> RecommendationResponse:
    return orchestrator.recommend(
        body,
        user_id=current_user_id(request),
        schedule=background_tasks.add_task,
    )


@app.get("/places/nearby")
def nearby_places(
    request: Request,
    lat: float,
    lng: float,
    radius: float | None = None,
    categories: str | None = Query(default=None, description="Comma-separated category ids"),
    limit: int = Query(default=DEFAULT_RECOMMENDATION_CONFIG.default_limit, ge=1, le=50),
    sort: SortKey = "distance",
    source: FoursquareClient = Depends(get_place_source),
    users: UserStore = Depends(get_user_store),
) -> dict:
    validate_coordinates(lat, lng)
    center = LatLng(lat=lat, lng=lng)

    user_id = current_user_id(request)
    if user_id:
        try:
            users.update_location(user_id, center)
        except NotFound:
            logger.warning("Session user %s no longer exists", user_id)

    category_ids = [c.strip() for c in categories.split(",") if c.strip()] if categories else None
    places = source.search("", center, radius=radius, categories=category_ids, limit=limit, sort=sort)
    return {"places": places, "metadata": {"center": center, "total": len(places)}}


@app.get("/places/trending")
def trending_places(
    lat: float,
    lng: float,
    radius: float | None = None,
    source: FoursquareClient = Depends(get_place_source),
    config: RecommendationConfig = Depends(get_config),
) -> dict:
    validate_coordinates(lat, lng)
    center = LatLng(lat=lat, lng=lng)
    places = source.search(
        "",
        center,
        radius=radius if radius is not None else config.trending_radius,
        categories=list(config.trending_categories),
        limit=config.trending_limit,
        sort="rating",
    )
    trending = [
        p for p in places if p.rating is not None and p.rating >= config.trending_min_rating
    ]
    return {
        "places": trending,
        "metadata": {"type": "trending", "center": center, "total": len(trending)},
    }


@app.get("/places/autocomplete")
def autocomplete(
    query: str,
    lat: float,
    lng: float,
    limit: int = Query(default=10, ge=1, le=50),
    source: FoursquareClient = Depends(get_place_source),
) -> dict:
    if not query.strip():
        raise ValidationError("Query parameter is required", details=["query"])
    validate_coordinates(lat, lng)
    return {"suggestions": source.autocomplete(query, LatLng(lat=lat, lng=lng), limit=limit)}


@app.get("/places/{place_id}")
def place_details(
    place_id: str,
    request: Request,
    source: FoursquareClient = Depends(get_place_source),
    actions: ActionSuggestionEngine = Depends(get_action_engine),
    feedback: FeedbackStore = Depends(get_feedback_store),
) -> dict:
    place = source.get_place(place_id)
    if place is None:
        raise NotFound(f"Place {place_id} not found")

    photos = source.photos(place_id)
    context = build_user_context("", intent="details")
    user_id = current_user_id(request)
    user_feedback = feedback.for_place(user_id, place_id) if user_id else None

    return {
        "place": place,
        "photos": [{**photo.model_dump(), "url": photo.url()} for photo in photos],
        "action_suggestions": actions.suggest(place, context),
        "user_feedback": user_feedback,
    }


@app.post("/feedback", response_model=FeedbackResponse)
def submit_feedback(
    body: FeedbackRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(require_user),
    users: UserStore = Depends(get_user_store),
    feedback: FeedbackStore = Depends(get_feedback_store),
    estimator: PreferenceEstimator = Depends(get_preference_estimator),
    config: RecommendationConfig = Depends(get_config),
) -> FeedbackResponse:
    context = build_user_context(body.query, group_size=body.group_size, urgency=body.urgency)
    feedback.record(
        user["id"],
        body.place_id,
        body.rating,
        context,
        comment=body.comment,
        action_taken=body.action_taken,
        place=body.place,
    )
    if config.learn_from_feedback:
        background_tasks.add_task(
            refresh_user_preferences,
            user["id"],
            users,
            feedback,
            estimator,
            limit=config.learning_feedback_limit,
        )
    return FeedbackResponse(
        status="recorded",
        total_feedback=feedback.count_for_user(user["id"]),
    )


# ── User endpoints ───────────────────────────────────────────────────────


@app.get("/user/history")
def search_history(
    limit: int = Query(default=20, ge=1, le=100),
    user: dict = Depends(require_user),
    history: SearchHistoryStore = Depends(get_history_store),
) -> dict:
    entries = history.for_user(user["id"], limit=limit)
    return {"history": entries, "total": len(entries)}


@app.get("/user/analytics")
def analytics_for_user(
    user: dict = Depends(require_user),
    history: SearchHistoryStore = Depends(get_history_store),
    feedback: FeedbackStore = Depends(get_feedback_store),
) -> dict:
    return user_analytics(history, feedback, user["id"])


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.get("/analytics/popular")
def popular(
    timeframe: str = Query(default="week", pattern="^(day|week|month)$"),
    limit: int = Query(default=10, ge=1, le=100),
    user: dict = Depends(require_admin),
    history: SearchHistoryStore = Depends(get_history_store),
) -> dict:
    return {"timeframe": timeframe, "searches": popular_searches(history, timeframe, limit)}


@app.get("/cache/stats")
def cache_stats(user: dict = Depends(require_admin)) -> dict:
    return get_cache_stats()


@app.post("/admin/cleanup")
def cleanup(
    days: int | None = Query(default=None, ge=1),
    user: dict = Depends(require_admin),
    history: SearchHistoryStore = Depends(get_history_store),
    feedback: FeedbackStore = Depends(get_feedback_store),
    config: RecommendationConfig = Depends(get_config),
) -> dict:
    days_to_keep = days or config.retention_days
    deleted = cleanup_expired(history, feedback, days_to_keep)
    return {
        "status": "ok",
        "days_to_keep": days_to_keep,
        "deleted": deleted,
        "cache_purged": purge_expired(),
    }
