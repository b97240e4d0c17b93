from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")

# Food, bars, coffee, retail, entertainment
TRENDING_CATEGORIES = ("13065", "13003", "13035", "13236", "13032")


@dataclass(frozen=True)
class RecommendationConfig:
    """
    Tunables for the recommendation pipeline.

    ``top_k`` is both the number of places that receive action
    suggestions and the width of the worker pool that generates them.
    """

    top_k: int = int(os.getenv("ACTION_TOP_K", "5"))
    default_limit: int = 20
    ranking_timeout: float = 10.0
    history_feedback_limit: int = 10
    learning_feedback_limit: int = 50
    retention_days: int = int(os.getenv("RETENTION_DAYS", "90"))
    trending_min_rating: float = 8.0
    trending_radius: float = 2000.0
    trending_limit: int = 15
    trending_categories: tuple[str, ...] = TRENDING_CATEGORIES
    learn_from_feedback: bool = os.getenv("LEARN_FROM_FEEDBACK", "true").lower() != "false"


DEFAULT_RECOMMENDATION_CONFIG = RecommendationConfig()
