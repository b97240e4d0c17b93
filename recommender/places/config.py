from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class FoursquareConfig:
    api_key: str = os.getenv("FOURSQUARE_API_KEY", "")
    base_url: str = os.getenv("FOURSQUARE_BASE_URL", "https://api.foursquare.com/v3")
    default_radius: int = int(os.getenv("DEFAULT_SEARCH_RADIUS", "1000"))
    max_results: int = min(50, int(os.getenv("MAX_SEARCH_RESULTS", "50")))
    timeout: float = 10.0
    cache_ttl: int = 300  # 5 minutes


DEFAULT_FOURSQUARE_CONFIG = FoursquareConfig()
