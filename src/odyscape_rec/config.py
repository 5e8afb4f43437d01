"""
Settings and tuning constants for the ODYSCAPE recommender.

Paths, TMDB credentials and HTTP limits come from the environment; scoring
weights, level curation, XP rules and challenges are fixed here.
"""
import os
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def _env_number(key: str, default, cast, min_val):
    """
    Read a numeric setting from the environment.

    Unparseable values log a warning and keep the default; values under
    min_val are clamped up to it.
    """
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        val = cast(raw)
    except ValueError:
        logger.warning(f"Ignoring {key}={raw!r}: not a valid {cast.__name__}, keeping {default}")
        return default
    if val < min_val:
        logger.warning(f"{key}={val} is below {min_val}, clamping")
        return min_val
    return val


def _get_float_env(key: str, default: float, min_val: float = 0) -> float:
    return _env_number(key, default, float, min_val)


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    return _env_number(key, default, int, min_val)


# Database Configuration
DB_PATH = Path(os.environ.get("ODYSCAPE_DB", "data/odyscape.db"))

# TMDB Configuration (read by the CLI and handed to TMDBClient explicitly)
TMDB_API_KEY = os.environ.get("TMDB_API_KEY", "")
TMDB_BASE_URL = os.environ.get("TMDB_BASE_URL", "https://api.themoviedb.org/3")
TMDB_DEFAULT_LANGUAGE = "en-US"

# HTTP Configuration
HTTP_TIMEOUT = _get_float_env("ODYSCAPE_HTTP_TIMEOUT", 30.0, min_val=1.0)
DEFAULT_MAX_CONCURRENT = _get_int_env("ODYSCAPE_MAX_CONCURRENT", 5, min_val=1)
DEFAULT_REQUEST_DELAY = _get_float_env("ODYSCAPE_REQUEST_DELAY", 0.0, min_val=0.0)

# Retry and Rate Limiting
MAX_HTTP_RETRIES = 3
DEFAULT_RETRY_AFTER = 60  # Default wait time if Retry-After header missing

# Signal weights
COUNTRY_WEIGHT = 1.3       # Regional relevance, strongest non-personal signal
GENRE_WEIGHT = 1.2         # Applied to the fraction of preferred genres matched
LANGUAGE_WEIGHT = 1.1
LEVEL_WEIGHT = 1.0
SIMILARITY_WEIGHT = 1.5    # Similar-to-interacted, highest per-source weight
TRENDING_WEIGHT = 0.8      # No personalization

# Signal query thresholds
COUNTRY_MIN_VOTES = 50
LANGUAGE_MIN_VOTES = 100
COUNTRY_FALLBACK_LANGUAGE = "en"
HIGH_RATING_THRESHOLD = 7  # Ratings are 1-10
SIMILARITY_SAMPLE_SIZE = 3
TRENDING_FALLBACK_THRESHOLD = 20
TRENDING_PERIOD = "week"

# Level curation profiles (TMDB discover filters per experience level)
LEVEL_PROFILES = {
    'Beginner': {
        'sort_by': "popularity.desc",
        'vote_average_gte': 7.5,
        'vote_count_gte': 1000,
    },
    'Explorer': {
        'sort_by': "vote_average.desc",
        'vote_count_gte': 500,
        'with_keywords': ["classic", "acclaimed"],
    },
    'Cinephile': {
        'sort_by': "vote_average.desc",
        'vote_count_gte': 200,
        'with_keywords': ["arthouse", "cult", "foreign"],
    },
    'Connoisseur': {
        'sort_by': "vote_average.desc",
        'with_keywords': ["experimental", "masterpiece", "auteur", "avant-garde"],
    },
}
DEFAULT_LEVEL = 'Beginner'

# Experience thresholds, highest first
LEVEL_THRESHOLDS = [
    (301, 'Connoisseur'),
    (151, 'Cinephile'),
    (51, 'Explorer'),
    (0, 'Beginner'),
]

# Level ranks, lowest first; used to gate challenges
LEVEL_ORDER = {level: rank for rank, (_, level) in enumerate(reversed(LEVEL_THRESHOLDS))}

# Experience awarded per interaction
XP_RATE = 7
XP_LIKE = 3
XP_WATCH = 5

# Challenges
CHALLENGE_DEFAULT_REWARD = 20
DEFAULT_CHALLENGES = [
    {
        'name': "Action Adventure",
        'description': "Watch 5 action or adventure movies to complete this challenge",
        'required_level': 'Beginner',
        'required_genres': [28, 12],
        'required_count': 5,
        'experience_reward': 20,
    },
    {
        'name': "Foreign Film Explorer",
        'description': "Watch 3 foreign language films to expand your horizons",
        'required_level': 'Explorer',
        'required_count': 3,
        'experience_reward': 30,
    },
    {
        'name': "Cinema Classics",
        'description': "Watch 3 films from before 1980",
        'required_level': 'Cinephile',
        'required_count': 3,
        'experience_reward': 35,
    },
]

# Onboarding
ONBOARDING_MIN_RESULTS = 15  # Keep enriching until at least this many
ONBOARDING_LIMIT = 20

# Retrieval
DEFAULT_RECOMMENDATION_LIMIT = 20
