"""
Onboarding recommendations.

A cheaper pipeline than RecommendationEngine, used right after a user submits
their first preferences: no history, no scoring, just a few enrichment
queries accumulated in order with id-level deduplication.
"""
import logging
from .profile import UserPreferences
from .tmdb import DiscoverFilters, MovieSummary, TMDBError
from .config import ONBOARDING_MIN_RESULTS, ONBOARDING_LIMIT, TMDB_DEFAULT_LANGUAGE

logger = logging.getLogger(__name__)


def _append_new(results: list[MovieSummary], movies: list[MovieSummary]) -> int:
    """Append movies whose id is not already present; returns how many were added."""
    existing = {movie.id for movie in results}
    added = 0
    for movie in movies:
        if movie.id not in existing:
            results.append(movie)
            existing.add(movie.id)
            added += 1
    return added


async def _popular_ids(provider) -> list[int]:
    try:
        movies = await provider.popular()
    except TMDBError as e:
        logger.error(f"Popular movies failed during onboarding: {e}")
        return []
    return [movie.id for movie in movies[:ONBOARDING_LIMIT]]


async def get_onboarding_recommendations(provider, preferences: UserPreferences) -> list[int]:
    """
    Up to ONBOARDING_LIMIT movie ids for a freshly onboarded user.

    Passes, each only adding unseen ids:
    1. genres + first language + country combined (only when all three are set)
    2. country alone, if still short of ONBOARDING_MIN_RESULTS
    3. genres + first language, if still short
    Falls back to popular movies when nothing was found.
    """
    genres = preferences.genres or []
    languages = preferences.languages or []
    country = preferences.country

    if not preferences.has_any:
        return await _popular_ids(provider)

    results: list[MovieSummary] = []

    if genres and languages and country:
        filters = DiscoverFilters(
            with_genres=genres,
            with_original_language=languages[0],
            region=country,
            sort_by="popularity.desc",
            language=TMDB_DEFAULT_LANGUAGE,
        )
        try:
            _append_new(results, await provider.discover(filters))
        except TMDBError as e:
            logger.warning(f"Combined onboarding query failed: {e}")

    if country and len(results) < ONBOARDING_MIN_RESULTS:
        try:
            added = _append_new(results, await provider.discover(DiscoverFilters(region=country, sort_by="popularity.desc")))
            logger.debug(f"Country pass added {added} movies for {country}")
        except TMDBError as e:
            logger.warning(f"Country onboarding query failed for {country}: {e}")

    if (genres or languages) and len(results) < ONBOARDING_MIN_RESULTS:
        filters = DiscoverFilters(
            with_genres=genres or None,
            with_original_language=languages[0] if languages else None,
            sort_by="popularity.desc",
            language=TMDB_DEFAULT_LANGUAGE,
        )
        try:
            added = _append_new(results, await provider.discover(filters))
            logger.debug(f"Genre/language pass added {added} movies")
        except TMDBError as e:
            logger.warning(f"Genre/language onboarding query failed: {e}")

    if not results:
        logger.info("Onboarding queries returned nothing, falling back to popular movies")
        return await _popular_ids(provider)

    return [movie.id for movie in results[:ONBOARDING_LIMIT]]
