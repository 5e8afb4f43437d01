import asyncio
import logging
import sqlite3
from dataclasses import dataclass, replace
from typing import Iterable
from .profile import User
from .tmdb import DiscoverFilters, MovieSummary, TMDBError
from .config import (
    COUNTRY_WEIGHT,
    GENRE_WEIGHT,
    LANGUAGE_WEIGHT,
    LEVEL_WEIGHT,
    SIMILARITY_WEIGHT,
    TRENDING_WEIGHT,
    COUNTRY_MIN_VOTES,
    LANGUAGE_MIN_VOTES,
    COUNTRY_FALLBACK_LANGUAGE,
    HIGH_RATING_THRESHOLD,
    SIMILARITY_SAMPLE_SIZE,
    TRENDING_FALLBACK_THRESHOLD,
    TRENDING_PERIOD,
    LEVEL_PROFILES,
    DEFAULT_LEVEL,
    TMDB_DEFAULT_LANGUAGE,
    DEFAULT_RECOMMENDATION_LIMIT,
)

logger = logging.getLogger(__name__)


class UserNotFoundError(LookupError):
    """Raised when generating recommendations for an unknown user id."""


@dataclass
class CandidateScore:
    """Partial score proposed by one signal source for one movie."""
    movie_id: int
    genre_match: float = 0.0
    language_match: float = 0.0
    collaborative_score: float = 0.0
    score: float = 0.0  # Recomputed by merge_and_score


def _candidates(movies: Iterable[MovieSummary], **weights) -> list[CandidateScore]:
    return [CandidateScore(movie_id=movie.id, **weights) for movie in movies]


async def country_recommendations(provider, user: User) -> list[CandidateScore]:
    """Movies popular in the user's region, restricted to their first language (or English)."""
    country = user.preferences.country
    if not country:
        return []

    filters = DiscoverFilters(
        region=country,
        sort_by="popularity.desc",
        vote_count_gte=COUNTRY_MIN_VOTES,
        with_original_language=user.preferences.first_language or COUNTRY_FALLBACK_LANGUAGE,
    )
    try:
        movies = await provider.discover(filters)
    except TMDBError as e:
        logger.warning(f"Country recommendations failed for {country}: {e}")
        return []

    return _candidates(movies, collaborative_score=COUNTRY_WEIGHT)


def genre_match_score(movie_genres: Iterable[int], preferred_genres: list[int]) -> float:
    """
    Weighted fraction of the user's preferred genres present on a movie.

    Example: preferred [28, 12], movie [28, 16] → 1/2 × 1.2 = 0.6
    """
    if not preferred_genres:
        return 0.0
    preferred = set(preferred_genres)
    matching = preferred.intersection(movie_genres)
    return len(matching) / len(preferred) * GENRE_WEIGHT


async def genre_recommendations(provider, user: User) -> list[CandidateScore]:
    genres = user.preferences.genres or []
    if not genres:
        return []

    filters = DiscoverFilters(
        with_genres=genres,
        sort_by="popularity.desc",
        language=TMDB_DEFAULT_LANGUAGE,
    )
    try:
        movies = await provider.discover(filters)
    except TMDBError as e:
        logger.warning(f"Genre recommendations failed: {e}")
        return []

    return [
        CandidateScore(movie_id=movie.id, genre_match=genre_match_score(movie.genre_ids, genres))
        for movie in movies
    ]


async def language_recommendations(provider, user: User) -> list[CandidateScore]:
    """
    One query per preferred language, results concatenated in preference order.

    Queries run concurrently; a failing language only drops its own results.
    """
    languages = user.preferences.languages or []
    if not languages:
        return []

    async def _fetch(language: str) -> list[MovieSummary]:
        filters = DiscoverFilters(
            with_original_language=language,
            sort_by="vote_average.desc",
            vote_count_gte=LANGUAGE_MIN_VOTES,
        )
        try:
            return await provider.discover(filters)
        except TMDBError as e:
            logger.warning(f"Language recommendations failed for {language}: {e}")
            return []

    pages = await asyncio.gather(*(_fetch(language) for language in languages))

    results: list[CandidateScore] = []
    for movies in pages:
        results.extend(_candidates(movies, language_match=LANGUAGE_WEIGHT))
    return results


def level_filters(level: str) -> DiscoverFilters:
    profile = LEVEL_PROFILES.get(level)
    if profile is None:
        logger.debug(f"Unknown level '{level}', using {DEFAULT_LEVEL} curation")
        profile = LEVEL_PROFILES[DEFAULT_LEVEL]
    return DiscoverFilters(**profile)


async def level_recommendations(provider, level: str) -> list[CandidateScore]:
    """Curated picks for the user's experience level; the score is flat across levels."""
    try:
        movies = await provider.discover(level_filters(level))
    except TMDBError as e:
        logger.warning(f"Level recommendations failed for {level}: {e}")
        return []

    return _candidates(movies, collaborative_score=LEVEL_WEIGHT)


def interacted_movie_ids(watched: list[int], ratings: list[dict], likes: list[int]) -> list[int]:
    """Union of watched, highly rated and liked ids, in that insertion order."""
    highly_rated = [r['movie_id'] for r in ratings if r['rating'] >= HIGH_RATING_THRESHOLD]
    return list(dict.fromkeys([*watched, *highly_rated, *likes]))


async def collaborative_recommendations(provider, store, user_id: int) -> list[CandidateScore]:
    """
    Approximate collaborative filtering via TMDB's similar-movies endpoint.

    Samples the first few interacted movies and keeps similar titles the user
    has not already interacted with.
    """
    try:
        watched = await asyncio.to_thread(store.get_watched_movies, user_id)
        ratings = await asyncio.to_thread(store.get_user_ratings, user_id)
        likes = await asyncio.to_thread(store.get_user_likes, user_id)
    except sqlite3.Error as e:
        logger.error(f"Could not load interactions for user {user_id}: {e}")
        return []

    interactions = interacted_movie_ids(watched, ratings, likes)
    if not interactions:
        return []

    seen = set(interactions)
    sample = interactions[:SIMILARITY_SAMPLE_SIZE]

    async def _fetch(movie_id: int) -> list[MovieSummary]:
        try:
            return await provider.similar(movie_id)
        except TMDBError as e:
            logger.warning(f"Similar movies failed for {movie_id}: {e}")
            return []

    pages = await asyncio.gather(*(_fetch(movie_id) for movie_id in sample))

    results: list[CandidateScore] = []
    for movies in pages:
        fresh = [movie for movie in movies if movie.id not in seen]
        results.extend(_candidates(fresh, collaborative_score=SIMILARITY_WEIGHT))
    return results


async def trending_recommendations(provider) -> list[CandidateScore]:
    try:
        movies = await provider.trending(TRENDING_PERIOD)
    except TMDBError as e:
        logger.warning(f"Trending recommendations failed: {e}")
        return []

    return _candidates(movies, collaborative_score=TRENDING_WEIGHT)


def merge_and_score(candidates: Iterable[CandidateScore]) -> list[CandidateScore]:
    """
    Collapse candidates to one entry per movie and rank them.

    Each axis is the max across duplicates and the score is the sum of the
    three axes. Ties are broken by movie id ascending.
    """
    merged: dict[int, CandidateScore] = {}
    for candidate in candidates:
        existing = merged.get(candidate.movie_id)
        if existing is None:
            merged[candidate.movie_id] = replace(candidate)
            continue
        existing.genre_match = max(existing.genre_match, candidate.genre_match)
        existing.language_match = max(existing.language_match, candidate.language_match)
        existing.collaborative_score = max(existing.collaborative_score, candidate.collaborative_score)

    for entry in merged.values():
        entry.score = entry.genre_match + entry.language_match + entry.collaborative_score

    return sorted(merged.values(), key=lambda c: (-c.score, c.movie_id))


class RecommendationEngine:
    """
    Hybrid recommendation generator.

    Holds only the metadata provider and the store; one instance is shared
    across requests.
    """

    def __init__(self, provider, store=None):
        if store is None:
            from . import database as store
        self.provider = provider
        self.store = store

    async def generate_recommendations_for_user(self, user_id: int) -> list[int]:
        """
        Regenerate and persist a user's recommendations.

        Prior rows are cleared first, so the stored set always reflects this
        run only. Raises UserNotFoundError for unknown ids.
        """
        user = await asyncio.to_thread(self.store.get_user, user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        cleared = await asyncio.to_thread(self.store.clear_user_recommendations, user_id)
        logger.debug(f"Cleared {cleared} stale recommendations for user {user_id}")

        user_level = await asyncio.to_thread(self.store.get_user_level, user_id)

        candidates: list[CandidateScore] = []
        sources = [
            ("country", lambda: country_recommendations(self.provider, user)),
            ("genre", lambda: genre_recommendations(self.provider, user)),
            ("language", lambda: language_recommendations(self.provider, user)),
            ("level", lambda: level_recommendations(self.provider, user_level.level)),
            ("collaborative", lambda: collaborative_recommendations(self.provider, self.store, user_id)),
        ]
        for name, source in sources:
            produced = await source()
            logger.debug(f"{name} source produced {len(produced)} candidates for user {user_id}")
            candidates.extend(produced)

        if len(candidates) < TRENDING_FALLBACK_THRESHOLD:
            logger.info(f"Only {len(candidates)} candidates for user {user_id}, adding trending")
            candidates.extend(await trending_recommendations(self.provider))

        ranked = merge_and_score(candidates)
        await self._persist(user_id, ranked)

        logger.info(f"Generated {len(ranked)} recommendations for user {user_id} from {len(candidates)} candidates")
        return [entry.movie_id for entry in ranked]

    async def _persist(self, user_id: int, ranked: list[CandidateScore]) -> int:
        """Save each entry independently; a failed save is logged and skipped."""
        failures = 0
        for entry in ranked:
            try:
                await asyncio.to_thread(
                    self.store.save_recommendation,
                    user_id,
                    entry.movie_id,
                    entry.score,
                    entry.genre_match,
                    entry.language_match,
                    entry.collaborative_score,
                )
            except sqlite3.Error as e:
                failures += 1
                logger.error(f"Failed to save recommendation {entry.movie_id} for user {user_id}: {e}")

        if failures:
            logger.warning(f"{failures}/{len(ranked)} recommendations were not saved for user {user_id}")
        return len(ranked) - failures

    async def get_recommendations(self, user_id: int, limit: int = DEFAULT_RECOMMENDATION_LIMIT) -> list[dict]:
        """Stored recommendations by score; generates once if none exist yet."""
        rows = await asyncio.to_thread(self.store.get_user_recommendations, user_id, limit)
        if rows:
            return rows

        logger.info(f"No stored recommendations for user {user_id}, generating")
        await self.generate_recommendations_for_user(user_id)
        return await asyncio.to_thread(self.store.get_user_recommendations, user_id, limit)
