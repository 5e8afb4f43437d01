import argparse
import asyncio
import atexit
import json
import logging
import re
import sys

from tqdm import tqdm

from .database import (
    init_db, close_pool, create_user, get_user_by_username, get_all_user_ids,
    update_user_preferences, rate_movie, like_movie, unlike_movie, mark_as_watched,
    unmark_as_watched, add_to_watchlist, remove_from_watchlist, get_user_watchlist,
    get_watched_movies, get_user_ratings, get_user_likes, get_stats, get_challenges,
    get_user_challenges, start_challenge, UserExistsError, ChallengeNotFoundError,
)
from .config import (
    TMDB_API_KEY,
    TMDB_BASE_URL,
    DEFAULT_MAX_CONCURRENT,
    DEFAULT_REQUEST_DELAY,
    DEFAULT_RECOMMENDATION_LIMIT,
)
from .profile import User, UserPreferences
from .tmdb import TMDBClient
from .recommender import RecommendationEngine, UserNotFoundError
from .onboarding import get_onboarding_recommendations

logger = logging.getLogger(__name__)

# Register cleanup on exit
atexit.register(close_pool)


def _validate_username(username: str) -> str:
    """
    Sanitize a username.
    Returns lowercased alphanumeric + underscores/hyphens only.
    """
    sanitized = re.sub(r'[^a-z0-9_-]', '', username.lower())
    if not sanitized:
        raise ValueError(f"Invalid username: {username!r}")
    if sanitized != username.lower():
        logger.warning(f"Username '{username}' sanitized to '{sanitized}'")
    return sanitized


def _require_user(username: str) -> User:
    user = get_user_by_username(_validate_username(username))
    if user is None:
        logger.error(f"Unknown user '{username}'. Create it with: add-user {username}")
        sys.exit(1)
    return user


def _preferences_from_args(args: argparse.Namespace) -> UserPreferences:
    return UserPreferences(
        genres=args.genres,
        languages=args.languages,
        favorite_movies=args.favorites or [],
        country=args.country,
    )


def _make_client() -> TMDBClient:
    if not TMDB_API_KEY:
        logger.warning("TMDB_API_KEY is not set; TMDB requests will be rejected")
    return TMDBClient(
        api_key=TMDB_API_KEY,
        base_url=TMDB_BASE_URL,
        max_concurrent=DEFAULT_MAX_CONCURRENT,
        delay=DEFAULT_REQUEST_DELAY,
    )


def cmd_init_db(args: argparse.Namespace) -> None:
    init_db()
    logger.info("Database initialized")


def cmd_add_user(args: argparse.Namespace) -> None:
    init_db()
    try:
        user = create_user(_validate_username(args.username))
    except UserExistsError as e:
        logger.error(str(e))
        sys.exit(1)
    logger.info(f"Created user {user.username} (id={user.id})")


def cmd_set_preferences(args: argparse.Namespace) -> None:
    init_db()
    user = _require_user(args.username)
    preferences = _preferences_from_args(args)
    update_user_preferences(user.id, preferences)
    logger.info(f"Saved preferences for {user.username}: {json.dumps(preferences.to_dict())}")


async def _onboard_async(preferences: UserPreferences) -> list[int]:
    async with _make_client() as client:
        return await get_onboarding_recommendations(client, preferences)


def cmd_onboard(args: argparse.Namespace) -> None:
    """Save preferences, then show the quick onboarding picks."""
    init_db()
    user = _require_user(args.username)
    preferences = _preferences_from_args(args)
    update_user_preferences(user.id, preferences)

    movie_ids = asyncio.run(_onboard_async(preferences))
    if args.format == 'json':
        logger.info(json.dumps({"movieIds": movie_ids}))
        return

    logger.info(f"\nOnboarding picks for {user.username} ({len(movie_ids)}):")
    for movie_id in movie_ids:
        logger.info(f"  https://www.themoviedb.org/movie/{movie_id}")


def cmd_rate(args: argparse.Namespace) -> None:
    init_db()
    user = _require_user(args.username)
    try:
        rate_movie(user.id, args.movie_id, args.rating)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)
    logger.info(f"{user.username} rated {args.movie_id}: {args.rating}/10")


def cmd_like(args: argparse.Namespace) -> None:
    init_db()
    user = _require_user(args.username)
    if args.remove:
        changed = unlike_movie(user.id, args.movie_id)
        logger.info(f"Unliked {args.movie_id}" if changed else f"{args.movie_id} was not liked")
    else:
        changed = like_movie(user.id, args.movie_id)
        logger.info(f"Liked {args.movie_id}" if changed else f"{args.movie_id} already liked")


def cmd_watch(args: argparse.Namespace) -> None:
    init_db()
    user = _require_user(args.username)
    if args.remove:
        changed = unmark_as_watched(user.id, args.movie_id)
        logger.info(f"Unmarked {args.movie_id}" if changed else f"{args.movie_id} was not watched")
    else:
        changed = mark_as_watched(user.id, args.movie_id)
        logger.info(f"Marked {args.movie_id} as watched" if changed else f"{args.movie_id} already watched")


def cmd_watchlist(args: argparse.Namespace) -> None:
    init_db()
    user = _require_user(args.username)
    if args.movie_id is None:
        movie_ids = get_user_watchlist(user.id)
        logger.info(f"Watchlist for {user.username} ({len(movie_ids)}): {movie_ids}")
    elif args.remove:
        remove_from_watchlist(user.id, args.movie_id)
        logger.info(f"Removed {args.movie_id} from watchlist")
    else:
        add_to_watchlist(user.id, args.movie_id)
        logger.info(f"Added {args.movie_id} to watchlist")


def cmd_challenges(args: argparse.Namespace) -> None:
    """List challenges open at the user's level with their progress."""
    init_db()
    user = _require_user(args.username)
    started = {uc.challenge.id: uc for uc in get_user_challenges(user.id)}
    available = get_challenges(user.level)

    if not available:
        logger.info(f"No challenges available at level {user.level}")
        return

    logger.info(f"\nChallenges for {user.username} ({user.level}):")
    for challenge in available:
        entry = started.get(challenge.id)
        if entry is None:
            status = "not started"
        elif entry.completed:
            status = "completed"
        else:
            status = f"{entry.progress}/{challenge.required_count}"
        logger.info(
            f"  [{challenge.id}] {challenge.name} (+{challenge.experience_reward} XP, {status}): "
            f"{challenge.description}"
        )


def cmd_challenge_start(args: argparse.Namespace) -> None:
    init_db()
    user = _require_user(args.username)
    try:
        entry = start_challenge(user.id, args.challenge_id)
    except ChallengeNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)
    logger.info(f"{user.username} started '{entry.challenge.name}' ({entry.progress}/{entry.challenge.required_count})")


async def _generate_async(user_ids: list[int], progress: bool = False) -> dict[int, list[int]]:
    """Generate for each user in turn, sharing one client and engine."""
    results: dict[int, list[int]] = {}
    async with _make_client() as client:
        engine = RecommendationEngine(client)
        iterator = tqdm(user_ids, desc="Users") if progress else user_ids
        for user_id in iterator:
            results[user_id] = await engine.generate_recommendations_for_user(user_id)
    return results


def cmd_generate(args: argparse.Namespace) -> None:
    init_db()
    user = _require_user(args.username)
    try:
        results = asyncio.run(_generate_async([user.id]))
    except UserNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)
    logger.info(f"Generated {len(results[user.id])} recommendations for {user.username}")


def cmd_generate_all(args: argparse.Namespace) -> None:
    init_db()
    user_ids = get_all_user_ids()
    if not user_ids:
        logger.info("No users to generate recommendations for")
        return
    results = asyncio.run(_generate_async(user_ids, progress=True))
    total = sum(len(ids) for ids in results.values())
    logger.info(f"Generated {total} recommendations across {len(results)} users")


async def _recommend_async(user_id: int, limit: int) -> list[dict]:
    async with _make_client() as client:
        engine = RecommendationEngine(client)
        return await engine.get_recommendations(user_id, limit)


def cmd_recommend(args: argparse.Namespace) -> None:
    """Show stored recommendations, generating them first if there are none."""
    init_db()
    user = _require_user(args.username)
    try:
        rows = asyncio.run(_recommend_async(user.id, args.limit))
    except UserNotFoundError as e:
        logger.error(str(e))
        sys.exit(1)

    if args.format == 'json':
        logger.info(json.dumps(rows, indent=2))
        return

    if not rows:
        logger.info(f"No recommendations available for {user.username}")
        return

    logger.info(f"\nTop {len(rows)} recommendations for {user.username}:\n")
    for i, row in enumerate(rows, 1):
        logger.info(
            f"{i:2}. movie {row['movie_id']:<8} score {row['score']:.2f} "
            f"(genre {row['genre_match'] or 0:.2f}, language {row['language_match'] or 0:.2f}, "
            f"collaborative {row['collaborative_score'] or 0:.2f})"
        )


def cmd_profile(args: argparse.Namespace) -> None:
    init_db()
    user = _require_user(args.username)
    prefs = user.preferences

    logger.info(f"\nProfile for {user.username}:")
    logger.info(f"  Level: {user.level} ({user.experience_points} XP)")
    logger.info(f"  Watched: {len(get_watched_movies(user.id))}")
    logger.info(f"  Rated: {len(get_user_ratings(user.id))}")
    logger.info(f"  Liked: {len(get_user_likes(user.id))}")
    logger.info(f"  Watchlist: {len(get_user_watchlist(user.id))}")
    logger.info(f"  Genres: {prefs.genres or '-'}")
    logger.info(f"  Languages: {prefs.languages or '-'}")
    logger.info(f"  Country: {prefs.country or '-'}")
    if prefs.favorite_movies:
        logger.info(f"  Favorites: {prefs.favorite_movies}")


def cmd_stats(args: argparse.Namespace) -> None:
    init_db()
    stats = get_stats()
    logger.info("\nDatabase Statistics:")
    for key, value in stats.items():
        logger.info(f"  {key.capitalize()}: {value}")


def _add_preference_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("username", help="Username")
    parser.add_argument("--genres", nargs="+", type=int, help="TMDB genre ids (e.g. 28 12)")
    parser.add_argument("--languages", nargs="+", help="ISO-639-1 language codes (e.g. en ko)")
    parser.add_argument("--favorites", nargs="+", type=int, help="Favorite TMDB movie ids")
    parser.add_argument("--country", help="ISO-3166-1 country code (e.g. US)")


def main():
    parser = argparse.ArgumentParser(description="ODYSCAPE Recommender")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.set_defaults(func=cmd_init_db)

    add_user_parser = subparsers.add_parser("add-user", help="Create a user")
    add_user_parser.add_argument("username", help="Username")
    add_user_parser.set_defaults(func=cmd_add_user)

    prefs_parser = subparsers.add_parser("set-preferences", help="Update a user's preferences")
    _add_preference_args(prefs_parser)
    prefs_parser.set_defaults(func=cmd_set_preferences)

    onboard_parser = subparsers.add_parser("onboard", help="Save preferences and show onboarding picks")
    _add_preference_args(onboard_parser)
    onboard_parser.add_argument("--format", choices=['text', 'json'], default='text', help="Output format")
    onboard_parser.set_defaults(func=cmd_onboard)

    rate_parser = subparsers.add_parser("rate", help="Rate a movie 1-10")
    rate_parser.add_argument("username", help="Username")
    rate_parser.add_argument("movie_id", type=int, help="TMDB movie id")
    rate_parser.add_argument("rating", type=int, help="Rating from 1 to 10")
    rate_parser.set_defaults(func=cmd_rate)

    like_parser = subparsers.add_parser("like", help="Like (or unlike) a movie")
    like_parser.add_argument("username", help="Username")
    like_parser.add_argument("movie_id", type=int, help="TMDB movie id")
    like_parser.add_argument("--remove", action="store_true", help="Remove the like")
    like_parser.set_defaults(func=cmd_like)

    watch_parser = subparsers.add_parser("watch", help="Mark (or unmark) a movie as watched")
    watch_parser.add_argument("username", help="Username")
    watch_parser.add_argument("movie_id", type=int, help="TMDB movie id")
    watch_parser.add_argument("--remove", action="store_true", help="Unmark as watched")
    watch_parser.set_defaults(func=cmd_watch)

    watchlist_parser = subparsers.add_parser("watchlist", help="Show or edit a watchlist")
    watchlist_parser.add_argument("username", help="Username")
    watchlist_parser.add_argument("movie_id", type=int, nargs="?", help="TMDB movie id to add")
    watchlist_parser.add_argument("--remove", action="store_true", help="Remove instead of add")
    watchlist_parser.set_defaults(func=cmd_watchlist)

    challenges_parser = subparsers.add_parser("challenges", help="List challenges open at a user's level")
    challenges_parser.add_argument("username", help="Username")
    challenges_parser.set_defaults(func=cmd_challenges)

    challenge_start_parser = subparsers.add_parser("challenge-start", help="Start a challenge")
    challenge_start_parser.add_argument("username", help="Username")
    challenge_start_parser.add_argument("challenge_id", type=int, help="Challenge id (see: challenges)")
    challenge_start_parser.set_defaults(func=cmd_challenge_start)

    generate_parser = subparsers.add_parser("generate", help="Regenerate a user's recommendations")
    generate_parser.add_argument("username", help="Username")
    generate_parser.set_defaults(func=cmd_generate)

    generate_all_parser = subparsers.add_parser("generate-all", help="Regenerate recommendations for every user")
    generate_all_parser.set_defaults(func=cmd_generate_all)

    rec_parser = subparsers.add_parser("recommend", help="Show stored recommendations")
    rec_parser.add_argument("username", help="Username")
    rec_parser.add_argument("--limit", type=int, default=DEFAULT_RECOMMENDATION_LIMIT, help="Number of recommendations")
    rec_parser.add_argument("--format", choices=['text', 'json'], default='text', help="Output format")
    rec_parser.set_defaults(func=cmd_recommend)

    profile_parser = subparsers.add_parser("profile", help="Show level, XP and preferences")
    profile_parser.add_argument("username", help="Username")
    profile_parser.set_defaults(func=cmd_profile)

    stats_parser = subparsers.add_parser("stats", help="Show database statistics")
    stats_parser.set_defaults(func=cmd_stats)

    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    args.func(args)


if __name__ == "__main__":
    main()
