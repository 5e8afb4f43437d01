import sqlite3
import json
import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime
from .config import (
    DB_PATH,
    XP_RATE,
    XP_LIKE,
    XP_WATCH,
    DEFAULT_RECOMMENDATION_LIMIT,
    DEFAULT_CHALLENGES,
    CHALLENGE_DEFAULT_REWARD,
)
from .profile import (
    Challenge,
    User,
    UserChallenge,
    UserLevel,
    UserPreferences,
    level_for_experience,
    level_rank,
)

logger = logging.getLogger(__name__)


class UserExistsError(ValueError):
    """Raised when creating a user whose username is already taken."""


class ChallengeNotFoundError(LookupError):
    """Raised when starting or completing a challenge id that does not exist."""


def parse_timestamp_naive(timestamp_str: str | None) -> datetime | None:
    """
    Parse ISO format timestamp string to naive datetime.

    SQLite's CURRENT_TIMESTAMP and datetime.isoformat() both round-trip here.
    """
    if not timestamp_str:
        return None
    dt = datetime.fromisoformat(timestamp_str)
    return dt.replace(tzinfo=None) if dt.tzinfo else dt


class ConnectionPool:
    """
    Per-thread SQLite connections for the store.

    Store calls arrive from the CLI thread and from asyncio.to_thread
    workers, and sqlite3 connections must stay on the thread that opened
    them. Each thread also tracks how deeply it has nested get_db() so
    that only the outermost block commits.
    """

    def __init__(self, db_path, max_size: int = 50, reap_interval: float = 60.0):
        self._db_path = db_path
        self._max_size = max_size
        self._reap_interval = reap_interval
        self._lock = threading.Lock()
        self._connections: dict[int, sqlite3.Connection] = {}
        self._depth: dict[int, int] = {}
        self._last_reap = time.monotonic()

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _reap(self, force: bool = False) -> None:
        """Close connections left behind by finished worker threads. Caller holds the lock."""
        now = time.monotonic()
        if not force and now - self._last_reap < self._reap_interval:
            return
        self._last_reap = now

        alive = {t.ident for t in threading.enumerate()}
        for thread_id in [tid for tid in self._connections if tid not in alive]:
            self._depth.pop(thread_id, None)
            try:
                self._connections.pop(thread_id).close()
            except sqlite3.Error as e:
                logger.warning(f"Could not close store connection of finished thread {thread_id}: {e}")

    def connection(self) -> sqlite3.Connection:
        thread_id = threading.get_ident()
        with self._lock:
            self._reap()
            conn = self._connections.get(thread_id)
            if conn is None:
                if len(self._connections) >= self._max_size:
                    self._reap(force=True)
                if len(self._connections) >= self._max_size:
                    raise RuntimeError(f"Store connection limit reached ({self._max_size} threads)")
                conn = self._connections[thread_id] = self._open()
            return conn

    def enter(self) -> bool:
        """Bump this thread's nesting depth; True when this is the outermost block."""
        thread_id = threading.get_ident()
        with self._lock:
            depth = self._depth.get(thread_id, 0)
            self._depth[thread_id] = depth + 1
        return depth == 0

    def leave(self) -> None:
        thread_id = threading.get_ident()
        with self._lock:
            self._depth[thread_id] = max(0, self._depth.get(thread_id, 1) - 1)

    def close_all(self) -> None:
        with self._lock:
            for thread_id, conn in self._connections.items():
                try:
                    conn.close()
                except sqlite3.Error as e:
                    logger.warning(f"Could not close store connection of thread {thread_id}: {e}")
            self._connections.clear()
            self._depth.clear()


_pool: ConnectionPool | None = None
_pool_lock = threading.Lock()


def _get_pool() -> ConnectionPool:
    global _pool
    with _pool_lock:
        if _pool is None:
            DB_PATH.parent.mkdir(exist_ok=True, parents=True)
            _pool = ConnectionPool(DB_PATH)
        return _pool


@contextmanager
def get_db(read_only: bool = False):
    """
    Yield this thread's store connection inside a transaction.

    Nested blocks share the outer transaction: the outermost block commits
    on success (unless read_only) and rolls back if anything raised.
    """
    pool = _get_pool()
    conn = pool.connection()
    outermost = pool.enter()
    try:
        yield conn
        if outermost and not read_only:
            conn.commit()
    except Exception:
        if outermost:
            conn.rollback()
        raise
    finally:
        pool.leave()


def close_pool():
    global _pool
    with _pool_lock:
        if _pool is not None:
            _pool.close_all()
            _pool = None


def init_db() -> None:
    DB_PATH.parent.mkdir(exist_ok=True, parents=True)
    with get_db() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                preferences TEXT,   -- JSON blob (genres, languages, favoriteMovies, country)
                experience_points INTEGER DEFAULT 0,
                level TEXT DEFAULT 'Beginner',
                watched_count INTEGER DEFAULT 0,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS watchlist (
                user_id INTEGER NOT NULL REFERENCES users(id),
                movie_id INTEGER NOT NULL,
                added_at TEXT DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (user_id, movie_id)
            );

            CREATE TABLE IF NOT EXISTS movie_ratings (
                user_id INTEGER NOT NULL REFERENCES users(id),
                movie_id INTEGER NOT NULL,
                rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 10),
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (user_id, movie_id)
            );

            CREATE TABLE IF NOT EXISTS movie_likes (
                user_id INTEGER NOT NULL REFERENCES users(id),
                movie_id INTEGER NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (user_id, movie_id)
            );

            CREATE TABLE IF NOT EXISTS watched_movies (
                user_id INTEGER NOT NULL REFERENCES users(id),
                movie_id INTEGER NOT NULL,
                watched_at TEXT DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (user_id, movie_id)
            );

            CREATE TABLE IF NOT EXISTS user_movie_recommendations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id),
                movie_id INTEGER NOT NULL,
                score REAL NOT NULL,
                genre_match REAL,
                language_match REAL,
                collaborative_score REAL,
                recommended INTEGER DEFAULT 1,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (user_id, movie_id)
            );

            CREATE TABLE IF NOT EXISTS challenges (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                description TEXT NOT NULL,
                required_level TEXT DEFAULT 'Beginner',
                required_movies TEXT DEFAULT '[]',   -- JSON list of movie ids
                required_genres TEXT DEFAULT '[]',   -- JSON list of genre ids
                required_count INTEGER DEFAULT 1,
                experience_reward INTEGER DEFAULT 20,
                active INTEGER DEFAULT 1,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS user_challenges (
                user_id INTEGER NOT NULL REFERENCES users(id),
                challenge_id INTEGER NOT NULL REFERENCES challenges(id),
                progress INTEGER DEFAULT 0,
                completed INTEGER DEFAULT 0,
                started_at TEXT DEFAULT CURRENT_TIMESTAMP,
                completed_at TEXT,
                PRIMARY KEY (user_id, challenge_id)
            );

            CREATE INDEX IF NOT EXISTS idx_recs_user_score ON user_movie_recommendations(user_id, score DESC);
            CREATE INDEX IF NOT EXISTS idx_ratings_user ON movie_ratings(user_id, rating);
        """)
        _seed_challenges(conn)


def _seed_challenges(conn: sqlite3.Connection) -> None:
    """Insert the built-in challenges that are not present yet, matched by name."""
    for entry in DEFAULT_CHALLENGES:
        conn.execute("""
            INSERT INTO challenges
                (name, description, required_level, required_movies, required_genres, required_count, experience_reward)
            SELECT ?, ?, ?, ?, ?, ?, ?
            WHERE NOT EXISTS (SELECT 1 FROM challenges WHERE name = ?)
        """, (
            entry['name'],
            entry['description'],
            entry.get('required_level', 'Beginner'),
            json.dumps(entry.get('required_movies', [])),
            json.dumps(entry.get('required_genres', [])),
            entry.get('required_count', 1),
            entry.get('experience_reward', CHALLENGE_DEFAULT_REWARD),
            entry['name'],
        ))


def load_json(val):
    """Safely load JSON from db field."""
    if not val:
        return None
    if isinstance(val, dict):
        return val
    try:
        return json.loads(val)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Failed to parse JSON '{val[:50]}...': {e}")
        return None


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=row['id'],
        username=row['username'],
        preferences=UserPreferences.from_dict(load_json(row['preferences'])),
        experience_points=row['experience_points'] or 0,
        level=row['level'] or 'Beginner',
        watched_count=row['watched_count'] or 0,
        created_at=parse_timestamp_naive(row['created_at']),
    )


# Users

def create_user(username: str) -> User:
    with get_db() as conn:
        try:
            cursor = conn.execute(
                "INSERT INTO users (username, preferences) VALUES (?, ?)",
                (username, json.dumps(UserPreferences(genres=[], languages=[]).to_dict())),
            )
        except sqlite3.IntegrityError:
            raise UserExistsError(f"Username '{username}' is already taken")
        user_id = cursor.lastrowid
    logger.info(f"Created user {username} (id={user_id})")
    return get_user(user_id)


def get_user(user_id: int) -> User | None:
    with get_db(read_only=True) as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row) if row else None


def get_user_by_username(username: str) -> User | None:
    with get_db(read_only=True) as conn:
        row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        return _row_to_user(row) if row else None


def get_all_user_ids() -> list[int]:
    with get_db(read_only=True) as conn:
        return [row['id'] for row in conn.execute("SELECT id FROM users ORDER BY id")]


def update_user_preferences(user_id: int, preferences: UserPreferences) -> User | None:
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE users SET preferences = ? WHERE id = ?",
            (json.dumps(preferences.to_dict()), user_id),
        )
        if cursor.rowcount == 0:
            return None
    return get_user(user_id)


def update_user_experience(user_id: int, xp_points: int) -> User | None:
    """Add XP and recompute the level from the new total."""
    with get_db() as conn:
        row = conn.execute("SELECT experience_points FROM users WHERE id = ?", (user_id,)).fetchone()
        if not row:
            return None
        new_xp = (row['experience_points'] or 0) + xp_points
        level = level_for_experience(new_xp)
        conn.execute(
            "UPDATE users SET experience_points = ?, level = ? WHERE id = ?",
            (new_xp, level, user_id),
        )
    logger.debug(f"User {user_id} gained {xp_points} XP (total {new_xp}, level {level})")
    return get_user(user_id)


def get_user_level(user_id: int) -> UserLevel:
    user = get_user(user_id)
    if user is None:
        return UserLevel()
    return UserLevel(
        level=user.level,
        experience_points=user.experience_points,
        watched_count=user.watched_count,
    )


# Watchlist

def add_to_watchlist(user_id: int, movie_id: int) -> bool:
    """Returns True if the movie was newly added."""
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT OR IGNORE INTO watchlist (user_id, movie_id) VALUES (?, ?)",
            (user_id, movie_id),
        )
        return cursor.rowcount > 0


def remove_from_watchlist(user_id: int, movie_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM watchlist WHERE user_id = ? AND movie_id = ?",
            (user_id, movie_id),
        )
        return cursor.rowcount > 0


def get_user_watchlist(user_id: int) -> list[int]:
    with get_db(read_only=True) as conn:
        rows = conn.execute(
            "SELECT movie_id FROM watchlist WHERE user_id = ? ORDER BY added_at, rowid",
            (user_id,),
        )
        return [row['movie_id'] for row in rows]


# Ratings

def rate_movie(user_id: int, movie_id: int, rating: int) -> None:
    """
    Record a 1-10 rating, replacing any earlier rating for the same movie.

    XP is awarded on every call, re-rates included.
    """
    if not 1 <= rating <= 10:
        raise ValueError(f"Rating must be between 1 and 10, got {rating}")

    with get_db() as conn:
        update_user_experience(user_id, XP_RATE)
        conn.execute("""
            INSERT INTO movie_ratings (user_id, movie_id, rating) VALUES (?, ?, ?)
            ON CONFLICT (user_id, movie_id) DO UPDATE SET rating = excluded.rating
        """, (user_id, movie_id, rating))


def get_user_ratings(user_id: int) -> list[dict]:
    with get_db(read_only=True) as conn:
        rows = conn.execute(
            "SELECT movie_id, rating FROM movie_ratings WHERE user_id = ? ORDER BY created_at, rowid",
            (user_id,),
        )
        return [{'movie_id': row['movie_id'], 'rating': row['rating']} for row in rows]


# Likes

def like_movie(user_id: int, movie_id: int) -> bool:
    """Returns True on a new like; only new likes earn XP."""
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT OR IGNORE INTO movie_likes (user_id, movie_id) VALUES (?, ?)",
            (user_id, movie_id),
        )
        if cursor.rowcount == 0:
            return False
        update_user_experience(user_id, XP_LIKE)
        return True


def unlike_movie(user_id: int, movie_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM movie_likes WHERE user_id = ? AND movie_id = ?",
            (user_id, movie_id),
        )
        return cursor.rowcount > 0


def get_user_likes(user_id: int) -> list[int]:
    with get_db(read_only=True) as conn:
        rows = conn.execute(
            "SELECT movie_id FROM movie_likes WHERE user_id = ? ORDER BY created_at, rowid",
            (user_id,),
        )
        return [row['movie_id'] for row in rows]


# Watched

def mark_as_watched(user_id: int, movie_id: int) -> bool:
    """
    Returns True the first time a movie is marked; awards XP and bumps watched_count.

    A first-time watch also advances the challenges open at the user's level.
    """
    with get_db() as conn:
        cursor = conn.execute(
            "INSERT OR IGNORE INTO watched_movies (user_id, movie_id) VALUES (?, ?)",
            (user_id, movie_id),
        )
        if cursor.rowcount == 0:
            return False
        update_user_experience(user_id, XP_WATCH)
        conn.execute(
            "UPDATE users SET watched_count = COALESCE(watched_count, 0) + 1 WHERE id = ?",
            (user_id,),
        )
        check_challenge_progress(user_id)
        return True


def unmark_as_watched(user_id: int, movie_id: int) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM watched_movies WHERE user_id = ? AND movie_id = ?",
            (user_id, movie_id),
        )
        if cursor.rowcount == 0:
            return False
        conn.execute(
            "UPDATE users SET watched_count = MAX(COALESCE(watched_count, 0) - 1, 0) WHERE id = ?",
            (user_id,),
        )
        return True


def get_watched_movies(user_id: int) -> list[int]:
    with get_db(read_only=True) as conn:
        rows = conn.execute(
            "SELECT movie_id FROM watched_movies WHERE user_id = ? ORDER BY watched_at, rowid",
            (user_id,),
        )
        return [row['movie_id'] for row in rows]


# Challenges

def _row_to_challenge(row: sqlite3.Row) -> Challenge:
    return Challenge(
        id=row['id'],
        name=row['name'],
        description=row['description'],
        required_level=row['required_level'] or 'Beginner',
        required_movies=load_json(row['required_movies']) or [],
        required_genres=load_json(row['required_genres']) or [],
        required_count=row['required_count'] or 1,
        experience_reward=row['experience_reward'] or CHALLENGE_DEFAULT_REWARD,
        active=bool(row['active']),
    )


def _row_to_user_challenge(row: sqlite3.Row) -> UserChallenge:
    return UserChallenge(
        user_id=row['user_id'],
        challenge=_row_to_challenge(row),
        progress=row['progress'] or 0,
        completed=bool(row['completed']),
        started_at=parse_timestamp_naive(row['started_at']),
        completed_at=parse_timestamp_naive(row['completed_at']),
    )


_USER_CHALLENGE_SELECT = """
    SELECT c.*, uc.user_id, uc.progress, uc.completed, uc.started_at, uc.completed_at
    FROM user_challenges uc
    JOIN challenges c ON c.id = uc.challenge_id
"""


def add_challenge(
    name: str,
    description: str,
    required_level: str = 'Beginner',
    required_count: int = 1,
    experience_reward: int = CHALLENGE_DEFAULT_REWARD,
    required_movies: list[int] | None = None,
    required_genres: list[int] | None = None,
) -> Challenge:
    with get_db() as conn:
        cursor = conn.execute("""
            INSERT INTO challenges
                (name, description, required_level, required_movies, required_genres, required_count, experience_reward)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            name,
            description,
            required_level,
            json.dumps(required_movies or []),
            json.dumps(required_genres or []),
            required_count,
            experience_reward,
        ))
        challenge_id = cursor.lastrowid
    return get_challenge(challenge_id)


def get_challenge(challenge_id: int) -> Challenge | None:
    with get_db(read_only=True) as conn:
        row = conn.execute("SELECT * FROM challenges WHERE id = ?", (challenge_id,)).fetchone()
        return _row_to_challenge(row) if row else None


def get_challenges(level: str | None = None) -> list[Challenge]:
    """
    Active challenges, ordered by id.

    With a level, only challenges whose required level is at or below it
    are returned.
    """
    with get_db(read_only=True) as conn:
        rows = conn.execute("SELECT * FROM challenges WHERE active = 1 ORDER BY id").fetchall()
    challenges = [_row_to_challenge(row) for row in rows]
    if level is None:
        return challenges
    rank = level_rank(level)
    return [c for c in challenges if level_rank(c.required_level) <= rank]


def get_user_challenge(user_id: int, challenge_id: int) -> UserChallenge | None:
    with get_db(read_only=True) as conn:
        row = conn.execute(
            _USER_CHALLENGE_SELECT + " WHERE uc.user_id = ? AND uc.challenge_id = ?",
            (user_id, challenge_id),
        ).fetchone()
        return _row_to_user_challenge(row) if row else None


def get_user_challenges(user_id: int) -> list[UserChallenge]:
    """Challenges the user has started, active ones only."""
    with get_db(read_only=True) as conn:
        rows = conn.execute(
            _USER_CHALLENGE_SELECT + " WHERE uc.user_id = ? AND c.active = 1 ORDER BY c.id",
            (user_id,),
        )
        return [_row_to_user_challenge(row) for row in rows]


def start_challenge(user_id: int, challenge_id: int) -> UserChallenge:
    """Start a challenge at zero progress; starting it again returns the existing entry."""
    with get_db() as conn:
        if get_challenge(challenge_id) is None:
            raise ChallengeNotFoundError(f"Challenge {challenge_id} not found")
        conn.execute(
            "INSERT OR IGNORE INTO user_challenges (user_id, challenge_id) VALUES (?, ?)",
            (user_id, challenge_id),
        )
        return get_user_challenge(user_id, challenge_id)


def update_challenge_progress(user_id: int, challenge_id: int, progress: int) -> UserChallenge:
    """
    Set a user's progress on a challenge, starting it if needed.

    Reaching required_count completes the challenge and awards its
    experience_reward. Completed challenges are left untouched, so the
    reward is paid once.
    """
    with get_db() as conn:
        current = start_challenge(user_id, challenge_id)
        if current.completed:
            return current

        completed = progress >= current.challenge.required_count
        conn.execute("""
            UPDATE user_challenges
            SET progress = ?, completed = ?, completed_at = CASE WHEN ? THEN CURRENT_TIMESTAMP END
            WHERE user_id = ? AND challenge_id = ?
        """, (progress, int(completed), int(completed), user_id, challenge_id))

        if completed:
            update_user_experience(user_id, current.challenge.experience_reward)
            logger.info(
                f"User {user_id} completed challenge '{current.challenge.name}' "
                f"(+{current.challenge.experience_reward} XP)"
            )
        return get_user_challenge(user_id, challenge_id)


def complete_challenge(user_id: int, challenge_id: int) -> UserChallenge:
    """Mark a challenge complete outright, starting it first if needed."""
    challenge = get_challenge(challenge_id)
    if challenge is None:
        raise ChallengeNotFoundError(f"Challenge {challenge_id} not found")
    return update_challenge_progress(user_id, challenge_id, challenge.required_count)


def check_challenge_progress(user_id: int) -> list[int]:
    """
    Push the user's watched count into every challenge open at their level.

    Returns the ids of challenges completed by this call.
    """
    with get_db() as conn:
        level = get_user_level(user_id).level
        watched = conn.execute(
            "SELECT COUNT(*) FROM watched_movies WHERE user_id = ?", (user_id,)
        ).fetchone()[0]
        already_done = {uc.challenge.id for uc in get_user_challenges(user_id) if uc.completed}

        newly_completed = []
        for challenge in get_challenges(level):
            if challenge.id in already_done:
                continue
            if update_challenge_progress(user_id, challenge.id, watched).completed:
                newly_completed.append(challenge.id)
        return newly_completed


# Recommendations

def clear_user_recommendations(user_id: int) -> int:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM user_movie_recommendations WHERE user_id = ?", (user_id,))
        return cursor.rowcount


def save_recommendation(
    user_id: int,
    movie_id: int,
    score: float,
    genre_match: float = 0.0,
    language_match: float = 0.0,
    collaborative_score: float = 0.0,
) -> None:
    """Upsert a recommendation row; an existing (user, movie) row is overwritten and re-flagged."""
    with get_db() as conn:
        conn.execute("""
            INSERT INTO user_movie_recommendations
                (user_id, movie_id, score, genre_match, language_match, collaborative_score, recommended)
            VALUES (?, ?, ?, ?, ?, ?, 1)
            ON CONFLICT (user_id, movie_id) DO UPDATE SET
                score = excluded.score,
                genre_match = excluded.genre_match,
                language_match = excluded.language_match,
                collaborative_score = excluded.collaborative_score,
                recommended = 1
        """, (user_id, movie_id, score, genre_match, language_match, collaborative_score))


def get_user_recommendations(user_id: int, limit: int = DEFAULT_RECOMMENDATION_LIMIT) -> list[dict]:
    with get_db(read_only=True) as conn:
        rows = conn.execute("""
            SELECT movie_id, score, genre_match, language_match, collaborative_score, recommended, created_at
            FROM user_movie_recommendations
            WHERE user_id = ? AND recommended = 1
            ORDER BY score DESC, movie_id ASC
            LIMIT ?
        """, (user_id, limit))
        return [
            {
                'movie_id': row['movie_id'],
                'score': row['score'],
                'genre_match': row['genre_match'],
                'language_match': row['language_match'],
                'collaborative_score': row['collaborative_score'],
                'recommended': bool(row['recommended']),
                'created_at': row['created_at'],
            }
            for row in rows
        ]


def get_stats() -> dict:
    with get_db(read_only=True) as conn:
        return {
            'users': conn.execute("SELECT COUNT(*) FROM users").fetchone()[0],
            'ratings': conn.execute("SELECT COUNT(*) FROM movie_ratings").fetchone()[0],
            'likes': conn.execute("SELECT COUNT(*) FROM movie_likes").fetchone()[0],
            'watched': conn.execute("SELECT COUNT(*) FROM watched_movies").fetchone()[0],
            'recommendations': conn.execute("SELECT COUNT(*) FROM user_movie_recommendations").fetchone()[0],
            'challenges_completed': conn.execute("SELECT COUNT(*) FROM user_challenges WHERE completed = 1").fetchone()[0],
        }
