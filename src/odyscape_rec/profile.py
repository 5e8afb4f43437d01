import logging
from dataclasses import dataclass, field
from datetime import datetime
from .config import LEVEL_THRESHOLDS, LEVEL_ORDER, DEFAULT_LEVEL, CHALLENGE_DEFAULT_REWARD

logger = logging.getLogger(__name__)


@dataclass
class UserPreferences:
    """
    Preferences a user submits during onboarding or from their settings.

    ``None`` means the field was never supplied, which is distinct from an
    explicitly empty selection.
    """
    genres: list[int] | None = None
    languages: list[str] | None = None
    favorite_movies: list[int] = field(default_factory=list)  # Collected, not scored
    country: str | None = None

    def __post_init__(self):
        # Genre ids are a set semantically; keep first-seen order for stable queries
        if self.genres is not None:
            self.genres = list(dict.fromkeys(int(g) for g in self.genres))
        if self.languages is not None:
            self.languages = list(dict.fromkeys(lang.strip().lower() for lang in self.languages if lang.strip()))
        if self.country is not None:
            self.country = self.country.strip().upper() or None

    @property
    def has_any(self) -> bool:
        return bool(self.genres) or bool(self.languages) or bool(self.country)

    @property
    def first_language(self) -> str | None:
        return self.languages[0] if self.languages else None

    def to_dict(self) -> dict:
        return {
            'genres': self.genres,
            'languages': self.languages,
            'favoriteMovies': self.favorite_movies,
            'country': self.country,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "UserPreferences":
        """Build preferences from a stored JSON blob; tolerates missing keys."""
        if not data:
            return cls()
        return cls(
            genres=data.get('genres'),
            languages=data.get('languages'),
            favorite_movies=list(data.get('favoriteMovies') or []),
            country=data.get('country') or None,
        )


@dataclass
class UserLevel:
    level: str = DEFAULT_LEVEL
    experience_points: int = 0
    watched_count: int = 0


@dataclass
class User:
    id: int
    username: str
    preferences: UserPreferences = field(default_factory=UserPreferences)
    experience_points: int = 0
    level: str = DEFAULT_LEVEL
    watched_count: int = 0
    created_at: datetime | None = None


@dataclass
class Challenge:
    id: int
    name: str
    description: str
    required_level: str = DEFAULT_LEVEL
    required_movies: list[int] = field(default_factory=list)
    required_genres: list[int] = field(default_factory=list)  # Stored, not yet checked against watches
    required_count: int = 1
    experience_reward: int = CHALLENGE_DEFAULT_REWARD
    active: bool = True


@dataclass
class UserChallenge:
    user_id: int
    challenge: Challenge
    progress: int = 0
    completed: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None


def level_rank(level: str) -> int:
    """Position of a level in the progression; unknown names rank as the lowest."""
    return LEVEL_ORDER.get(level, 0)


def level_for_experience(experience_points: int) -> str:
    """
    Map accumulated XP to a level name.

    Examples:
    - 0-50 → Beginner
    - 51-150 → Explorer
    - 151-300 → Cinephile
    - 301+ → Connoisseur
    """
    for threshold, level in LEVEL_THRESHOLDS:
        if experience_points >= threshold:
            return level
    return DEFAULT_LEVEL
