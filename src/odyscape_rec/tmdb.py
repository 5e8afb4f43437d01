import asyncio
import logging
import random
from dataclasses import dataclass, field
import httpx
from .config import (
    HTTP_TIMEOUT,
    MAX_HTTP_RETRIES,
    DEFAULT_RETRY_AFTER,
    DEFAULT_MAX_CONCURRENT,
    DEFAULT_REQUEST_DELAY,
    TMDB_DEFAULT_LANGUAGE,
)

logger = logging.getLogger(__name__)


class TMDBError(Exception):
    """Raised when a TMDB request fails or returns an unusable body."""


def _genre_ids(value) -> list[int]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"genre_ids must be a list, got {type(value).__name__}")
    return [int(g) for g in value]


@dataclass
class MovieSummary:
    id: int
    title: str
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    release_date: str | None = None
    original_language: str | None = None
    genre_ids: list[int] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict) -> "MovieSummary":
        return cls(
            id=int(data["id"]),
            title=data.get("title") or data.get("original_title") or "",
            vote_average=float(data.get("vote_average") or 0.0),
            vote_count=int(data.get("vote_count") or 0),
            popularity=float(data.get("popularity") or 0.0),
            release_date=data.get("release_date") or None,
            original_language=data.get("original_language"),
            genre_ids=_genre_ids(data.get("genre_ids")),
        )


@dataclass
class DiscoverFilters:
    """Query filters for /discover/movie. Unset fields are omitted from the request."""
    with_genres: list[int] | None = None
    with_original_language: str | None = None
    region: str | None = None
    sort_by: str = "popularity.desc"
    vote_count_gte: int | None = None
    vote_average_gte: float | None = None
    with_keywords: list[str] | None = None
    language: str | None = None
    page: int = 1

    def to_params(self) -> dict:
        params: dict = {"sort_by": self.sort_by, "page": self.page}
        if self.with_genres:
            params["with_genres"] = ",".join(str(g) for g in self.with_genres)
        if self.with_original_language:
            params["with_original_language"] = self.with_original_language
        if self.region:
            params["region"] = self.region
        if self.vote_count_gte is not None:
            params["vote_count.gte"] = self.vote_count_gte
        if self.vote_average_gte is not None:
            params["vote_average.gte"] = self.vote_average_gte
        if self.with_keywords:
            params["with_keywords"] = ",".join(self.with_keywords)
        if self.language:
            params["language"] = self.language
        return params


def parse_results(payload) -> list[MovieSummary]:
    """
    Turn a paginated TMDB payload into MovieSummary objects.

    Entries without an id are skipped; a payload without a results list is an error.
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        raise TMDBError("Malformed TMDB response: missing 'results' list")

    movies = []
    for item in payload["results"]:
        try:
            movies.append(MovieSummary.from_api(item))
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug(f"Skipping malformed movie entry {item!r}: {exc}")
    return movies


def _parse_retry_after(value: str | None) -> int:
    if value is None:
        return DEFAULT_RETRY_AFTER
    try:
        return max(0, int(value))
    except ValueError:
        logger.debug(f"Unparseable Retry-After '{value}', using {DEFAULT_RETRY_AFTER}s")
        return DEFAULT_RETRY_AFTER


class TMDBClient:
    """Async TMDB client with coordinated rate limiting and bounded concurrency."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        delay: float = DEFAULT_REQUEST_DELAY,
        timeout: float = HTTP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.delay = delay
        self.timeout = timeout
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self.client: httpx.AsyncClient | None = None
        self._transport = transport
        # When one task hits 429, all tasks pause
        self._rate_limit_event = asyncio.Event()
        self._rate_limit_event.set()

    async def __aenter__(self):
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json", "User-Agent": "odyscape-rec/1.0"},
            timeout=self.timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.client:
            await self.client.aclose()
            self.client = None
        return False

    async def _get(self, path: str, params: dict | None = None) -> list[MovieSummary]:
        """
        GET a paginated endpoint and parse its results.

        404 yields an empty page. Timeouts are retried with exponential
        backoff and 429s pause every in-flight task for Retry-After seconds.
        Anything else raises TMDBError.
        """
        if not self.client:
            raise RuntimeError("TMDBClient must be used as an async context manager")

        query = {"api_key": self.api_key, **(params or {})}

        async with self.semaphore:
            if self.delay:
                await asyncio.sleep(self.delay)

            for attempt in range(MAX_HTTP_RETRIES):
                await self._rate_limit_event.wait()

                try:
                    resp = await self.client.get(path, params=query)

                    if resp.status_code == 404:
                        logger.debug(f"TMDB 404 on {path}")
                        return []

                    if resp.status_code == 429:
                        retry_after = _parse_retry_after(resp.headers.get("Retry-After"))
                        logger.warning(
                            f"Rate limited on {path}, pausing ALL tasks for {retry_after}s "
                            f"(attempt {attempt + 1}/{MAX_HTTP_RETRIES})"
                        )
                        self._rate_limit_event.clear()
                        await asyncio.sleep(retry_after)
                        self._rate_limit_event.set()
                        await asyncio.sleep(random.uniform(0, self.delay * 2))
                        continue

                    resp.raise_for_status()
                    return parse_results(resp.json())

                except httpx.TimeoutException:
                    wait_time = 2 ** attempt
                    logger.warning(
                        f"Timeout on {path}, retrying in {wait_time}s (attempt {attempt + 1}/{MAX_HTTP_RETRIES})"
                    )
                    await asyncio.sleep(wait_time)

                except httpx.HTTPStatusError as exc:
                    raise TMDBError(f"HTTP {exc.response.status_code} on {path}") from exc

                except httpx.HTTPError as exc:
                    raise TMDBError(f"Request error on {path}: {type(exc).__name__}: {exc}") from exc

                except ValueError as exc:
                    raise TMDBError(f"Invalid JSON from {path}: {exc}") from exc

            raise TMDBError(f"Max retries exceeded for {path}")

    async def discover(self, filters: DiscoverFilters) -> list[MovieSummary]:
        return await self._get("/discover/movie", filters.to_params())

    async def trending(self, period: str = "week") -> list[MovieSummary]:
        return await self._get(f"/trending/movie/{period}", {"language": TMDB_DEFAULT_LANGUAGE})

    async def similar(self, movie_id: int, page: int = 1) -> list[MovieSummary]:
        return await self._get(f"/movie/{movie_id}/similar", {"language": TMDB_DEFAULT_LANGUAGE, "page": page})

    async def popular(self, page: int = 1) -> list[MovieSummary]:
        return await self._get("/movie/popular", {"language": TMDB_DEFAULT_LANGUAGE, "page": page})
