"""
TMDB API client used as the movie catalog.

Uses httpx.AsyncClient with Bearer token authentication. Concurrent requests
are bounded by a semaphore, and transient failures (transport errors, 429
rate limits) are retried with exponential back-off. Public methods never
raise on upstream failure: they log and return an empty result so the
recommendation pipeline can degrade instead of aborting.
"""

import asyncio
import logging
import os
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from implementation.classes.schemas import DiscoverFilters, Genre, Keyword, Movie

logger = logging.getLogger(__name__)

_TMDB_BASE_URL = "https://api.themoviedb.org/3"
_TMDB_IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
_POSTER_PLACEHOLDER = "/placeholder.svg"
_SEMAPHORE_LIMIT = 10    # max concurrent requests (~40 req/10 s TMDB limit)
_MAX_RETRIES = 3
_RETRY_BACKOFF_BASE = 1.0  # seconds; doubles on each retry
_KEYWORD_BATCH_SIZE = 5
_KEYWORD_BATCH_DELAY = 1.0  # seconds between keyword batches


def _access_token() -> str:
    token = os.getenv("TMDB_ACCESS_TOKEN")
    if not token:
        raise RuntimeError("TMDB_ACCESS_TOKEN environment variable is not set")
    return token


def poster_url(path: Optional[str], size: str = "w500") -> str:
    """Full image URL for a TMDB poster path, or the local placeholder when absent."""
    if not path:
        return _POSTER_PLACEHOLDER
    return f"{_TMDB_IMAGE_BASE_URL}/{size}{path}"


def _parse_movies(results: list[dict[str, Any]]) -> list[Movie]:
    movies: list[Movie] = []
    for raw in results:
        try:
            movies.append(Movie.model_validate(raw))
        except ValidationError as exc:
            logger.warning("Skipping malformed TMDB movie %r: %s", raw.get("id"), exc)
    return movies


class TMDBCatalog:
    """
    Async TMDB catalog: popular/search/detail/genre/discover/keyword lookups.

    Pass `client` to inject a preconfigured httpx.AsyncClient (tests use an
    httpx.MockTransport); otherwise one is built from TMDB_ACCESS_TOKEN.
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        language: Optional[str] = None,
        max_concurrency: int = _SEMAPHORE_LIMIT,
        keyword_batch_delay: float = _KEYWORD_BATCH_DELAY,
    ):
        if client is None:
            token = access_token or _access_token()
            client = httpx.AsyncClient(
                base_url=_TMDB_BASE_URL,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
                timeout=10.0,
            )
        self.client = client
        self.language = language or os.getenv("TMDB_LANGUAGE", "en-US")
        self.keyword_batch_delay = keyword_batch_delay
        self._sem = asyncio.Semaphore(max_concurrency)
        self._genres: list[Genre] | None = None

    async def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        GET one TMDB endpoint and return its JSON body.

        Retries on transient transport errors and 429 rate-limit responses with
        exponential back-off. Raises on non-retryable HTTP errors.
        """
        query = {"language": self.language, **(params or {})}

        for attempt in range(1, _MAX_RETRIES + 1):
            async with self._sem:
                try:
                    response = await self.client.get(path, params=query)
                except httpx.TransportError as exc:
                    if attempt == _MAX_RETRIES:
                        raise
                    wait = _RETRY_BACKOFF_BASE * (2 ** (attempt - 1))
                    logger.warning(
                        "TMDB transport error on %s (attempt %d/%d): %s, retrying in %.1fs",
                        path, attempt, _MAX_RETRIES, exc, wait,
                    )
                    await asyncio.sleep(wait)
                    continue

            if response.status_code == 429:
                retry_after = float(response.headers.get("Retry-After", _RETRY_BACKOFF_BASE * 2 ** attempt))
                if attempt == _MAX_RETRIES:
                    response.raise_for_status()
                logger.warning("TMDB rate-limited on %s, sleeping %.1fs", path, retry_after)
                await asyncio.sleep(retry_after)
                continue

            response.raise_for_status()
            return response.json()

        raise RuntimeError(f"Failed to fetch TMDB {path} after {_MAX_RETRIES} attempts")  # unreachable

    async def _get_or_none(self, path: str, params: Optional[dict[str, Any]] = None) -> Optional[dict[str, Any]]:
        """_get_json that logs and returns None instead of raising."""
        try:
            return await self._get_json(path, params)
        except httpx.HTTPStatusError as exc:
            logger.error("TMDB HTTP %d on %s", exc.response.status_code, path)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("TMDB request to %s failed: %s", path, exc)
        return None

    async def list_popular(self, page: int = 1) -> list[Movie]:
        data = await self._get_or_none("/movie/popular", {"page": page})
        return _parse_movies(data.get("results", [])) if data else []

    async def search(self, query: str, page: int = 1) -> list[Movie]:
        if not query or not query.strip():
            return []
        data = await self._get_or_none(
            "/search/movie",
            {"query": query.strip(), "page": page, "include_adult": "false"},
        )
        return _parse_movies(data.get("results", [])) if data else []

    async def get_details(self, movie_id: int) -> Optional[Movie]:
        data = await self._get_or_none(f"/movie/{movie_id}")
        if not data:
            return None
        movies = _parse_movies([data])
        return movies[0] if movies else None

    async def list_genres(self) -> list[Genre]:
        """Movie genre list. Cached for the client's lifetime once fetched successfully."""
        if self._genres is not None:
            return self._genres
        data = await self._get_or_none("/genre/movie/list")
        if not data:
            return []
        self._genres = [Genre.model_validate(raw) for raw in data.get("genres", [])]
        return self._genres

    async def discover(self, filters: DiscoverFilters) -> list[Movie]:
        """
        Run one /discover/movie query.

        Movies listed in `filters.without_ids` are removed from the response,
        which keeps TMDB's popularity order otherwise.
        """
        data = await self._get_or_none("/discover/movie", filters.to_params())
        if not data:
            return []
        excluded = set(filters.without_ids)
        return [movie for movie in _parse_movies(data.get("results", [])) if movie.id not in excluded]

    async def get_keywords(self, movie_id: int) -> list[Keyword]:
        data = await self._get_or_none(f"/movie/{movie_id}/keywords")
        if not data:
            return []
        return [Keyword.model_validate(raw) for raw in data.get("keywords", [])]

    async def get_movies_keywords(self, movies: list[Movie]) -> dict[int, list[Keyword]]:
        """
        Fetch keywords for many movies without tripping TMDB's rate limit.

        Movies are processed in batches of 5; lookups inside a batch run
        concurrently and consecutive batches are separated by a fixed pause.
        A failed lookup yields an empty keyword list for that movie only.
        """
        keyword_map: dict[int, list[Keyword]] = {}
        for start in range(0, len(movies), _KEYWORD_BATCH_SIZE):
            batch = movies[start:start + _KEYWORD_BATCH_SIZE]
            results = await asyncio.gather(
                *(self.get_keywords(movie.id) for movie in batch),
                return_exceptions=True,
            )
            for movie, result in zip(batch, results):
                if isinstance(result, BaseException):
                    logger.warning("Keyword lookup for movie %d failed: %s", movie.id, result)
                    keyword_map[movie.id] = []
                else:
                    keyword_map[movie.id] = result

            if start + _KEYWORD_BATCH_SIZE < len(movies):
                await asyncio.sleep(self.keyword_batch_delay)
        return keyword_map

    async def check(self) -> str:
        """Hit the genre list endpoint and return 'ok' or an error message string."""
        try:
            await self._get_json("/genre/movie/list")
            return "ok"
        except Exception as e:
            return str(e)

    async def aclose(self) -> None:
        await self.client.aclose()
