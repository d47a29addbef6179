"""Unit tests for the db.tmdb catalog client."""

from unittest.mock import AsyncMock

import httpx
import pytest

from db.tmdb import TMDBCatalog, poster_url
from implementation.classes.schemas import DiscoverFilters, Keyword


def _catalog(handler, **kwargs) -> TMDBCatalog:
    """Build a TMDBCatalog whose HTTP traffic goes to `handler`."""
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://api.themoviedb.org/3",
    )
    return TMDBCatalog(client=client, language="en-US", **kwargs)


def _movie_json(movie_id: int, **overrides) -> dict:
    data = {"id": movie_id, "title": f"Movie {movie_id}", "overview": "", "genre_ids": [28]}
    data.update(overrides)
    return data


@pytest.fixture
def no_sleep(mocker) -> AsyncMock:
    """Patch asyncio.sleep as seen by db.tmdb so retries and batch pauses are instant."""
    return mocker.patch("db.tmdb.asyncio.sleep", new=AsyncMock())


def test_constructor_requires_token_without_client(mocker) -> None:
    """Building a catalog without a client or TMDB_ACCESS_TOKEN should fail fast."""
    mocker.patch.dict("os.environ", {}, clear=True)
    with pytest.raises(RuntimeError, match="TMDB_ACCESS_TOKEN"):
        TMDBCatalog()


def test_poster_url() -> None:
    """poster_url should build an image URL or fall back to the placeholder."""
    assert poster_url("/abc.jpg") == "https://image.tmdb.org/t/p/w500/abc.jpg"
    assert poster_url("/abc.jpg", size="original") == "https://image.tmdb.org/t/p/original/abc.jpg"
    assert poster_url(None) == "/placeholder.svg"


@pytest.mark.asyncio
async def test_list_popular_parses_results_and_sends_language() -> None:
    """list_popular should hit /movie/popular with page and language params."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": [_movie_json(1), _movie_json(2)]})

    movies = await _catalog(handler).list_popular(page=2)

    assert [movie.id for movie in movies] == [1, 2]
    assert seen[0].url.path == "/3/movie/popular"
    assert seen[0].url.params["page"] == "2"
    assert seen[0].url.params["language"] == "en-US"


@pytest.mark.asyncio
async def test_malformed_movies_are_skipped() -> None:
    """Entries that fail validation should be dropped, not abort the whole page."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": [{"title": "no id"}, _movie_json(3)]})

    movies = await _catalog(handler).list_popular()
    assert [movie.id for movie in movies] == [3]


@pytest.mark.asyncio
async def test_search_blank_query_makes_no_request() -> None:
    """A blank search query should return [] without touching the network."""
    handler = AsyncMock()
    assert await _catalog(handler).search("   ") == []
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_get_details_404_returns_none() -> None:
    """A missing movie should come back as None."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"status_message": "not found"})

    assert await _catalog(handler).get_details(99) is None


@pytest.mark.asyncio
async def test_discover_sends_filters_and_drops_excluded_ids() -> None:
    """discover should send OR-joined filters and remove without_ids from the results."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": [_movie_json(1), _movie_json(2), _movie_json(3)]})

    filters = DiscoverFilters(with_genres=[28, 12], without_genres=[27], without_ids=[2])
    movies = await _catalog(handler).discover(filters)

    assert [movie.id for movie in movies] == [1, 3]
    params = seen[0].url.params
    assert seen[0].url.path == "/3/discover/movie"
    assert params["with_genres"] == "28|12"
    assert params["without_genres"] == "27"
    assert params["sort_by"] == "popularity.desc"


@pytest.mark.asyncio
async def test_list_genres_is_cached_after_success() -> None:
    """The genre list should be fetched once per catalog."""
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"genres": [{"id": 28, "name": "Action"}]})

    catalog = _catalog(handler)
    first = await catalog.list_genres()
    second = await catalog.list_genres()

    assert [genre.name for genre in first] == ["Action"]
    assert second == first
    assert calls == 1


@pytest.mark.asyncio
async def test_rate_limited_request_is_retried(no_sleep) -> None:
    """A 429 response should be retried after the Retry-After delay."""
    responses = iter([
        httpx.Response(429, headers={"Retry-After": "2"}),
        httpx.Response(200, json={"results": [_movie_json(7)]}),
    ])

    def handler(request: httpx.Request) -> httpx.Response:
        return next(responses)

    movies = await _catalog(handler).list_popular()

    assert [movie.id for movie in movies] == [7]
    no_sleep.assert_awaited_once_with(2.0)


@pytest.mark.asyncio
async def test_transport_errors_exhaust_retries_and_degrade(no_sleep) -> None:
    """Persistent transport failures should be retried, then yield an empty result."""
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        raise httpx.ConnectError("connection refused", request=request)

    movies = await _catalog(handler).list_popular()

    assert movies == []
    assert calls == 3
    assert no_sleep.await_count == 2


@pytest.mark.asyncio
async def test_get_keywords_parses_keyword_list() -> None:
    """get_keywords should read the `keywords` array of the keywords endpoint."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/3/movie/5/keywords"
        return httpx.Response(200, json={"id": 5, "keywords": [{"id": 9951, "name": "alien invasion"}]})

    keywords = await _catalog(handler).get_keywords(5)
    assert keywords == [Keyword(id=9951, name="alien invasion")]


@pytest.mark.asyncio
async def test_get_movies_keywords_batches_and_isolates_failures(mocker, movie_factory, no_sleep) -> None:
    """Seven movies should run as two batches with one pause; a failed lookup yields []."""
    catalog = _catalog(AsyncMock(), keyword_batch_delay=1.5)

    def fake_get_keywords(movie_id: int) -> list[Keyword]:
        if movie_id == 3:
            raise RuntimeError("boom")
        return [Keyword(id=movie_id, name=f"kw{movie_id}")]

    mocker.patch.object(catalog, "get_keywords", new=AsyncMock(side_effect=fake_get_keywords))
    movies = [movie_factory(movie_id) for movie_id in range(1, 8)]

    keyword_map = await catalog.get_movies_keywords(movies)

    assert set(keyword_map) == set(range(1, 8))
    assert keyword_map[3] == []
    assert keyword_map[7] == [Keyword(id=7, name="kw7")]
    no_sleep.assert_awaited_once_with(1.5)


@pytest.mark.asyncio
async def test_get_movies_keywords_single_batch_does_not_pause(mocker, movie_factory, no_sleep) -> None:
    """Five or fewer movies should not wait between batches."""
    catalog = _catalog(AsyncMock())
    mocker.patch.object(catalog, "get_keywords", new=AsyncMock(return_value=[]))

    await catalog.get_movies_keywords([movie_factory(movie_id) for movie_id in range(1, 6)])

    no_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_check_reports_ok_and_errors(no_sleep) -> None:
    """check should return 'ok' on success and an error string otherwise."""

    def ok_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"genres": []})

    def failing_handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"status_message": "Invalid API key"})

    assert await _catalog(ok_handler).check() == "ok"
    assert "401" in await _catalog(failing_handler).check()
