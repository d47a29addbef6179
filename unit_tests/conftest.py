"""Shared pytest fixtures for unit tests."""

from typing import Any, Callable
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock
import sys

import pytest

# Ensure project root is importable when tests run from repository root.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from db.tmdb import TMDBCatalog
from implementation.classes.enums import TagKind, TagSource
from implementation.classes.schemas import Genre, Movie, Tag, TagRef


@pytest.fixture
def movie_factory() -> Callable[..., Movie]:
    """Return a factory that builds a catalog Movie with optional overrides."""

    def _factory(movie_id: int = 1, **overrides: Any) -> Movie:
        """Construct a Movie with list-endpoint style genre ids unless overridden."""
        base_data: dict[str, Any] = {
            "id": movie_id,
            "title": f"Movie {movie_id}",
            "overview": "",
            "poster_path": f"/poster{movie_id}.jpg",
            "release_date": "2001-01-01",
            "vote_average": 7.0,
            "popularity": 10.0,
            "genre_ids": [28],
        }
        base_data.update(overrides)
        return Movie.model_validate(base_data)

    return _factory


@pytest.fixture
def tag_factory() -> Callable[..., Tag]:
    """Return a factory that builds a Tag from a kind, ref and counters."""

    def _factory(
        kind: TagKind = TagKind.GENRE,
        ref: int | str = 28,
        name: str | None = None,
        **overrides: Any,
    ) -> Tag:
        """Construct a Tag; the name defaults to the rendered ref."""
        data: dict[str, Any] = {
            "ref": TagRef(kind=kind, ref=ref),
            "name": name if name is not None else str(ref),
            "source": TagSource.AUTO,
        }
        data.update(overrides)
        return Tag(**data)

    return _factory


@pytest.fixture
def fake_catalog() -> MagicMock:
    """A TMDBCatalog stand-in whose async methods are AsyncMocks with empty defaults."""
    catalog = MagicMock(spec=TMDBCatalog)
    catalog.list_popular = AsyncMock(return_value=[])
    catalog.search = AsyncMock(return_value=[])
    catalog.get_details = AsyncMock(return_value=None)
    catalog.list_genres = AsyncMock(return_value=[Genre(id=28, name="Action"), Genre(id=27, name="Horror")])
    catalog.discover = AsyncMock(return_value=[])
    catalog.get_keywords = AsyncMock(return_value=[])
    catalog.get_movies_keywords = AsyncMock(return_value={})
    catalog.check = AsyncMock(return_value="ok")
    catalog.aclose = AsyncMock()
    return catalog
