import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

from db.profile_session import ProfileSession
from db.profile_store import ProfileStore
from db.tmdb import TMDBCatalog
from implementation.classes.enums import Mood, MovieCollection, TagSource, TagStatus
from implementation.classes.schemas import Movie, ProfileSnapshot, RecommendationResult, Tag, TagRef
from implementation.profile import combined_tags, create_custom_tag, movies_in, tags_in
from implementation.tag_statistics import analyze_tag_collection
from implementation.tag_weighting import categorize_tags_by_type

logger = logging.getLogger(__name__)

_catalog: TMDBCatalog | None = None
_session: ProfileSession | None = None


def get_catalog() -> TMDBCatalog:
    if _catalog is None:
        raise RuntimeError("Catalog not initialized. Start the app through its lifespan.")
    return _catalog


def get_session() -> ProfileSession:
    if _session is None:
        raise RuntimeError("Profile session not initialized. Start the app through its lifespan.")
    return _session


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan handler for the catalog client and profile session.

    Loads .env, configures logging, opens the TMDB client and loads the stored
    profile on startup; closes the client on shutdown.
    """
    global _catalog, _session
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _catalog = TMDBCatalog()
    _session = ProfileSession(ProfileStore(), _catalog)
    logger.info("Loaded profile version %d from %s", _session.version, _session.store.path)
    yield
    await _catalog.aclose()
    _catalog = None
    _session = None


app = FastAPI(lifespan=lifespan)


# -----------------------------
#        REQUEST BODIES
# -----------------------------

class ProfileDetailsUpdate(BaseModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    favorite_genres: Optional[list[str]] = None


class MoodUpdate(BaseModel):
    mood: Optional[Mood] = None


class TagCreate(BaseModel):
    """A catalog tag by id ("genre-28", "keyword-heist"), or a custom tag when `id` is omitted."""
    name: str
    id: Optional[str] = None
    movie_ids: list[int] = []


# -----------------------------
#            HEALTH
# -----------------------------

@app.get("/health")
async def health_check():
    """
    Health check endpoint for the catalog and the profile store.

    Returns a dictionary with 'ok' or an error message per dependency.
    """
    return {
        "tmdb": await get_catalog().check(),
        "profile_store": get_session().check(),
    }


# -----------------------------
#            PROFILE
# -----------------------------

@app.get("/profile")
async def read_profile() -> ProfileSnapshot:
    return get_session().snapshot


@app.delete("/profile")
async def reset_profile() -> ProfileSnapshot:
    return get_session().reset()


@app.patch("/profile")
async def update_profile(body: ProfileDetailsUpdate) -> ProfileSnapshot:
    return get_session().update_details(body.name, body.bio, body.favorite_genres)


@app.put("/profile/mood")
async def set_mood(body: MoodUpdate) -> ProfileSnapshot:
    return get_session().set_mood(body.mood)


@app.post("/profile/movies/{collection}")
async def add_movie(collection: MovieCollection, movie: Movie) -> ProfileSnapshot:
    return await get_session().add_movie(collection, movie)


@app.delete("/profile/movies/{collection}/{movie_id}")
async def remove_movie(collection: MovieCollection, movie_id: int) -> ProfileSnapshot:
    session = get_session()
    if not any(movie.id == movie_id for movie in movies_in(session.profile, collection)):
        raise HTTPException(status_code=404, detail=f"Movie {movie_id} is not in {collection.value}")
    return await session.remove_movie(collection, movie_id)


# -----------------------------
#             TAGS
# -----------------------------

def _tag_from_request(body: TagCreate) -> Tag:
    if body.id is None:
        if not body.name.strip():
            raise HTTPException(status_code=422, detail="Custom tags need a non-empty name")
        return create_custom_tag(body.name)
    tag_ref = TagRef.parse(body.id)
    if tag_ref is None:
        raise HTTPException(status_code=422, detail=f"Malformed tag id: {body.id}")
    return Tag(ref=tag_ref, name=body.name, source=TagSource.MANUAL, movie_ids=body.movie_ids)


@app.get("/profile/tags/stats")
async def tag_stats():
    profile = get_session().profile
    stats = analyze_tag_collection(profile.liked_tags, profile.confirmed_tags)
    categories = categorize_tags_by_type(combined_tags(profile))
    return {
        "summary": {
            "total_liked_tags": stats.summary.total_liked_tags,
            "total_confirmed_tags": stats.summary.total_confirmed_tags,
            "manually_confirmed_tags": stats.summary.manually_confirmed_tags,
            "auto_confirmed_tags": stats.summary.auto_confirmed_tags,
            "confidence_threshold": stats.summary.confidence_threshold,
        },
        "tag_kinds": [
            {"kind": kind.value, "label": kind.label, "count": count} for kind, count in stats.tag_kinds
        ],
        "high_occurrence_tags": stats.high_occurrence_tags,
        "categories": {kind.value: tiers for kind, tiers in categories.items()},
    }


@app.post("/profile/tags/{status}")
async def add_tag(status: TagStatus, body: TagCreate) -> ProfileSnapshot:
    return get_session().add_tag(status, _tag_from_request(body))


@app.delete("/profile/tags/{status}/{tag_id}")
async def remove_tag(status: TagStatus, tag_id: str) -> ProfileSnapshot:
    session = get_session()
    if not any(tag.id == tag_id for tag in tags_in(session.profile, status)):
        raise HTTPException(status_code=404, detail=f"Tag {tag_id} is not in {status.value} tags")
    return session.remove_tag(status, tag_id)


@app.post("/profile/tags/{tag_id}/promote")
async def promote_tag(tag_id: str) -> ProfileSnapshot:
    session = get_session()
    if not any(tag.id == tag_id for tag in session.profile.liked_tags):
        raise HTTPException(status_code=404, detail=f"Tag {tag_id} is not in liked tags")
    return session.promote(tag_id)


@app.post("/profile/tags/{tag_id}/demote")
async def demote_tag(tag_id: str) -> ProfileSnapshot:
    session = get_session()
    if not any(tag.id == tag_id for tag in session.profile.confirmed_tags):
        raise HTTPException(status_code=404, detail=f"Tag {tag_id} is not in confirmed tags")
    return session.demote(tag_id)


# -----------------------------
#        RECOMMENDATIONS
# -----------------------------

@app.get("/recommendations")
async def recommendations(tag_ids: Optional[list[str]] = Query(default=None)) -> RecommendationResult:
    return await get_session().recommend(tag_ids)


@app.post("/recommendations/more")
async def more_recommendations() -> RecommendationResult:
    return await get_session().show_more()


# -----------------------------
#            CATALOG
# -----------------------------

@app.get("/movies/popular")
async def popular_movies(page: int = Query(default=1, ge=1)) -> list[Movie]:
    return await get_catalog().list_popular(page)


@app.get("/movies/search")
async def search_movies(query: str, page: int = Query(default=1, ge=1)) -> list[Movie]:
    return await get_catalog().search(query, page)


@app.get("/movies/{movie_id}")
async def movie_details(movie_id: int) -> Movie:
    movie = await get_catalog().get_details(movie_id)
    if movie is None:
        raise HTTPException(status_code=404, detail=f"Movie {movie_id} not found")
    return movie
