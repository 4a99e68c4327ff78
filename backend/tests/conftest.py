"""Shared fixtures: an app wired to in-memory SQLite, and a seeded catalog."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.main import create_app
from app.models import Base

SAMPLE_MOVIES = [
    {
        "title": "The Dark Knight",
        "release_date": "2008-07-18",
        "runtime_minutes": 152,
        "budget": 185000000,
        "revenue": 1004558444,
        "mpa_rating": "PG-13",
        "collection": "The Dark Knight Collection",
        "genres": ["Action", "Crime", "Drama"],
        "directors": ["Christopher Nolan"],
        "producers": ["Emma Thomas", "Charles Roven"],
        "studios": [{"name": "Warner Bros.", "country": "US"}],
        "cast": [
            {"actor_name": "Christian Bale", "character_name": "Bruce Wayne", "actor_order": 1},
            {"actor_name": "Heath Ledger", "character_name": "Joker", "actor_order": 2},
        ],
    },
    {
        "title": "Batman Begins",
        "release_date": "2005-06-15",
        "runtime_minutes": 140,
        "budget": 150000000,
        "revenue": 373661946,
        "mpa_rating": "PG-13",
        "collection": "The Dark Knight Collection",
        "genres": ["Action", "Crime"],
        "directors": ["Christopher Nolan"],
        "studios": [{"name": "Warner Bros.", "country": "US"}],
        "cast": [
            {"actor_name": "Christian Bale", "character_name": "Bruce Wayne", "actor_order": 1},
        ],
    },
    {
        "title": "Inception",
        "release_date": "2010-07-16",
        "runtime_minutes": 148,
        "budget": 160000000,
        "revenue": 836800000,
        "mpa_rating": "PG-13",
        "genres": ["Action", "Science Fiction"],
        "directors": ["Christopher Nolan"],
        "studios": [{"name": "Legendary Pictures", "country": "US"}],
        "cast": [
            {"actor_name": "Leonardo DiCaprio", "character_name": "Cobb", "actor_order": 1},
        ],
    },
    {
        "title": "Toy Story",
        "release_date": "1995-11-22",
        "runtime_minutes": 81,
        "budget": 30000000,
        "revenue": 394436586,
        "mpa_rating": "G",
        "genres": ["Animation", "Comedy"],
        "directors": ["John Lasseter"],
        "studios": [{"name": "Pixar", "country": "US"}],
        "cast": [
            {"actor_name": "Tom Hanks", "character_name": "Woody", "actor_order": 1},
            {"actor_name": "Tim Allen", "character_name": "Buzz Lightyear", "actor_order": 2},
        ],
    },
]


def make_test_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def app():
    return create_app(engine=make_test_engine())


@pytest.fixture()
def client(app):
    with TestClient(app) as tc:
        yield tc


@pytest.fixture()
def api_headers(client) -> dict[str, str]:
    """Headers carrying a freshly issued API key."""
    resp = client.post("/api/api-key", json={"name": "Catalog Tests"})
    assert resp.status_code == 201
    return {"X-API-Key": resp.json()["api_key"]}


@pytest.fixture()
def catalog(client, api_headers) -> dict[str, int]:
    """Create the sample movies; returns ``{title: movie_id}``."""
    ids = {}
    for movie in SAMPLE_MOVIES:
        resp = client.post("/api/movies", json=movie, headers=api_headers)
        assert resp.status_code == 201, resp.text
        ids[movie["title"]] = resp.json()["movie_id"]
    return ids
