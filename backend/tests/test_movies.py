"""Integration tests for the movies API.

Tests: GET/POST /api/movies, POST /api/movies/bulk, GET/PUT/PATCH/DELETE
/api/movies/{id} and PATCH /api/movies/{id}/cast
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.services.catalog_service import CatalogService

MOVIES_URL = "/api/movies"


def _titles(resp) -> list[str]:
    return [m["title"] for m in resp.json()["data"]]


# ---------------------------------------------------------------------------
# GET /api/movies
# ---------------------------------------------------------------------------


class TestListMovies:
    def test_lists_all_movies_ordered_by_title(self, client, api_headers, catalog):
        resp = client.get(MOVIES_URL, headers=api_headers)

        assert resp.status_code == 200
        assert _titles(resp) == ["Batman Begins", "Inception", "The Dark Knight", "Toy Story"]
        meta = resp.json()["meta"]
        assert meta["total"] == 4
        assert meta["page"] == 1
        assert meta["limit"] == 20
        assert meta["pages"] == 1
        assert meta["hasNextPage"] is False
        assert meta["hasPreviousPage"] is False
        assert "query" not in meta

    def test_summary_carries_directors_and_genres(self, client, api_headers, catalog):
        resp = client.get(MOVIES_URL, params={"title": "inception"}, headers=api_headers)

        movie = resp.json()["data"][0]
        assert movie["movie_id"] == catalog["Inception"]
        assert movie["directors"] == ["Christopher Nolan"]
        assert sorted(movie["genres"]) == ["Action", "Science Fiction"]
        assert movie["release_date"] == "2010-07-16"

    def test_pagination(self, client, api_headers, catalog):
        resp = client.get(MOVIES_URL, params={"page": 2, "limit": 2}, headers=api_headers)

        assert _titles(resp) == ["The Dark Knight", "Toy Story"]
        meta = resp.json()["meta"]
        assert meta["pages"] == 2
        assert meta["hasNextPage"] is False
        assert meta["hasPreviousPage"] is True

    @pytest.mark.parametrize(
        "params, expected",
        [
            ({"title": "in"}, ["Batman Begins", "Inception"]),
            ({"year": 2008}, ["The Dark Knight"]),
            ({"genre": "action"}, ["Batman Begins", "Inception", "The Dark Knight"]),
            ({"rating": "G"}, ["Toy Story"]),
            ({"actor": "bale"}, ["Batman Begins", "The Dark Knight"]),
            ({"director": "lasseter"}, ["Toy Story"]),
            ({"studio": "warner"}, ["Batman Begins", "The Dark Knight"]),
            ({"collection": "dark knight"}, ["Batman Begins", "The Dark Knight"]),
            ({"minBudget": 155000000}, ["Inception", "The Dark Knight"]),
            ({"maxBudget": 150000000}, ["Batman Begins", "Toy Story"]),
            ({"minRevenue": 800000000}, ["Inception", "The Dark Knight"]),
            ({"maxRevenue": 380000000}, ["Batman Begins"]),
            ({"startDate": "2006-01-01", "endDate": "2009-12-31"}, ["The Dark Knight"]),
            ({"genre": "Action", "director": "nolan", "year": 2005}, ["Batman Begins"]),
        ],
    )
    def test_filters(self, client, api_headers, catalog, params, expected):
        resp = client.get(MOVIES_URL, params=params, headers=api_headers)

        assert resp.status_code == 200
        assert _titles(resp) == expected
        assert resp.json()["meta"]["total"] == len(expected)

    def test_applied_filters_are_echoed(self, client, api_headers, catalog):
        resp = client.get(
            MOVIES_URL,
            params={"genre": "Action", "startDate": "2006-01-01"},
            headers=api_headers,
        )

        assert resp.json()["meta"]["query"] == {"genre": "Action", "startDate": "2006-01-01"}

    def test_no_match_returns_404(self, client, api_headers, catalog):
        resp = client.get(MOVIES_URL, params={"title": "zzzz"}, headers=api_headers)

        assert resp.status_code == 404
        assert resp.json()["message"] == "No movies found matching the specified criteria"

    @pytest.mark.parametrize("params", [{"title": "%%"}, {"title": "__"}, {"actor": "%"}])
    def test_wildcard_characters_match_literally(self, client, api_headers, catalog, params):
        resp = client.get(MOVIES_URL, params=params, headers=api_headers)

        assert resp.status_code == 404

    def test_percent_in_title_is_searchable(self, client, api_headers, catalog):
        client.post(MOVIES_URL, json={"title": "100% Wolf"}, headers=api_headers)

        resp = client.get(MOVIES_URL, params={"title": "0%"}, headers=api_headers)

        assert _titles(resp) == ["100% Wolf"]

    def test_empty_catalog_returns_404(self, client, api_headers):
        resp = client.get(MOVIES_URL, headers=api_headers)
        assert resp.status_code == 404

    @pytest.mark.parametrize(
        "params, field",
        [
            ({"limit": 101}, "limit"),
            ({"limit": 0}, "limit"),
            ({"page": 0}, "page"),
            ({"title": "a"}, "title"),
            ({"year": "abc"}, "year"),
            ({"minBudget": -1}, "minBudget"),
            ({"startDate": "not-a-date"}, "startDate"),
        ],
    )
    def test_invalid_query_returns_400(self, client, api_headers, params, field):
        resp = client.get(MOVIES_URL, params=params, headers=api_headers)

        assert resp.status_code == 400
        assert [e["field"] for e in resp.json()["errors"]] == [field]


# ---------------------------------------------------------------------------
# GET /api/movies/{id}
# ---------------------------------------------------------------------------


class TestGetMovie:
    def test_detail_includes_credits(self, client, api_headers, catalog):
        resp = client.get(f"{MOVIES_URL}/{catalog['The Dark Knight']}", headers=api_headers)

        assert resp.status_code == 200
        movie = resp.json()
        assert movie["title"] == "The Dark Knight"
        assert movie["collection"] == "The Dark Knight Collection"
        assert sorted(movie["producers"]) == ["Charles Roven", "Emma Thomas"]
        assert movie["studios"][0]["studio_name"] == "Warner Bros."
        assert movie["studios"][0]["country"] == "US"
        assert [c["actor_name"] for c in movie["cast"]] == ["Christian Bale", "Heath Ledger"]
        assert [c["actor_order"] for c in movie["cast"]] == [1, 2]
        assert movie["cast"][1]["character_name"] == "Joker"

    def test_related_entities_are_shared_between_movies(self, client, api_headers, catalog):
        first = client.get(f"{MOVIES_URL}/{catalog['The Dark Knight']}", headers=api_headers).json()
        second = client.get(f"{MOVIES_URL}/{catalog['Batman Begins']}", headers=api_headers).json()

        assert first["cast"][0]["actor_id"] == second["cast"][0]["actor_id"]
        assert first["studios"][0]["studio_id"] == second["studios"][0]["studio_id"]

    def test_missing_movie_returns_404(self, client, api_headers):
        resp = client.get(f"{MOVIES_URL}/999", headers=api_headers)

        assert resp.status_code == 404
        assert resp.json()["message"] == "Movie with ID 999 not found"

    @pytest.mark.parametrize("movie_id", ["0", "abc"])
    def test_invalid_id_returns_400(self, client, api_headers, movie_id):
        resp = client.get(f"{MOVIES_URL}/{movie_id}", headers=api_headers)
        assert resp.status_code == 400


# ---------------------------------------------------------------------------
# POST /api/movies
# ---------------------------------------------------------------------------


class TestCreateMovie:
    def test_minimal_movie(self, client, api_headers):
        resp = client.post(MOVIES_URL, json={"title": "Solo Title"}, headers=api_headers)

        assert resp.status_code == 201
        movie = resp.json()
        assert movie["title"] == "Solo Title"
        assert movie["cast"] == []
        assert movie["collection"] is None

    def test_duplicate_names_in_one_request_are_merged(self, client, api_headers):
        body = {
            "title": "Merged",
            "genres": ["Drama", " Drama ", "Drama"],
            "studios": [{"name": "A24"}, {"name": "A24"}],
        }

        resp = client.post(MOVIES_URL, json=body, headers=api_headers)

        assert resp.status_code == 201
        assert resp.json()["genres"] == ["Drama"]
        assert len(resp.json()["studios"]) == 1

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"title": ""},
            {"title": "Bad Runtime", "runtime_minutes": 0},
            {"title": "Bad Cast", "cast": [{"actor_name": "X", "actor_order": 11}]},
            {"title": "Unknown", "tagline": "nope"},
        ],
    )
    def test_invalid_body_returns_400(self, client, api_headers, body):
        resp = client.post(MOVIES_URL, json=body, headers=api_headers)
        assert resp.status_code == 400

    def test_duplicate_billing_order_returns_400(self, client, api_headers):
        body = {
            "title": "Clash",
            "cast": [
                {"actor_name": "A", "actor_order": 1},
                {"actor_name": "B", "actor_order": 1},
            ],
        }

        resp = client.post(MOVIES_URL, json=body, headers=api_headers)

        assert resp.status_code == 400
        assert resp.json()["errors"][0]["message"] == "cast actor_order values must be unique"


# ---------------------------------------------------------------------------
# PATCH /api/movies/{id}
# ---------------------------------------------------------------------------


class TestPatchMovie:
    def test_updates_only_given_fields(self, client, api_headers, catalog):
        movie_id = catalog["Inception"]

        resp = client.patch(
            f"{MOVIES_URL}/{movie_id}",
            json={"overview": "Dreams within dreams.", "runtime_minutes": 149},
            headers=api_headers,
        )

        assert resp.status_code == 200
        movie = resp.json()
        assert movie["overview"] == "Dreams within dreams."
        assert movie["runtime_minutes"] == 149
        assert movie["title"] == "Inception"
        assert movie["budget"] == 160000000

    def test_field_can_be_cleared(self, client, api_headers, catalog):
        resp = client.patch(
            f"{MOVIES_URL}/{catalog['Inception']}", json={"mpa_rating": None}, headers=api_headers
        )

        assert resp.status_code == 200
        assert resp.json()["mpa_rating"] is None

    def test_empty_body_returns_400(self, client, api_headers, catalog):
        resp = client.patch(f"{MOVIES_URL}/{catalog['Inception']}", json={}, headers=api_headers)

        assert resp.status_code == 400
        assert resp.json()["errors"] == [
            {"field": "body", "message": "At least one field must be provided"}
        ]

    def test_null_title_returns_400(self, client, api_headers, catalog):
        resp = client.patch(
            f"{MOVIES_URL}/{catalog['Inception']}", json={"title": None}, headers=api_headers
        )

        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "title"

    def test_relations_are_not_patchable(self, client, api_headers, catalog):
        resp = client.patch(
            f"{MOVIES_URL}/{catalog['Inception']}", json={"genres": ["Drama"]}, headers=api_headers
        )
        assert resp.status_code == 400

    def test_missing_movie_returns_404(self, client, api_headers):
        resp = client.patch(f"{MOVIES_URL}/999", json={"overview": "x"}, headers=api_headers)
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# DELETE /api/movies/{id}
# ---------------------------------------------------------------------------


class TestDeleteMovie:
    def test_delete_then_get_returns_404(self, client, api_headers, catalog):
        movie_id = catalog["Toy Story"]

        resp = client.delete(f"{MOVIES_URL}/{movie_id}", headers=api_headers)

        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "message": "Movie 'Toy Story' deleted successfully",
            "deleted": {"movie_id": movie_id, "title": "Toy Story"},
        }
        assert client.get(f"{MOVIES_URL}/{movie_id}", headers=api_headers).status_code == 404

    def test_other_movies_keep_shared_entities(self, client, api_headers, catalog):
        client.delete(f"{MOVIES_URL}/{catalog['Batman Begins']}", headers=api_headers)

        resp = client.get(f"{MOVIES_URL}/{catalog['The Dark Knight']}", headers=api_headers)

        assert resp.status_code == 200
        assert resp.json()["cast"][0]["actor_name"] == "Christian Bale"

    def test_missing_movie_returns_404(self, client, api_headers):
        resp = client.delete(f"{MOVIES_URL}/999", headers=api_headers)
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# POST /api/movies/bulk
# ---------------------------------------------------------------------------


class TestBulkCreate:
    def test_all_movies_stored_returns_201(self, client, api_headers):
        body = {
            "movies": [
                {"title": "Alien", "directors": ["Ridley Scott"]},
                {"title": "Blade Runner", "directors": ["Ridley Scott"]},
            ]
        }

        resp = client.post(f"{MOVIES_URL}/bulk", json=body, headers=api_headers)

        assert resp.status_code == 201
        result = resp.json()
        assert result["success"] is True
        assert result["total_processed"] == 2
        assert result["successful"] == 2
        assert result["failed"] == 0
        assert [r["title"] for r in result["results"]] == ["Alien", "Blade Runner"]
        assert all("error" not in r for r in result["results"])

        movie_id = result["results"][1]["movie_id"]
        movie = client.get(f"{MOVIES_URL}/{movie_id}", headers=api_headers).json()
        assert movie["directors"] == ["Ridley Scott"]
        directors = client.get("/api/directors/search", params={"q": "ridley"}, headers=api_headers)
        assert directors.json()["meta"]["total"] == 1

    def test_invalid_entry_fails_alone_with_207(self, client, api_headers):
        body = {
            "movies": [
                {"title": "Heat"},
                {"title": "Bad Runtime", "runtime_minutes": 0},
                {"title": "Ronin"},
            ]
        }

        resp = client.post(f"{MOVIES_URL}/bulk", json=body, headers=api_headers)

        assert resp.status_code == 207
        result = resp.json()
        assert result["success"] is False
        assert result["successful"] == 2
        assert result["failed"] == 1
        failed = result["results"][1]
        assert failed["title"] == "Bad Runtime"
        assert failed["success"] is False
        assert failed["error"].startswith("runtime_minutes:")
        assert "movie_id" not in failed
        listed = client.get(MOVIES_URL, headers=api_headers)
        assert _titles(listed) == ["Heat", "Ronin"]

    def test_store_failure_rolls_back_only_that_movie(self, client, api_headers):
        set_relations = CatalogService._set_relations

        def fail_for_broken(self, db, movie, related):
            if movie.title == "Broken":
                raise OperationalError("INSERT", {}, Exception("disk full"))
            return set_relations(self, db, movie, related)

        body = {"movies": [{"title": "Broken", "genres": ["Drama"]}, {"title": "Whole"}]}

        with patch.object(CatalogService, "_set_relations", fail_for_broken):
            resp = client.post(f"{MOVIES_URL}/bulk", json=body, headers=api_headers)

        assert resp.status_code == 207
        results = resp.json()["results"]
        assert results[0] == {"title": "Broken", "success": False, "error": "Failed to store movie"}
        assert results[1]["success"] is True
        assert "disk full" not in resp.text
        assert _titles(client.get(MOVIES_URL, headers=api_headers)) == ["Whole"]

    @pytest.mark.parametrize("body", [{}, {"movies": []}, {"movies": "Alien"}])
    def test_malformed_request_returns_400(self, client, api_headers, body):
        resp = client.post(f"{MOVIES_URL}/bulk", json=body, headers=api_headers)

        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"].startswith("movies")

    def test_requires_api_key(self, client):
        resp = client.post(f"{MOVIES_URL}/bulk", json={"movies": [{"title": "Alien"}]})
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# PUT /api/movies/{id}
# ---------------------------------------------------------------------------


class TestReplaceMovie:
    def test_replaces_fields_and_links(self, client, api_headers, catalog):
        movie_id = catalog["The Dark Knight"]
        body = {
            "title": "The Dark Knight (Remastered)",
            "release_date": "2008-07-18",
            "genres": ["Thriller"],
            "directors": ["Christopher Nolan"],
            "studios": [{"name": "Syncopy", "country": "GB"}],
            "cast": [
                {"actor_name": "Heath Ledger", "character_name": "Joker", "actor_order": 1},
                {"actor_name": "Christian Bale", "character_name": "Batman", "actor_order": 2},
            ],
        }

        resp = client.put(f"{MOVIES_URL}/{movie_id}", json=body, headers=api_headers)

        assert resp.status_code == 200
        movie = resp.json()
        assert movie["movie_id"] == movie_id
        assert movie["title"] == "The Dark Knight (Remastered)"
        assert movie["genres"] == ["Thriller"]
        assert [s["studio_name"] for s in movie["studios"]] == ["Syncopy"]
        assert [(c["actor_name"], c["actor_order"]) for c in movie["cast"]] == [
            ("Heath Ledger", 1),
            ("Christian Bale", 2),
        ]

    def test_omitted_fields_and_links_are_cleared(self, client, api_headers, catalog):
        movie_id = catalog["The Dark Knight"]

        resp = client.put(f"{MOVIES_URL}/{movie_id}", json={"title": "Bare"}, headers=api_headers)

        assert resp.status_code == 200
        movie = client.get(f"{MOVIES_URL}/{movie_id}", headers=api_headers).json()
        assert movie["title"] == "Bare"
        assert movie["budget"] is None
        assert movie["release_date"] is None
        assert movie["collection"] is None
        assert movie["genres"] == []
        assert movie["producers"] == []
        assert movie["cast"] == []

    def test_shared_entities_survive_for_other_movies(self, client, api_headers, catalog):
        client.put(f"{MOVIES_URL}/{catalog['Batman Begins']}", json={"title": "Begins"}, headers=api_headers)

        other = client.get(f"{MOVIES_URL}/{catalog['The Dark Knight']}", headers=api_headers).json()
        assert other["collection"] == "The Dark Knight Collection"
        assert other["cast"][0]["actor_name"] == "Christian Bale"

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"overview": "no title"},
            {"title": "Unknown", "tagline": "nope"},
        ],
    )
    def test_invalid_body_returns_400(self, client, api_headers, catalog, body):
        resp = client.put(f"{MOVIES_URL}/{catalog['Inception']}", json=body, headers=api_headers)
        assert resp.status_code == 400

    def test_missing_movie_returns_404(self, client, api_headers):
        resp = client.put(f"{MOVIES_URL}/999", json={"title": "Ghost"}, headers=api_headers)

        assert resp.status_code == 404
        assert resp.json()["message"] == "Movie with ID 999 not found"


# ---------------------------------------------------------------------------
# PATCH /api/movies/{id}/cast
# ---------------------------------------------------------------------------


class TestUpdateCast:
    def test_replaces_cast(self, client, api_headers, catalog):
        movie_id = catalog["The Dark Knight"]
        cast = [
            {"actor_name": "Christian Bale", "character_name": "Batman", "actor_order": 1},
            {"actor_name": "Gary Oldman", "character_name": "Jim Gordon", "actor_order": 2},
        ]

        resp = client.patch(f"{MOVIES_URL}/{movie_id}/cast", json={"cast": cast}, headers=api_headers)

        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "movie_id": movie_id,
            "message": "Cast updated successfully",
            "cast_count": 2,
        }
        movie = client.get(f"{MOVIES_URL}/{movie_id}", headers=api_headers).json()
        assert [(c["actor_name"], c["character_name"]) for c in movie["cast"]] == [
            ("Christian Bale", "Batman"),
            ("Gary Oldman", "Jim Gordon"),
        ]
        assert sorted(movie["genres"]) == ["Action", "Crime", "Drama"]

    def test_existing_actor_is_reused(self, client, api_headers, catalog):
        cast = [{"actor_name": " Tom Hanks ", "actor_order": 1}]

        client.patch(f"{MOVIES_URL}/{catalog['Inception']}/cast", json={"cast": cast}, headers=api_headers)

        resp = client.get("/api/actors/search", params={"q": "hanks"}, headers=api_headers)
        assert resp.json()["meta"]["total"] == 1
        movies = client.get("/api/actors/name/hanks/movies", headers=api_headers)
        assert sorted(_titles(movies)) == ["Inception", "Toy Story"]

    def test_empty_list_clears_cast(self, client, api_headers, catalog):
        movie_id = catalog["Toy Story"]

        resp = client.patch(f"{MOVIES_URL}/{movie_id}/cast", json={"cast": []}, headers=api_headers)

        assert resp.json()["cast_count"] == 0
        assert client.get(f"{MOVIES_URL}/{movie_id}", headers=api_headers).json()["cast"] == []

    def test_more_than_ten_members_returns_400(self, client, api_headers, catalog):
        cast = [{"actor_name": f"Extra {n}", "actor_order": n} for n in range(1, 12)]

        resp = client.patch(
            f"{MOVIES_URL}/{catalog['Inception']}/cast", json={"cast": cast}, headers=api_headers
        )

        assert resp.status_code == 400

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"cast": [{"actor_name": "A", "actor_order": 1}, {"actor_name": "B", "actor_order": 1}]},
            {"cast": [{"actor_name": "A", "actor_order": 0}]},
        ],
    )
    def test_invalid_body_returns_400(self, client, api_headers, catalog, body):
        resp = client.patch(
            f"{MOVIES_URL}/{catalog['Inception']}/cast", json=body, headers=api_headers
        )
        assert resp.status_code == 400

    def test_failed_update_keeps_old_cast(self, app, client, api_headers, catalog):
        movie_id = catalog["The Dark Knight"]
        error = OperationalError("INSERT", {}, Exception("disk full"))

        with (
            patch.object(CatalogService, "_build_cast", side_effect=error),
            TestClient(app, raise_server_exceptions=False) as tc,
        ):
            resp = tc.patch(
                f"{MOVIES_URL}/{movie_id}/cast",
                json={"cast": [{"actor_name": "Nobody", "actor_order": 1}]},
                headers=api_headers,
            )

        assert resp.status_code == 500
        assert "disk full" not in resp.text
        movie = client.get(f"{MOVIES_URL}/{movie_id}", headers=api_headers).json()
        assert [c["actor_name"] for c in movie["cast"]] == ["Christian Bale", "Heath Ledger"]

    def test_missing_movie_returns_404(self, client, api_headers):
        resp = client.patch(f"{MOVIES_URL}/999/cast", json={"cast": []}, headers=api_headers)
        assert resp.status_code == 404
