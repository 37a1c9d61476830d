"""
Natours Backend — Review Tests
===============================

What we test:
    ✅ Only users may create reviews; the author is the logged-in user
    ✅ Nested route takes the tour from the path
    ✅ One review per user per tour
    ✅ Tour ratings recomputed on create, update and delete
    ✅ Reviews on missing or secret tours → 404
"""

import pytest

from natours.models import Tour


async def tour_ratings(database, tour_id):
    async with database.session() as session:
        tour = await session.get(Tour, tour_id)
        return tour.ratings_quantity, tour.ratings_average


class TestCreateReview:
    @pytest.mark.asyncio
    async def test_nested_create(self, client, make_tour, make_user, auth_headers):
        tour = await make_tour()
        user = await make_user(name="Reviewer")
        response = await client.post(
            f"/api/v1/tours/{tour.id}/reviews",
            json={"review": "Amazing!", "rating": 5},
            headers=auth_headers(user),
        )
        assert response.status_code == 201
        review = response.json()["data"]["data"]
        assert review["tourId"] == str(tour.id)
        assert review["user"]["name"] == "Reviewer"

    @pytest.mark.asyncio
    async def test_author_is_forced_to_current_user(self, client, make_tour, make_user, auth_headers):
        tour = await make_tour()
        author = await make_user(name="Author")
        other = await make_user(name="Someone Else")
        response = await client.post(
            "/api/v1/reviews",
            json={"review": "Nice", "rating": 4, "tour": str(tour.id), "user": str(other.id)},
            headers=auth_headers(author),
        )
        assert response.status_code == 201
        assert response.json()["data"]["data"]["user"]["id"] == str(author.id)

    @pytest.mark.asyncio
    async def test_tour_required_on_flat_route(self, client, make_user, auth_headers):
        user = await make_user()
        response = await client.post(
            "/api/v1/reviews", json={"review": "Nice", "rating": 4}, headers=auth_headers(user)
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Review must belong to a tour."

    @pytest.mark.asyncio
    async def test_guides_cannot_review(self, client, make_tour, make_user, auth_headers):
        tour = await make_tour()
        guide = await make_user(role="guide")
        response = await client.post(
            f"/api/v1/tours/{tour.id}/reviews",
            json={"review": "Nice", "rating": 4},
            headers=auth_headers(guide),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_one_review_per_tour(self, client, make_tour, make_user, auth_headers):
        tour = await make_tour()
        headers = auth_headers(await make_user())
        url = f"/api/v1/tours/{tour.id}/reviews"
        await client.post(url, json={"review": "First", "rating": 4}, headers=headers)
        response = await client.post(url, json={"review": "Second", "rating": 2}, headers=headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Duplicate field value. Please use another value!"

    @pytest.mark.asyncio
    async def test_secret_tour(self, client, make_tour, make_user, auth_headers):
        tour = await make_tour(secret_tour=True)
        response = await client.post(
            f"/api/v1/tours/{tour.id}/reviews",
            json={"review": "Hidden", "rating": 4},
            headers=auth_headers(await make_user()),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_rating_range(self, client, make_tour, make_user, auth_headers):
        tour = await make_tour()
        response = await client.post(
            f"/api/v1/tours/{tour.id}/reviews",
            json={"review": "Too good", "rating": 6},
            headers=auth_headers(await make_user()),
        )
        assert response.status_code == 400


class TestRatingsAggregate:
    @pytest.mark.asyncio
    async def test_recomputed_on_every_change(
        self, client, database, make_tour, make_user, auth_headers
    ):
        tour = await make_tour()
        url = f"/api/v1/tours/{tour.id}/reviews"
        first_user = auth_headers(await make_user())
        second_user = auth_headers(await make_user())

        first = await client.post(url, json={"review": "Good", "rating": 4}, headers=first_user)
        await client.post(url, json={"review": "Great", "rating": 5}, headers=second_user)
        assert await tour_ratings(database, tour.id) == (2, 4.5)

        review_id = first.json()["data"]["data"]["id"]
        await client.patch(f"/api/v1/reviews/{review_id}", json={"rating": 2}, headers=first_user)
        assert await tour_ratings(database, tour.id) == (2, 3.5)

        await client.delete(f"/api/v1/reviews/{review_id}", headers=first_user)
        assert await tour_ratings(database, tour.id) == (1, 5.0)

    @pytest.mark.asyncio
    async def test_defaults_restored_when_last_review_deleted(
        self, client, database, make_tour, make_user, auth_headers
    ):
        tour = await make_tour()
        headers = auth_headers(await make_user())
        created = await client.post(
            f"/api/v1/tours/{tour.id}/reviews",
            json={"review": "Meh", "rating": 1},
            headers=headers,
        )
        assert await tour_ratings(database, tour.id) == (1, 1.0)

        review_id = created.json()["data"]["data"]["id"]
        response = await client.delete(f"/api/v1/reviews/{review_id}", headers=headers)
        assert response.status_code == 204
        assert await tour_ratings(database, tour.id) == (0, 4.5)

    @pytest.mark.asyncio
    async def test_average_rounded_to_one_decimal(
        self, client, database, make_tour, make_user, auth_headers
    ):
        tour = await make_tour()
        url = f"/api/v1/tours/{tour.id}/reviews"
        for rating in (4, 4, 5):
            await client.post(
                url, json={"review": "ok", "rating": rating}, headers=auth_headers(await make_user())
            )
        assert await tour_ratings(database, tour.id) == (3, 4.3)


class TestListReviews:
    @pytest.mark.asyncio
    async def test_list_requires_login(self, client):
        response = await client.get("/api/v1/reviews")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_nested_list_filters_by_tour(self, client, make_tour, make_user, auth_headers):
        first, second = await make_tour(), await make_tour()
        headers = auth_headers(await make_user())
        await client.post(f"/api/v1/tours/{first.id}/reviews", json={"review": "A", "rating": 4}, headers=headers)
        await client.post(f"/api/v1/tours/{second.id}/reviews", json={"review": "B", "rating": 3}, headers=headers)

        nested = await client.get(f"/api/v1/tours/{first.id}/reviews")
        assert [r["review"] for r in nested.json()["data"]["data"]] == ["A"]

        everything = await client.get("/api/v1/reviews", headers=headers)
        assert everything.json()["results"] == 2

    @pytest.mark.asyncio
    async def test_tour_detail_embeds_reviews(self, client, make_tour, make_user, auth_headers):
        tour = await make_tour()
        await client.post(
            f"/api/v1/tours/{tour.id}/reviews",
            json={"review": "Embedded", "rating": 5},
            headers=auth_headers(await make_user()),
        )
        response = await client.get(f"/api/v1/tours/{tour.id}")
        reviews = response.json()["data"]["data"]["reviews"]
        assert [r["review"] for r in reviews] == ["Embedded"]
