"""
Integration tests for a complete restaurant directory session.
"""

import asyncio

import pytest
import pytest_asyncio
import httpx

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_restaurants.app.adapters import InMemoryDocumentStore
from service_restaurants.app.main import create_app
from shared.test_helpers import MEXICO_CITY_CENTER, TestDataFactory


BASE = "/api/v1/restaurants"


class TestRestaurantFlow:
    """End-to-end flows through the ASGI app."""

    @pytest.fixture
    def app(self):
        store = InMemoryDocumentStore({"restaurants": TestDataFactory.load_sample_restaurants()})
        return create_app(store=store)

    @pytest_asyncio.fixture
    async def client(self, app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://tattler.test") as client:
            yield client

    @pytest.mark.asyncio
    async def test_complete_visitor_journey(self, client):
        """Browse, add a restaurant, rate it and find it nearby."""
        lat, lng = MEXICO_CITY_CENTER

        # 1. Browse and warm the cache
        listing = await client.get(BASE, params={"cuisine": "Mexican"})
        assert listing.status_code == 200
        assert listing.headers["X-Cache"] == "MISS"
        assert listing.json()["total"] == 4

        stats = await client.get(f"{BASE}/stats")
        assert stats.json()["data"]["statistics"]["ratingStats"][0]["totalRestaurants"] == 8

        # 2. Add a restaurant
        payload = TestDataFactory.create_restaurant_payload(
            location={
                "address": "Motolinia 32",
                "city": "Mexico City",
                "state": "CDMX",
                "coordinates": {"latitude": 19.4337, "longitude": -99.1380},
            },
        )
        created = await client.post(BASE, json=payload)
        assert created.status_code == 201
        restaurant_id = created.json()["data"]["restaurant"]["_id"]

        # 3. Every cached read of the family was dropped
        listing = await client.get(BASE, params={"cuisine": "Mexican"})
        assert listing.headers["X-Cache"] == "MISS"
        assert listing.json()["total"] == 5

        stats = await client.get(f"{BASE}/stats")
        assert stats.headers["X-Cache"] == "MISS"
        assert stats.json()["data"]["statistics"]["ratingStats"][0]["totalRestaurants"] == 9

        # 4. Rate it twice and comment
        for user_id, score in (("user-1", 5), ("user-2", 3)):
            rated = await client.post(f"{BASE}/{restaurant_id}/ratings", json={"userId": user_id, "rating": score})
            assert rated.status_code == 201

        commented = await client.post(
            f"{BASE}/{restaurant_id}/comments",
            json={"userId": "user-1", "username": "ana", "comment": "Great stews"},
        )
        assert commented.status_code == 201

        restaurant = (await client.get(f"{BASE}/{restaurant_id}")).json()["data"]["restaurant"]
        assert restaurant["rating"] == 4.0
        assert restaurant["totalRatings"] == 2

        # 5. It shows up near the centre, annotated with distance
        nearby = await client.get(f"{BASE}/nearby", params={"latitude": lat, "longitude": lng, "radius": 1})
        names = [r["name"] for r in nearby.json()["data"]["restaurants"]]
        assert "Fonda Margarita" in names
        assert all(r["distance"] <= 1 for r in nearby.json()["data"]["restaurants"])

        # 6. Search finds it by description
        search = await client.get(f"{BASE}/search", params={"q": "stews"})
        assert [r["name"] for r in search.json()["data"]["restaurants"]] == ["Fonda Margarita"]

        # 7. Delete it and everything attached to it
        deleted = await client.delete(f"{BASE}/{restaurant_id}")
        assert deleted.status_code == 204
        assert (await client.get(f"{BASE}/{restaurant_id}")).status_code == 404
        assert (await client.get(f"{BASE}/{restaurant_id}/comments")).status_code == 404

    @pytest.mark.asyncio
    async def test_concurrent_reads_agree(self, client):
        """Concurrent reads of one key all return the same body."""
        responses = await asyncio.gather(*[
            client.get(BASE, params={"cuisine": "Italian", "sortBy": "name", "order": "asc"})
            for _ in range(10)
        ])

        bodies = {response.content for response in responses}
        assert len(bodies) == 1
        assert all(response.status_code == 200 for response in responses)

    @pytest.mark.asyncio
    async def test_interleaved_reads_and_writes(self, client):
        """A read issued after a write completes never sees pre-write data."""
        for index in range(5):
            await client.get(BASE)
            created = await client.post(BASE, json=TestDataFactory.create_restaurant_payload(name=f"Fonda {index}"))
            assert created.status_code == 201

            listing = await client.get(BASE, params={"limit": 100})
            assert listing.json()["total"] == 8 + index + 1

    @pytest.mark.asyncio
    async def test_error_responses_carry_request_id(self, client):
        response = await client.get(f"{BASE}/search", headers={"X-Request-ID": "flow-1"})

        assert response.status_code == 400
        assert response.headers["X-Request-ID"] == "flow-1"
        assert response.json()["status"] == "fail"
