"""
Natours Backend — Router Tests
===============================

What we test:
    ✅ Groups mount longest prefix first, catch-all last
    ✅ Unmatched API paths → 404 naming the original URL
    ✅ Unmatched page paths render the error page
    ✅ Collection routes answer with and without the trailing slash
"""

import pytest
from fastapi import APIRouter
from fastapi.routing import APIRoute

from natours.routes import ROUTE_GROUPS, RouteGroup, ordered_groups


class TestMountOrder:
    def test_longest_prefix_first(self):
        prefixes = [group.prefix for group in ordered_groups(ROUTE_GROUPS)]
        assert prefixes[0] == "/webhook-checkout"
        assert prefixes[-1] == "/"
        lengths = [len(p.rstrip("/")) for p in prefixes]
        assert lengths == sorted(lengths, reverse=True)

    def test_ties_keep_declaration_order(self):
        a, b = APIRouter(), APIRouter()
        groups = [RouteGroup("/api/v1/aaaa", a), RouteGroup("/api/v1/bbbb", b)]
        assert [g.router for g in ordered_groups(groups)] == [a, b]

    def test_app_records_mount_order(self, app):
        assert app.state.route_groups == [g.prefix for g in ordered_groups(ROUTE_GROUPS)]

    def test_catch_all_is_last(self, app):
        api_routes = [r for r in app.router.routes if isinstance(r, APIRoute)]
        assert api_routes[-1].path == "/{full_path:path}"


class TestNotFound:
    @pytest.mark.asyncio
    async def test_unknown_api_path(self, client):
        response = await client.get("/api/v1/nope?x=1")
        assert response.status_code == 404
        assert response.json() == {
            "status": "fail",
            "message": "Can't find /api/v1/nope?x=1 on this server!",
        }

    @pytest.mark.asyncio
    async def test_any_method_is_caught(self, client):
        response = await client.delete("/api/v2/tours")
        assert response.status_code == 404
        assert response.json()["message"] == "Can't find /api/v2/tours on this server!"

    @pytest.mark.asyncio
    async def test_unknown_page_renders_error_page(self, client):
        response = await client.get("/no-such-page")
        assert response.status_code == 404
        assert response.headers["content-type"].startswith("text/html")
        assert "Can&#39;t find /no-such-page on this server!" in response.text


class TestTrailingSlash:
    @pytest.mark.asyncio
    async def test_collection_with_and_without_slash(self, client):
        bare = await client.get("/api/v1/tours")
        slashed = await client.get("/api/v1/tours/")
        assert bare.status_code == 200
        assert slashed.status_code == 200
