"""Tests for the Notion client and pagination."""

import asyncio

import pytest
from aiohttp import web

from portfolio_sync.fetchers.notion import Failure, NotionAPIError, NotionClient, Page, paginate
from portfolio_sync.utils.http import RateLimiter


def fake_pages(pages):
    """A fetch_page capability serving canned pages keyed by cursor."""
    seen = []

    async def fetch_page(cursor):
        seen.append(cursor)
        return pages[cursor]

    return fetch_page, seen


class TestPaginate:
    """Tests for cursor following."""

    def test_follows_cursor_until_exhausted(self):
        fetch_page, seen = fake_pages({
            None: Page(results=[1, 2], next_cursor="c2"),
            "c2": Page(results=[3], next_cursor="c3"),
            "c3": Page(results=[4]),
        })

        assert asyncio.run(paginate(fetch_page)) == [1, 2, 3, 4]
        assert seen == [None, "c2", "c3"]

    def test_single_page(self):
        fetch_page, seen = fake_pages({None: Page(results=[])})
        assert asyncio.run(paginate(fetch_page)) == []
        assert seen == [None]

    def test_failure_raises(self):
        fetch_page, _ = fake_pages({
            None: Page(results=[1], next_cursor="c2"),
            "c2": Failure(ConnectionError("reset"), status=None),
        })

        with pytest.raises(NotionAPIError, match="page 2"):
            asyncio.run(paginate(fetch_page, description="blocks"))

    def test_failure_keeps_status(self):
        fetch_page, _ = fake_pages({None: Failure(NotionAPIError("nope", status=404), status=404)})

        with pytest.raises(NotionAPIError) as excinfo:
            asyncio.run(paginate(fetch_page))
        assert excinfo.value.status == 404


def make_client(server, **kwargs):
    return NotionClient(
        "secret-token",
        api_url=str(server.make_url("/v1")),
        rate_limiter=RateLimiter(requests_per_second=0),
        **kwargs,
    )


class TestNotionClient:
    """Tests for the HTTP client against a local server."""

    def test_query_paginates_and_sends_filter(self, serve):
        requests = []

        async def query(request):
            body = await request.json()
            requests.append(({
                "Authorization": request.headers.get("Authorization"),
                "Notion-Version": request.headers.get("Notion-Version"),
            }, body))
            if body.get("start_cursor") == "next":
                return web.json_response({"results": [{"id": "p-3"}], "has_more": False, "next_cursor": None})
            return web.json_response({"results": [{"id": "p-1"}, {"id": "p-2"}], "has_more": True, "next_cursor": "next"})

        async def scenario(server):
            async with make_client(server, page_size=2) as client:
                return await client.query_collection("db-id", "Publish", "Date")

        pages = serve([web.post("/v1/databases/db-id/query", query)], scenario)

        assert [p["id"] for p in pages] == ["p-1", "p-2", "p-3"]
        headers, body = requests[0]
        assert headers["Authorization"] == "Bearer secret-token"
        assert headers["Notion-Version"] == "2022-06-28"
        assert body["filter"] == {"property": "Publish", "checkbox": {"equals": True}}
        assert body["sorts"] == [{"property": "Date", "direction": "descending"}]
        assert body["page_size"] == 2
        assert "start_cursor" not in body
        assert requests[1][1]["start_cursor"] == "next"

    def test_query_http_error_is_fatal(self, serve):
        async def query(request):
            return web.json_response({"message": "unauthorized"}, status=401)

        async def scenario(server):
            async with make_client(server, max_tries=3) as client:
                return await client.query_collection("db-id")

        with pytest.raises(NotionAPIError) as excinfo:
            serve([web.post("/v1/databases/db-id/query", query)], scenario)
        assert excinfo.value.status == 401

    def test_malformed_response_is_fatal(self, serve):
        async def query(request):
            return web.json_response({"object": "list"})

        async def scenario(server):
            async with make_client(server) as client:
                return await client.query_collection("db-id")

        with pytest.raises(NotionAPIError, match="Malformed"):
            serve([web.post("/v1/databases/db-id/query", query)], scenario)

    def test_server_error_retried_when_configured(self, serve):
        calls = []

        async def query(request):
            calls.append(1)
            if len(calls) == 1:
                return web.Response(status=503, text="busy")
            return web.json_response({"results": [], "has_more": False})

        async def scenario(server):
            async with make_client(server, max_tries=2) as client:
                return await client.query_collection("db-id")

        assert serve([web.post("/v1/databases/db-id/query", query)], scenario) == []
        assert len(calls) == 2

    def test_no_retry_by_default(self, serve):
        calls = []

        async def query(request):
            calls.append(1)
            return web.Response(status=503, text="busy")

        async def scenario(server):
            async with make_client(server) as client:
                return await client.query_collection("db-id")

        with pytest.raises(NotionAPIError):
            serve([web.post("/v1/databases/db-id/query", query)], scenario)
        assert len(calls) == 1

    def test_block_tree_follows_cursors_and_children(self, serve):
        async def children(request):
            block_id = request.match_info["block_id"]
            cursor = request.query.get("start_cursor")
            if block_id == "page":
                if cursor is None:
                    return web.json_response({
                        "results": [{"id": "b1", "type": "paragraph", "paragraph": {"rich_text": []}, "has_children": False}],
                        "has_more": True,
                        "next_cursor": "more",
                    })
                return web.json_response({
                    "results": [
                        {"id": "t1", "type": "toggle", "toggle": {"rich_text": []}, "has_children": True},
                        {"id": "cp", "type": "child_page", "child_page": {"title": "x"}, "has_children": True},
                    ],
                    "has_more": False,
                })
            if block_id == "t1":
                return web.json_response({
                    "results": [{"id": "c1", "type": "paragraph", "paragraph": {"rich_text": []}, "has_children": False}],
                    "has_more": False,
                })
            return web.json_response({"message": "unexpected"}, status=400)

        async def scenario(server):
            async with make_client(server) as client:
                return await client.fetch_block_tree("page")

        blocks = serve([web.get("/v1/blocks/{block_id}/children", children)], scenario)

        assert [b["id"] for b in blocks] == ["b1", "t1", "cp"]
        assert [b["id"] for b in blocks[1]["children"]] == ["c1"]
        assert "children" not in blocks[2]

    def test_block_tree_descends_into_layout_blocks(self, serve):
        tree = {
            "page": [
                {"id": "h", "type": "heading_2", "heading_2": {"rich_text": [], "is_toggleable": True}, "has_children": True},
                {"id": "cols", "type": "column_list", "column_list": {}, "has_children": True},
                {"id": "dup", "type": "synced_block",
                 "synced_block": {"synced_from": {"type": "block_id", "block_id": "orig"}}, "has_children": True},
            ],
            "h": [{"id": "h1", "type": "paragraph", "paragraph": {"rich_text": []}, "has_children": False}],
            "cols": [{"id": "col", "type": "column", "column": {}, "has_children": True}],
            "col": [{"id": "c1", "type": "paragraph", "paragraph": {"rich_text": []}, "has_children": False}],
            "orig": [{"id": "o1", "type": "paragraph", "paragraph": {"rich_text": []}, "has_children": False}],
        }

        async def children(request):
            block_id = request.match_info["block_id"]
            if block_id not in tree:
                return web.json_response({"message": "unexpected"}, status=400)
            return web.json_response({"results": tree[block_id], "has_more": False})

        async def scenario(server):
            async with make_client(server) as client:
                return await client.fetch_block_tree("page")

        blocks = serve([web.get("/v1/blocks/{block_id}/children", children)], scenario)

        assert [b["id"] for b in blocks[0]["children"]] == ["h1"]
        assert blocks[1]["children"][0]["children"][0]["id"] == "c1"
        assert [b["id"] for b in blocks[2]["children"]] == ["o1"]

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            NotionClient("")
