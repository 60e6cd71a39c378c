import json
import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import httpx
import pytest
from fastapi.testclient import TestClient

from content_service import sanity
from content_service.main import app

client = TestClient(app)


def block(text, style="normal", **extra):
    return {
        "_type": "block",
        "style": style,
        "children": [{"_type": "span", "text": text, "marks": []}],
        **extra,
    }


POSTS = [
    {
        "_id": "p1",
        "title": "Escape Room Tips",
        "slug": {"current": "escape-room-tips"},
        "publishedAt": "2025-01-05T10:00:00Z",
        "category": "Guides",
        "excerpt": "How to win.",
        "image": {"asset": {"_ref": "image-abc123-1200x800-jpg"}, "alt": "Team"},
        "author": {"name": "Jordan"},
        "content": [block("Communicate with your team.", style="h2"), block("word " * 450)],
    },
    {
        "_id": "p2",
        "title": "Best Horror Rooms",
        "slug": {"current": "Best Horror Rooms"},
        "publishedAt": "2024-12-24T08:00:00Z",
        "category": "Reviews",
        "content": [block("Scary.")],
    },
]


class FakeResponse:
    def __init__(self, status_code, data=None):
        self.status_code = status_code
        self._data = data or {}

    def json(self):
        return self._data


def fake_httpx_get(url, params=None, headers=None, timeout=None):
    query = params["query"]
    if "$slug" in params:
        slug = json.loads(params["$slug"])
        match = next((p for p in POSTS if p["slug"]["current"] == slug), None)
        return FakeResponse(200, {"result": match})
    if "[0...3]" in query:
        return FakeResponse(200, {"result": POSTS[:3]})
    return FakeResponse(200, {"result": POSTS})


@pytest.fixture(autouse=True)
def sanity_api(monkeypatch):
    monkeypatch.setattr(httpx, "get", fake_httpx_get)
    yield


# ---------- Helpers ----------


def test_format_date():
    assert sanity.format_date("2025-01-05T10:00:00Z") == "January 5, 2025"
    assert sanity.format_date("not a date") == ""
    assert sanity.format_date(None) == ""


def test_calculate_read_time():
    assert sanity.calculate_read_time(None) == "1 min read"
    assert sanity.calculate_read_time([block("short")]) == "1 min read"
    assert sanity.calculate_read_time([block("word " * 450)]) == "3 min read"


def test_seo_slug_and_title():
    assert sanity.create_seo_slug("Best Horror Rooms!") == "best-horror-rooms"
    assert sanity.slug_to_title("best-horror-rooms") == "Best Horror Rooms"


def test_get_image_url():
    url = sanity.get_image_url({"asset": {"_ref": "image-abc123-1200x800-jpg"}}, 400, 300)
    assert url.startswith("https://cdn.sanity.io/images/")
    assert "/abc123-1200x800.jpg?w=400&h=300&fit=crop&auto=format" in url
    assert sanity.get_image_url(None) == "/placeholder.svg"
    assert sanity.get_image_url({"alt": "no asset"}) == "/placeholder.svg"


def test_fetch_sends_json_encoded_params(monkeypatch):
    seen = {}

    def recording_get(url, params=None, headers=None, timeout=None):
        seen["url"] = url
        seen["params"] = params
        return FakeResponse(200, {"result": None})

    monkeypatch.setattr(httpx, "get", recording_get)
    assert sanity.get_blog_post("escape-room-tips") is None
    assert seen["params"]["$slug"] == '"escape-room-tips"'
    assert "/data/query/" in seen["url"]


# ---------- Blog endpoints ----------


def test_featured_blog_posts():
    res = client.get("/api/v1/blog-posts")
    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert [p["_id"] for p in body["data"]] == ["p1", "p2"]


def test_list_blog_posts_builds_cards():
    res = client.get("/api/v1/blog")
    assert res.status_code == 200
    cards = res.json()
    assert [c["seo_slug"] for c in cards] == ["escape-room-tips", "best-horror-rooms"]
    first = cards[0]
    assert first["published"] == "January 5, 2025"
    assert first["read_time"] == "3 min read"
    assert first["image_alt"] == "Team"
    assert cards[1]["image_url"] == "/placeholder.svg"


def test_list_blog_posts_by_category():
    res = client.get("/api/v1/blog", params={"category": "reviews"})
    assert [c["id"] for c in res.json()] == ["p2"]


def test_blog_post_page_renders_html_and_related():
    res = client.get("/api/v1/blog/escape-room-tips")
    assert res.status_code == 200
    body = res.json()
    assert body["post"]["title"] == "Escape Room Tips"
    assert body["author"] == "Jordan"
    assert body["html"].startswith("<h2>Communicate with your team.</h2><p>")
    assert [p["id"] for p in body["related_posts"]] == ["p2"]


def test_blog_post_found_by_title_slug():
    res = client.get("/api/v1/blog/best-horror-rooms")
    assert res.status_code == 200
    assert res.json()["post"]["id"] == "p2"


def test_unknown_blog_post_returns_404():
    res = client.get("/api/v1/blog/nothing-here")
    assert res.status_code == 404
    assert res.json()["detail"] == "Blog post not found"


def test_content_api_failure_returns_502(monkeypatch):
    monkeypatch.setattr(httpx, "get", lambda *args, **kwargs: FakeResponse(500))

    res = client.get("/api/v1/blog")
    assert res.status_code == 502
    assert res.json()["detail"] == "Failed to fetch blog posts"


# ---------- Rendering ----------


def test_render_endpoint_cleans_and_renders_markdown():
    res = client.post("/api/v1/render", json={"content": "# Welcome\n\nDonâ€™t miss **the vault**"})
    assert res.status_code == 200
    assert res.json() == {
        "content_type": "markdown",
        "html": "<h1>Welcome</h1><p>Don't miss <strong>the vault</strong></p>",
    }


def test_render_endpoint_empty_content():
    res = client.post("/api/v1/render", json={"content": "   "})
    assert res.json() == {"content_type": "empty", "html": ""}
