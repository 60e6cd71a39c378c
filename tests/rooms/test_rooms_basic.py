import os
import sys
from datetime import datetime, timedelta

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.exc import SQLAlchemyError

from common.config import ALGORITHM, SECRET_KEY, SITE_BASE_URL
from rooms_service import models
from rooms_service.database import Base, SessionLocal, engine, get_db
from rooms_service.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def make_token(username: str, role: str, user_id: int = 1) -> str:
    payload = {
        "sub": username,
        "role": role,
        "user_id": user_id,
        "exp": datetime.utcnow() + timedelta(minutes=15),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def admin_headers():
    return {"Authorization": f"Bearer {make_token('admin1', 'admin')}"}


def create_room(**overrides) -> dict:
    payload = {
        "name": "Escape Room Denver - Denver, CO",
        "city": "Denver",
        "state": "CO",
        "country": "United States",
        "postal_code": "80202",
        "rating": 4.5,
        "reviews_average": 120,
        "category_new": "Mystery",
    }
    payload.update(overrides)
    res = client.post("/api/v1/rooms", json=payload, headers=admin_headers())
    assert res.status_code == 201, res.text
    return res.json()


def seed_colorado():
    denver = create_room()
    boulder = create_room(
        name="Puzzle House (Boulder, Colorado)",
        city="Boulder",
        state="Colorado",
        postal_code="80301",
        rating=4.8,
        reviews_average=40,
        category_new="Horror",
    )
    austin = create_room(
        name="Lone Star Escapes",
        city="Austin",
        state="TX",
        postal_code="73301",
        rating=3.9,
        reviews_average=15,
        category_new="Mystery",
    )
    return denver, boulder, austin


def test_root_health():
    res = client.get("/")
    assert res.status_code == 200
    assert res.json() == {"service": "rooms", "status": "running"}


def test_create_room_requires_auth():
    res = client.post("/api/v1/rooms", json={"name": "Room A"})
    assert res.status_code in (401, 403)


def test_regular_user_cannot_create_room():
    headers = {"Authorization": f"Bearer {make_token('user1', 'regular')}"}
    res = client.post("/api/v1/rooms", json={"name": "Room A"}, headers=headers)
    assert res.status_code == 403


def test_service_account_can_create_room():
    headers = {"Authorization": f"Bearer {make_token('listings_service', 'service_account', 0)}"}
    res = client.post("/api/v1/rooms", json={"name": "Clue Quest", "city": "Austin", "state": "TX"}, headers=headers)
    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "Open"
    assert body["country"] == "United States"


def test_get_room_uses_display_defaults():
    room = create_room(category_new=None, photo=None, difficulty=None)

    res = client.get(f"/api/v1/rooms/{room['id']}")
    assert res.status_code == 200
    data = res.json()["room"]
    assert data["venue_name"] == "Escape Room Denver"
    assert data["theme"] == "Adventure"
    assert data["difficulty"] == "Beginner"
    assert data["image"] == "/placeholder.svg"
    assert data["location"] == "Denver, CO"
    assert data["reviews"] == 120
    assert data["url"] == "/locations/united-states/colorado/denver/escape-room-denver"


def test_get_unknown_room_returns_404():
    res = client.get("/api/v1/rooms/9999")
    assert res.status_code == 404
    assert res.json()["detail"] == "Room not found"
    assert res.json()["service"] == "rooms"


def test_search_matches_state_abbreviation_and_full_name():
    seed_colorado()

    res = client.get("/api/v1/rooms", params={"state": "colorado"})
    assert res.status_code == 200
    body = res.json()
    assert body["count"] == 2
    # best rated first
    assert [r["city"] for r in body["data"]] == ["Boulder", "Denver"]

    res = client.get("/api/v1/rooms", params={"state": "CO", "limit": 1})
    body = res.json()
    assert body["count"] == 2
    assert len(body["data"]) == 1


def test_search_filters_by_category_and_name():
    seed_colorado()

    res = client.get("/api/v1/rooms", params={"category": "Mystery"})
    assert {r["name"] for r in res.json()["data"]} == {
        "Escape Room Denver - Denver, CO",
        "Lone Star Escapes",
    }

    res = client.get("/api/v1/rooms", params={"name": "puzzle"})
    assert [r["city"] for r in res.json()["data"]] == ["Boulder"]


def test_closed_room_is_hidden_everywhere():
    denver, _, _ = seed_colorado()

    res = client.delete(f"/api/v1/rooms/{denver['id']}", headers=admin_headers())
    assert res.status_code == 204

    assert client.get(f"/api/v1/rooms/{denver['id']}").status_code == 404
    assert client.get("/api/v1/rooms", params={"state": "CO"}).json()["count"] == 1
    assert client.get("/api/v1/stats").json()["total_rooms"] == 2

    # closing twice is a 404
    res = client.delete(f"/api/v1/rooms/{denver['id']}", headers=admin_headers())
    assert res.status_code == 404


def test_closed_room_can_be_reopened():
    room = create_room()
    client.delete(f"/api/v1/rooms/{room['id']}", headers=admin_headers())

    res = client.put(f"/api/v1/rooms/{room['id']}", json={"status": "Open"}, headers=admin_headers())
    assert res.status_code == 200
    assert res.json()["status"] == "Open"
    assert client.get(f"/api/v1/rooms/{room['id']}").status_code == 200


def test_room_detail_includes_amenities_hours_and_nearby():
    denver, boulder, _ = seed_colorado()

    db = SessionLocal()
    db.add(models.RoomAmenity(room_id=denver["id"], amenity_name="Parking", amenity_category="Access"))
    db.add(models.RoomAmenity(room_id=denver["id"], amenity_name="Lockers", is_available=False))
    db.add(models.BusinessHours(room_id=denver["id"], day_of_week=1, day_name="Monday", open_time="10:00"))
    db.add(models.BusinessHours(room_id=denver["id"], day_of_week=0, day_name="Sunday", is_closed=True))
    db.commit()
    db.close()

    res = client.get(f"/api/v1/rooms/{denver['id']}")
    body = res.json()
    assert [a["amenity_name"] for a in body["amenities"]] == ["Parking"]
    assert [h["day_name"] for h in body["business_hours"]] == ["Sunday", "Monday"]
    # same state, spelled differently
    assert [r["id"] for r in body["nearby_rooms"]] == [boulder["id"]]


def test_featured_rooms_ordered_by_rating():
    seed_colorado()

    res = client.get("/api/v1/rooms/featured", params={"limit": 2})
    assert res.status_code == 200
    assert [r["city"] for r in res.json()] == ["Boulder", "Denver"]


def test_stats_merge_state_spellings():
    seed_colorado()

    stats = client.get("/api/v1/stats").json()
    assert stats["total_rooms"] == 3
    assert stats["unique_states"] == 2
    assert stats["unique_cities"] == 3
    assert stats["total_reviews"] == 175
    assert stats["average_rating"] == round((4.5 + 4.8 + 3.9) / 3, 1)


def test_stats_fallback_rating_when_empty():
    stats = client.get("/api/v1/stats").json()
    assert stats["total_rooms"] == 0
    assert stats["average_rating"] == 4.2


class UnavailableSession:
    """Session stand-in whose queries fail like a dropped database connection."""

    def query(self, *args, **kwargs):
        raise SQLAlchemyError("database is unavailable")

    def rollback(self):
        pass

    def close(self):
        pass


@pytest.fixture
def unavailable_db():
    app.dependency_overrides[get_db] = lambda: UnavailableSession()
    yield
    app.dependency_overrides.pop(get_db, None)


def test_stats_fall_back_when_database_fails(unavailable_db):
    res = client.get("/api/v1/stats")
    assert res.status_code == 200
    assert res.json() == {
        "total_rooms": 0,
        "unique_cities": 0,
        "unique_states": 0,
        "average_rating": 4.2,
        "total_reviews": 0,
    }


def test_themes_fall_back_when_database_fails(unavailable_db):
    res = client.get("/api/v1/themes")
    assert res.status_code == 200
    themes = res.json()
    assert [t["theme"] for t in themes] == [
        "Adventure", "Mystery", "Horror", "Fantasy", "Sci-Fi", "Historical"
    ]
    assert themes[0] == {"theme": "Adventure", "count": 150, "slug": "adventure"}
    assert themes[4]["slug"] == "sci-fi"


def test_themes_and_theme_page():
    seed_colorado()

    themes = client.get("/api/v1/themes").json()
    assert themes[0] == {"theme": "Mystery", "count": 2, "slug": "mystery"}

    res = client.get("/api/v1/themes/horror")
    assert res.status_code == 200
    assert res.json()["count"] == 1
    assert res.json()["theme"] == "Horror"

    assert client.get("/api/v1/themes/steampunk").status_code == 404


def test_venues_sitemap_lists_open_rooms():
    room = create_room()

    res = client.get("/sitemap-venues.xml")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("application/xml")
    assert (
        f"<loc>{SITE_BASE_URL}/locations/united-states/colorado/denver/escape-room-denver</loc>"
        in res.text
    )

    client.delete(f"/api/v1/rooms/{room['id']}", headers=admin_headers())
    assert "<loc>" not in client.get("/sitemap-venues.xml").text
