import os
import sys
from datetime import datetime, timedelta, timezone

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt

from common.config import ALGORITHM, SECRET_KEY
from reviews_service import models
from reviews_service.database import Base, SessionLocal, engine
from reviews_service.main import app, compute_review_stats, mark_review_helpful
from reviews_service.rooms_client import rooms_circuit_breaker

client = TestClient(app)

ROOMS = {
    10: {"id": 10, "name": "Escape Room Denver", "rating": 4.5, "reviews": 120},
    11: {"id": 11, "name": "Unrated Room", "rating": None, "reviews": 0},
}


class FakeResponse:
    def __init__(self, status_code, data=None):
        self.status_code = status_code
        self._data = data or {}

    def json(self):
        return self._data


def fake_httpx_get(url, params=None, headers=None, timeout=None):
    room_id = int(url.rstrip("/").split("/")[-1])
    room = ROOMS.get(room_id)
    if room is None:
        return FakeResponse(404, {"detail": "Room not found"})
    return FakeResponse(200, {"room": room, "amenities": [], "business_hours": [], "nearby_rooms": []})


@pytest.fixture(autouse=True)
def reset_db(monkeypatch):
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rooms_circuit_breaker.reset()
    monkeypatch.setattr(httpx, "get", fake_httpx_get)
    yield
    Base.metadata.drop_all(bind=engine)


def make_token(user_id: int, username: str, role: str) -> str:
    payload = {
        "sub": username,
        "role": role,
        "user_id": user_id,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=30),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def post_review(headers=None, **overrides):
    body = {"room_id": 10, "user_name": "Sam", "rating": 5}
    body.update(overrides)
    return client.post("/api/v1/reviews", json=body, headers=headers or {})


def seed_imported_review(room_id: int = 10) -> int:
    db = SessionLocal()
    review = models.Review(room_id=room_id, user_name="Imported", rating=4, is_manual=False)
    db.add(review)
    db.commit()
    review_id = review.id
    db.close()
    return review_id


# ---------- Stats ----------


def test_compute_review_stats_keeps_seeded_average():
    stats = compute_review_stats(4.5, 120, [5, 5, 1])
    assert stats["total"] == 123
    assert stats["average"] == 4.5
    assert stats["distribution"] == [1, 0, 0, 0, 2]
    assert stats["manual_review_count"] == 3
    assert stats["original_review_count"] == 120


def test_compute_review_stats_without_seeded_rating():
    stats = compute_review_stats(None, None, [])
    assert stats["total"] == 0
    assert stats["average"] == 0.0
    assert stats["distribution"] == [0, 0, 0, 0, 0]


# ---------- Create ----------


def test_anonymous_review_created():
    res = post_review(
        user_name="  Sam  ",
        user_email="sam@example.com",
        title="  ",
        comment="Loved the puzzles",
        visit_date="2024-05-01",
    )
    assert res.status_code == 201
    data = res.json()
    assert data["message"] == "Review created successfully"
    review = data["review"]
    assert review["user_name"] == "Sam"
    assert review["user_id"] is None
    assert review["title"] is None
    assert review["visit_date"] == "2024-05-01"
    assert review["is_manual"] is True
    assert review["is_verified"] is False
    assert review["helpful_count"] == 0
    # email is never echoed back
    assert "user_email" not in review


def test_signed_in_review_records_user_id():
    headers = {"Authorization": f"Bearer {make_token(7, 'sam', 'regular')}"}
    res = post_review(headers=headers)
    assert res.status_code == 201
    assert res.json()["review"]["user_id"] == 7


def test_review_rating_out_of_range_rejected():
    res = post_review(rating=6)
    assert res.status_code == 422


def test_review_requires_user_name():
    res = post_review(user_name="   ")
    assert res.status_code == 422


def test_review_invalid_email_rejected():
    res = post_review(user_email="not-an-email")
    assert res.status_code == 422


def test_review_for_unknown_room_returns_404():
    res = post_review(room_id=999)
    assert res.status_code == 404


def test_rooms_service_down_returns_502(monkeypatch):
    def failing_get(url, params=None, headers=None, timeout=None):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(httpx, "get", failing_get)
    res = post_review()
    assert res.status_code == 502
    assert res.json()["detail"] == "Failed to fetch room data"


def test_circuit_opens_after_repeated_failures(monkeypatch):
    def failing_get(url, params=None, headers=None, timeout=None):
        return FakeResponse(500)

    monkeypatch.setattr(httpx, "get", failing_get)
    for _ in range(rooms_circuit_breaker.max_failures):
        assert client.get("/api/v1/reviews", params={"room_id": 10}).status_code == 502

    res = client.get("/api/v1/reviews", params={"room_id": 10})
    assert res.status_code == 503


# ---------- List ----------


def test_list_reviews_newest_first_with_stats():
    post_review(user_name="First", rating=5)
    post_review(user_name="Second", rating=2)
    post_review(room_id=11, user_name="Elsewhere", rating=1)

    res = client.get("/api/v1/reviews", params={"room_id": 10})
    assert res.status_code == 200
    data = res.json()
    assert [r["user_name"] for r in data["reviews"]] == ["Second", "First"]
    assert data["stats"]["total"] == 122
    assert data["stats"]["average"] == 4.5
    assert data["stats"]["distribution"] == [0, 1, 0, 0, 1]


def test_list_reviews_for_unknown_room_returns_404():
    res = client.get("/api/v1/reviews", params={"room_id": 999})
    assert res.status_code == 404


def test_list_reviews_requires_room_id():
    res = client.get("/api/v1/reviews")
    assert res.status_code == 422


# ---------- Helpful / delete ----------


def test_mark_review_helpful_increments():
    review_id = post_review().json()["review"]["id"]

    client.post(f"/api/v1/reviews/{review_id}/helpful")
    res = client.post(f"/api/v1/reviews/{review_id}/helpful")
    assert res.status_code == 200
    assert res.json() == {"success": True, "helpful_count": 2}

    assert client.post("/api/v1/reviews/999/helpful").status_code == 404


def test_helpful_vote_counts_votes_made_after_the_row_was_read():
    review_id = post_review().json()["review"]["id"]

    db = SessionLocal()
    try:
        # load the row first, as a request still in flight would have
        stale = db.query(models.Review).filter(models.Review.id == review_id).first()
        assert stale.helpful_count == 0

        client.post(f"/api/v1/reviews/{review_id}/helpful")

        result = mark_review_helpful(review_id, db=db)
        assert result == {"success": True, "helpful_count": 2}
    finally:
        db.close()


def test_regular_user_cannot_delete_review():
    review_id = post_review().json()["review"]["id"]
    headers = {"Authorization": f"Bearer {make_token(2, 'sam', 'regular')}"}

    res = client.delete(f"/api/v1/reviews/{review_id}", headers=headers)
    assert res.status_code == 403


def test_moderator_can_delete_site_review():
    review_id = post_review().json()["review"]["id"]
    headers = {"Authorization": f"Bearer {make_token(3, 'mod', 'moderator')}"}

    res = client.delete(f"/api/v1/reviews/{review_id}", headers=headers)
    assert res.status_code == 204

    reviews = client.get("/api/v1/reviews", params={"room_id": 10}).json()["reviews"]
    assert reviews == []


def test_imported_reviews_cannot_be_deleted():
    review_id = seed_imported_review()
    headers = {"Authorization": f"Bearer {make_token(1, 'admin', 'admin')}"}

    res = client.delete(f"/api/v1/reviews/{review_id}", headers=headers)
    assert res.status_code == 403
    assert res.json()["detail"] == "Cannot delete original database reviews"
