import logging
from typing import Dict, Iterable, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from common.config import LOG_FORMAT, LOG_LEVEL
from common.errors import register_exception_handlers
from common.logging_config import setup_logging
from common.security import get_optional_user_claims, require_roles

from . import models, schemas
from .database import Base, engine, get_db
from .rate_limiter import review_rate_limiter
from .rooms_client import fetch_room

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Reviews Service", version="1.0.0")
router_v1 = APIRouter(prefix="/api/v1")

SERVICE_NAME = "reviews"
register_exception_handlers(app, SERVICE_NAME)


@app.get("/")
def root():
    """
    Health-check endpoint for the Reviews service.

    Returns
    -------
    dict
        A small JSON payload indicating that the service is running.
    """
    return {"service": "reviews", "status": "running"}


admin_or_moderator = require_roles("admin", "moderator")


def get_review_or_404(db: Session, review_id: int) -> models.Review:
    """
    Load a review by ID or raise HTTP 404.

    Parameters
    ----------
    db : Session
        Database session.
    review_id : int
        Identifier of the review.

    Returns
    -------
    Review
        The matching review instance.

    Raises
    ------
    HTTPException
        If the review does not exist.
    """
    review = db.query(models.Review).filter(models.Review.id == review_id).first()
    if not review:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Review not found",
        )
    return review


def compute_review_stats(
    original_rating: Optional[float],
    original_review_count: Optional[int],
    ratings: Iterable[int],
) -> Dict:
    """
    Combine a room's seeded rating data with site-submitted reviews.

    Parameters
    ----------
    original_rating : Optional[float]
        Rating imported with the room, None when unknown.
    original_review_count : Optional[int]
        Number of reviews imported with the room.
    ratings : Iterable[int]
        Star ratings of the site-submitted reviews.

    Returns
    -------
    dict
        ``total`` is the seeded count plus the number of site reviews.
        ``average`` stays the seeded rating (0 when unknown).
        ``distribution`` counts site reviews per star, index 0 = 1 star.
    """
    base_rating = float(original_rating) if original_rating else 0.0
    base_count = original_review_count or 0

    distribution = [0, 0, 0, 0, 0]
    manual_count = 0
    for rating in ratings:
        manual_count += 1
        if 1 <= rating <= 5:
            distribution[rating - 1] += 1

    return {
        "total": base_count + manual_count,
        "average": base_rating,
        "distribution": distribution,
        "original_rating": base_rating,
        "original_review_count": base_count,
        "manual_review_count": manual_count,
    }


# ---------- Public: list reviews for a room ----------


@router_v1.get("/reviews", response_model=schemas.RoomReviews)
def list_room_reviews(
    room_id: int = Query(..., ge=1),
    db: Session = Depends(get_db),
):
    """
    Public endpoint: reviews and combined statistics for one room.

    Behavior
    --------
    - The room's seeded rating and review count are read from the rooms
      service.
    - Reviews are sorted by creation time, newest first.

    Raises
    ------
    HTTPException
        404 if the room does not exist, 502 if the rooms service fails.
    """
    room = fetch_room(room_id)
    if room is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    reviews = (
        db.query(models.Review)
        .filter(models.Review.room_id == room_id)
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
        .all()
    )
    stats = compute_review_stats(
        room.get("rating"),
        room.get("reviews"),
        (r.rating for r in reviews),
    )
    return {"reviews": reviews, "stats": stats}


# ---------- Create review (anonymous or signed in) ----------


@router_v1.post(
    "/reviews",
    response_model=schemas.ReviewCreated,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(review_rate_limiter)],
)
def create_review(
    review_in: schemas.ReviewCreate,
    db: Session = Depends(get_db),
    claims: Optional[Dict] = Depends(get_optional_user_claims),
):
    """
    Submit a review for an escape room.

    Behavior
    --------
    - room_id, user_name and rating are required, rating must be 1-5.
    - The room must exist in the rooms service.
    - Stored as a site review: is_manual=True, is_verified=False,
      helpful_count=0.
    - When a bearer token is sent, the author's user_id is recorded.

    Raises
    ------
    HTTPException
        404 if the room does not exist.
    """
    if fetch_room(review_in.room_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    review = models.Review(
        **review_in.model_dump(),
        user_id=claims["user_id"] if claims else None,
        helpful_count=0,
        is_verified=False,
        is_manual=True,
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    logger.info(
        f"Review created for room {review.room_id}",
        extra={"review_id": review.id, "room_id": review.room_id},
    )
    return {"message": "Review created successfully", "review": review}


# ---------- Delete review (admin/moderator) ----------


@router_v1.delete("/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: int,
    db: Session = Depends(get_db),
    claims: Dict = Depends(admin_or_moderator),
):
    """
    Permanently delete a site-submitted review.

    Access
    ------
    - Admin or moderator.

    Raises
    ------
    HTTPException
        404 if the review does not exist, 403 for imported reviews.
    """
    review = get_review_or_404(db, review_id)

    if not review.is_manual:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot delete original database reviews",
        )

    db.delete(review)
    db.commit()
    logger.info(
        f"Review deleted by {claims['username']}",
        extra={"review_id": review_id},
    )
    return


# ---------- Helpful votes ----------


@router_v1.post("/reviews/{review_id}/helpful", response_model=schemas.HelpfulCount)
def mark_review_helpful(review_id: int, db: Session = Depends(get_db)):
    """
    Increment the helpful counter of a review.

    Returns
    -------
    HelpfulCount
        The new counter value.
    """
    review = get_review_or_404(db, review_id)
    # incremented in SQL so concurrent votes are not lost
    db.query(models.Review).filter(models.Review.id == review_id).update(
        {models.Review.helpful_count: func.coalesce(models.Review.helpful_count, 0) + 1},
        synchronize_session=False,
    )
    db.commit()
    db.refresh(review)
    return {"success": True, "helpful_count": review.helpful_count}


app.include_router(router_v1)
