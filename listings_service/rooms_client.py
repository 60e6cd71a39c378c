# listings_service/rooms_client.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import httpx
from fastapi import HTTPException, status
from jose import jwt

from common.circuit_breaker import CircuitBreaker
from common.config import ALGORITHM, ROOMS_SERVICE_URL, SECRET_KEY

from . import models

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_USERNAME = "listings_service"
SERVICE_ACCOUNT_USER_ID = 0        # "fake" ID for the service account
SERVICE_ACCOUNT_ROLE = "service_account"

rooms_circuit_breaker = CircuitBreaker("rooms_service")


def make_service_account_token() -> str:
    payload = {
        "sub": SERVICE_ACCOUNT_USERNAME,
        "role": SERVICE_ACCOUNT_ROLE,
        "user_id": SERVICE_ACCOUNT_USER_ID,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def room_payload(listing: models.PendingListing) -> Dict[str, Any]:
    """
    Map a pending listing onto the rooms service's room creation schema.

    The first theme becomes the room category and the first image its
    photo. Difficulty is stored capitalized ('Intermediate').
    """
    address = ", ".join(
        part for part in (listing.street_address, listing.city, f"{listing.state} {listing.zip_code}".strip()) if part
    )
    difficulty = listing.difficulty_level
    if isinstance(difficulty, models.DifficultyLevel):
        difficulty = difficulty.value

    return {
        "name": listing.escape_room_name,
        "website": listing.website,
        "phone": listing.phone_number,
        "full_address": address,
        "city": listing.city,
        "state": listing.state,
        "country": listing.country or "United States",
        "postal_code": listing.zip_code,
        "description": listing.description,
        "photo": listing.images[0] if listing.images else None,
        "category_new": listing.themes[0] if listing.themes else None,
        "difficulty": difficulty.capitalize() if difficulty else None,
        "status": "Open",
    }


def create_room(listing: models.PendingListing) -> Dict[str, Any]:
    """
    Publish an approved listing as a public escape room.

    Returns
    -------
    Dict[str, Any]
        The created room as returned by the rooms service.

    Raises
    ------
    HTTPException
        503 when the circuit is open, 502 when the rooms service cannot
        be reached or refuses the room.
    """
    if not rooms_circuit_breaker.allow_request():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rooms service temporarily unavailable (circuit open)",
        )

    token = make_service_account_token()
    headers = {"Authorization": f"Bearer {token}"}

    try:
        response = httpx.post(
            f"{ROOMS_SERVICE_URL}/api/v1/rooms",
            json=room_payload(listing),
            headers=headers,
            timeout=5.0,
        )
    except httpx.RequestError as exc:
        rooms_circuit_breaker.record_failure()
        logger.error(
            f"Failed to contact rooms service: {exc}",
            extra={"dependency": "rooms_service", "listing_id": listing.id},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to contact rooms service",
        )

    if response.status_code != status.HTTP_201_CREATED:
        if response.status_code >= 500:
            rooms_circuit_breaker.record_failure()
        logger.error(
            f"Rooms service rejected listing: {response.status_code}",
            extra={"dependency": "rooms_service", "listing_id": listing.id},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Rooms service returned an error",
        )

    rooms_circuit_breaker.record_success()
    return response.json()
