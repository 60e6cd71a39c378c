# reviews_service/rooms_client.py
import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException, status

from common.circuit_breaker import CircuitBreaker
from common.config import ROOMS_SERVICE_URL

logger = logging.getLogger(__name__)

rooms_circuit_breaker = CircuitBreaker("rooms_service")


def fetch_room(room_id: int) -> Optional[Dict[str, Any]]:
    """
    Load the public display record of a room from the rooms service.

    Parameters
    ----------
    room_id : int
        Room identifier.

    Returns
    -------
    Optional[Dict[str, Any]]
        The ``room`` object of the rooms service detail payload, or None
        if the room does not exist or is closed.

    Raises
    ------
    HTTPException
        503 when the circuit is open, 502 when the rooms service cannot
        be reached or answers with an unexpected status.
    """
    if not rooms_circuit_breaker.allow_request():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rooms service temporarily unavailable (circuit open)",
        )

    try:
        response = httpx.get(f"{ROOMS_SERVICE_URL}/api/v1/rooms/{room_id}", timeout=5.0)
    except httpx.RequestError as exc:
        rooms_circuit_breaker.record_failure()
        logger.error(
            f"Failed to contact rooms service: {exc}",
            extra={"dependency": "rooms_service", "room_id": room_id},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to fetch room data",
        )

    if response.status_code == status.HTTP_404_NOT_FOUND:
        rooms_circuit_breaker.record_success()
        return None

    if response.status_code != status.HTTP_200_OK:
        rooms_circuit_breaker.record_failure()
        logger.error(
            f"Rooms service returned {response.status_code}",
            extra={"dependency": "rooms_service", "room_id": room_id},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to fetch room data",
        )

    rooms_circuit_breaker.record_success()
    return response.json()["room"]
