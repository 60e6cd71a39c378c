# users_service/recaptcha.py
import logging
from typing import Optional

import httpx

from common.config import RECAPTCHA_SECRET_KEY, RECAPTCHA_VERIFY_URL, is_testing

logger = logging.getLogger(__name__)


def verify_recaptcha(token: Optional[str], remote_ip: Optional[str] = None) -> bool:
    """
    Check a CAPTCHA response token with the verification endpoint.

    Returns True without a network call when running the test suite.
    Any transport error counts as a failed verification.
    """
    if is_testing():
        return True
    if not token:
        return False

    data = {"secret": RECAPTCHA_SECRET_KEY, "response": token}
    if remote_ip:
        data["remoteip"] = remote_ip

    try:
        response = httpx.post(RECAPTCHA_VERIFY_URL, data=data, timeout=5.0)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning(f"reCAPTCHA verification failed: {exc}", extra={"dependency": "recaptcha"})
        return False

    return bool(response.json().get("success"))
