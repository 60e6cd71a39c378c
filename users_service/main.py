import logging
import re
from collections import Counter
from typing import List

import httpx
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from common.cache import delete_prefix, get_cached_json, set_cached_json
from common.circuit_breaker import CircuitBreaker
from common.config import LISTINGS_SERVICE_URL, LOG_FORMAT, LOG_LEVEL
from common.errors import register_exception_handlers
from common.logging_config import setup_logging

from . import models, schemas
from .auth import (
    authenticate_user,
    get_current_user,
    get_password_hash,
    issue_access_token,
    oauth2_scheme,
    require_roles,
)
from .database import Base, engine, get_db
from .models import UserRole
from .rate_limiter import ip_rate_limiter
from .recaptcha import verify_recaptcha

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

# Create tables on startup
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Users Service", version="1.0.0")
SERVICE_NAME = "users"
router_v1 = APIRouter(prefix="/api/v1")
register_exception_handlers(app, SERVICE_NAME)

listings_circuit_breaker = CircuitBreaker("listings_service")

LISTINGS_UNAVAILABLE = "Unable to load your listings right now"


@app.get("/")
def root():
    return {"service": "users", "status": "running"}


# ---------- Password Strength ----------

def validate_password_strength(password: str):
    """
    Validate password complexity rules.

    A valid password must:
    - Be at least 8 characters long
    - Contain at least one letter
    - Contain at least one digit

    Raises
    ------
    HTTPException
        If the password does not meet the strength requirements.
    """
    if len(password) < 8:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must be at least 8 characters long",
        )
    if not re.search(r"[A-Za-z]", password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must contain at least one letter",
        )
    if not re.search(r"\d", password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Password must contain at least one digit",
        )


# ---------- Registration ----------

@router_v1.post(
    "/users/register",
    response_model=schemas.UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(ip_rate_limiter)],
)
def register_user(user_in: schemas.UserCreate, request: Request, db: Session = Depends(get_db)):
    """
    Register a new account.

    Behavior:
    - The CAPTCHA token must verify.
    - First account created becomes ADMIN.
    - All subsequent public registrations become REGULAR members.
    - Username and email must be unique.
    - Password strength is validated before hashing.

    Raises
    ------
    HTTPException
        If the CAPTCHA fails, username/email already exist or the
        password is weak.
    """
    client_ip = request.client.host if request.client else None
    if not verify_recaptcha(user_in.recaptcha_token, client_ip):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="reCAPTCHA verification failed",
        )

    existing = (
        db.query(models.Profile)
        .filter(
            (models.Profile.username == user_in.username)
            | (models.Profile.email == user_in.email)
        )
        .first()
    )
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email already exists",
        )

    # first ever account -> admin, everyone else -> regular
    if db.query(models.Profile).count() == 0:
        assigned_role = UserRole.ADMIN
    else:
        assigned_role = UserRole.REGULAR

    validate_password_strength(user_in.password)
    profile = models.Profile(
        name=user_in.name.strip(),
        username=user_in.username.strip(),
        email=user_in.email,
        hashed_password=get_password_hash(user_in.password),
        role=assigned_role,
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info(f"Account registered: {profile.username}", extra={"user_id": profile.id})
    return profile


# ---------- Login (token) ----------

@router_v1.post("/users/login", response_model=schemas.Token, dependencies=[Depends(ip_rate_limiter)])
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """
    Authenticate an account and return a JWT access token.

    Returns
    -------
    Token
        Access token with sub, role and user_id embedded.

    Raises
    ------
    HTTPException
        If authentication fails.
    """
    profile = authenticate_user(db, form_data.username, form_data.password)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
        )

    return {"access_token": issue_access_token(profile), "token_type": "bearer"}


# ---------- Current account ----------

@router_v1.get("/users/me", response_model=schemas.UserRead)
def get_my_profile(current_user: models.Profile = Depends(get_current_user)):
    return current_user


@router_v1.put("/users/me", response_model=schemas.UserRead)
def update_my_profile(
    update_data: schemas.UserUpdate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(get_current_user),
):
    """
    Update the authenticated account's profile.

    Editable fields:
    - name
    - email (must be unique)

    Restrictions:
    - SERVICE_ACCOUNT tokens cannot update profiles.

    Raises
    ------
    HTTPException
        If email already exists or the caller is a service account.
    """
    if current_user.role == UserRole.SERVICE_ACCOUNT:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Service accounts cannot modify profiles",
        )

    if update_data.name is not None:
        current_user.name = update_data.name.strip()

    if update_data.email is not None and update_data.email != current_user.email:
        email_owner = (
            db.query(models.Profile)
            .filter(models.Profile.email == update_data.email)
            .first()
        )
        if email_owner and email_owner.id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already in use",
            )
        current_user.email = update_data.email

    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    delete_prefix(f"user:username:{current_user.username}")
    return current_user


def fetch_my_listings(token: str) -> list:
    """
    Load the caller's listings from the listings service.

    The caller's own bearer token is forwarded so the listings service
    applies its ownership rules.

    Raises
    ------
    RuntimeError
        If the circuit is open or the listings service fails.
    """
    if not listings_circuit_breaker.allow_request():
        raise RuntimeError("Listings service temporarily unavailable (circuit open)")

    try:
        response = httpx.get(
            f"{LISTINGS_SERVICE_URL}/api/v1/listings/mine",
            headers={"Authorization": f"Bearer {token}"},
            timeout=5.0,
        )
    except httpx.RequestError as exc:
        listings_circuit_breaker.record_failure()
        raise RuntimeError(f"Failed to contact listings service: {exc}")

    if response.status_code != 200:
        listings_circuit_breaker.record_failure()
        raise RuntimeError(f"Listings service returned {response.status_code}")

    listings_circuit_breaker.record_success()
    return response.json()


@router_v1.get("/users/me/dashboard", response_model=schemas.Dashboard)
def get_my_dashboard(
    token: str = Depends(oauth2_scheme),
    current_user: models.Profile = Depends(get_current_user),
):
    """
    Account dashboard: profile plus submitted listings.

    Behavior
    --------
    - Listings are counted per moderation status.
    - If the listings service fails the dashboard still renders with an
      empty list and ``listings_error`` set.
    """
    listings_error = None
    try:
        listings = fetch_my_listings(token)
    except RuntimeError as exc:
        logger.warning(
            f"Dashboard listings unavailable: {exc}",
            extra={"dependency": "listings_service", "user_id": current_user.id},
        )
        listings = []
        listings_error = LISTINGS_UNAVAILABLE

    by_status = Counter(listing.get("status") for listing in listings)
    counts = {
        "all": len(listings),
        "pending": by_status.get("pending", 0),
        "approved": by_status.get("approved", 0),
        "rejected": by_status.get("rejected", 0),
    }
    return {
        "profile": current_user,
        "listings": listings,
        "counts": counts,
        "listings_error": listings_error,
    }


# ---------- Admin ----------

admin_only = require_roles([UserRole.ADMIN])


@router_v1.get("/users", response_model=List[schemas.UserRead])
def list_users(
    db: Session = Depends(get_db),
    _: models.Profile = Depends(admin_only),
):
    return db.query(models.Profile).order_by(models.Profile.id).all()


@router_v1.get("/users/{username}", response_model=schemas.UserRead)
def get_user_by_username_admin(
    username: str,
    db: Session = Depends(get_db),
    _: models.Profile = Depends(admin_only),
):
    """
    Admin: Retrieve a specific account by username.

    Raises
    ------
    HTTPException
        If the account does not exist.
    """
    cache_key = f"user:username:{username}"
    cached = get_cached_json(cache_key)
    if cached is not None:
        return cached

    profile = (
        db.query(models.Profile)
        .filter(models.Profile.username == username)
        .first()
    )
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
        )

    data = schemas.UserRead.model_validate(profile).model_dump(mode="json")
    set_cached_json(cache_key, data, ttl_seconds=300)
    return profile


@router_v1.put("/users/{username}/role", response_model=schemas.UserRead)
def change_user_role(
    username: str,
    role_update: schemas.UserRoleUpdate,
    db: Session = Depends(get_db),
    current_user: models.Profile = Depends(admin_only),
):
    """
    Admin only: Update an account's role.

    Raises
    ------
    HTTPException
        404 if the account does not exist, 400 if an admin tries to
        demote the last admin.
    """
    profile = (
        db.query(models.Profile)
        .filter(models.Profile.username == username)
        .first()
    )
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="User not found"
        )

    if profile.role == UserRole.ADMIN and role_update.role != UserRole.ADMIN:
        other_admins = (
            db.query(models.Profile)
            .filter(models.Profile.role == UserRole.ADMIN, models.Profile.id != profile.id)
            .count()
        )
        if other_admins == 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot demote the last admin. Promote another admin first.",
            )

    profile.role = role_update.role
    db.add(profile)
    db.commit()
    db.refresh(profile)
    delete_prefix(f"user:username:{username}")
    logger.info(
        f"Role of {username} set to {profile.role.value} by {current_user.username}",
        extra={"user_id": profile.id},
    )
    return profile


app.include_router(router_v1)
