import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from common.config import LOG_FORMAT, LOG_LEVEL
from common.errors import register_exception_handlers
from common.logging_config import setup_logging

from . import imagekit, models, schemas
from .auth import get_current_user_claims, require_roles
from .database import Base, engine, get_db
from .models import ListingStatus, utcnow
from .rate_limiter import listing_rate_limiter
from .rooms_client import create_room

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Listings Service", version="1.0.0")
router_v1 = APIRouter(prefix="/api/v1")

SERVICE_NAME = "listings"
register_exception_handlers(app, SERVICE_NAME)

MODERATOR_ROLES = ("admin", "moderator")
moderator_or_admin = require_roles(*MODERATOR_ROLES)


@app.get("/")
def root():
    """
    Health-check endpoint for the Listings service.

    Returns
    -------
    dict
        A small JSON payload indicating that the service is running.
    """
    return {"service": "listings", "status": "running"}


def get_listing_or_404(db: Session, listing_id: int) -> models.PendingListing:
    listing = (
        db.query(models.PendingListing)
        .filter(models.PendingListing.id == listing_id)
        .first()
    )
    if not listing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found",
        )
    return listing


def get_pending_listing_or_400(db: Session, listing_id: int) -> models.PendingListing:
    """
    Load a listing that can still be moderated.

    Raises
    ------
    HTTPException
        404 if the listing does not exist, 400 if it was already approved
        or rejected.
    """
    listing = get_listing_or_404(db, listing_id)
    if listing.status != ListingStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Listing is already {listing.status.value}",
        )
    return listing


# ---------- Submit listing (authenticated user) ----------


@router_v1.post(
    "/listings",
    response_model=schemas.ListingRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(listing_rate_limiter)],
)
def submit_listing(
    listing_in: schemas.ListingCreate,
    db: Session = Depends(get_db),
    claims: Dict = Depends(get_current_user_claims),
):
    """
    Submit a new escape room for moderation.

    Behavior
    --------
    - The listing is stored with status 'pending'.
    - The authenticated user becomes the submitter.

    Parameters
    ----------
    listing_in : ListingCreate
        Venue, game, contact and image details.
    db : Session
        Database session.
    claims : Dict
        Decoded JWT claims containing user_id and role.

    Returns
    -------
    ListingRead
        The stored listing.
    """
    listing = models.PendingListing(
        **listing_in.model_dump(),
        submitted_by=claims["user_id"],
        status=ListingStatus.PENDING,
    )
    db.add(listing)
    db.commit()
    db.refresh(listing)
    logger.info(
        f"Listing submitted by {claims['username']}: {listing.escape_room_name}",
        extra={"listing_id": listing.id, "user_id": claims["user_id"]},
    )
    return listing


# ---------- Submitter views ----------


@router_v1.get("/listings/mine", response_model=List[schemas.ListingRead])
def list_my_listings(
    db: Session = Depends(get_db),
    claims: Dict = Depends(get_current_user_claims),
):
    """
    List the caller's own submissions, newest first.
    """
    return (
        db.query(models.PendingListing)
        .filter(models.PendingListing.submitted_by == claims["user_id"])
        .order_by(models.PendingListing.created_at.desc(), models.PendingListing.id.desc())
        .all()
    )


@router_v1.get("/listings/{listing_id}", response_model=schemas.ListingRead)
def get_listing(
    listing_id: int,
    db: Session = Depends(get_db),
    claims: Dict = Depends(get_current_user_claims),
):
    """
    Retrieve a single listing.

    Access
    ------
    - The submitter.
    - Admin or moderator.

    Other users get 404 so listing ids are not disclosed.
    """
    listing = get_listing_or_404(db, listing_id)
    if claims["role"] not in MODERATOR_ROLES and listing.submitted_by != claims["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found",
        )
    return listing


@router_v1.put(
    "/listings/{listing_id}",
    response_model=schemas.ListingRead,
    dependencies=[Depends(listing_rate_limiter)],
)
def update_listing(
    listing_id: int,
    update_data: schemas.ListingUpdate,
    db: Session = Depends(get_db),
    claims: Dict = Depends(get_current_user_claims),
):
    """
    Edit one of the caller's own listings.

    Behavior
    --------
    - Only the submitter can edit.
    - Only pending listings can be edited.

    Raises
    ------
    HTTPException
        404 if the listing does not exist or belongs to someone else,
        400 if it has already been moderated.
    """
    listing = get_listing_or_404(db, listing_id)
    if listing.submitted_by != claims["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found",
        )
    if listing.status != ListingStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only pending listings can be edited",
        )

    for field, value in update_data.model_dump().items():
        setattr(listing, field, value)

    db.add(listing)
    db.commit()
    db.refresh(listing)
    return listing


# ---------- Moderation ----------


@router_v1.get("/listings", response_model=List[schemas.ListingRead])
def list_all_listings(
    status_filter: Optional[ListingStatus] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    _: Dict = Depends(moderator_or_admin),
):
    """
    Moderator view of all submissions, newest first.

    Optional filters
    ----------------
    - status : pending, approved or rejected.
    """
    q = db.query(models.PendingListing)
    if status_filter is not None:
        q = q.filter(models.PendingListing.status == status_filter)
    return q.order_by(models.PendingListing.created_at.desc(), models.PendingListing.id.desc()).all()


@router_v1.post("/listings/{listing_id}/approve", response_model=schemas.ApprovalResult)
def approve_listing(
    listing_id: int,
    db: Session = Depends(get_db),
    claims: Dict = Depends(moderator_or_admin),
):
    """
    Approve a pending listing and publish it as an escape room.

    Behavior
    --------
    - The room is created through the rooms service first; the listing
      is only marked approved once the room exists.
    - Records the approver, approval time and the new room id.

    Raises
    ------
    HTTPException
        404/400 for missing or already moderated listings, 502/503 when
        the rooms service fails.
    """
    listing = get_pending_listing_or_400(db, listing_id)

    room = create_room(listing)

    listing.status = ListingStatus.APPROVED
    listing.approved_by = claims["user_id"]
    listing.approved_at = utcnow()
    listing.approved_room_id = room["id"]
    db.add(listing)
    db.commit()
    db.refresh(listing)

    logger.info(
        f"Listing approved by {claims['username']}",
        extra={"listing_id": listing.id, "room_id": room["id"]},
    )
    return {"success": True, "room_id": room["id"], "listing": listing}


@router_v1.post("/listings/{listing_id}/reject", response_model=schemas.ListingRead)
def reject_listing(
    listing_id: int,
    body: Optional[schemas.ListingRejection] = None,
    db: Session = Depends(get_db),
    claims: Dict = Depends(moderator_or_admin),
):
    """
    Reject a pending listing with an optional reason.
    """
    listing = get_pending_listing_or_400(db, listing_id)

    reason = body.reason.strip() if body and body.reason else None
    listing.status = ListingStatus.REJECTED
    listing.approved_by = claims["user_id"]
    listing.rejected_at = utcnow()
    listing.rejection_reason = reason or None
    db.add(listing)
    db.commit()
    db.refresh(listing)

    logger.info(
        f"Listing rejected by {claims['username']}",
        extra={"listing_id": listing.id},
    )
    return listing


# ---------- Image uploads ----------


@router_v1.post(
    "/uploads/images",
    response_model=schemas.ImageUploadResult,
    dependencies=[Depends(listing_rate_limiter)],
)
def upload_listing_image(
    file: UploadFile = File(...),
    folder: str = Form(default=imagekit.DEFAULT_FOLDER),
    db: Session = Depends(get_db),
    claims: Dict = Depends(get_current_user_claims),
):
    """
    Upload a listing photo to the image host.

    Behavior
    --------
    - At most 5 MB, JPEG, PNG or WebP.
    - Files get a unique generated name.
    - The uploader is recorded so only they or a moderator can delete it.

    Raises
    ------
    HTTPException
        400 for invalid files, 502 when the upload fails.
    """
    content = file.file.read()
    try:
        result = imagekit.upload_image(content, file.filename, file.content_type, folder=folder)
    except imagekit.ImageValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except imagekit.ImageKitError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))

    db.add(
        models.UploadedImage(
            file_id=result["file_id"], url=result["url"], uploaded_by=claims["user_id"]
        )
    )
    db.commit()

    return {"success": True, **result}


@router_v1.delete("/uploads/images/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_listing_image(
    file_id: str,
    db: Session = Depends(get_db),
    claims: Dict = Depends(get_current_user_claims),
):
    """
    Delete an uploaded photo from the image host.

    Raises
    ------
    HTTPException
        404 unless the caller uploaded the file (moderators and admins may
        delete any file), 502 when ImageKit refuses the delete.
    """
    record = (
        db.query(models.UploadedImage)
        .filter(models.UploadedImage.file_id == file_id)
        .first()
    )
    is_moderator = claims["role"] in MODERATOR_ROLES
    if not is_moderator and (record is None or record.uploaded_by != claims["user_id"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")

    try:
        imagekit.delete_image(file_id)
    except imagekit.ImageKitError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))

    if record is not None:
        db.delete(record)
        db.commit()
    logger.info(
        f"Image {file_id} deleted by {claims['username']}",
        extra={"user_id": claims["user_id"]},
    )
    return


app.include_router(router_v1)
