import logging
from typing import List, Optional
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from common.cache import delete_prefix, get_cached_json, set_cached_json
from common.config import LOG_FORMAT, LOG_LEVEL
from common.errors import register_exception_handlers
from common.logging_config import setup_logging
from common.security import require_roles

from . import models, queries, schemas
from .database import Base, engine, get_db
from .locations import (
    clean_location_value,
    create_seo_friendly_slug,
    get_full_state_name,
    parse_state_from_url,
    state_abbreviation,
)

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Rooms Service", version="1.0.0")
router_v1 = APIRouter(prefix="/api/v1")

SERVICE_NAME = "rooms"
register_exception_handlers(app, SERVICE_NAME)

CACHE_PREFIXES = ("rooms:", "locations:", "themes:", "stats:")

admin_or_service = require_roles("admin", "service_account")


@app.get("/")
def root():
    """
    Health-check endpoint for the Rooms service.

    Returns
    -------
    dict
        A small JSON payload indicating that the service is running.
    """
    return {"service": "rooms", "status": "running"}


def display(rooms) -> List[dict]:
    return [queries.format_room_for_display(r) for r in rooms]


def get_open_room_or_404(db: Session, room_id: int) -> models.EscapeRoom:
    room = queries.get_open_room(db, room_id)
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


# ---------- Create / update / close rooms ----------


@router_v1.post("/rooms", response_model=schemas.EscapeRoomRead, status_code=status.HTTP_201_CREATED)
def create_room(
    room_in: schemas.EscapeRoomCreate,
    db: Session = Depends(get_db),
    claims: dict = Depends(admin_or_service),
):
    """
    Create a new escape room.

    Access
    ------
    - Allowed roles: admin, service_account (listings service approving
      a pending listing).

    Parameters
    ----------
    room_in : EscapeRoomCreate
        New room details.
    db : Session
        Database session.

    Returns
    -------
    EscapeRoomRead
        The created room.
    """
    room = models.EscapeRoom(**room_in.model_dump())
    db.add(room)
    db.commit()
    db.refresh(room)
    delete_prefix(*CACHE_PREFIXES)
    logger.info(
        f"Room created by {claims['username']}: {room.name}",
        extra={"room_id": room.id},
    )
    return room


@router_v1.put("/rooms/{room_id}", response_model=schemas.EscapeRoomRead)
def update_room(
    room_id: int,
    update_data: schemas.EscapeRoomUpdate,
    db: Session = Depends(get_db),
    _: dict = Depends(admin_or_service),
):
    """
    Update an existing room.

    Only provided fields are applied. Closed rooms can be edited too so
    they can be reopened by setting ``status`` back to 'Open'.

    Raises
    ------
    HTTPException
        If the room does not exist.
    """
    room = db.query(models.EscapeRoom).filter(models.EscapeRoom.id == room_id).first()
    if not room:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")

    for field, value in update_data.model_dump(exclude_unset=True).items():
        setattr(room, field, value)

    db.add(room)
    db.commit()
    db.refresh(room)
    delete_prefix(*CACHE_PREFIXES)
    return room


@router_v1.delete("/rooms/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
def close_room(
    room_id: int,
    db: Session = Depends(get_db),
    _: dict = Depends(admin_or_service),
):
    """
    Soft-delete a room by marking it closed.

    Closed rooms disappear from every public listing and aggregate.
    """
    room = get_open_room_or_404(db, room_id)
    room.status = "Closed"
    db.add(room)
    db.commit()
    delete_prefix(*CACHE_PREFIXES)
    return


# ---------- Public room listings ----------


@router_v1.get("/rooms", response_model=schemas.RoomSearchResult)
def list_rooms(
    name: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    country: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = Query(default=20, ge=1, le=10000),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    """
    Search open rooms.

    Behavior
    --------
    - Substring filters on name, city and country.
    - State accepts an abbreviation, a full name or a URL slug.
    - Category is an exact theme name.
    - Results are ordered by rating, best first.
    """
    rooms, total = queries.search_rooms(
        db,
        name=name,
        city=city,
        state=state,
        country=country,
        category=category,
        limit=limit,
        offset=offset,
    )
    return {"data": display(rooms), "count": total, "limit": limit, "offset": offset}


@router_v1.get("/rooms/featured", response_model=List[schemas.RoomDisplay])
def list_featured_rooms(limit: int = Query(default=6, ge=1, le=50), db: Session = Depends(get_db)):
    cache_key = f"rooms:featured:{limit}"
    cached = get_cached_json(cache_key)
    if cached is not None:
        return cached

    data = display(queries.featured_rooms(db, limit))
    set_cached_json(cache_key, data, ttl_seconds=300)
    return data


@router_v1.get("/rooms/{room_id}", response_model=schemas.RoomDetail)
def get_room(room_id: int, db: Session = Depends(get_db)):
    """
    Retrieve a single open room with amenities, hours and nearby rooms.

    Raises
    ------
    HTTPException
        If the room does not exist or is not open.
    """
    room = get_open_room_or_404(db, room_id)
    return room_detail(db, room)


@router_v1.get("/rooms/{room_id}/nearby", response_model=List[schemas.RoomDisplay])
def get_nearby_rooms(room_id: int, db: Session = Depends(get_db)):
    room = get_open_room_or_404(db, room_id)
    return display(queries.nearby_rooms(db, room.id, room.city or "", room.state or ""))


def room_detail(db: Session, room: models.EscapeRoom) -> dict:
    nearby = []
    if room.city and room.state:
        nearby = display(queries.nearby_rooms(db, room.id, room.city, room.state))
    return {
        "room": queries.format_room_for_display(room),
        "amenities": queries.room_amenities(db, room.id),
        "business_hours": queries.room_business_hours(db, room.id),
        "nearby_rooms": nearby,
    }


# ---------- Location hierarchy ----------


@router_v1.get("/locations/countries", response_model=List[schemas.CountryStats])
def list_countries(db: Session = Depends(get_db)):
    cache_key = "locations:countries"
    cached = get_cached_json(cache_key)
    if cached is not None:
        return cached

    data = queries.country_stats(db)
    set_cached_json(cache_key, data, ttl_seconds=600)
    return data


@router_v1.get("/locations/states", response_model=List[schemas.StateSummary])
def list_states(
    country: Optional[str] = None,
    order: str = Query(default="name", pattern="^(name|count)$"),
    db: Session = Depends(get_db),
):
    """
    Open room and city counts per state.

    Abbreviated and full-name spellings of a state are merged.
    """
    cache_key = f"locations:states:{(country or 'all').lower()}:{order}"
    cached = get_cached_json(cache_key)
    if cached is not None:
        return cached

    data = queries.states_with_room_counts(db, country=country, order_by_count=order == "count")
    set_cached_json(cache_key, data, ttl_seconds=600)
    return data


@router_v1.get("/locations/state-names", response_model=List[str])
def list_state_names(db: Session = Depends(get_db)):
    return queries.all_state_names(db)


@router_v1.get("/locations/cities", response_model=List[schemas.CityCount])
def list_cities(
    state: Optional[str] = None,
    sort: str = Query(default="count", pattern="^(count|name)$"),
    db: Session = Depends(get_db),
):
    return queries.cities_with_counts(db, state=state, sort=sort)


@router_v1.get("/locations/zip-codes", response_model=List[schemas.ZipCodeOption])
def list_zip_codes(
    city: Optional[str] = None,
    state: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return queries.zip_code_options(db, city=city, state=state)


@router_v1.get("/locations/states/{state}/cities", response_model=List[schemas.CityCount])
def list_state_cities(state: str, db: Session = Depends(get_db)):
    return queries.cities_with_counts(db, state=parse_state_from_url(state), sort="name")


@router_v1.get("/locations/{country}", response_model=List[schemas.StateSummary])
def country_page(country: str, db: Session = Depends(get_db)):
    return queries.states_with_room_counts(db, country=country.replace("-", " "))


@router_v1.get("/locations/{country}/{state}", response_model=schemas.StatePage)
def state_page(country: str, state: str, db: Session = Depends(get_db)):
    """
    Rooms and cities for a state URL segment.

    The segment may be an abbreviation ('co'), a slug ('new-york') or a
    full name. Unknown states with no rooms return 404.
    """
    full_name = parse_state_from_url(state)
    rooms = queries.rooms_by_state(db, full_name)
    if not rooms:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No rooms found in this state")

    return {
        "state": state_abbreviation(full_name) or full_name,
        "full_name": full_name,
        "rooms": display(rooms),
        "cities": queries.cities_with_counts(db, state=full_name, sort="count"),
    }


@router_v1.get("/locations/{country}/{state}/{city}", response_model=schemas.CityPage)
def city_page(country: str, state: str, city: str, db: Session = Depends(get_db)):
    full_state = parse_state_from_url(state)
    rooms = queries.rooms_by_city(db, city, full_state)
    if not rooms:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No rooms found in this city")
    # stored spelling, since the slug drops hyphens and apostrophes
    city_name = clean_location_value(rooms[0].city)

    return {
        "city": city_name,
        "state": full_state,
        "rooms": display(rooms),
        "nearby_cities": queries.nearby_cities(db, full_state, exclude_city=city_name),
    }


@router_v1.get("/locations/{country}/{state}/{city}/{venue}", response_model=schemas.RoomDetail)
def venue_page(country: str, state: str, city: str, venue: str, db: Session = Depends(get_db)):
    """
    Resolve a venue page URL to a room.

    Behavior
    --------
    - The state segment is converted back to a state name; the city
      segment is compared against each room's city in URL form.
    - The venue slug is matched against cleaned and raw room names of
      the open rooms in that city (exact slug first, then token overlap).

    Raises
    ------
    HTTPException
        404 if no room in the city matches the venue slug.
    """
    full_state = parse_state_from_url(state)
    room = queries.find_room_by_venue(db, venue, city, full_state)
    if not room:
        logger.info(f"No venue match for {state}/{city}/{venue}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No matching venue found")
    return room_detail(db, room)


# ---------- Themes & stats ----------


@router_v1.get("/themes", response_model=List[schemas.ThemeCount])
def list_themes(db: Session = Depends(get_db)):
    cache_key = "themes:all"
    cached = get_cached_json(cache_key)
    if cached is not None:
        return cached

    data = queries.themes_with_counts(db)
    set_cached_json(cache_key, data, ttl_seconds=600)
    return data


@router_v1.get("/themes/{theme_slug}", response_model=schemas.ThemePage)
def theme_page(theme_slug: str, db: Session = Depends(get_db)):
    slug = create_seo_friendly_slug(theme_slug)
    theme, rooms = queries.rooms_by_theme(db, slug)
    if not theme:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Theme not found")
    return {"theme": theme, "slug": slug, "count": len(rooms), "rooms": display(rooms)}


@router_v1.get("/stats", response_model=schemas.DatabaseStats)
def site_stats(db: Session = Depends(get_db)):
    cache_key = "stats:all"
    cached = get_cached_json(cache_key)
    if cached is not None:
        return cached

    data = queries.database_stats(db)
    set_cached_json(cache_key, data, ttl_seconds=600)
    return data


@router_v1.get("/regions", response_model=List[schemas.RegionRead])
def list_regions(
    type: Optional[str] = Query(default=None, pattern="^(country|state|city|region|county)$"),
    parent_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    return queries.regions(db, region_type=type, parent_id=parent_id)


# ---------- Sitemap ----------


@app.get("/sitemap-venues.xml")
def venues_sitemap(db: Session = Depends(get_db)):
    """
    XML sitemap listing every open venue page.
    """
    urls = "\n".join(
        "  <url>\n"
        f"    <loc>{escape(loc)}</loc>\n"
        + (f"    <lastmod>{lastmod}</lastmod>\n" if lastmod else "")
        + "    <changefreq>weekly</changefreq>\n"
        "    <priority>0.9</priority>\n"
        "  </url>"
        for loc, lastmod in queries.sitemap_entries(db)
    )
    body = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{urls}\n"
        "</urlset>"
    )
    return Response(content=body, media_type="application/xml")


app.include_router(router_v1)
