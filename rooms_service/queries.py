"""
Read-side queries for the rooms service.

Every public listing is restricted to rooms whose status is ``"Open"``.
Aggregations (per state, per city, per theme) are computed in Python
over narrow column selections because the stored location values are
inconsistent (abbreviations vs. full names, stray NUL characters).
"""
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from common.config import SITE_BASE_URL

from . import models
from .locations import (
    FULL_STATE_NAMES,
    clean_location_value,
    clean_venue_name,
    create_seo_friendly_slug,
    find_best_venue_match,
    format_city_for_url,
    format_state_for_url,
    format_venue_for_url,
    get_full_state_name,
    is_united_states,
)

logger = logging.getLogger(__name__)

OPEN_STATUS = "Open"
PLACEHOLDER_IMAGE = "/placeholder.svg"
DEFAULT_THEME = "Adventure"
DEFAULT_DIFFICULTY = "Beginner"
FALLBACK_AVERAGE_RATING = 4.2
BATCH_SIZE = 1000

FALLBACK_THEMES = [
    {"theme": "Adventure", "count": 150},
    {"theme": "Mystery", "count": 120},
    {"theme": "Horror", "count": 100},
    {"theme": "Fantasy", "count": 80},
    {"theme": "Sci-Fi", "count": 60},
    {"theme": "Historical", "count": 40},
]

Room = models.EscapeRoom


def open_rooms(db: Session):
    return db.query(Room).filter(Room.status == OPEN_STATUS)


def state_condition(state: str):
    """
    Build a filter that matches a state by abbreviation or full name.

    Known states match the whole stored value, case-insensitively, so
    'Kansas' never picks up 'Arkansas'. Anything else falls back to a
    substring match on the raw input.
    """
    full_name = get_full_state_name(state)
    abbr = FULL_STATE_NAMES.get(full_name.lower())
    if abbr:
        stored = func.lower(func.trim(Room.state))
        return or_(stored == full_name.lower(), stored == abbr.lower())
    return Room.state.ilike(f"%{state}%")


def country_condition(country: str):
    if is_united_states(country):
        return Room.country == "United States"
    return Room.country.ilike(f"%{country}%")


def room_url(city: str, state: str, venue_name: str) -> str:
    return "/locations/united-states/{}/{}/{}".format(
        format_state_for_url(get_full_state_name(state)),
        format_city_for_url(city),
        format_venue_for_url(venue_name),
    )


def format_room_for_display(room: models.EscapeRoom) -> dict:
    """
    Shape a room row for listing cards and venue pages.

    Parameters
    ----------
    room : EscapeRoom
        Raw database row.

    Returns
    -------
    dict
        Payload matching ``schemas.RoomDisplay``.
    """
    city = room.city or "Unknown"
    state = room.state or "Unknown"
    venue_name = clean_venue_name(room.name, room.city, room.state) if room.city and room.state else room.name

    return {
        "id": room.id,
        "name": room.name,
        "location": f"{city}, {state}",
        "city": city,
        "state": state,
        "venue_name": venue_name,
        "rating": float(room.rating) if room.rating is not None else None,
        "reviews": room.reviews_average or 0,
        "theme": room.category_new or DEFAULT_THEME,
        "difficulty": room.difficulty or DEFAULT_DIFFICULTY,
        "image": room.photo or PLACEHOLDER_IMAGE,
        "description": room.description or "",
        "post_content": room.post_content or "",
        "address": room.full_address or "",
        "website": room.website or "",
        "phone": room.phone or "",
        "latitude": room.latitude,
        "longitude": room.longitude,
        "working_hours": room.working_hours,
        "booking_url": room.order_links or "",
        "url": room_url(city, state, venue_name) if room.city and room.state else "",
    }


def by_rating(query):
    return query.order_by(Room.rating.desc().nulls_last(), Room.id)


# ---------- Listing queries ----------


def search_rooms(
    db: Session,
    name: Optional[str] = None,
    city: Optional[str] = None,
    state: Optional[str] = None,
    country: Optional[str] = None,
    category: Optional[str] = None,
    limit: int = 20,
    offset: int = 0,
) -> Tuple[List[models.EscapeRoom], int]:
    """
    Filter open rooms and return one page plus the total match count.
    """
    query = open_rooms(db)

    if name:
        query = query.filter(Room.name.ilike(f"%{name}%"))
    if city:
        query = query.filter(Room.city.ilike(f"%{city}%"))
    if state:
        query = query.filter(state_condition(state))
    if country:
        query = query.filter(Room.country.ilike(f"%{country}%"))
    if category:
        query = query.filter(Room.category_new == category)

    total = query.count()
    rooms = by_rating(query).offset(offset).limit(limit).all()
    return rooms, total


def featured_rooms(db: Session, limit: int = 6) -> List[models.EscapeRoom]:
    return (
        open_rooms(db)
        .order_by(
            Room.rating.desc().nulls_last(),
            Room.reviews_average.desc().nulls_last(),
            Room.id,
        )
        .limit(limit)
        .all()
    )


def rooms_by_state(db: Session, state: str, limit: Optional[int] = None) -> List[models.EscapeRoom]:
    query = by_rating(open_rooms(db).filter(state_condition(state)))
    if limit:
        query = query.limit(limit)
    return query.all()


def rooms_by_city(
    db: Session, city_slug: str, state: str, limit: Optional[int] = None
) -> List[models.EscapeRoom]:
    """
    Open rooms of a state whose city slugs to ``city_slug``, best rated first.

    Cities are compared in URL form so that every link built by
    ``room_url`` resolves, whatever punctuation the stored city has.
    """
    city_slug = format_city_for_url(city_slug)
    candidates = by_rating(
        open_rooms(db).filter(Room.city.isnot(None)).filter(state_condition(state))
    ).all()
    rooms = [room for room in candidates if format_city_for_url(room.city) == city_slug]
    return rooms[:limit] if limit else rooms


def nearby_rooms(
    db: Session, room_id: int, city: str, state: str, limit: int = 10
) -> List[models.EscapeRoom]:
    """Other open rooms in the same city or the same state, best rated first."""
    return (
        by_rating(
            open_rooms(db)
            .filter(or_(Room.city.ilike(f"%{city}%"), state_condition(state)))
            .filter(Room.id != room_id)
        )
        .limit(limit)
        .all()
    )


def nearby_cities(db: Session, state: str, exclude_city: Optional[str] = None) -> List[Dict[str, str]]:
    rows = by_rating(
        db.query(Room.city, Room.state, Room.rating)
        .filter(Room.status == OPEN_STATUS, Room.city.isnot(None))
        .filter(state_condition(state))
    ).all()

    seen = set()
    if exclude_city:
        seen.add(exclude_city.strip().lower())
    cities = []
    for city, room_state, _ in rows:
        city = clean_location_value(city)
        room_state = clean_location_value(room_state)
        if not city or not room_state or city.lower() in seen:
            continue
        seen.add(city.lower())
        cities.append(
            {
                "city": city,
                "state": room_state,
                "url": "/locations/united-states/{}/{}".format(
                    format_state_for_url(get_full_state_name(room_state)),
                    format_city_for_url(city),
                ),
            }
        )
    return cities


# ---------- Aggregations ----------


def states_with_room_counts(
    db: Session, country: Optional[str] = None, order_by_count: bool = False
) -> List[dict]:
    """
    Aggregate open rooms per state.

    Abbreviated and full-name spellings of the same state are merged under
    the full name. Sorted alphabetically by full name, or by room count
    when ``order_by_count`` is set.
    """
    query = db.query(Room.state, Room.city).filter(
        Room.status == OPEN_STATUS,
        Room.state.isnot(None),
        Room.city.isnot(None),
    )
    if country:
        query = query.filter(country_condition(country))

    states: Dict[str, dict] = {}
    for state, city in query.yield_per(BATCH_SIZE):
        state = clean_location_value(state)
        city = clean_location_value(city)
        if not state or not city:
            continue
        full_name = get_full_state_name(state)
        entry = states.setdefault(
            full_name,
            {
                "state": FULL_STATE_NAMES.get(full_name.lower(), state),
                "full_name": full_name,
                "room_count": 0,
                "cities": set(),
            },
        )
        entry["room_count"] += 1
        entry["cities"].add(city.lower())

    result = [
        {
            "state": entry["state"],
            "full_name": entry["full_name"],
            "room_count": entry["room_count"],
            "city_count": len(entry["cities"]),
        }
        for entry in states.values()
    ]
    if order_by_count:
        result.sort(key=lambda s: (-s["room_count"], s["full_name"]))
    else:
        result.sort(key=lambda s: s["full_name"])
    return result


def all_state_names(db: Session) -> List[str]:
    """Distinct stored state values that are full names (longer than 3 chars)."""
    rows = db.query(Room.state).filter(Room.status == OPEN_STATUS, Room.state.isnot(None)).distinct()
    names = {clean_location_value(state) for (state,) in rows}
    return sorted(name for name in names if name and len(name) > 3)


def cities_with_counts(db: Session, state: Optional[str] = None, sort: str = "count") -> List[dict]:
    """
    Count open rooms per (city, state) pair.

    ``sort`` is 'count' (most rooms first) or 'name' (state, then city).
    """
    query = db.query(Room.city, Room.state).filter(
        Room.status == OPEN_STATUS,
        Room.city.isnot(None),
        Room.state.isnot(None),
    )
    if state:
        query = query.filter(state_condition(state))

    counts: Dict[Tuple[str, str], int] = {}
    for city, room_state in query.yield_per(BATCH_SIZE):
        city = clean_location_value(city)
        room_state = clean_location_value(room_state)
        if not city or not room_state:
            continue
        counts[(city, room_state)] = counts.get((city, room_state), 0) + 1

    cities = [{"city": c, "state": s, "count": n} for (c, s), n in counts.items()]
    if sort == "name":
        cities.sort(key=lambda c: (c["state"], c["city"]))
    else:
        cities.sort(key=lambda c: (-c["count"], c["city"]))
    return cities


def zip_code_options(db: Session, city: Optional[str] = None, state: Optional[str] = None) -> List[dict]:
    query = db.query(Room.postal_code, Room.city, Room.state).filter(
        Room.status == OPEN_STATUS,
        Room.postal_code.isnot(None),
        Room.city.isnot(None),
        Room.state.isnot(None),
    )
    if city:
        query = query.filter(Room.city == city)
    if state:
        query = query.filter(state_condition(state))

    zips: Dict[str, dict] = {}
    for postal_code, room_city, room_state in query:
        postal_code = clean_location_value(postal_code)
        if postal_code and postal_code not in zips:
            zips[postal_code] = {
                "zip_code": postal_code,
                "city": clean_location_value(room_city),
                "state": clean_location_value(room_state),
            }

    return sorted(zips.values(), key=lambda z: (z["state"], z["city"], z["zip_code"]))


def themes_with_counts(db: Session) -> List[dict]:
    """
    Count open rooms per theme, most common first.

    Falls back to a fixed theme list when the database cannot be read so
    theme navigation never renders empty.
    """
    try:
        rows = (
            db.query(Room.category_new)
            .filter(Room.status == OPEN_STATUS, Room.category_new.isnot(None))
            .yield_per(BATCH_SIZE)
        )
        counts: Dict[str, int] = {}
        for (theme,) in rows:
            theme = theme.strip()
            if theme:
                counts[theme] = counts.get(theme, 0) + 1
    except SQLAlchemyError as exc:
        logger.warning(f"Falling back to default themes: {exc}")
        db.rollback()
        return [dict(t, slug=create_seo_friendly_slug(t["theme"])) for t in FALLBACK_THEMES]

    themes = [
        {"theme": theme, "count": count, "slug": create_seo_friendly_slug(theme)}
        for theme, count in counts.items()
    ]
    themes.sort(key=lambda t: (-t["count"], t["theme"]))
    return themes


def rooms_by_theme(db: Session, theme_slug: str) -> Tuple[Optional[str], List[models.EscapeRoom]]:
    """
    Resolve a theme slug to its stored category name(s) and their rooms.

    Returns the first matching category name (or None) and the rooms.
    """
    categories = [
        category
        for (category,) in db.query(Room.category_new)
        .filter(Room.status == OPEN_STATUS, Room.category_new.isnot(None))
        .distinct()
        if create_seo_friendly_slug(category) == theme_slug
    ]
    if not categories:
        return None, []

    rooms = by_rating(open_rooms(db).filter(Room.category_new.in_(categories))).all()
    return sorted(categories)[0], rooms


def country_stats(db: Session) -> List[dict]:
    rows = db.query(Room.country, Room.state, Room.city).filter(
        Room.status == OPEN_STATUS,
        Room.country.isnot(None),
        Room.state.isnot(None),
        Room.city.isnot(None),
    )

    countries: Dict[str, dict] = {}
    for country, state, city in rows.yield_per(BATCH_SIZE):
        country = clean_location_value(country)
        state = clean_location_value(state)
        city = clean_location_value(city)
        if not (country and state and city):
            continue
        entry = countries.setdefault(country, {"room_count": 0, "states": set(), "cities": set()})
        entry["room_count"] += 1
        entry["states"].add(get_full_state_name(state))
        entry["cities"].add((city.lower(), get_full_state_name(state)))

    result = [
        {
            "country": country,
            "room_count": entry["room_count"],
            "state_count": len(entry["states"]),
            "city_count": len(entry["cities"]),
        }
        for country, entry in countries.items()
    ]
    result.sort(key=lambda c: (-c["room_count"], c["country"]))
    return result


def all_countries(db: Session) -> List[str]:
    rows = db.query(Room.country).filter(Room.status == OPEN_STATUS, Room.country.isnot(None)).distinct()
    names = {clean_location_value(country) for (country,) in rows}
    return sorted(name for name in names if name)


def database_stats(db: Session) -> dict:
    """
    Site-wide counters for the home page.

    Any database failure yields zeroed counters and the fallback average
    rating instead of an error.
    """
    try:
        total_rooms = open_rooms(db).count()

        cities = set()
        states = set()
        for city, state in (
            db.query(Room.city, Room.state)
            .filter(Room.status == OPEN_STATUS, Room.state.isnot(None))
            .yield_per(BATCH_SIZE)
        ):
            state = clean_location_value(state)
            city = clean_location_value(city)
            if not state:
                continue
            states.add(get_full_state_name(state))
            if city:
                cities.add(f"{city}, {state}")

        ratings = [
            r
            for (r,) in db.query(Room.rating).filter(
                Room.status == OPEN_STATUS, Room.rating.isnot(None), Room.rating >= 1
            )
        ]
        average_rating = (
            round(sum(ratings) / len(ratings), 1) if ratings else FALLBACK_AVERAGE_RATING
        )

        total_reviews = sum(
            count
            for (count,) in db.query(Room.reviews_average).filter(
                Room.status == OPEN_STATUS,
                Room.reviews_average.isnot(None),
                Room.reviews_average >= 1,
            )
        )
    except SQLAlchemyError as exc:
        logger.error(f"Error computing database stats: {exc}")
        db.rollback()
        return {
            "total_rooms": 0,
            "unique_cities": 0,
            "unique_states": 0,
            "average_rating": FALLBACK_AVERAGE_RATING,
            "total_reviews": 0,
        }

    return {
        "total_rooms": total_rooms,
        "unique_cities": len(cities),
        "unique_states": len(states),
        "average_rating": average_rating,
        "total_reviews": total_reviews,
    }


# ---------- Single room ----------


def get_open_room(db: Session, room_id: int) -> Optional[models.EscapeRoom]:
    return open_rooms(db).filter(Room.id == room_id).first()


def room_amenities(db: Session, room_id: int) -> List[models.RoomAmenity]:
    return (
        db.query(models.RoomAmenity)
        .filter(
            models.RoomAmenity.room_id == room_id,
            models.RoomAmenity.is_available.is_(True),
        )
        .all()
    )


def room_business_hours(db: Session, room_id: int) -> List[models.BusinessHours]:
    return (
        db.query(models.BusinessHours)
        .filter(models.BusinessHours.room_id == room_id)
        .order_by(models.BusinessHours.day_of_week)
        .all()
    )


def find_room_by_venue(
    db: Session, venue: str, city_slug: str, state: str
) -> Optional[models.EscapeRoom]:
    """
    Resolve URL segments to a single open room.

    Candidates are the open rooms of the city page for ``city_slug``;
    the best venue name match among them wins.
    """
    candidates = sorted(rooms_by_city(db, city_slug, state), key=lambda room: room.id)
    if not candidates:
        return None
    return find_best_venue_match(venue, candidates, candidates[0].city, state)


def regions(db: Session, region_type: Optional[str] = None, parent_id: Optional[int] = None):
    query = db.query(models.GeographicRegion)
    if region_type:
        query = query.filter(models.GeographicRegion.type == region_type)
    if parent_id is not None:
        query = query.filter(models.GeographicRegion.parent_id == parent_id)
    return query.order_by(models.GeographicRegion.name).all()


def sitemap_entries(db: Session) -> List[Tuple[str, str]]:
    """(absolute venue URL, ISO lastmod) for every open room with a location."""
    entries = []
    for room in open_rooms(db).filter(Room.city.isnot(None), Room.state.isnot(None)).order_by(Room.id):
        display = format_room_for_display(room)
        lastmod = room.updated_at or room.created_at
        entries.append(
            (SITE_BASE_URL + display["url"], lastmod.isoformat() if lastmod else "")
        )
    return entries
