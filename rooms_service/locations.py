"""
Location naming helpers for the rooms service.

URL segments on location pages are lossy slugs ("st-louis", "new-york",
"escape-the-room-denver"). The helpers here turn them back into the
spellings stored in the database and pick the venue row a slug most
likely refers to. Matching is best effort: the data set mixes state
abbreviations with full names and many venue names repeat their city.
"""
import re
from typing import Iterable, List, Optional, Sequence

STATE_ABBREVIATIONS = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas", "CA": "California",
    "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware", "FL": "Florida", "GA": "Georgia",
    "HI": "Hawaii", "ID": "Idaho", "IL": "Illinois", "IN": "Indiana", "IA": "Iowa",
    "KS": "Kansas", "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
    "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota", "MS": "Mississippi", "MO": "Missouri",
    "MT": "Montana", "NE": "Nebraska", "NV": "Nevada", "NH": "New Hampshire", "NJ": "New Jersey",
    "NM": "New Mexico", "NY": "New York", "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio",
    "OK": "Oklahoma", "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah", "VT": "Vermont",
    "VA": "Virginia", "WA": "Washington", "WV": "West Virginia", "WI": "Wisconsin", "WY": "Wyoming",
    "DC": "District of Columbia", "PR": "Puerto Rico", "VI": "Virgin Islands", "GU": "Guam",
    "AS": "American Samoa", "MP": "Northern Mariana Islands",
}

# lowercase full name -> abbreviation
FULL_STATE_NAMES = {full.lower(): abbr for abbr, full in STATE_ABBREVIATIONS.items()}

CITY_SPECIAL_CASES = {
    "coeur-dalene": "Coeur d'Alene",
    "st-petersburg": "St. Petersburg",
    "st-augustine": "St. Augustine",
    "st-louis": "St. Louis",
    "st-cloud": "St Cloud",
    "st-paul": "St Paul",
    "st-charles": "St Charles",
    "st-peters": "St Peters",
    "st-george": "St. George",
    "port-st-lucie": "Port St. Lucie",
}

LOWERCASE_VENUE_WORDS = {
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
}

UNITED_STATES_ALIASES = {"usa", "us", "united-states", "united states"}

_DASHES = "-–—"


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def _title_from_slug(slug: str) -> str:
    return " ".join(_capitalize(word) for word in slug.split("-"))


def clean_location_value(value: Optional[str]) -> Optional[str]:
    """Strip NUL characters and surrounding whitespace from a stored value."""
    if value is None:
        return None
    return value.replace("\0", "").strip()


def get_full_state_name(state_input: str) -> str:
    """
    Normalize an abbreviation, full name or URL slug to a display state name.

    'CO' -> 'Colorado', 'new york' -> 'New York', 'new-mexico' -> 'New Mexico'.
    Unknown values are returned as Title Case words.
    """
    trimmed = state_input.strip()

    if trimmed.upper() in STATE_ABBREVIATIONS:
        return STATE_ABBREVIATIONS[trimmed.upper()]

    abbr = FULL_STATE_NAMES.get(trimmed.lower())
    if abbr:
        return STATE_ABBREVIATIONS[abbr]

    return _title_from_slug(trimmed)


def state_abbreviation(state_input: str) -> Optional[str]:
    """Return the postal abbreviation for a known state, otherwise None."""
    return FULL_STATE_NAMES.get(get_full_state_name(state_input).lower())


def is_united_states(country: Optional[str]) -> bool:
    return bool(country) and country.strip().lower() in UNITED_STATES_ALIASES


def create_seo_friendly_slug(text) -> str:
    if not text or not isinstance(text, str):
        return ""
    slug = text.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip()


def format_state_for_url(state: str) -> str:
    return create_seo_friendly_slug(state)


def format_city_for_url(city: str) -> str:
    if not city:
        return ""
    return create_seo_friendly_slug(re.sub(r"['’]", "", city.strip()))


def format_venue_for_url(venue_name: str) -> str:
    return create_seo_friendly_slug(venue_name)


def parse_state_from_url(url_state: str) -> str:
    return get_full_state_name(url_state)


def parse_city_from_url(url_city: str) -> str:
    if not url_city:
        return ""
    special = CITY_SPECIAL_CASES.get(url_city.lower())
    if special:
        return special
    return _title_from_slug(url_city)


def parse_venue_from_url(url_venue: str) -> str:
    """Title-case a venue slug, keeping articles and prepositions lowercase."""
    words = []
    for index, word in enumerate(url_venue.split("-")):
        if index > 0 and word.lower() in LOWERCASE_VENUE_WORDS:
            words.append(word.lower())
        else:
            words.append(_capitalize(word))
    return " ".join(words)


def _variants(value: str, squash_dots: bool) -> List[str]:
    lowered = value.lower()
    variants = {
        value,
        lowered,
        re.sub(r"\s+", "-", value).lower(),
        re.sub(r"\s+", "", value).lower(),
    }
    if squash_dots:
        variants.add(value.replace(".", "").lower())
        variants.add(value.replace(".", " ").lower().strip())
    # longest first so the alternation prefers the most specific spelling
    ordered = sorted((v for v in variants if v), key=len, reverse=True)
    return [re.escape(v) for v in ordered]


def clean_venue_name(room_name: str, city: str, state: str) -> str:
    """
    Remove embedded city/state fragments from a venue name.

    'Escape Room Denver - Denver, CO' -> 'Escape Room Denver'
    'Puzzle House (Austin, Texas)'     -> 'Puzzle House'
    """
    if not room_name:
        return ""

    city_alt = "|".join(_variants(city, squash_dots=True)) if city else ""
    state_values = [state]
    full_state = get_full_state_name(state) if state else ""
    if full_state and full_state.lower() != state.lower():
        state_values.append(full_state)
    state_alt = "|".join(
        v for s in state_values if s for v in _variants(s, squash_dots=False)
    )
    locations = "|".join(alt for alt in (city_alt, state_alt) if alt)
    if not locations:
        return room_name.strip()

    sep = f"[{_DASHES},|]"
    patterns = [
        rf"\s*\([^)]*\b(?:{locations})\b[^)]*\)\s*",
    ]
    if city_alt and state_alt:
        patterns.append(
            rf"\s*{sep}\s*(?:{city_alt})(?:\s*[{_DASHES},]\s*(?:{state_alt}))?\s*$"
        )
        patterns.append(
            rf"\s*{sep}\s*(?:{state_alt})(?:\s*[{_DASHES},]\s*(?:{city_alt}))?\s*$"
        )
    patterns.append(rf"\s*{sep}\s*(?:{locations})\s*$")

    clean_name = room_name
    for pattern in patterns:
        clean_name = re.sub(pattern, " ", clean_name, flags=re.IGNORECASE)

    return re.sub(r"\s{2,}", " ", clean_name).strip()


def _tokens(text: str) -> List[str]:
    return [t for t in re.split(r"[^a-z0-9']+", text.lower()) if t]


def _overlap(input_words: Sequence[str], candidate_words: Sequence[str]) -> int:
    score = 0
    for input_word in input_words:
        for word in candidate_words:
            if word in input_word or input_word in word:
                score += min(len(input_word), len(word))
    return score


def score_venue_match(venue_name: str, room_name: str, city: str, state: str) -> float:
    """
    Token-overlap score between a requested venue and a stored room name.

    Overlap with the raw room name weighs 1.5x the overlap with the
    cleaned name so rooms whose full name matches win ties.
    """
    input_words = _tokens(venue_name)
    cleaned_words = _tokens(clean_venue_name(room_name, city, state))
    original_words = _tokens(room_name)
    return _overlap(input_words, cleaned_words) + _overlap(input_words, original_words) * 1.5


def find_best_venue_match(venue: str, rooms: Iterable, city: str, state: str):
    """
    Pick the room a venue URL segment refers to.

    An exact slug match on the cleaned or raw room name wins immediately;
    otherwise the room with the highest positive overlap score is returned.
    Returns None when no room shares any token with the request.
    """
    input_slug = create_seo_friendly_slug(venue)
    best_match = None
    best_score = 0.0

    for room in rooms:
        room_city = room.city or city
        room_state = room.state or state
        cleaned_slug = create_seo_friendly_slug(clean_venue_name(room.name, room_city, room_state))
        if cleaned_slug == input_slug or create_seo_friendly_slug(room.name) == input_slug:
            return room

        score = score_venue_match(venue, room.name, room_city, room_state)
        if score > best_score:
            best_score = score
            best_match = room

    return best_match
