# content_service/sanity.py
"""
Read-only client for the Sanity content API.

Blog posts are fetched with GROQ queries over the HTTP query endpoint.
The helpers below also build CDN image URLs and derive display values
(read time, SEO slug, formatted dates) from the returned documents.
"""
import json
import logging
import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlencode

import httpx

from common.config import (
    SANITY_API_TOKEN,
    SANITY_API_VERSION,
    SANITY_DATASET,
    SANITY_PROJECT_ID,
    SANITY_USE_CDN,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "/placeholder.svg"
WORDS_PER_MINUTE = 200

_POST_FIELDS = """
    _id,
    title,
    slug,
    excerpt,
    publishedAt,
    _updatedAt,
    "updatedAt": _updatedAt,
    category,
    author {
      name,
      image {
        asset->{
          _id,
          url
        },
        alt
      }
    },
    image {
      asset->{
        _id,
        url
      },
      alt
    },
    content"""

BLOG_POSTS_QUERY = f'*[_type == "blogPost"] | order(publishedAt desc) {{{_POST_FIELDS}\n}}'

BLOG_POST_QUERY = (
    f'*[_type == "blogPost" && slug.current == $slug][0] {{{_POST_FIELDS},\n'
    "    seo,\n    socialSharing,\n    tags\n}"
)

FEATURED_BLOG_POSTS_QUERY = (
    f'*[_type == "blogPost"] | order(publishedAt desc) [0...3] {{{_POST_FIELDS}\n}}'
)


class SanityError(Exception):
    """Raised when the content API cannot be reached or answers with an error."""


def query_url() -> str:
    host = "apicdn" if SANITY_USE_CDN and not SANITY_API_TOKEN else "api"
    return (
        f"https://{SANITY_PROJECT_ID}.{host}.sanity.io"
        f"/v{SANITY_API_VERSION}/data/query/{SANITY_DATASET}"
    )


def fetch(query: str, params: Optional[Dict[str, Any]] = None) -> Any:
    """
    Run a GROQ query and return its ``result``.

    Parameters
    ----------
    query : str
        GROQ query text.
    params : Optional[Dict[str, Any]]
        Query parameters, referenced as ``$name`` in the query. Values
        are JSON encoded as the query API expects.

    Raises
    ------
    SanityError
        On transport errors or non-200 answers.
    """
    request_params = {"query": query}
    for name, value in (params or {}).items():
        request_params[f"${name}"] = json.dumps(value)

    headers = {}
    if SANITY_API_TOKEN:
        headers["Authorization"] = f"Bearer {SANITY_API_TOKEN}"

    try:
        response = httpx.get(query_url(), params=request_params, headers=headers, timeout=10.0)
    except httpx.RequestError as exc:
        logger.error(f"Sanity request failed: {exc}", extra={"dependency": "sanity"})
        raise SanityError("Failed to reach content API") from exc

    if response.status_code != 200:
        logger.error(
            f"Sanity returned {response.status_code}",
            extra={"dependency": "sanity", "status_code": response.status_code},
        )
        raise SanityError("Content API returned an error")

    return response.json().get("result")


def get_all_blog_posts() -> List[Dict[str, Any]]:
    return fetch(BLOG_POSTS_QUERY) or []


def get_blog_post(slug: str) -> Optional[Dict[str, Any]]:
    return fetch(BLOG_POST_QUERY, {"slug": slug})


def get_featured_blog_posts() -> List[Dict[str, Any]]:
    return fetch(FEATURED_BLOG_POSTS_QUERY) or []


def post_slug(post: Dict[str, Any]) -> str:
    return (post.get("slug") or {}).get("current") or ""


def create_seo_slug(title: str) -> str:
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip().strip("-")


def slug_to_title(slug: str) -> str:
    """'escape-room-tips' -> 'Escape Room Tips'"""
    text = unquote(slug).replace("-", " ")
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), text)


def get_blog_post_by_seo_slug(seo_slug: str) -> Optional[Dict[str, Any]]:
    """
    Find a post from a URL slug.

    Tries the slug as stored, then the slug converted back to a title
    (older posts used titles as slugs), then scans every post comparing
    SEO slugs.
    """
    post = get_blog_post(seo_slug)
    if not post:
        post = get_blog_post(slug_to_title(seo_slug))
    if not post:
        for candidate in get_all_blog_posts():
            current = post_slug(candidate)
            if create_seo_slug(current) == seo_slug or current == seo_slug:
                return candidate
    return post


def format_date(date_string: Optional[str]) -> str:
    """ISO timestamp -> 'January 5, 2025'. Unparseable input returns ''."""
    if not date_string:
        return ""
    try:
        parsed = datetime.fromisoformat(date_string.replace("Z", "+00:00"))
    except ValueError:
        return ""
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def calculate_read_time(content: Optional[List[Dict[str, Any]]]) -> str:
    if not content:
        return "1 min read"

    text = " ".join(
        " ".join(
            child.get("text", "")
            for child in block.get("children") or []
            if child.get("_type") == "span"
        )
        for block in content
        if block.get("_type") == "block"
    )
    word_count = len(text.split())
    minutes = max(1, math.ceil(word_count / WORDS_PER_MINUTE))
    return f"{minutes} min read"


def _asset_id(image: Dict[str, Any]) -> Optional[str]:
    asset = image.get("asset") or {}
    return asset.get("_ref") or asset.get("_id")


def get_image_url(image: Optional[Dict[str, Any]], width: int = 800, height: int = 600) -> str:
    """
    CDN URL for an image field, cropped to the given size.

    Asset ids look like ``image-<hash>-<w>x<h>-<format>``. Images without
    an asset fall back to the placeholder.
    """
    if not image or not image.get("asset"):
        return PLACEHOLDER_IMAGE

    query = urlencode({"w": width, "h": height, "fit": "crop", "auto": "format"})

    asset_id = _asset_id(image)
    match = re.fullmatch(r"image-([a-zA-Z0-9]+)-(\d+x\d+)-([a-z]+)", asset_id or "")
    if match:
        file_id, dimensions, fmt = match.groups()
        return (
            f"https://cdn.sanity.io/images/{SANITY_PROJECT_ID}/{SANITY_DATASET}/"
            f"{file_id}-{dimensions}.{fmt}?{query}"
        )

    url = image["asset"].get("url")
    if url:
        return f"{url}?{query}"
    return PLACEHOLDER_IMAGE
