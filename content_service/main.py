import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, status

from common.cache import get_cached_json, set_cached_json
from common.config import LOG_FORMAT, LOG_LEVEL
from common.errors import register_exception_handlers
from common.logging_config import setup_logging

from . import sanity, schemas
from .renderer import render_portable_text, render_room_content

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

app = FastAPI(title="Content Service", version="1.0.0")
router_v1 = APIRouter(prefix="/api/v1")

SERVICE_NAME = "content"
register_exception_handlers(app, SERVICE_NAME)

RELATED_POSTS = 3


@app.get("/")
def root():
    return {"service": "content", "status": "running"}


def upstream_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail="Failed to fetch blog posts",
    )


def summarize(post: Dict[str, Any]) -> Dict[str, Any]:
    """Reduce a Sanity post document to card data."""
    image = post.get("image") or {}
    slug = sanity.post_slug(post)
    return {
        "id": post.get("_id", ""),
        "title": post.get("title") or "Untitled",
        "seo_slug": sanity.create_seo_slug(slug) or slug,
        "excerpt": post.get("excerpt"),
        "category": post.get("category"),
        "published_at": post.get("publishedAt"),
        "published": sanity.format_date(post.get("publishedAt")),
        "read_time": post.get("readTime") or sanity.calculate_read_time(post.get("content")),
        "image_url": sanity.get_image_url(image or None, 800, 600),
        "image_alt": image.get("alt"),
    }


def all_posts() -> List[Dict[str, Any]]:
    cache_key = "blog:posts"
    cached = get_cached_json(cache_key)
    if cached is not None:
        return cached
    try:
        posts = sanity.get_all_blog_posts()
    except sanity.SanityError:
        raise upstream_error()
    set_cached_json(cache_key, posts, ttl_seconds=300)
    return posts


# ---------- Blog ----------


@router_v1.get("/blog-posts", response_model=schemas.FeaturedPosts)
def featured_blog_posts():
    """
    The three most recent posts, as raw documents, for the home page.
    """
    try:
        posts = sanity.get_featured_blog_posts()
    except sanity.SanityError:
        raise upstream_error()
    return {"success": True, "data": posts}


@router_v1.get("/blog", response_model=List[schemas.PostSummary])
def list_blog_posts(category: Optional[str] = None):
    """
    All posts, newest first, optionally restricted to one category
    (case-insensitive).
    """
    posts = all_posts()
    if category:
        wanted = category.strip().lower()
        posts = [p for p in posts if (p.get("category") or "").lower() == wanted]
    return [summarize(p) for p in posts]


@router_v1.get("/blog/{slug}", response_model=schemas.PostPage)
def blog_post_page(slug: str):
    """
    A single post rendered to HTML with up to three related posts.

    Raises
    ------
    HTTPException
        404 if no post matches the slug, 502 if the content API fails.
    """
    try:
        post = sanity.get_blog_post_by_seo_slug(slug)
    except sanity.SanityError:
        raise upstream_error()
    if not post:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Blog post not found")

    related = [p for p in all_posts() if p.get("_id") != post.get("_id")][:RELATED_POSTS]
    author = post.get("author") or {}

    return {
        "post": summarize(post),
        "html": render_portable_text(post.get("content")),
        "author": author.get("name"),
        "updated_at": post.get("updatedAt"),
        "seo": post.get("seo"),
        "tags": post.get("tags") or [],
        "related_posts": [summarize(p) for p in related],
    }


# ---------- Room content ----------


@router_v1.post("/render", response_model=schemas.RenderedContent)
def render_content(body: schemas.RenderRequest):
    """
    Clean encoding debris from room content and render it to HTML.
    """
    return render_room_content(body.content)


app.include_router(router_v1)
