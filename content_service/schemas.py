from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PostSummary(BaseModel):
    """
    Blog post card data.

    ``seo_slug`` is the URL segment for the post page; ``image_url`` is a
    ready-to-use CDN URL (or the placeholder).
    """
    id: str
    title: str
    seo_slug: str
    excerpt: Optional[str] = None
    category: Optional[str] = None
    published_at: Optional[str] = None
    published: str = ""
    read_time: str
    image_url: str
    image_alt: Optional[str] = None


class FeaturedPosts(BaseModel):
    success: bool = True
    data: List[Dict[str, Any]]


class PostPage(BaseModel):
    post: PostSummary
    html: str
    author: Optional[str] = None
    updated_at: Optional[str] = None
    seo: Optional[Dict[str, Any]] = None
    tags: List[str] = []
    related_posts: List[PostSummary] = []


class RenderRequest(BaseModel):
    content: Optional[str] = Field(default=None, max_length=200_000)


class RenderedContent(BaseModel):
    content_type: str
    html: str
