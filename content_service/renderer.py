# content_service/renderer.py
"""
HTML rendering for blog bodies and room descriptions.

Blog posts arrive as Portable Text blocks. Room ``post_content`` is
free text that may be plain prose, markdown or HTML, and often carries
encoding debris that is cleaned before rendering. All text taken from
blocks or markdown is escaped.
"""
import re
from html import escape, unescape
from typing import Any, Dict, List, Optional

from common.content_cleaner import clean_content

from .sanity import get_image_url

HEADING_STYLES = {"h1", "h2", "h3", "h4", "h5", "h6"}
LIST_TAGS = {"bullet": "ul", "number": "ol"}
DECORATOR_TAGS = {
    "strong": "strong",
    "em": "em",
    "code": "code",
    "underline": "u",
    "strike-through": "s",
}

_SAFE_HREF = re.compile(r"^(https?://|mailto:|/|#)", re.IGNORECASE)


def _href(value: str) -> str:
    value = (value or "").strip()
    return value if _SAFE_HREF.match(value) else "#"


def _link(href: str, text: str) -> str:
    return (
        f'<a href="{escape(_href(href), quote=True)}" target="_blank" '
        f'rel="noopener noreferrer">{text}</a>'
    )


# ---------- Portable Text ----------


def render_span(span: Dict[str, Any], mark_defs: Dict[str, Dict[str, Any]]) -> str:
    text = escape(span.get("text", "")).replace("\n", "<br>")
    for mark in span.get("marks") or []:
        tag = DECORATOR_TAGS.get(mark)
        if tag:
            text = f"<{tag}>{text}</{tag}>"
            continue
        definition = mark_defs.get(mark)
        if definition and definition.get("_type") == "link":
            text = _link(definition.get("href", ""), text)
    return text


def render_children(block: Dict[str, Any]) -> str:
    mark_defs = {d.get("_key"): d for d in block.get("markDefs") or []}
    return "".join(
        render_span(child, mark_defs)
        for child in block.get("children") or []
        if child.get("_type") == "span"
    )


def render_image(value: Dict[str, Any]) -> str:
    src = escape(get_image_url(value, 800, 600), quote=True)
    alt = escape(value.get("alt") or "Blog post image", quote=True)
    html = f'<figure><img src="{src}" alt="{alt}" width="800" height="600">'
    if value.get("caption"):
        html += f"<figcaption>{escape(value['caption'])}</figcaption>"
    return html + "</figure>"


def render_table(value: Dict[str, Any]) -> str:
    rows = []
    for row in value.get("rows") or []:
        cells = row.get("cells") or []
        # a row with any header cell renders entirely as header cells
        tag = "th" if any(c.get("isHeader") for c in cells) else "td"
        rows.append(
            "<tr>"
            + "".join(f"<{tag}>{escape(str(c.get('content', '')))}</{tag}>" for c in cells)
            + "</tr>"
        )
    return f"<table>{''.join(rows)}</table>"


def render_block(block: Dict[str, Any]) -> str:
    style = block.get("style") or "normal"
    content = render_children(block)
    if style in HEADING_STYLES:
        return f"<{style}>{content}</{style}>"
    if style == "blockquote":
        return f"<blockquote>{content}</blockquote>"
    return f"<p>{content}</p>"


def render_portable_text(blocks: Optional[List[Dict[str, Any]]]) -> str:
    """
    Render Portable Text blocks to HTML.

    Consecutive list items of the same kind are grouped into one
    ``<ul>``/``<ol>``. Unknown block types are skipped.
    """
    if not blocks:
        return ""

    parts: List[str] = []
    open_list: Optional[str] = None

    for block in blocks:
        block_type = block.get("_type")
        list_kind = block.get("listItem") if block_type == "block" else None
        list_tag = LIST_TAGS.get(list_kind) if list_kind else None

        if open_list and open_list != list_tag:
            parts.append(f"</{open_list}>")
            open_list = None

        if list_tag:
            if open_list is None:
                parts.append(f"<{list_tag}>")
                open_list = list_tag
            parts.append(f"<li>{render_children(block)}</li>")
        elif block_type == "block":
            parts.append(render_block(block))
        elif block_type == "image":
            parts.append(render_image(block))
        elif block_type == "table":
            parts.append(render_table(block))

    if open_list:
        parts.append(f"</{open_list}>")

    return "".join(parts)


# ---------- Room content ----------

_HTML_TAG = re.compile(r"<[^>]*>")
_HTML_STRUCTURE = [
    re.compile(r"<h[1-6][^>]*>.*?</h[1-6]>", re.DOTALL),
    re.compile(r"<ul[^>]*>.*?</ul>", re.DOTALL),
    re.compile(r"<ol[^>]*>.*?</ol>", re.DOTALL),
    re.compile(r"<p[^>]*>.*?</p>", re.DOTALL),
]
_MARKDOWN_PATTERNS = [
    re.compile(r"^#{1,6}\s+", re.MULTILINE),
    re.compile(r"^\s*[-*+]\s+", re.MULTILINE),
    re.compile(r"^\s*\d+\.\s+", re.MULTILINE),
    re.compile(r"\[.*?\]\(.*?\)"),
    re.compile(r"\*\*.*?\*\*"),
    re.compile(r"__.*?__"),
    re.compile(r"\*[^*\n]+\*"),
    re.compile(r"\b_[^_\n]+_\b"),
]

_UL_ITEM = re.compile(r"^\s*[-*+]\s+")
_OL_ITEM = re.compile(r"^\s*\d+\.\s+")
_HEADING = re.compile(r"^(#{1,6})\s+(.*)$")


def detect_content_type(content: str) -> str:
    """Classify text as 'html', 'markdown' or 'plain'."""
    text = content.strip()
    if _HTML_TAG.search(text) and any(p.search(text) for p in _HTML_STRUCTURE):
        return "html"
    if any(p.search(text) for p in _MARKDOWN_PATTERNS):
        return "markdown"
    return "plain"


def render_inline_markdown(text: str) -> str:
    """Escape a line and apply bold, italic, code and link markup."""
    text = escape(text, quote=False)
    text = re.sub(r"`([^`]+)`", r"<code>\1</code>", text)
    text = re.sub(r"\*\*(.+?)\*\*", r"<strong>\1</strong>", text)
    text = re.sub(r"__(.+?)__", r"<strong>\1</strong>", text)
    text = re.sub(r"\*(.+?)\*", r"<em>\1</em>", text)
    text = re.sub(r"\b_(.+?)_\b", r"<em>\1</em>", text)
    text = re.sub(
        r"\[([^\]]+)\]\(([^)]+)\)",
        lambda m: _link(unescape(m.group(2)), m.group(1)),
        text,
    )
    return text


def render_markdown(content: str) -> str:
    """
    Convert the markdown subset used in room descriptions to HTML.

    Supports ATX headings, bullet and numbered lists, paragraphs and
    inline emphasis, code and links.
    """
    parts: List[str] = []
    list_tag: Optional[str] = None
    paragraph: List[str] = []

    def flush_paragraph():
        if paragraph:
            parts.append(f"<p>{' '.join(paragraph)}</p>")
            paragraph.clear()

    def close_list():
        nonlocal list_tag
        if list_tag:
            parts.append(f"</{list_tag}>")
            list_tag = None

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line:
            flush_paragraph()
            close_list()
            continue

        heading = _HEADING.match(line)
        if heading:
            flush_paragraph()
            close_list()
            level = len(heading.group(1))
            parts.append(f"<h{level}>{render_inline_markdown(heading.group(2))}</h{level}>")
            continue

        if _UL_ITEM.match(line) or _OL_ITEM.match(line):
            flush_paragraph()
            tag = "ul" if _UL_ITEM.match(line) else "ol"
            if list_tag != tag:
                close_list()
                parts.append(f"<{tag}>")
                list_tag = tag
            item = _UL_ITEM.sub("", line, count=1) if tag == "ul" else _OL_ITEM.sub("", line, count=1)
            parts.append(f"<li>{render_inline_markdown(item)}</li>")
            continue

        close_list()
        paragraph.append(render_inline_markdown(line))

    flush_paragraph()
    close_list()
    return "".join(parts)


def render_plain(content: str) -> str:
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", content) if p.strip()]
    return "".join(
        f"<p>{escape(p, quote=False).replace(chr(10), '<br>')}</p>" for p in paragraphs
    )


def render_room_content(content: Optional[str]) -> Dict[str, str]:
    """
    Clean and render a room's description or post content.

    Returns
    -------
    dict
        ``content_type`` ('html', 'markdown', 'plain' or 'empty') and the
        rendered ``html``. HTML input is returned cleaned but otherwise
        unchanged, as it is authored by site editors.
    """
    cleaned = clean_content(content) if content else ""
    if not cleaned or not cleaned.strip():
        return {"content_type": "empty", "html": ""}

    content_type = detect_content_type(cleaned)
    if content_type == "html":
        html = cleaned
    elif content_type == "markdown":
        html = render_markdown(cleaned)
    else:
        html = render_plain(cleaned)
    return {"content_type": content_type, "html": html}
