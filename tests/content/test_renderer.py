import os
import sys

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from content_service.renderer import (
    detect_content_type,
    render_markdown,
    render_plain,
    render_portable_text,
    render_room_content,
)


def span(text, marks=None):
    return {"_type": "span", "text": text, "marks": marks or []}


def test_portable_text_headings_marks_and_links():
    blocks = [
        {"_type": "block", "style": "h2", "children": [span("Intro")]},
        {
            "_type": "block",
            "style": "normal",
            "markDefs": [{"_key": "lnk", "_type": "link", "href": "https://example.com"}],
            "children": [
                span("Play "),
                span("together", ["strong"]),
                span(" at "),
                span("our site", ["lnk"]),
            ],
        },
    ]
    assert render_portable_text(blocks) == (
        "<h2>Intro</h2>"
        "<p>Play <strong>together</strong> at "
        '<a href="https://example.com" target="_blank" rel="noopener noreferrer">our site</a></p>'
    )


def test_portable_text_groups_list_items():
    blocks = [
        {"_type": "block", "listItem": "bullet", "children": [span("One")]},
        {"_type": "block", "listItem": "bullet", "children": [span("Two")]},
        {"_type": "block", "listItem": "number", "children": [span("Three")]},
        {"_type": "block", "style": "normal", "children": [span("Done")]},
    ]
    assert render_portable_text(blocks) == (
        "<ul><li>One</li><li>Two</li></ul><ol><li>Three</li></ol><p>Done</p>"
    )


def test_portable_text_escapes_text_and_unsafe_links():
    blocks = [
        {
            "_type": "block",
            "markDefs": [{"_key": "bad", "_type": "link", "href": "javascript:alert(1)"}],
            "children": [span("<script>", ["bad"])],
        }
    ]
    html = render_portable_text(blocks)
    assert "&lt;script&gt;" in html
    assert 'href="#"' in html


def test_portable_text_tables_and_images():
    blocks = [
        {
            "_type": "table",
            "rows": [
                {"cells": [{"content": "Room", "isHeader": True}, {"content": "Rating", "isHeader": True}]},
                {"cells": [{"content": "Vault"}, {"content": 4.5}]},
            ],
        },
        {"_type": "image", "alt": "Lobby", "caption": "Front desk"},
        {"_type": "unknown"},
    ]
    html = render_portable_text(blocks)
    assert html.startswith(
        "<table><tr><th>Room</th><th>Rating</th></tr><tr><td>Vault</td><td>4.5</td></tr></table>"
    )
    assert '<img src="/placeholder.svg" alt="Lobby"' in html
    assert html.endswith("<figcaption>Front desk</figcaption></figure>")


def test_render_portable_text_empty():
    assert render_portable_text(None) == ""
    assert render_portable_text([]) == ""


def test_detect_content_type():
    assert detect_content_type("<h2>Rules</h2><p>No phones.</p>") == "html"
    assert detect_content_type("## Rules\n- No phones") == "markdown"
    assert detect_content_type("Just a friendly escape room.") == "plain"
    # a lone inline tag without block structure is not treated as html
    assert detect_content_type("Call <b>now</b>") == "plain"


def test_render_markdown_lists_and_links():
    html = render_markdown("Book now:\n1. Pick a room\n2. [Reserve](https://example.com/?a=1&b=2)")
    assert html == (
        "<p>Book now:</p>"
        "<ol><li>Pick a room</li>"
        '<li><a href="https://example.com/?a=1&amp;b=2" target="_blank" '
        'rel="noopener noreferrer">Reserve</a></li></ol>'
    )


def test_render_markdown_escapes_raw_html():
    html = render_markdown("**Bold** <img src=x onerror=alert(1)>")
    assert html.startswith("<p><strong>Bold</strong> &lt;img")


def test_render_plain_paragraphs():
    assert render_plain("Line one\nLine two\n\nSecond para") == (
        "<p>Line one<br>Line two</p><p>Second para</p>"
    )


def test_render_room_content_keeps_cleaned_html():
    result = render_room_content("<p>Donâ€™t miss it</p>")
    assert result == {"content_type": "html", "html": "<p>Don't miss it</p>"}
