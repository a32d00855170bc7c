import re

from bs4 import BeautifulSoup, Comment, Tag

# Matches `display:none` or `visibility:hidden` in inline style attributes
_HIDDEN_STYLE_RE = re.compile(
    r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE
)

# Tags whose entire subtree should be removed (non-content / binary / scripting)
_REMOVE_TAGS = {
    "script",
    "style",
    "noscript",
    "link",
    "meta",
    "base",
    # Template elements may contain raw JS template markup
    "template",
}

# Vector graphics keep their accessible name (title/desc, aria-*) but drop
# their drawing instructions, which are pure coordinate noise.
_SVG_DRAWING_TAGS = {
    "path",
    "g",
    "defs",
    "use",
    "circle",
    "rect",
    "line",
    "polygon",
    "polyline",
    "ellipse",
    "clippath",
    "lineargradient",
    "radialgradient",
    "stop",
    "mask",
    "symbol",
}

# Attributes that carry accessibility semantics and survive sanitisation.
# ``aria-*`` attributes are matched separately.
_KEEP_ATTRS = {
    "alt",
    "role",
    "lang",
    "dir",
    "title",
    "for",
    "id",
    "name",
    "tabindex",
    "href",
    "src",
    "type",
    "scope",
    "headers",
    "colspan",
    "rowspan",
    "label",
    "placeholder",
    "required",
    "disabled",
    "autocomplete",
    "accesskey",
    "hidden",
    "controls",
    "autoplay",
    "kind",
    "srclang",
    "summary",
}

_ARIA_ATTR = re.compile(r"^aria-[a-z]+$", re.IGNORECASE)

_WHITESPACE_RE = re.compile(r"\s+")


def _is_hidden(tag: Tag) -> bool:
    inline_style = tag.get("style", "")
    return bool(inline_style and _HIDDEN_STYLE_RE.search(inline_style))


def collapse_whitespace(markup: str) -> str:
    """Collapse runs of whitespace into single spaces and trim the result."""
    return _WHITESPACE_RE.sub(" ", markup).strip()


def sanitize(html: str) -> BeautifulSoup:
    """Remove non-content nodes from *html* and return the cleaned BeautifulSoup tree.

    Headings, landmarks, form controls, and every attribute that assistive
    technology reads (``alt``, ``role``, ``aria-*``, ``lang``, ...) are kept.
    Scripts, styles, comments, inline-hidden subtrees, and presentation-only
    attributes (``class``, ``style``, ``data-*``, event handlers) are dropped.
    """
    soup = BeautifulSoup(html, "lxml")

    for tag in soup.find_all(_REMOVE_TAGS):
        tag.decompose()

    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()

    for svg in soup.find_all("svg"):
        for drawing in svg.find_all(_SVG_DRAWING_TAGS):
            drawing.decompose()

    for tag in soup.find_all(True):
        if not isinstance(tag, Tag) or tag.decomposed:
            continue
        if _is_hidden(tag):
            tag.decompose()
            continue
        junk = [
            attr
            for attr in tag.attrs
            if attr.lower() not in _KEEP_ATTRS and not _ARIA_ATTR.match(attr)
        ]
        for attr in junk:
            del tag[attr]

    return soup


def sanitize_markup(html: str) -> str:
    """Return the sanitised document as a whitespace-collapsed markup string."""
    soup = sanitize(html)
    root = soup.find("html") or soup
    return collapse_whitespace(str(root))
