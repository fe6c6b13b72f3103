"""Turn a model answer into Messenger-safe plain text plus a citation list.

Messenger renders neither HTML nor markdown reliably, so every link becomes
a short marker in the body and the URLs are collected into a separate
citation block. Each pass below is a pure function; ``normalize`` runs them
in a fixed order because later passes expect anchors to be gone and markers
to be in place.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from relay.core.markers import MARKER_PATTERN, marker_for


DEFAULT_LABEL = "Source"
BULLET_INDENT = "\u2003\u2003"  # two EM spaces
BULLET = f"{BULLET_INDENT}• "

ANCHOR_RE = re.compile(
    r"<a\b[^>]*?\bhref\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^\s\"'>]+))[^>]*>(.*?)</a\s*>",
    re.IGNORECASE | re.DOTALL,
)
MARKDOWN_LINK_RE = re.compile(r"\[([^\]\n]*)\]\((https?://[^\s)]+)\)")
BARE_URL_RE = re.compile(r"https?://[^\s<>\"'()\[\]{}⁰¹²³⁴⁵⁶⁷⁸⁹]+", re.IGNORECASE)
URL_TRAILING_PUNCTUATION = ".,;:!?"

LINE_BREAK_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
PARAGRAPH_END_RE = re.compile(r"</p\s*>", re.IGNORECASE)
TAG_RE = re.compile(r"</?[A-Za-z][^>]*>")
# Tags match first so URLs inside attributes are left for strip_tags.
TAG_OR_URL_RE = re.compile(f"({TAG_RE.pattern})|{BARE_URL_RE.pattern}", re.IGNORECASE)

BULLET_RE = re.compile(r"^[*-][ \t]+", re.MULTILINE)

BOLD_STAR_RE = re.compile(r"\*\*(?=\S)(.+?)(?<=\S)\*\*")
BOLD_UNDERSCORE_RE = re.compile(r"(?<!\w)__(?=\S)(.+?)(?<=\S)__(?!\w)")
ITALIC_STAR_RE = re.compile(r"(?<![*\w])\*(?=[^\s*])([^*\n]+?)(?<=[^\s*])\*(?![*\w])")
ITALIC_UNDERSCORE_RE = re.compile(r"(?<![\w_])_(?=[^\s_])([^_\n]+?)(?<=[^\s_])_(?![\w_])")

TRAILING_SPACE_RE = re.compile(r"[ \t]+\n")
BLANK_LINES_RE = re.compile(r"\n{3,}")

CITATION_GROUP_RE = re.compile(
    r"\(\s*(" + MARKER_PATTERN + r"(?:\s*[;,]\s*" + MARKER_PATTERN + r")*)\s*\)"
)
GROUP_SEPARATOR_RE = re.compile(r"\s*[;,]\s*")


@dataclass(frozen=True)
class Citation:
    marker: str
    url: str
    label: str = DEFAULT_LABEL


@dataclass(frozen=True)
class NormalizedAnswer:
    body_text: str
    citations: Tuple[Citation, ...] = ()

    @property
    def citation_block(self) -> str:
        return render_citation_block(self.citations)


@dataclass
class CitationRegistry:
    """Hands out markers in first-seen order, one per distinct URL."""

    citations: List[Citation] = field(default_factory=list)
    _markers: Dict[str, str] = field(default_factory=dict, repr=False)

    def register(self, url: str, label: Optional[str] = None) -> str:
        existing = self._markers.get(url)
        if existing is not None:
            return existing
        marker = marker_for(len(self.citations))
        self._markers[url] = marker
        self.citations.append(Citation(marker=marker, url=url, label=(label or "").strip() or DEFAULT_LABEL))
        return marker


def _label_text(fragment: str) -> str:
    text = TAG_RE.sub("", fragment)
    return " ".join(html.unescape(text).split())


def extract_anchor_citations(text: str, registry: CitationRegistry) -> str:
    """Replace ``<a href>`` anchors and markdown links with citation markers."""

    def _anchor(match: re.Match) -> str:
        href = match.group(1) or match.group(2) or match.group(3) or ""
        url = html.unescape(href).strip()
        if not url:
            return _label_text(match.group(4))
        return registry.register(url, _label_text(match.group(4)))

    def _markdown(match: re.Match) -> str:
        return registry.register(match.group(2), match.group(1))

    text = ANCHOR_RE.sub(_anchor, text)
    return MARKDOWN_LINK_RE.sub(_markdown, text)


def extract_bare_urls(text: str, registry: CitationRegistry) -> str:
    def _replace(match: re.Match) -> str:
        url = match.group(0)
        if match.group(1):
            return url
        stripped = url.rstrip(URL_TRAILING_PUNCTUATION)
        trailing = url[len(stripped):]
        if "://" not in stripped or stripped.endswith("://"):
            return url
        return registry.register(stripped) + trailing

    return TAG_OR_URL_RE.sub(_replace, text)


def strip_tags(text: str) -> str:
    text = LINE_BREAK_RE.sub("\n", text)
    text = PARAGRAPH_END_RE.sub("\n\n", text)
    return TAG_RE.sub("", text)


def normalize_bullets(text: str) -> str:
    return BULLET_RE.sub(BULLET, text)


def strip_emphasis(text: str) -> str:
    """Drop markdown bold/italic wrappers, keeping the wrapped text.

    Messenger shows the raw asterisks and underscores, so no emphasis is
    carried over. Underscores inside words (``snake_case``) are left alone.
    """
    text = BOLD_STAR_RE.sub(r"\1", text)
    text = BOLD_UNDERSCORE_RE.sub(r"\1", text)
    text = ITALIC_STAR_RE.sub(r"\1", text)
    return ITALIC_UNDERSCORE_RE.sub(r"\1", text)


def collapse_whitespace(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = TRAILING_SPACE_RE.sub("\n", text)
    text = BLANK_LINES_RE.sub("\n\n", text)
    return text.strip()


def tidy_citation_groups(text: str) -> str:
    """``(¹; ²)`` -> ``¹ ²``: parentheses around marker-only groups are noise."""
    return CITATION_GROUP_RE.sub(lambda m: GROUP_SEPARATOR_RE.sub(" ", m.group(1)), text)


def render_citation_block(citations) -> str:
    entries = [f"{c.marker} {c.label}\n{c.url}" for c in citations]
    return "\n\n".join(entries).strip()


def normalize(raw: Optional[str]) -> NormalizedAnswer:
    if not raw:
        return NormalizedAnswer(body_text=raw or "")

    registry = CitationRegistry()
    text = extract_anchor_citations(raw, registry)
    text = extract_bare_urls(text, registry)
    text = strip_tags(text)
    text = normalize_bullets(text)
    text = strip_emphasis(text)
    text = collapse_whitespace(text)
    text = tidy_citation_groups(text)
    return NormalizedAnswer(body_text=text, citations=tuple(registry.citations))
