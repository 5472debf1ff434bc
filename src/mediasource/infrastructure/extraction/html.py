"""CSS-selector helpers over BeautifulSoup with fallback chains.

Each helper takes a primary selector plus optional fallbacks; the first
selector yielding a match wins, which keeps adapters working through minor
layout changes on the scraped sites.
"""

from __future__ import annotations

from bs4 import BeautifulSoup, Tag

from mediasource.infrastructure.common.urls import to_absolute


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def select_items(
    root: BeautifulSoup | Tag,
    selector: str,
    *fallback_selectors: str,
) -> list[Tag]:
    for sel in (selector, *fallback_selectors):
        items = root.select(sel)
        if items:
            return items
    return []


def extract_text(
    element: Tag,
    selector: str,
    *fallback_selectors: str,
    default: str = "",
) -> str:
    """Stripped text of the first matching child (``""`` selector = *element*)."""
    if selector == "":
        return element.get_text(strip=True) or default

    for sel in (selector, *fallback_selectors):
        match = element.select_one(sel)
        if match:
            text = match.get_text(strip=True)
            if text:
                return text
    return default


def extract_attr(
    element: Tag,
    selector: str,
    attr: str,
    *fallback_selectors: str,
    default: str = "",
) -> str:
    if selector == "":
        value = element.get(attr)
        return str(value) if value else default

    for sel in (selector, *fallback_selectors):
        match = element.select_one(sel)
        if match:
            value = match.get(attr)
            if value:
                return str(value)
    return default


def find_video_source(html: str, base_uri: str) -> str | None:
    """Absolute URL of the first ``<video src>`` or ``<video><source src>``."""
    soup = parse_html(html)
    for tag in select_items(soup, "video[src]", "video source[src]"):
        link = to_absolute(str(tag.get("src", "")), base_uri)
        if link:
            return link
    return None


def find_iframe_sources(html: str, base_uri: str) -> list[str]:
    """Absolute URLs of every ``<iframe src>`` in document order."""
    soup = parse_html(html)
    links: list[str] = []
    for tag in soup.select("iframe[src]"):
        link = to_absolute(str(tag.get("src", "")), base_uri)
        if link and link not in links:
            links.append(link)
    return links
