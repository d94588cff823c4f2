"""
Parsers for the gogoanime HTML dialect.

The markup is owned by a third party and changes without notice, so every
selector lives here and nothing else in the package touches raw HTML.
"""
from __future__ import annotations

from typing import List, Optional

from bs4 import BeautifulSoup

from .models import SearchResult

SEARCH_TITLE_SELECTOR = "p.name > a"
SEARCH_IMAGE_SELECTOR = "div.img img"
CATEGORY_PREFIX = "/category/"


def normalize_embed_url(url: str) -> str:
    """Give protocol-relative embed URLs an explicit https scheme."""
    url = url.strip()
    if url.startswith("//"):
        return "https:" + url
    return url


def parse_search_results(html: str, base_url: str) -> List[SearchResult]:
    """Pair each title anchor of a search page with the cover image of its row.

    Rows are ``<li>`` items holding both the anchor and the image. Markup
    without row wrappers falls back to pairing by position among all
    anchors, so a skipped non-category anchor never shifts the images of
    the rows after it.
    """
    soup = BeautifulSoup(html, "html.parser")
    base = base_url.rstrip("/")
    images = soup.select(SEARCH_IMAGE_SELECTOR)

    results: List[SearchResult] = []
    for position, anchor in enumerate(soup.select(SEARCH_TITLE_SELECTOR)):
        href = anchor.get("href") or ""
        if not href.startswith(CATEGORY_PREFIX):
            continue
        slug = href[len(CATEGORY_PREFIX):].strip("/")
        if not slug:
            continue
        title = (anchor.get("title") or "").strip() or slug
        results.append(
            SearchResult(
                slug=slug,
                display_title=title,
                url=f"{base}{CATEGORY_PREFIX}{slug}",
                image_url=_row_image(anchor, images, position),
            )
        )
    return results


def _row_image(anchor, images, position: int) -> Optional[str]:
    row = anchor.find_parent("li")
    if row is not None:
        image = row.select_one(SEARCH_IMAGE_SELECTOR)
    else:
        image = images[position] if position < len(images) else None
    if image is None:
        return None
    return image.get("src") or None


def parse_embed_servers(html: str) -> List[str]:
    soup = BeautifulSoup(html, "html.parser")
    servers: List[str] = []
    for node in soup.select("[data-video]"):
        value = node.get("data-video") or ""
        if value.strip():
            servers.append(normalize_embed_url(value))
    return servers


def parse_iframe_src(html: str) -> Optional[str]:
    soup = BeautifulSoup(html, "html.parser")
    iframe = soup.find("iframe", src=True)
    if iframe is None:
        return None
    src = iframe["src"].strip()
    if not src:
        return None
    return normalize_embed_url(src)
