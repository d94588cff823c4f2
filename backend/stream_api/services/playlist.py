"""HLS playlist rewriting so every referenced URL routes through the proxy."""
from __future__ import annotations

import re
from typing import Callable
from urllib.parse import urljoin

HLS_MARKER = "#EXTM3U"
_URI_ATTRIBUTE = re.compile(r'URI="([^"]+)"')


def playlist_base(playlist_url: str) -> str:
    """Return everything up to and including the last slash of the playlist URL."""

    return playlist_url[: playlist_url.rfind("/") + 1]


def resolve_url(url: str, base_url: str) -> str:
    if url.startswith(("http://", "https://")):
        return url
    try:
        return urljoin(base_url, url)
    except ValueError:
        return base_url + url


def looks_like_playlist(text: str) -> bool:
    return text.lstrip().startswith(HLS_MARKER)


def rewrite_playlist(content: str, playlist_url: str, to_proxy_url: Callable[[str], str]) -> str:
    """Rewrite segment, sub-playlist and ``URI="..."`` references to proxy URLs.

    Blank lines and tags without a URI attribute are kept verbatim. Relative
    references are resolved against the directory of ``playlist_url`` first,
    so the proxy always receives an absolute target.
    """
    base_url = playlist_base(playlist_url)

    def _proxy_uri(match: re.Match) -> str:
        return f'URI="{to_proxy_url(resolve_url(match.group(1), base_url))}"'

    lines = []
    for line in content.split("\n"):
        stripped = line.strip()
        if not stripped:
            lines.append(line)
        elif stripped.startswith("#"):
            if 'URI="' in stripped:
                lines.append(_URI_ATTRIBUTE.sub(_proxy_uri, line))
            else:
                lines.append(line)
        else:
            lines.append(to_proxy_url(resolve_url(stripped, base_url)))
    return "\n".join(lines)
