"""``Link`` header pagination (RFC 8288), as used by GitLab.

A paginated response carries a header such as::

    Link: <https://gitlab.example.com/api/v4/projects?page=1>; rel="prev",
          <https://gitlab.example.com/api/v4/projects?page=3>; rel="next"

:func:`parse_link_header` turns that into ``{"prev": ..., "next": ...}`` and
:func:`next_page_url` picks the ``next`` target off a response.
"""

from __future__ import annotations

import re
from typing import Optional

from keyway.transport import TransportResponse

_LINK_RE = re.compile(r'<([^>]*)>\s*;\s*rel="([^"]*)"')


def parse_link_header(value: str) -> dict[str, str]:
    """Map each ``rel`` in a ``Link`` header to its URL.

    Entries that do not match ``<url>; rel="name"`` are ignored.  A ``rel``
    holding several space-separated names registers the URL under each.
    """
    links: dict[str, str] = {}
    for url, rels in _LINK_RE.findall(value):
        for rel in rels.split():
            links[rel] = url
    return links


def next_page_url(response: TransportResponse) -> Optional[str]:
    """Return the ``rel="next"`` URL of *response*, or ``None`` on the last page."""
    header = response.header("Link")
    if not header:
        return None
    return parse_link_header(header).get("next")
