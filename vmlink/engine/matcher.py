"""Recognition of torrent download links."""

from __future__ import annotations

import re
from typing import Optional

from .types import MatchResult

# The authkey token is captured atomically (lookahead + backreference) so the
# pass-phrase has to repeat the whole token, not a prefix of it. Markers are
# case-insensitive, the repeated token is compared case-sensitively.
DOWNLOAD_LINK = re.compile(
    r"torrents\.php\?action=download"
    r".*?(?<![a-z0-9_])id=(\d+)"
    r".*?authkey=(?=([a-z0-9]+))\2"
    r".*?torrent_pass=(?-i:\2)(?![a-z0-9&])",
    flags=re.IGNORECASE,
)


def match(url: str) -> Optional[MatchResult]:
    """Extract the torrent id and pass-phrase from a download URL.

    Returns ``None`` for anything that is not a well-formed download link,
    including links whose ``authkey`` and ``torrent_pass`` differ.
    """

    if not url:
        return None
    found = DOWNLOAD_LINK.search(url)
    if found is None:
        return None
    return MatchResult(resource_id=found.group(1), secret=found.group(2))


def is_candidate(url: str) -> bool:
    return match(url) is not None
