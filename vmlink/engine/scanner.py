"""Page classification and link scanning."""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional
from urllib.parse import urljoin

from bs4 import PageElement, Tag  # type: ignore

from . import matcher
from .augmenter import LinkAugmenter
from .dom import LiveDocument, MutationRecord, Subscription
from .types import CandidateLink, PageKind

logger = logging.getLogger(__name__)

# Checked in order; the first pattern found in the page URL wins.
_PAGE_PATTERNS = (
    (PageKind.SETTINGS, re.compile(r"user\.php\?action=edit&userid=")),
    (PageKind.TOP10, re.compile(r"top10\.php")),
    (PageKind.TORRENTS, re.compile(r"torrents\.php$")),
    (PageKind.USER_TORRENTS, re.compile(r"torrents\.php\?.*&userid")),
)

# Containers whose rows are replaced by ajax and must be watched.
OBSERVED_CONTAINERS: Dict[PageKind, str] = {
    PageKind.TORRENTS: "#torrent_table > tbody",
    PageKind.USER_TORRENTS: ".torrent_table > tbody",
}

_ANCHOR_TAGS = ["a", "area"]


def classify_page(url: str) -> PageKind:
    """Return the kind of tracker page ``url`` points at."""

    for kind, pattern in _PAGE_PATTERNS:
        if pattern.search(url or ""):
            return kind
    return PageKind.OTHER


class PageScanner:
    """Routes the page's anchors through the matcher into the augmenter."""

    def __init__(self, document: LiveDocument, augmenter: LinkAugmenter, kind: PageKind | None = None) -> None:
        self.document = document
        self.augmenter = augmenter
        self.kind = kind if kind is not None else classify_page(document.url)
        self.subscription: Optional[Subscription] = None
        self.started = False

    def start(self) -> int:
        """Scan the current anchors once and watch the page's container.

        Returns the number of auxiliary links added by the initial pass.
        Calling it again is a no-op.
        """

        if self.started:
            return 0
        self.started = True

        added = self._route_all(self._candidates(list(self.document.links)))
        logger.info("Initial scan of %s page added %d forwarding link(s)", self.kind.value, added)

        selector = OBSERVED_CONTAINERS.get(self.kind)
        if selector is None:
            return added
        container = self.document.select_one(selector)
        if container is None:
            logger.warning("Container %r not found, live updates will not be augmented", selector)
            return added
        self.subscription = self.document.observe(container, self.on_batch)
        return added

    def stop(self) -> None:
        if self.subscription is not None:
            self.subscription.disconnect()
            self.subscription = None

    def on_batch(self, records: List[MutationRecord]) -> int:
        """Handle one mutation batch, looking only at the inserted subtrees."""

        anchors: List[Tag] = []
        for record in records:
            for node in record.added_nodes:
                anchor = first_anchor(node)
                if anchor is not None:
                    anchors.append(anchor)
        added = self._route_all(self._candidates(anchors))
        if added:
            logger.debug("Mutation batch added %d forwarding link(s)", added)
        return added

    def _candidates(self, anchors: Iterable[Tag]) -> Iterable[CandidateLink]:
        for anchor in anchors:
            href = anchor.get("href")
            if not href:
                continue
            yield CandidateLink(element=anchor, url=urljoin(self.document.url, str(href)))

    def _route_all(self, candidates: Iterable[CandidateLink]) -> int:
        added = 0
        for candidate in candidates:
            result = matcher.match(candidate.url)
            if result is None:
                continue
            if self.augmenter.augment(candidate.element, result.resource_id) is not None:
                added += 1
        return added


def first_anchor(node: PageElement) -> Optional[Tag]:
    """Return ``node`` when it is an anchor, else its first anchor descendant."""

    if not isinstance(node, Tag):
        return None
    if node.name in _ANCHOR_TAGS and node.get("href"):
        return node
    return node.find(_ANCHOR_TAGS, href=True)
