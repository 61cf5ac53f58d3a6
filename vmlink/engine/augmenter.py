"""Insertion of forwarding links next to matched download anchors."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from bs4 import Tag  # type: ignore

from .config import EngineSettings
from .dom import LiveDocument
from .types import Config

logger = logging.getLogger(__name__)


class LinkAugmenter:
    """Builds one auxiliary element per download anchor.

    The registry is keyed by anchor identity, so two anchors pointing at the
    same torrent are both augmented while the same anchor seen twice (initial
    scan, then a mutation batch) is left alone.
    """

    def __init__(
        self,
        document: LiveDocument,
        config: Config,
        settings: EngineSettings,
        *,
        condensed: bool = False,
    ) -> None:
        self.document = document
        self.config = config
        self.settings = settings
        label = settings.label("link")
        self.label = f"[{label}]" if condensed else label
        self._augmented: Dict[int, Tuple[Tag, Tag]] = {}

    @property
    def augmented_count(self) -> int:
        return len(self._augmented)

    def is_augmented(self, anchor: Tag) -> bool:
        return id(anchor) in self._augmented

    def auxiliary_for(self, anchor: Tag) -> Optional[Tag]:
        entry = self._augmented.get(id(anchor))
        return entry[1] if entry else None

    def augment(self, anchor: Tag, resource_id: str) -> Optional[Tag]:
        """Insert the forwarding link before ``anchor``.

        Returns the auxiliary element, or ``None`` when ``anchor`` already
        has one or is no longer attached to the page.
        """

        if self.is_augmented(anchor):
            logger.debug("Anchor for torrent %s already augmented", resource_id)
            return None
        if anchor.parent is None:
            logger.debug("Skipping detached anchor for torrent %s", resource_id)
            return None

        auxiliary = self._build(resource_id)
        # Keep a reference to the anchor so its id() cannot be reused.
        self._augmented[id(anchor)] = (anchor, auxiliary)
        self.document.insert_before(anchor, auxiliary)
        logger.debug("Added forwarding link for torrent %s", resource_id)
        return auxiliary

    def _build(self, resource_id: str) -> Tag:
        link = self.document.new_tag(
            "a",
            href=self.config.forward_url(resource_id),
            target="_blank",
            title=self.settings.label("link_tooltip"),
        )
        link.string = self.label
        wrapper = self.document.new_tag(self.settings.get("element_tag", "varroa"))
        wrapper.append(link)
        wrapper.append(self.document.new_string(self.settings.get("divider", " | ")))
        return wrapper
