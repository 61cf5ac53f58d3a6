"""Navigation-bar indicator for the companion connection."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from bs4 import Tag  # type: ignore

from .config import EngineSettings
from .dom import LiveDocument
from .types import ConnectionState

logger = logging.getLogger(__name__)


class StatusIndicator:
    """Single ``<li>`` showing whether the companion answered the handshake.

    The element is created on the first update and reused afterwards;
    ``click()`` asks for a new connection attempt whatever the state.
    """

    def __init__(
        self,
        document: LiveDocument,
        settings: EngineSettings,
        on_click: Callable[[], None],
    ) -> None:
        self.document = document
        self.settings = settings
        self.on_click = on_click
        self.element: Optional[Tag] = None
        self.label = ""

    def update(self, state: ConnectionState) -> None:
        healthy = state is ConnectionState.CONNECTED
        label = self.settings.label("status_ok" if healthy else "status_ko")
        link = self.document.new_tag("a")
        link.string = label

        if self.element is None:
            self.element = self.document.new_tag("li", id=self.settings.get("status_element_id", "nav_varroa"))
            self.element.append(link)
            container_id = self.settings.get("status_container_id", "userinfo_stats")
            container = self.document.get_element_by_id(container_id)
            if container is None:
                logger.warning("Status container #%s not found, indicator is not displayed", container_id)
            else:
                self.document.append_child(container, self.element)
        elif self.element.parent is None:
            self.element.clear()
            self.element.append(link)
        else:
            self.document.replace_child(self.element, link, self.element.contents[0])
        self.label = label

    def click(self) -> None:
        logger.info("Status indicator clicked, retrying the companion connection")
        self.on_click()
