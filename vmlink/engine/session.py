"""Wiring of the engine for one page load."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .augmenter import LinkAugmenter
from .config import EngineSettings, load_settings
from .connection import ConnectionManager
from .dom import LiveDocument
from .scanner import PageScanner, classify_page
from .source import ConfigSource
from .status import StatusIndicator
from .types import Config, ConnectionState, PageKind

logger = logging.getLogger(__name__)


class ForwardingSession:
    """Reads the settings, connects to the companion and augments the page.

    Links are only added once the companion acknowledged the handshake, so
    the page never shows forwarding links that point nowhere.
    """

    def __init__(
        self,
        document: LiveDocument,
        source: ConfigSource,
        settings: EngineSettings | None = None,
        *,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self.document = document
        self.source = source
        self.settings = settings or load_settings(None)
        self.connect = connect
        self.kind = classify_page(document.url)
        self.config: Optional[Config] = None
        self.manager: Optional[ConnectionManager] = None
        self.scanner: Optional[PageScanner] = None
        self.indicator: Optional[StatusIndicator] = None

    def start(self) -> bool:
        """Start the session; must run inside the event loop.

        Returns ``False`` when the settings are incomplete, in which case
        nothing is connected and the page is left untouched.
        """

        self.config = self.source.read_config()
        if self.config is None:
            logger.warning("Companion settings are incomplete for %r", self.source.prefix)
            if self.kind is not PageKind.SETTINGS:
                self.source.notify(
                    self.settings.label("notify_title"),
                    self.settings.label("notify_missing_config"),
                )
            return False

        augmenter = LinkAugmenter(
            self.document,
            self.config,
            self.settings,
            condensed=self.kind is PageKind.TOP10,
        )
        self.scanner = PageScanner(self.document, augmenter, self.kind)
        self.manager = ConnectionManager(self.config, self.settings, connect=self.connect)
        self.indicator = StatusIndicator(self.document, self.settings, self.manager.manual_retry)
        self.indicator.update(self.manager.state)
        self.manager.subscribe(self._on_state)
        self.manager.startup_connect()
        return True

    @property
    def augmenter(self) -> Optional[LinkAugmenter]:
        return self.scanner.augmenter if self.scanner else None

    def _on_state(self, state: ConnectionState) -> None:
        if self.indicator is not None:
            self.indicator.update(state)
        if state is ConnectionState.CONNECTED and self.scanner is not None:
            self.scanner.start()

    async def close(self) -> None:
        if self.scanner is not None:
            self.scanner.stop()
        if self.manager is not None:
            await self.manager.close()
