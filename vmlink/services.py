"""Service functions bridging the Django app and the forwarding engine.

The engine runs on an asyncio loop while the ORM must stay out of it, so
settings are read into an in-memory snapshot before the loop starts and the
notices it raises are written back once the loop has finished.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict

from django.conf import settings

from .engine.config import EngineSettings, load_settings
from .engine.connection import TRANSPORT_ERRORS, ConnectionManager, NotConnectedError
from .engine.dom import LiveDocument
from .engine.session import ForwardingSession
from .engine.source import SETTING_KEYS, ConfigSource, MemoryConfigSource, settings_prefix
from .engine.types import Config
from .models import CompanionSetting, Notice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AugmentOutcome:
    """Result of running the engine against a captured page."""

    configured: bool
    connected: bool
    augmented: int
    status: str
    html: str


@dataclass(frozen=True)
class ForwardOutcome:
    """Result of asking the companion to fetch a torrent."""

    configured: bool
    connected: bool
    sent: bool
    reply: str
    error: bool


class DatabaseConfigSource(ConfigSource):
    """``ConfigSource`` backed by :class:`CompanionSetting` rows."""

    def __init__(self, site: str, user_id: str) -> None:
        super().__init__(settings_prefix(site, user_id))
        self.site = site
        self.user_id = user_id

    def _rows(self):
        return CompanionSetting.objects.filter(site=self.site, user_id=self.user_id)

    def get(self, key: str) -> str:
        row = self._rows().filter(key=key).first()
        return row.value if row else ''

    def set(self, key: str, value: str) -> None:
        CompanionSetting.objects.update_or_create(
            site=self.site,
            user_id=self.user_id,
            key=key,
            defaults={'value': value},
        )

    def notify(self, title: str, body: str) -> None:
        logger.info('Storing notice for %s: %s', self.prefix, title)
        Notice.objects.create(site=self.site, user_id=self.user_id, title=title, body=body)

    def values(self) -> Dict[str, str]:
        stored = dict(self._rows().values_list('key', 'value'))
        return {key: stored.get(key, '') for key in SETTING_KEYS}

    def snapshot(self) -> MemoryConfigSource:
        return MemoryConfigSource(self.prefix, self.values())


@functools.lru_cache(maxsize=1)
def get_engine_settings() -> EngineSettings:
    """Load the engine settings named by ``VMLINK_ENGINE_CONFIG`` once."""

    return load_settings(getattr(settings, 'VMLINK_ENGINE_CONFIG', None))


def augment_page(
    document: LiveDocument,
    source: DatabaseConfigSource,
    *,
    timeout: float = 5.0,
    engine_settings: EngineSettings | None = None,
    connect: Callable[..., Any] | None = None,
) -> AugmentOutcome:
    """Connect to the companion and augment ``document`` in place.

    The handshake is given ``timeout`` seconds; when it does not succeed the
    page is returned with the offline indicator and without forwarding
    links.
    """

    snapshot = source.snapshot()
    outcome = asyncio.run(
        _run_session(document, snapshot, timeout, engine_settings or get_engine_settings(), connect)
    )
    for title, body in snapshot.notifications:
        source.notify(title, body)
    return outcome


async def _run_session(
    document: LiveDocument,
    source: ConfigSource,
    timeout: float,
    engine_settings: EngineSettings,
    connect: Callable[..., Any] | None,
) -> AugmentOutcome:
    session = ForwardingSession(document, source, engine_settings, connect=connect)
    if not session.start():
        return AugmentOutcome(configured=False, connected=False, augmented=0, status='', html=document.render())
    try:
        connected = await session.manager.wait_for_handshake(timeout)
        # Render before closing: closing flips the indicator back offline.
        return AugmentOutcome(
            configured=True,
            connected=connected,
            augmented=session.augmenter.augmented_count,
            status=session.indicator.label,
            html=document.render(),
        )
    finally:
        await session.close()


def forward_download(
    source: DatabaseConfigSource,
    resource_id: str,
    *,
    timeout: float = 5.0,
    engine_settings: EngineSettings | None = None,
    connect: Callable[..., Any] | None = None,
) -> ForwardOutcome:
    """Ask the companion to download torrent ``resource_id`` itself.

    The handshake and the companion's answer are each given ``timeout``
    seconds. An unanswered request still counts as sent.
    """

    config = source.snapshot().read_config()
    if config is None:
        logger.warning('Cannot forward torrent %s: settings are incomplete for %r', resource_id, source.prefix)
        return ForwardOutcome(configured=False, connected=False, sent=False, reply='', error=False)
    return asyncio.run(
        _forward(config, resource_id, timeout, engine_settings or get_engine_settings(), connect)
    )


async def _forward(
    config: Config,
    resource_id: str,
    timeout: float,
    engine_settings: EngineSettings,
    connect: Callable[..., Any] | None,
) -> ForwardOutcome:
    manager = ConnectionManager(config, engine_settings, connect=connect)
    replies: asyncio.Queue = asyncio.Queue()
    manager.on_message(replies.put_nowait)
    manager.startup_connect()
    try:
        if not await manager.wait_for_handshake(timeout):
            return ForwardOutcome(configured=True, connected=False, sent=False, reply='', error=False)
        try:
            await manager.request_download(resource_id)
        except (NotConnectedError, *TRANSPORT_ERRORS) as exc:
            logger.warning('Could not forward torrent %s: %s', resource_id, exc)
            return ForwardOutcome(configured=True, connected=False, sent=False, reply='', error=False)
        try:
            message = await asyncio.wait_for(replies.get(), timeout)
        except asyncio.TimeoutError:
            logger.warning('No answer from the companion for torrent %s', resource_id)
            return ForwardOutcome(configured=True, connected=True, sent=True, reply='', error=False)
        return ForwardOutcome(
            configured=True,
            connected=True,
            sent=True,
            reply=message.kind,
            error=message.is_error,
        )
    finally:
        await manager.close()
