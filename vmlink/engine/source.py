"""Access to the per-site, per-user companion settings."""

from __future__ import annotations

import abc
import logging
import re
from typing import Dict, List, Optional, Tuple

from .dom import LiveDocument
from .types import Config

logger = logging.getLogger(__name__)

SETTING_KEYS = ("token", "host", "port")

_USER_LINK = re.compile(r"user\.php\?id=(\d+)")


def settings_prefix(site: str, user_id: str) -> str:
    """Namespace used so one browser profile can hold several trackers/users."""

    return f"{site}_{user_id}_"


def detect_user_id(document: LiveDocument) -> Optional[str]:
    """Return the logged-in tracker user id from the page header, if any."""

    element = document.soup.find(class_="username", href=True)
    if element is None:
        return None
    found = _USER_LINK.search(str(element["href"]))
    return found.group(1) if found else None


class ConfigSource(abc.ABC):
    """Key/value settings store namespaced by ``prefix``."""

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix

    @abc.abstractmethod
    def get(self, key: str) -> str:
        """Return the stored value, or an empty string."""

    @abc.abstractmethod
    def set(self, key: str, value: str) -> None:
        """Persist ``value`` under ``key``."""

    @abc.abstractmethod
    def notify(self, title: str, body: str) -> None:
        """Surface a message to the user."""

    def read_config(self) -> Optional[Config]:
        return Config.from_values(self.get("token"), self.get("host"), self.get("port"))


class MemoryConfigSource(ConfigSource):
    """In-process store, used by the engine tests and one-shot runs."""

    def __init__(self, prefix: str = "", values: Dict[str, str] | None = None) -> None:
        super().__init__(prefix)
        self.values: Dict[str, str] = {}
        for key, value in (values or {}).items():
            self.set(key, value)
        self.notifications: List[Tuple[str, str]] = []

    def get(self, key: str) -> str:
        return self.values.get(self.prefix + key, "")

    def set(self, key: str, value: str) -> None:
        self.values[self.prefix + key] = value

    def notify(self, title: str, body: str) -> None:
        logger.warning("%s %s", title, body.replace("\n", " "))
        self.notifications.append((title, body))
