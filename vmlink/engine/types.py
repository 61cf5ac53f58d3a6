"""Typed data structures shared by the forwarding engine."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from bs4 import Tag  # type: ignore

RESPONSE_INFO = 0
RESPONSE_ERROR = 1


@dataclass(frozen=True)
class Config:
    """Companion service coordinates for one page load."""

    token: str
    host: str
    port: str

    @classmethod
    def from_values(cls, token: str | None, host: str | None, port: str | None) -> Optional["Config"]:
        """Return a ``Config`` or ``None`` when any field is empty."""

        token = (token or "").strip()
        host = (host or "").strip()
        port = (port or "").strip()
        if not (token and host and port):
            return None
        return cls(token=token, host=host.rstrip("/"), port=port)

    @property
    def socket_url(self) -> str:
        parsed = urlparse(self.host)
        if parsed.scheme and parsed.netloc:
            scheme = "wss" if parsed.scheme.lower() == "https" else "ws"
            hostname = parsed.hostname or parsed.netloc
        else:
            scheme = "ws"
            hostname = self.host
        return f"{scheme}://{hostname}:{self.port}/ws"

    def forward_url(self, resource_id: str) -> str:
        return f"{self.host}:{self.port}/get/{resource_id}?token={self.token}"


@dataclass(frozen=True)
class MatchResult:
    """Fields extracted from a torrent download link."""

    resource_id: str
    secret: str


@dataclass(frozen=True)
class CandidateLink:
    """An anchor of the page together with its absolute target URL."""

    element: Tag
    url: str


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class PageKind(enum.Enum):
    SETTINGS = "settings"
    TOP10 = "top10"
    TORRENTS = "torrents"
    USER_TORRENTS = "user_torrents"
    OTHER = "other"


@dataclass(frozen=True)
class Message:
    """Inbound companion message, discriminated by its ``Message`` field."""

    kind: str
    status: int = RESPONSE_INFO
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_wire(cls, raw: str | bytes) -> "Message":
        """Decode a JSON frame; raises ``ValueError`` on malformed input."""

        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        try:
            status = int(data.get("Status", RESPONSE_INFO))
        except (TypeError, ValueError):
            status = RESPONSE_INFO
        return cls(kind=str(data.get("Message", "")), status=status, payload=data)

    @property
    def is_error(self) -> bool:
        return self.status == RESPONSE_ERROR
