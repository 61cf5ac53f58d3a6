"""Shared fixtures and fakes for engine tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

import pytest

from vmlink.engine.config import load_settings
from vmlink.engine.dom import LiveDocument
from vmlink.engine.types import Config

TOKEN = "s3cr3t"
AUTHKEY = "abc123"
TRACKER = "https://tracker.example"

_HANGUP = object()


@pytest.fixture()
def engine_settings():
    """Provide a fresh copy of the default engine settings."""

    return load_settings(None)


@pytest.fixture()
def config():
    return Config(token=TOKEN, host="http://localhost", port="8080")


def download_href(torrent_id: str | int, authkey: str = AUTHKEY, passkey: str | None = None) -> str:
    passkey = authkey if passkey is None else passkey
    return (
        f"torrents.php?action=download&amp;id={torrent_id}"
        f"&amp;authkey={authkey}&amp;torrent_pass={passkey}"
    )


def torrent_row(torrent_id: str | int, **kwargs: Any) -> str:
    return (
        '<tr class="torrent">'
        f'<td><span>[ <a href="{download_href(torrent_id, **kwargs)}" title="Download">DL</a> ]</span></td>'
        f'<td><a href="torrents.php?id={torrent_id}">Album {torrent_id}</a></td>'
        '</tr>'
    )


def make_page(rows: str = "", *, body: str = "", user_id: str = "77") -> str:
    return (
        "<html><head><title>Torrents</title></head><body>"
        '<div id="header">'
        f'<ul id="userinfo_username"><li><a href="user.php?id={user_id}" class="username">alice</a></li></ul>'
        '<ul id="userinfo_stats"><li id="stats_seeding">Up: 1 GB</li></ul>'
        "</div>"
        '<div id="content">'
        f"{body}"
        f'<table id="torrent_table" class="torrent_table"><tbody>{rows}</tbody></table>'
        "</div></body></html>"
    )


def make_document(rows: str = "", *, url: str = f"{TRACKER}/torrents.php", **kwargs: Any) -> LiveDocument:
    return LiveDocument(make_page(rows, **kwargs), url)


async def settle(rounds: int = 10) -> None:
    """Let pending tasks and callbacks of the running loop run."""

    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeSocket:
    """In-memory stand-in for a client WebSocket connection."""

    def __init__(
        self,
        url: str,
        *,
        auto_ack: bool = False,
        replies: Dict[str, Dict[str, Any]] | None = None,
        send_error: BaseException | None = None,
    ) -> None:
        self.url = url
        self.auto_ack = auto_ack
        self.replies = replies or {}
        self.send_error = send_error
        self.sent: List[Dict[str, Any]] = []
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def __aenter__(self) -> "FakeSocket":
        return self

    async def __aexit__(self, *exc_info: Any) -> bool:
        self.closed = True
        return False

    async def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionResetError("socket is closed")
        if self.send_error is not None:
            raise self.send_error
        payload = json.loads(data)
        self.sent.append(payload)
        command = payload.get("Command")
        if self.auto_ack and command == "hello":
            self.push(Status=0, Message="hello")
        elif command in self.replies:
            self.push(**self.replies[command])

    def push(self, **payload: Any) -> None:
        self.inbox.put_nowait(json.dumps(payload))

    def push_raw(self, raw: str) -> None:
        self.inbox.put_nowait(raw)

    def fail(self, exc: BaseException) -> None:
        self.inbox.put_nowait(exc)

    def hang_up(self) -> None:
        self.inbox.put_nowait(_HANGUP)

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> str:
        item = await self.inbox.get()
        if item is _HANGUP:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class _Refused:
    async def __aenter__(self) -> None:
        raise ConnectionRefusedError("connection refused")

    async def __aexit__(self, *exc_info: Any) -> bool:
        return False


class FakeConnector:
    """Callable with the ``websockets.connect`` signature used by the manager."""

    def __init__(
        self,
        *,
        refuse: bool = False,
        auto_ack: bool = False,
        replies: Dict[str, Dict[str, Any]] | None = None,
        send_error: BaseException | None = None,
    ) -> None:
        self.refuse = refuse
        self.auto_ack = auto_ack
        self.replies = replies
        self.send_error = send_error
        self.calls: List[tuple] = []
        self.sockets: List[FakeSocket] = []

    def __call__(self, url: str, **kwargs: Any):
        self.calls.append((url, kwargs))
        if self.refuse:
            return _Refused()
        socket = FakeSocket(url, auto_ack=self.auto_ack, replies=self.replies, send_error=self.send_error)
        self.sockets.append(socket)
        return socket

    @property
    def latest(self) -> FakeSocket:
        return self.sockets[-1]
