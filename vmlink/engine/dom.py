"""Live document model: a BeautifulSoup tree with a child-list mutation feed.

Pages handled by the engine are owned by someone else and keep changing
after the first render (ajax table refreshes, infinite lists). ``LiveDocument``
wraps the parsed tree and routes every structural write through a small set
of methods so that observers registered on a container receive the nodes
added to it, batched per ``mutate()`` block and in the order they happened.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, FeatureNotFound, PageElement, Tag  # type: ignore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class MutationRecord:
    """Nodes appended to ``target`` by a single write."""

    target: Tag
    added_nodes: Tuple[PageElement, ...]


BatchCallback = Callable[[List[MutationRecord]], None]


def parse_html(html: str) -> BeautifulSoup:
    try:
        return BeautifulSoup(html, "lxml")
    except FeatureNotFound:
        # Fallback to html.parser if lxml isn't installed
        return BeautifulSoup(html, "html.parser")


class Subscription:
    """Handle returned by :meth:`LiveDocument.observe`."""

    def __init__(self, document: "LiveDocument", target: Tag, callback: BatchCallback) -> None:
        self._document = document
        self.target = target
        self.callback = callback
        self.active = True

    def disconnect(self) -> None:
        if self.active:
            self.active = False
            self._document._forget(self)


class LiveDocument:
    """A parsed page that reports child-list insertions to its observers."""

    def __init__(self, html: str, url: str = "") -> None:
        self.url = url
        self.soup = parse_html(html)
        self._subscriptions: List[Subscription] = []
        self._pending: List[MutationRecord] = []
        self._depth = 0
        self._delivering = False

    # -- reading -----------------------------------------------------------

    @property
    def links(self) -> List[Tag]:
        """Equivalent of ``document.links``: anchors and areas with an href."""

        return self.soup.find_all(["a", "area"], href=True)

    def select_one(self, selector: str) -> Optional[Tag]:
        return self.soup.select_one(selector)

    def get_element_by_id(self, element_id: str) -> Optional[Tag]:
        return self.soup.find(id=element_id)

    def render(self) -> str:
        return str(self.soup)

    # -- building ----------------------------------------------------------

    def new_tag(self, name: str, **attrs: str) -> Tag:
        return self.soup.new_tag(name, attrs=attrs)

    def new_string(self, text: str):
        return self.soup.new_string(text)

    def fragment(self, html: str) -> List[PageElement]:
        """Parse ``html`` into detached nodes ready to be inserted."""

        holder = BeautifulSoup(html, "html.parser")
        return [node.extract() for node in list(holder.contents)]

    # -- writing -----------------------------------------------------------

    @contextlib.contextmanager
    def mutate(self) -> Iterator["LiveDocument"]:
        """Group writes into one batch delivered when the outermost block exits."""

        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            if self._depth == 0:
                self._flush()

    def append_child(self, parent: Tag, node: PageElement) -> PageElement:
        with self.mutate():
            parent.append(node)
            self._record(parent, (node,))
        return node

    def append_html(self, parent: Tag, html: str) -> List[PageElement]:
        nodes = self.fragment(html)
        with self.mutate():
            for node in nodes:
                parent.append(node)
            self._record(parent, nodes)
        return nodes

    def insert_before(self, reference: PageElement, node: PageElement) -> PageElement:
        parent = reference.parent
        if parent is None:
            raise ValueError("cannot insert next to a detached element")
        with self.mutate():
            reference.insert_before(node)
            self._record(parent, (node,))
        return node

    def replace_child(self, parent: Tag, new: PageElement, old: PageElement) -> PageElement:
        if old.parent is not parent:
            raise ValueError("element to replace is not a child of parent")
        with self.mutate():
            old.replace_with(new)
            self._record(parent, (new,))
        return new

    # -- observing ---------------------------------------------------------

    def observe(self, target: Tag, callback: BatchCallback) -> Subscription:
        """Subscribe ``callback`` to child-list insertions into ``target``."""

        subscription = Subscription(self, target, callback)
        self._subscriptions.append(subscription)
        return subscription

    def _forget(self, subscription: Subscription) -> None:
        self._subscriptions = [item for item in self._subscriptions if item is not subscription]

    def _record(self, target: Tag, nodes: Sequence[PageElement]) -> None:
        if nodes:
            self._pending.append(MutationRecord(target=target, added_nodes=tuple(nodes)))

    def _flush(self) -> None:
        # Writes made by observers while a batch is delivered are queued and
        # delivered by the loop below once the current batch is done.
        if self._delivering:
            return
        self._delivering = True
        try:
            while self._pending:
                batch, self._pending = self._pending, []
                for subscription in list(self._subscriptions):
                    if not subscription.active:
                        continue
                    records = [record for record in batch if record.target is subscription.target]
                    if records:
                        logger.debug("Delivering %d mutation record(s)", len(records))
                        subscription.callback(records)
        finally:
            self._delivering = False
