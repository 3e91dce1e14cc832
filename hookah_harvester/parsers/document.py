"""Thin query capability over selectolax used by every record parser.

Parsers only ever call ``query``, ``first``, ``attr`` and ``text``; nothing
here raises on missing elements or broken selectors.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional, Sequence

from selectolax.parser import HTMLParser

logger = logging.getLogger(__name__)


class Node:
    """A single element."""

    __slots__ = ("_node",)

    def __init__(self, node):
        self._node = node

    def query(self, selector: str) -> "NodeSet":
        """Descendants matching ``selector``; the node itself is never included."""
        try:
            own_id = self._node.mem_id
            return NodeSet([Node(n) for n in self._node.css(selector) if n.mem_id != own_id])
        except ValueError as e:
            logger.debug(f"Bad selector {selector!r}: {e}")
            return NodeSet([])

    def first(self, selector: str) -> Optional["Node"]:
        return self.query(selector).first()

    def attr(self, name: str) -> Optional[str]:
        # Valueless attributes come back as None, same as absent ones
        return self._node.attributes.get(name)

    def text(self) -> str:
        return (self._node.text(deep=True) or "").strip()

    @property
    def tag(self) -> str:
        return self._node.tag

    @property
    def html(self) -> str:
        return self._node.html or ""

    def next_element(self) -> Optional["Node"]:
        """Next sibling that is an element (text and comment nodes are skipped)."""
        sibling = self._node.next
        while sibling is not None and sibling.tag in ("-text", "_text", "-comment", "_comment"):
            sibling = sibling.next
        return Node(sibling) if sibling is not None else None


class NodeSet(Sequence[Node]):
    """Ordered result of a query; attribute and text helpers read the first node."""

    __slots__ = ("_nodes",)

    def __init__(self, nodes: list[Node]):
        self._nodes = nodes

    def __getitem__(self, index):
        return self._nodes[index]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)

    def first(self) -> Optional[Node]:
        return self._nodes[0] if self._nodes else None

    def attr(self, name: str) -> Optional[str]:
        node = self.first()
        return node.attr(name) if node else None

    def text(self) -> str:
        node = self.first()
        return node.text() if node else ""

    def texts(self) -> list[str]:
        """Non-empty stripped text of every node."""
        return [t for t in (n.text() for n in self._nodes) if t]


class Document(Node):
    """A parsed page. Empty or unparsable content yields an empty document."""

    __slots__ = ("_tree",)

    def __init__(self, html: str):
        self._tree = HTMLParser(html or "")
        super().__init__(self._tree.root)

    def query(self, selector: str) -> NodeSet:
        try:
            return NodeSet([Node(n) for n in self._tree.css(selector)])
        except ValueError as e:
            logger.debug(f"Bad selector {selector!r}: {e}")
            return NodeSet([])

    def attr(self, name: str) -> Optional[str]:
        return None

    def text(self) -> str:
        if self._tree.body is None:
            return ""
        return (self._tree.body.text(deep=True) or "").strip()

    @property
    def html(self) -> str:
        return self._tree.html or ""


def ensure_document(content: "str | Document") -> Document:
    """Accept raw HTML or an already parsed document."""
    if isinstance(content, Document):
        return content
    return Document(content)
