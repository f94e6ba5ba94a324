"""
Link Resolver

Internal links are recorded against anchor names and only resolved when the
document is finalized, so a link may point at an anchor that is defined
later in the document (a table of contents linking forward to its sections).
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from .exceptions import UnresolvedAnchorError

Rect = Tuple[float, float, float, float]


@dataclass(frozen=True)
class Anchor:
    name: str
    page: int
    y: float


@dataclass(frozen=True)
class InternalLink:
    anchor: str
    page: int
    rect: Rect


@dataclass(frozen=True)
class ExternalLink:
    uri: str
    page: int
    rect: Rect


PendingLink = Union[InternalLink, ExternalLink]


@dataclass(frozen=True)
class LinkAnnotation:
    """A link placed on `page`; either `uri` or (`target_page`, `target_y`) is set."""
    page: int
    rect: Rect
    uri: Optional[str] = None
    target_page: Optional[int] = None
    target_y: Optional[float] = None

    @property
    def is_internal(self) -> bool:
        return self.uri is None


class LinkResolver:
    """Collects anchors and links, and turns them into annotations on demand."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._anchors: Dict[str, Anchor] = {}
        self._pending: List[PendingLink] = []

    @property
    def anchors(self) -> Dict[str, Anchor]:
        return dict(self._anchors)

    @property
    def pending(self) -> List[PendingLink]:
        return list(self._pending)

    def define_anchor(self, name: str, page: int, y: float) -> Anchor:
        """Record (page, y) for `name`, replacing any earlier definition."""
        if name in self._anchors:
            self.logger.debug(f"Anchor '{name}' redefined on page {page}")
        anchor = Anchor(name, page, y)
        self._anchors[name] = anchor
        return anchor

    def record_internal_link(self, anchor: str, page: int, rect: Rect) -> InternalLink:
        link = InternalLink(anchor, page, tuple(rect))
        self._pending.append(link)
        return link

    def record_external_link(self, uri: str, page: int, rect: Rect) -> ExternalLink:
        link = ExternalLink(uri, page, tuple(rect))
        self._pending.append(link)
        return link

    def resolve(self, strict: bool = False) -> List[LinkAnnotation]:
        """
        Build link annotations for all recorded links.

        Every call builds a fresh list from the recorded state, so resolving
        twice yields the same annotations. Internal links to undefined anchors
        are dropped unless `strict` is set.

        Raises:
            UnresolvedAnchorError: in strict mode, if any anchor is undefined
        """
        annotations: List[LinkAnnotation] = []
        missing: List[str] = []
        for link in self._pending:
            if isinstance(link, ExternalLink):
                annotations.append(LinkAnnotation(link.page, link.rect, uri=link.uri))
                continue
            anchor = self._anchors.get(link.anchor)
            if anchor is None:
                missing.append(link.anchor)
                self.logger.debug(f"Dropping link on page {link.page} to undefined anchor '{link.anchor}'")
                continue
            annotations.append(LinkAnnotation(link.page, link.rect, target_page=anchor.page, target_y=anchor.y))

        if missing and strict:
            raise UnresolvedAnchorError(missing)
        return annotations
