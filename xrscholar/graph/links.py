"""Derivation of typed edge sets and the active link-type selector."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from xrscholar.graph.models import Link, LinkSets, LinkType, Paper

LOGGER = logging.getLogger(__name__)

UserConnection = Tuple[str, str]

LINK_TYPE_CYCLE: Tuple[LinkType, ...] = (
    LinkType.RECOMMENDATION,
    LinkType.CITATION,
    LinkType.AUTHOR,
    LinkType.CUSTOM,
)


def connection_key(paper_a: str, paper_b: str) -> frozenset:
    """Return the order-insensitive key of a user connection."""

    return frozenset((paper_a, paper_b))


class LinkClassifier:
    """Regenerate every derived edge list from the current paper set."""

    def recompute(self, papers: Sequence[Paper], user_connections: Iterable[UserConnection]) -> LinkSets:
        """Build citation, recommendation, author and custom links.

        Ordered pairs produce citation links (``d2`` is referenced by ``d1``) and
        recommendation links (``d2`` is recommended from ``d1``). Unordered pairs
        produce author links when an author id is shared and custom links when
        the pair is a user connection in either order.
        """

        connected: Set[frozenset] = {connection_key(a, b) for a, b in user_connections}
        links = LinkSets()
        references: List[Set[str]] = [set(paper.references) for paper in papers]
        recommends: List[Set[str]] = [set(paper.recommends) for paper in papers]
        authors: List[Set[str]] = [set(paper.author_ids()) for paper in papers]
        for i, source in enumerate(papers):
            for j, target in enumerate(papers):
                if source.paper_id != target.paper_id:
                    if target.paper_id in references[i]:
                        links.citation.append(Link(source, target, LinkType.CITATION))
                    if target.paper_id in recommends[i]:
                        links.recommendation.append(Link(source, target, LinkType.RECOMMENDATION))
                if i < j:
                    if authors[i] & authors[j]:
                        links.author.append(Link(source, target, LinkType.AUTHOR))
                    if connection_key(source.paper_id, target.paper_id) in connected:
                        links.custom.append(Link(source, target, LinkType.CUSTOM))
        LOGGER.debug("Link sets regenerated", extra={"counts": links.counts(), "papers": len(papers)})
        return links

    def custom_links(
        self,
        user_connections: Iterable[UserConnection],
        lookup: Callable[[str], Optional[Paper]],
    ) -> List[Link]:
        """Rebuild custom links from the connection list, skipping dangling ids."""

        links: List[Link] = []
        for paper_a, paper_b in user_connections:
            source = lookup(paper_a)
            target = lookup(paper_b)
            if source is None or target is None:
                continue
            links.append(Link(source, target, LinkType.CUSTOM))
        return links


class LinkTypeSelector:
    """Four-state selector for the edge category shown by the renderer.

    Transitions happen only through :meth:`set_active` or :meth:`cycle`; the
    cycle order is recommendation, citation, author, custom and back.
    """

    def __init__(self, initial: LinkType = LinkType.RECOMMENDATION) -> None:
        self._active = initial
        self._listeners: List[Callable[[LinkType], None]] = []

    @property
    def active(self) -> LinkType:
        return self._active

    def subscribe(self, listener: Callable[[LinkType], None]) -> None:
        self._listeners.append(listener)

    def set_active(self, requested: object) -> bool:
        """Activate ``requested`` and notify listeners.

        Returns:
            bool: ``False`` when the request does not name a known link type.
        """

        link_type = LinkType.parse(requested)
        if link_type is None:
            LOGGER.warning(
                "Rejected invalid link type request",
                extra={"requested": repr(requested), "active": self._active.value},
            )
            return False
        previous = self._active
        self._active = link_type
        LOGGER.info(
            "Active link type set",
            extra={"previous": previous.value, "active": link_type.value},
        )
        self._notify()
        return True

    def cycle(self) -> LinkType:
        index = LINK_TYPE_CYCLE.index(self._active)
        self.set_active(LINK_TYPE_CYCLE[(index + 1) % len(LINK_TYPE_CYCLE)])
        return self._active

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._active)


def link_summary(links: Iterable[Link]) -> List[Dict[str, Dict[str, Optional[str]]]]:
    """Return id/title pairs describing ``links`` for telemetry."""

    return [
        {
            "source": {"paperId": link.source.paper_id, "title": link.source.title},
            "target": {"paperId": link.target.paper_id, "title": link.target.title},
        }
        for link in links
    ]


__all__ = [
    "LINK_TYPE_CYCLE",
    "LinkClassifier",
    "LinkTypeSelector",
    "UserConnection",
    "connection_key",
    "link_summary",
]
