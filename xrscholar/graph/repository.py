"""In-memory store of papers and their derived links."""

from __future__ import annotations

import logging
import random
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from xrscholar.graph.models import Color, Link, LinkSets, LinkType, Paper

LOGGER = logging.getLogger(__name__)


def random_color(rng: Optional[random.Random] = None) -> Color:
    """Return a random RGB colour with components in ``[0, 1]``."""

    source = rng or random
    return (source.random(), source.random(), source.random())


class PaperRepository:
    """Ordered, identifier-unique collection of papers and link sets."""

    def __init__(self, *, color_factory: Callable[[], Color] = random_color) -> None:
        self._papers: Dict[str, Paper] = {}
        self._links = LinkSets()
        self._color_factory = color_factory

    def __len__(self) -> int:
        return len(self._papers)

    def __contains__(self, paper_id: object) -> bool:
        return paper_id in self._papers

    def all(self) -> List[Paper]:
        """Return papers in insertion order."""

        return list(self._papers.values())

    def ids(self) -> List[str]:
        return list(self._papers)

    def find(self, paper_id: str) -> Optional[Paper]:
        return self._papers.get(paper_id)

    def upsert_many(self, papers: Iterable[Paper], *, color: Optional[Color] = None) -> List[str]:
        """Insert papers whose identifier is not yet present.

        Duplicates, both against the repository and within ``papers``, are
        dropped silently. Every paper inserted by one call shares a single
        colour.

        Returns:
            List[str]: Identifiers of the newly inserted papers in order.
        """

        batch_color = color
        inserted: List[str] = []
        for paper in papers:
            if paper.paper_id in self._papers:
                continue
            if batch_color is None:
                batch_color = self._color_factory()
            paper.color = batch_color
            self._papers[paper.paper_id] = paper
            inserted.append(paper.paper_id)
        if inserted:
            LOGGER.debug("Inserted papers into repository", extra={"paper_ids": inserted})
        return inserted

    def remove(self, paper_ids: Iterable[str]) -> None:
        """Drop papers and every link, derived or custom, touching them."""

        doomed = {paper_id for paper_id in paper_ids if paper_id}
        if not doomed:
            return
        self._papers = {pid: paper for pid, paper in self._papers.items() if pid not in doomed}
        self._links = self._links.without(doomed)

    @property
    def links(self) -> LinkSets:
        return self._links

    def replace_links(self, links: LinkSets) -> None:
        """Install a freshly computed link set.

        Links whose endpoints are not both present are discarded so the stored
        edges always reference live papers.
        """

        live = set(self._papers)
        stale = {
            endpoint
            for link in links
            for endpoint in (link.source.paper_id, link.target.paper_id)
            if endpoint not in live
        }
        self._links = links.without(stale) if stale else links

    def replace_custom_links(self, links: Sequence[Link]) -> None:
        self._links.custom = [
            link
            for link in links
            if link.source.paper_id in self._papers and link.target.paper_id in self._papers
        ]

    def append_link(self, link: Link) -> bool:
        """Append a single link when both endpoints are present."""

        if link.source.paper_id not in self._papers or link.target.paper_id not in self._papers:
            return False
        self._links.of_type(link.link_type).append(link)
        return True

    def links_of(self, link_type: LinkType) -> List[Link]:
        return list(self._links.of_type(link_type))


__all__ = ["PaperRepository", "random_color"]
