"""Selection, pin and user-connection bookkeeping independent of the solver."""
from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional, Set

from xrscholar.graph.links import LinkClassifier, LinkTypeSelector, UserConnection, connection_key
from xrscholar.graph.models import Link, LinkType, Vector3
from xrscholar.graph.repository import PaperRepository

LOGGER = logging.getLogger(__name__)


class SelectionTracker:
    """Track selected, pinned and focused papers plus manual connections.

    The tracker holds identifiers only; papers themselves stay owned by the
    repository. Removal of papers is reported through :meth:`forget`.
    """

    def __init__(
        self,
        repository: PaperRepository,
        selector: LinkTypeSelector,
        classifier: Optional[LinkClassifier] = None,
    ) -> None:
        self._repository = repository
        self._selector = selector
        self._classifier = classifier or LinkClassifier()
        self._selected: List[str] = []
        self._pinned: Set[str] = set()
        self._connections: List[UserConnection] = []
        self._excluded: Set[str] = set()
        self._focused: Optional[str] = None

    # selection -------------------------------------------------------------

    @property
    def selected_ids(self) -> List[str]:
        return list(self._selected)

    def is_selected(self, paper_id: str) -> bool:
        return paper_id in self._selected

    def select(self, paper_id: str) -> bool:
        """Add ``paper_id`` to the selection; returns whether it was added."""

        if not paper_id or paper_id in self._selected:
            return False
        self._selected.append(paper_id)
        return True

    def deselect(self, paper_id: str) -> bool:
        if paper_id not in self._selected:
            return False
        self._selected.remove(paper_id)
        return True

    def clear_selection(self) -> None:
        LOGGER.info("Selection cleared", extra={"selected_ids": list(self._selected)})
        self._selected.clear()

    def reset_selection_to_focus(self) -> None:
        """Replace the selection with the focused paper, if any."""

        self._selected = [self._focused] if self._focused else []

    # focus -----------------------------------------------------------------

    @property
    def focused_id(self) -> Optional[str]:
        return self._focused

    def focus(self, paper_id: Optional[str]) -> None:
        self._focused = paper_id or None

    # pins ------------------------------------------------------------------

    @property
    def pinned_ids(self) -> Set[str]:
        return set(self._pinned)

    def is_pinned(self, paper_id: str) -> bool:
        return paper_id in self._pinned

    def pin(self, paper_id: str, position: Optional[Vector3] = None) -> None:
        """Fix a paper in place (or at ``position``) and remember the pin."""

        paper = self._repository.find(paper_id)
        if paper is None:
            LOGGER.warning("Cannot pin unknown paper", extra={"paper_id": paper_id})
            return
        if position is None:
            paper.fix_in_place()
        else:
            paper.fix_at(position)
        self._pinned.add(paper_id)

    def mark_pinned(self, paper_ids: Iterable[str]) -> None:
        self._pinned.update(paper_ids)

    def unpin_all(self) -> None:
        """Forget every pin and release every paper back to the solver."""

        LOGGER.info("Unpinning all papers", extra={"pinned_ids": sorted(self._pinned)})
        self._pinned.clear()
        for paper in self._repository.all():
            paper.release()

    def repin(self) -> None:
        """Re-apply fixed positions of pinned papers from their positions."""

        for paper_id in self._pinned:
            paper = self._repository.find(paper_id)
            if paper is not None and not paper.is_fixed:
                paper.fix_in_place()

    # removal ---------------------------------------------------------------

    def forget(self, paper_ids: Iterable[str]) -> None:
        """Drop removed papers from selection, pins and focus.

        User connections are left untouched; custom links are filtered by
        presence when they are regenerated.
        """

        doomed = set(paper_ids)
        self._selected = [paper_id for paper_id in self._selected if paper_id not in doomed]
        self._pinned -= doomed
        self._excluded -= doomed
        if self._focused in doomed:
            self._focused = None

    # connections -----------------------------------------------------------

    @property
    def user_connections(self) -> List[UserConnection]:
        return list(self._connections)

    def find_connection(self, paper_a: str, paper_b: str) -> int:
        key = connection_key(paper_a, paper_b)
        for index, (first, second) in enumerate(self._connections):
            if connection_key(first, second) == key:
                return index
        return -1

    def replace_connections(self, connections: Iterable[UserConnection]) -> None:
        """Replace the connection list, dropping self-loops and repeated pairs."""

        replaced: List[UserConnection] = []
        seen: Set[frozenset] = set()
        for paper_a, paper_b in connections:
            key = connection_key(paper_a, paper_b)
            if paper_a == paper_b or key in seen:
                continue
            seen.add(key)
            replaced.append((paper_a, paper_b))
        self._connections = replaced

    def regenerate_custom_links(self) -> None:
        links = self._classifier.custom_links(self._connections, self._repository.find)
        self._repository.replace_custom_links(links)
        LOGGER.debug("Custom links regenerated", extra={"count": len(links)})

    def connect(self, paper_a: str, paper_b: str) -> bool:
        """Create, surface or remove the user connection between two papers.

        An existing connection is removed only when custom links are already
        active; otherwise the custom link type is activated so it becomes
        visible. A new connection is appended together with its link.

        Returns:
            bool: ``True`` when a new connection was created.
        """

        if not paper_a or not paper_b or paper_a == paper_b:
            LOGGER.warning("Rejected connection request", extra={"paper_a": paper_a, "paper_b": paper_b})
            return False
        source = self._repository.find(paper_a)
        target = self._repository.find(paper_b)
        if source is None or target is None:
            LOGGER.warning("Cannot connect unknown papers", extra={"paper_a": paper_a, "paper_b": paper_b})
            return False
        if paper_a in self._excluded or paper_b in self._excluded:
            LOGGER.info("Papers excluded from connection", extra={"paper_a": paper_a, "paper_b": paper_b})
            return False
        index = self.find_connection(paper_a, paper_b)
        if index != -1:
            if self._selector.active is LinkType.CUSTOM:
                LOGGER.info("Removing existing connection", extra={"paper_a": paper_a, "paper_b": paper_b})
                del self._connections[index]
                self.regenerate_custom_links()
                self._selector.set_active(LinkType.CUSTOM)
            else:
                LOGGER.info(
                    "Papers already connected; surfacing custom links",
                    extra={"paper_a": paper_a, "paper_b": paper_b, "previous": self._selector.active.value},
                )
                self._selector.set_active(LinkType.CUSTOM)
            return False
        LOGGER.info("Creating connection", extra={"paper_a": paper_a, "paper_b": paper_b})
        self._connections.append((paper_a, paper_b))
        self._repository.append_link(Link(source, target, LinkType.CUSTOM))
        self._selector.set_active(LinkType.CUSTOM)
        return True

    def connect_selected(self) -> bool:
        if len(self._selected) != 2:
            LOGGER.warning(
                "Exactly two papers must be selected to connect",
                extra={"selected_ids": list(self._selected)},
            )
            return False
        return self.connect(self._selected[0], self._selected[1])

    # proximity -------------------------------------------------------------

    def check_proximity_connections(
        self,
        paper_id: str,
        position: Vector3,
        candidates: Mapping[str, Vector3],
        threshold: float,
    ) -> List[str]:
        """Connect ``paper_id`` to every candidate closer than ``threshold``.

        Both ends of each new connection are excluded from further automatic
        connections until :meth:`end_proximity_window` is called.

        Returns:
            List[str]: Candidate ids a connection gesture was detected with.
        """

        matched: List[str] = []
        for other_id, other_position in candidates.items():
            if other_id == paper_id:
                continue
            if paper_id in self._excluded or other_id in self._excluded:
                continue
            distance = position.distance_to(other_position)
            if distance >= threshold:
                continue
            LOGGER.info(
                "Proximity connection gesture detected",
                extra={"paper_id": paper_id, "other_paper_id": other_id, "distance": distance},
            )
            self.connect(paper_id, other_id)
            self._excluded.update((paper_id, other_id))
            matched.append(other_id)
        return matched

    def end_proximity_window(self) -> None:
        self._excluded.clear()

    @property
    def excluded_ids(self) -> Set[str]:
        return set(self._excluded)


__all__ = ["SelectionTracker"]
