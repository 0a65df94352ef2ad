"""Single owner of the live graph state and its synchronous mutations."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from xrscholar.contracts import PaperSnapshot
from xrscholar.graph.insights import InsightStore
from xrscholar.graph.layout import lattice_positions
from xrscholar.graph.links import LinkClassifier, LinkTypeSelector, link_summary
from xrscholar.graph.models import ORIGIN, Link, LinkSets, LinkType, Paper
from xrscholar.graph.repository import PaperRepository
from xrscholar.graph.selection import SelectionTracker
from xrscholar.simulation.bridge import HighlightKind, SimulationBridge

LOGGER = logging.getLogger(__name__)

NodesListener = Callable[[List[PaperSnapshot]], None]


class GraphStore:
    """Own the repository, selection state and link sets of one session.

    Every mutation here is synchronous. Callers running on the event loop
    therefore never observe a half-applied batch: link recomputation always
    reads a fully updated repository.
    """

    def __init__(
        self,
        bridge: SimulationBridge,
        *,
        repository: Optional[PaperRepository] = None,
        classifier: Optional[LinkClassifier] = None,
        selector: Optional[LinkTypeSelector] = None,
    ) -> None:
        self.bridge = bridge
        self.repository = repository or PaperRepository()
        self.classifier = classifier or LinkClassifier()
        self.selector = selector or LinkTypeSelector()
        self.tracker = SelectionTracker(self.repository, self.selector, self.classifier)
        self.insights = InsightStore()
        self._removed: List[str] = []
        self._nodes_listeners: List[NodesListener] = []
        self.selector.subscribe(self._on_link_type_changed)

    # read access -----------------------------------------------------------

    @property
    def papers(self) -> List[Paper]:
        return self.repository.all()

    @property
    def links(self) -> LinkSets:
        return self.repository.links

    @property
    def link_type(self) -> LinkType:
        return self.selector.active

    @property
    def removed_ids(self) -> List[str]:
        return list(self._removed)

    def active_links(self) -> List[Link]:
        return self.repository.links_of(self.selector.active)

    def snapshot(self) -> List[PaperSnapshot]:
        """Return id/title/abstract of every paper for assistant prompts."""

        return [paper.snapshot() for paper in self.repository.all()]

    def describe(self, paper_id: str) -> Optional[Dict[str, object]]:
        paper = self.repository.find(paper_id)
        if paper is None:
            return None
        payload = paper.to_dict()
        insight = self.insights.get(paper_id)
        payload["insights"] = insight.to_dict() if insight is not None else None
        payload["selected"] = self.tracker.is_selected(paper_id)
        payload["focused"] = self.tracker.focused_id == paper_id
        return payload

    def subscribe_nodes(self, listener: NodesListener) -> None:
        self._nodes_listeners.append(listener)

    # links -----------------------------------------------------------------

    def regenerate_links(self) -> None:
        """Recompute every link set from the papers and user connections."""

        links = self.classifier.recompute(self.repository.all(), self.tracker.user_connections)
        self.repository.replace_links(links)
        LOGGER.info(
            "Link data regenerated",
            extra={"counts": links.counts(), "custom": link_summary(links.custom)},
        )

    def render_links(self) -> None:
        self.bridge.set_links(self.selector.active, self.active_links())

    def set_link_type(self, requested: object) -> bool:
        return self.selector.set_active(requested)

    def cycle_link_type(self) -> LinkType:
        return self.selector.cycle()

    def _on_link_type_changed(self, link_type: LinkType) -> None:
        self.bridge.sink.notify(f"Link Type {link_type.value}")
        self.render_links()

    # nodes -----------------------------------------------------------------

    def merge(self, papers: Iterable[Paper], *, radius: float) -> List[str]:
        """Insert new papers, place them near the origin and resync everything.

        Papers already present at merge time are dropped, so a batch fetched
        while the graph changed underneath it never duplicates a node.

        Returns:
            List[str]: Identifiers actually inserted.
        """

        inserted = self.repository.upsert_many(papers)
        if not inserted:
            LOGGER.info("No new papers to merge")
            self.regenerate_links()
            self.render_links()
            return []
        for paper_id, position in zip(inserted, lattice_positions(len(inserted), ORIGIN, radius)):
            paper = self.repository.find(paper_id)
            if paper is not None:
                paper.position = position
        self.bridge.reseed(self.repository.all(), pinned=self.tracker.pinned_ids)
        self.sync_nodes()
        self.regenerate_links()
        self.render_links()
        self.bridge.nudge()
        LOGGER.info("Papers merged into graph", extra={"paper_ids": inserted, "total": len(self.repository)})
        return inserted

    def sync_nodes(self) -> None:
        """Recreate node meshes and restore pins and highlights."""

        self.tracker.repin()
        papers = self.repository.all()
        sink = self.bridge.sink
        sink.render_nodes(papers)
        focused = self.tracker.focused_id
        for paper_id in self.tracker.selected_ids:
            kind = HighlightKind.FOCUSED if paper_id == focused else HighlightKind.SELECTED
            sink.set_highlight(paper_id, kind)
        snapshot = [paper.snapshot() for paper in papers]
        for listener in list(self._nodes_listeners):
            listener(snapshot)

    def remove(self, paper_ids: Sequence[str]) -> None:
        """Remove papers with their links, pins and selection entries."""

        doomed = [paper_id for paper_id in paper_ids if paper_id]
        if not doomed:
            return
        LOGGER.info("Removing papers from graph", extra={"paper_ids": list(doomed)})
        self.repository.remove(doomed)
        self.tracker.forget(doomed)
        self.bridge.animator.cancel(doomed)
        self.bridge.reseed(self.repository.all(), pinned=self.tracker.pinned_ids)
        self.sync_nodes()
        self.render_links()

    def remove_selected(self) -> List[str]:
        """Remove the selected papers and remember them for restoring."""

        selected = self.tracker.selected_ids
        if not selected:
            LOGGER.warning("No papers selected for removal")
            return []
        self.remove(selected)
        for paper_id in selected:
            if paper_id not in self._removed:
                self._removed.append(paper_id)
        self.tracker.clear_selection()
        return selected

    def clear_removed(self, paper_ids: Optional[Iterable[str]] = None) -> None:
        if paper_ids is None:
            self._removed.clear()
            return
        restored = set(paper_ids)
        self._removed = [paper_id for paper_id in self._removed if paper_id not in restored]

    # selection -------------------------------------------------------------

    def select(self, paper_id: str) -> bool:
        if paper_id not in self.repository:
            LOGGER.warning("Cannot select unknown paper", extra={"paper_id": paper_id})
            return False
        added = self.tracker.select(paper_id)
        if added:
            self.bridge.sink.set_highlight(paper_id, HighlightKind.SELECTED)
        return added

    def deselect(self, paper_id: str) -> bool:
        removed = self.tracker.deselect(paper_id)
        if removed:
            self.bridge.sink.set_highlight(paper_id, None)
        return removed

    def toggle_selection(self, paper_id: str) -> bool:
        if self.tracker.is_selected(paper_id):
            self.deselect(paper_id)
            return False
        return self.select(paper_id)

    def clear_selection(self) -> None:
        previous = self.tracker.selected_ids
        self.tracker.clear_selection()
        for paper_id in previous:
            self.bridge.sink.set_highlight(paper_id, None)

    def focus(self, paper_id: Optional[str]) -> None:
        """Open (or close with ``None``) the details focus on a paper."""

        previous = self.tracker.focused_id
        if paper_id is not None and paper_id not in self.repository:
            LOGGER.warning("Cannot focus unknown paper", extra={"paper_id": paper_id})
            return
        self.tracker.focus(paper_id)
        if previous and previous != paper_id:
            kind = HighlightKind.SELECTED if self.tracker.is_selected(previous) else None
            self.bridge.sink.set_highlight(previous, kind)
        if paper_id:
            self.bridge.sink.set_highlight(paper_id, HighlightKind.FOCUSED)

    def unpin_all(self) -> None:
        self.tracker.unpin_all()
        self.bridge.animator.cancel(self.repository.ids())

    def connect(self, paper_a: str, paper_b: str) -> bool:
        return self.tracker.connect(paper_a, paper_b)

    def connect_selected(self) -> bool:
        return self.tracker.connect_selected()


__all__ = ["GraphStore", "NodesListener"]
