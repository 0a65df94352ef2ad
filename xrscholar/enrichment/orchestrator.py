"""Asynchronous enrichment of the graph from the paper-data source."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from xrscholar.config import ClusteringConfig, EnrichmentConfig
from xrscholar.contracts import ClusterAssignment, PaperPayload
from xrscholar.enrichment.client import PaperSource, PaperSourceError
from xrscholar.graph.layout import cluster_positions
from xrscholar.graph.links import UserConnection
from xrscholar.graph.models import LinkType, Paper
from xrscholar.graph.store import GraphStore
from xrscholar.simulation.bridge import HighlightKind

LOGGER = logging.getLogger(__name__)

Scheduler = Callable[[float, Callable[[], None]], Any]
ClusterInput = Union[ClusterAssignment, Mapping[str, Any]]


def call_later(delay: float, callback: Callable[[], None]) -> Any:
    """Schedule ``callback`` on the running event loop."""

    return asyncio.get_running_loop().call_later(delay, callback)


class EnrichmentOrchestrator:
    """Grow the graph from remote data while the simulation keeps running.

    At most one fetching operation is in flight at a time. A request arriving
    while another is pending is logged and dropped. Every filtering step runs
    after the fetch it depends on has resolved, against the repository as it
    is at that moment.
    """

    def __init__(
        self,
        store: GraphStore,
        source: PaperSource,
        settings: EnrichmentConfig,
        clustering: ClusteringConfig,
        *,
        scheduler: Scheduler = call_later,
    ) -> None:
        self._store = store
        self._source = source
        self._settings = settings
        self._clustering = clustering
        self._scheduler = scheduler
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    # operations ------------------------------------------------------------

    async def fetch_initial_papers(self, seed_ids: Optional[Sequence[str]] = None) -> List[str]:
        """Load the seed papers, falling back to bare nodes when fetching fails."""

        seeds = [paper_id for paper_id in (seed_ids or self._settings.seed_paper_ids) if paper_id]
        if not seeds:
            LOGGER.warning("No seed papers configured")
            return []
        if self._reject_if_busy("fetch_initial_papers"):
            return []
        self._busy = True
        try:
            try:
                records = await self._source.get_details_for_multiple_papers(seeds)
                papers = self._to_papers(records)
            except (PaperSourceError, ValueError) as exc:
                LOGGER.error("Failed to fetch initial papers: %s", exc)
                papers = [Paper.placeholder(paper_id) for paper_id in seeds]
            radius = 0.0 if len(papers) == 1 else self._settings.seed_radius
            inserted = self._store.merge(papers, radius=radius)
        finally:
            self._busy = False
        LOGGER.info("Initial papers loaded", extra={"paper_ids": inserted})
        return inserted

    async def add_recommendations_from_selected(self) -> List[str]:
        """Add papers recommended from the whole selection."""

        if self._reject_if_busy("add_recommendations_from_selected"):
            return []
        selected = self._store.tracker.selected_ids
        if not selected:
            LOGGER.warning("Select at least one paper to fetch recommendations")
            return []

        async def _candidates() -> List[str]:
            response = await self._source.fetch_recommendations(
                selected, limit=self._settings.recommendation_limit
            )
            return response.paper_ids()

        def _record_recommendations(candidate_ids: Sequence[str]) -> None:
            for paper_id in selected:
                paper = self._store.repository.find(paper_id)
                if paper is None:
                    continue
                for candidate in candidate_ids:
                    if candidate not in paper.recommends:
                        paper.recommends.append(candidate)

        return await self._enrich(
            "recommendations",
            selected,
            _candidates,
            LinkType.RECOMMENDATION,
            before_merge=_record_recommendations,
            reset_selection=True,
        )

    async def add_citations_from_selected(self) -> List[str]:
        """Add papers citing the single selected paper."""

        if self._reject_if_busy("add_citations_from_selected"):
            return []
        paper_id = self._single_selected("citations")
        if paper_id is None:
            return []

        async def _candidates() -> List[str]:
            response = await self._source.get_citations_for_paper(
                paper_id, limit=self._settings.citation_limit
            )
            return response.paper_ids()

        return await self._enrich("citations", [paper_id], _candidates, LinkType.CITATION, reset_selection=True)

    async def add_references_from_selected(self) -> List[str]:
        """Add papers referenced by the single selected paper."""

        if self._reject_if_busy("add_references_from_selected"):
            return []
        paper_id = self._single_selected("references")
        if paper_id is None:
            return []

        async def _candidates() -> List[str]:
            response = await self._source.get_references_for_paper(
                paper_id, limit=self._settings.reference_limit
            )
            return response.paper_ids()

        return await self._enrich("references", [paper_id], _candidates, LinkType.CITATION, reset_selection=True)

    async def add_papers_from_author(self, author_id: Optional[str]) -> List[str]:
        """Add papers written by ``author_id``."""

        if self._reject_if_busy("add_papers_from_author"):
            return []
        if not author_id or not str(author_id).strip():
            LOGGER.warning("An author id is required to fetch author papers")
            return []
        author = str(author_id).strip()
        source_ids = [
            paper.paper_id for paper in self._store.papers if author in paper.author_ids()
        ]

        async def _candidates() -> List[str]:
            response = await self._source.get_authors_papers(
                author, limit=self._settings.author_paper_limit
            )
            return response.paper_ids()

        return await self._enrich("author papers", source_ids, _candidates, LinkType.AUTHOR)

    async def restore_deleted(self) -> List[str]:
        """Fetch every removed paper again and put it back into the graph.

        The removed set is cleared only when the fetch succeeded; on failure
        nothing is added and the removed set is left as it was.
        """

        if self._reject_if_busy("restore_deleted"):
            return []
        removed = self._store.removed_ids
        if not removed:
            LOGGER.info("No removed papers to restore")
            return []
        self._busy = True
        try:
            records = await self._source.get_details_for_multiple_papers(removed)
            inserted = self._store.merge(self._to_papers(records), radius=self._settings.new_paper_radius)
            self._store.clear_removed()
        except (PaperSourceError, ValueError) as exc:
            LOGGER.error("Restoring removed papers failed: %s", exc, extra={"removed_ids": removed})
            self._store.bridge.sink.notify(self._settings.empty_result_notice)
            return []
        finally:
            self._busy = False
        self._pulse(inserted)
        LOGGER.info("Removed papers restored", extra={"paper_ids": inserted})
        return inserted

    def create_clusters_from_assignment(self, clusters: Iterable[ClusterInput]) -> bool:
        """Arrange papers into named clusters on a two-level lattice.

        Every clustered paper glides to its slot and stays pinned there, gets
        its cluster name, and the user connections are replaced by one star per
        cluster centred on its first member.

        Returns:
            bool: ``False`` when the payload is not a list of clusters.
        """

        try:
            assignments = [
                item if isinstance(item, ClusterAssignment) else ClusterAssignment.model_validate(item)
                for item in clusters
            ]
        except (TypeError, ValidationError) as exc:
            LOGGER.error("Rejected malformed cluster assignment: %s", exc)
            return False

        store = self._store
        groups: List[List[str]] = []
        names: List[str] = []
        for assignment in assignments:
            members: List[str] = []
            for paper_id in assignment.paper_ids:
                if paper_id in members:
                    continue
                if paper_id not in store.repository:
                    LOGGER.warning(
                        "Cluster member is not in the graph",
                        extra={"paper_id": paper_id, "cluster": assignment.name},
                    )
                    continue
                members.append(paper_id)
            if members:
                groups.append(members)
                names.append(assignment.name)
        if not groups:
            LOGGER.warning("Cluster assignment contained no known papers")
            return False

        layout = cluster_positions(
            groups,
            major_radius=self._clustering.major_radius,
            minor_radius=self._clustering.minor_radius,
        )
        connections: List[UserConnection] = []
        for name, members, targets in zip(names, groups, layout.members):
            for paper_id in members:
                paper = store.repository.find(paper_id)
                if paper is None:
                    continue
                paper.cluster_name = name
                store.bridge.animate_to(paper, targets[paper_id], self._clustering.animation_ms)
            hub = members[0]
            connections.extend((hub, member) for member in members[1:])
        store.tracker.mark_pinned(paper_id for members in groups for paper_id in members)
        store.tracker.replace_connections(connections)
        store.tracker.regenerate_custom_links()
        store.set_link_type(LinkType.CUSTOM)
        LOGGER.info(
            "Clusters created",
            extra={"clusters": {name: members for name, members in zip(names, groups)}},
        )
        return True

    # pipeline --------------------------------------------------------------

    async def _enrich(
        self,
        operation: str,
        source_ids: Sequence[str],
        candidates: Callable[[], Awaitable[List[str]]],
        link_type: LinkType,
        *,
        before_merge: Optional[Callable[[Sequence[str]], None]] = None,
        reset_selection: bool = False,
    ) -> List[str]:
        store = self._store
        sink = store.bridge.sink
        sources = list(source_ids)
        self._busy = True
        for paper_id in sources:
            sink.set_highlight(paper_id, HighlightKind.PENDING)
        inserted: List[str] = []
        try:
            candidate_ids = await candidates()
            capped = self._filter_new(candidate_ids)[: self._settings.max_new_papers]
            LOGGER.info(
                "Fetched %s candidates",
                operation,
                extra={"candidates": len(candidate_ids), "new": capped},
            )
            if not capped:
                if before_merge is not None:
                    before_merge(candidate_ids)
                    store.regenerate_links()
                    store.set_link_type(link_type)
                sink.notify(self._settings.empty_result_notice)
                return []
            records = await self._source.get_details_for_multiple_papers(capped)
            if before_merge is not None:
                before_merge(candidate_ids)
            inserted = store.merge(self._to_papers(records), radius=self._settings.new_paper_radius)
            if reset_selection:
                store.tracker.reset_selection_to_focus()
            store.set_link_type(link_type)
        except (PaperSourceError, ValueError) as exc:
            LOGGER.error("Fetching %s failed: %s", operation, exc, extra={"source_ids": sources})
            sink.notify(self._settings.empty_result_notice)
            return []
        finally:
            self._busy = False
            self._settle_highlights(sources)
        self._pulse(inserted)
        return inserted

    def _filter_new(self, candidate_ids: Iterable[str]) -> List[str]:
        """Drop ids already in the graph, removed by the user, or repeated."""

        removed = set(self._store.removed_ids)
        seen: set[str] = set()
        fresh: List[str] = []
        for paper_id in candidate_ids:
            if not paper_id or paper_id in seen:
                continue
            seen.add(paper_id)
            if paper_id in self._store.repository or paper_id in removed:
                continue
            fresh.append(paper_id)
        return fresh

    @staticmethod
    def _to_papers(records: Iterable[PaperPayload]) -> List[Paper]:
        return [Paper.from_payload(record) for record in records]

    def _reject_if_busy(self, operation: str) -> bool:
        if self._busy:
            LOGGER.warning("Not requesting %s, already waiting for the paper source", operation)
            return True
        return False

    def _single_selected(self, operation: str) -> Optional[str]:
        selected = self._store.tracker.selected_ids
        if len(selected) != 1:
            LOGGER.warning(
                "Exactly one paper must be selected to fetch %s",
                operation,
                extra={"selected_ids": selected},
            )
            return None
        return selected[0]

    def _settle_highlights(self, source_ids: Sequence[str]) -> None:
        tracker = self._store.tracker
        sink = self._store.bridge.sink
        for paper_id in source_ids:
            if paper_id not in self._store.repository:
                continue
            if paper_id == tracker.focused_id:
                sink.set_highlight(paper_id, HighlightKind.FOCUSED)
            elif tracker.is_selected(paper_id):
                sink.set_highlight(paper_id, HighlightKind.SELECTED)
            else:
                sink.set_highlight(paper_id, None)

    def _pulse(self, paper_ids: Sequence[str]) -> None:
        """Highlight new papers and clear the highlight after a delay."""

        if not paper_ids:
            return
        sink = self._store.bridge.sink
        added = list(paper_ids)
        for paper_id in added:
            sink.set_highlight(paper_id, HighlightKind.ADDED)

        def _clear() -> None:
            for paper_id in added:
                if paper_id in self._store.repository and not self._store.tracker.is_selected(paper_id):
                    sink.set_highlight(paper_id, None)

        self._scheduler(self._settings.highlight_seconds, _clear)


__all__ = ["EnrichmentOrchestrator", "Scheduler", "call_later"]
