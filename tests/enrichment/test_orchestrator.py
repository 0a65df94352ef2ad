"""Tests for the enrichment orchestrator."""
from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from xrscholar.config import ClusteringConfig, EnrichmentConfig, SimulationConfig
from xrscholar.contracts import (
    AuthorPapersResponse,
    CitationsResponse,
    PaperPayload,
    RecommendationsResponse,
    ReferencesResponse,
)
from xrscholar.enrichment.client import PaperSourceError
from xrscholar.enrichment.orchestrator import EnrichmentOrchestrator
from xrscholar.graph.models import Link, LinkType, Paper, Vector3
from xrscholar.graph.store import GraphStore
from xrscholar.simulation.bridge import FixedPointSolver, HighlightKind, SimulationBridge


class RecordingSink:
    """Render sink keeping highlights and notices."""

    def __init__(self) -> None:
        self.highlights: Dict[str, Optional[HighlightKind]] = {}
        self.notices: List[str] = []

    def render_nodes(self, papers: Sequence[Paper]) -> None:
        return None

    def render_links(self, link_type: LinkType, links: Sequence[Link]) -> None:
        return None

    def update_frame(self, frame: object) -> None:
        return None

    def set_highlight(self, paper_id: str, kind: Optional[HighlightKind]) -> None:
        self.highlights[paper_id] = kind

    def notify(self, message: str) -> None:
        self.notices.append(message)


class FakePaperSource:
    """Paper source answering from in-memory tables."""

    def __init__(self, papers: Sequence[str] = ()) -> None:
        self.records: Dict[str, PaperPayload] = {
            paper_id: PaperPayload(paperId=paper_id, title=f"Title {paper_id}") for paper_id in papers
        }
        self.recommendations: List[str] = []
        self.citations: List[str] = []
        self.references: List[str] = []
        self.author_papers: List[str] = []
        self.fail_details = False
        self.fail_lists = False
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[Tuple[str, object]] = []

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_lists:
            raise PaperSourceError("All 20 attempts failed. Last error: status 500")

    async def get_details_for_multiple_papers(self, paper_ids: Sequence[str]) -> List[PaperPayload]:
        self.calls.append(("details", list(paper_ids)))
        if self.fail_details:
            raise PaperSourceError("All 20 attempts failed. Last error: status 500")
        return [self.records[paper_id] for paper_id in paper_ids if paper_id in self.records]

    async def fetch_recommendations(
        self,
        positive_ids: Sequence[str],
        negative_ids: Sequence[str] = (),
        *,
        limit: int = 5,
        fields: str = "paperId",
    ) -> RecommendationsResponse:
        self.calls.append(("recommendations", list(positive_ids)))
        await self._wait()
        return RecommendationsResponse(
            recommendedPapers=[{"paperId": paper_id} for paper_id in self.recommendations]
        )

    async def get_citations_for_paper(self, paper_id: str, *, limit: int) -> CitationsResponse:
        self.calls.append(("citations", paper_id))
        await self._wait()
        return CitationsResponse(data=[{"citingPaper": {"paperId": pid}} for pid in self.citations])

    async def get_references_for_paper(self, paper_id: str, *, limit: int) -> ReferencesResponse:
        self.calls.append(("references", paper_id))
        await self._wait()
        return ReferencesResponse(data=[{"citedPaper": {"paperId": pid}} for pid in self.references])

    async def get_authors_papers(self, author_id: str, *, limit: int) -> AuthorPapersResponse:
        self.calls.append(("author", author_id))
        await self._wait()
        return AuthorPapersResponse(data=[{"paperId": pid} for pid in self.author_papers])


class FakeScheduler:
    """Collects delayed callbacks instead of running them."""

    def __init__(self) -> None:
        self.scheduled: List[Tuple[float, Callable[[], None]]] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> None:
        self.scheduled.append((delay, callback))

    def run_all(self) -> None:
        for _, callback in self.scheduled:
            callback()


def _build(
    source: FakePaperSource,
) -> Tuple[EnrichmentOrchestrator, GraphStore, RecordingSink, FakeScheduler]:
    sink = RecordingSink()
    store = GraphStore(SimulationBridge(FixedPointSolver(), SimulationConfig(), sink=sink))
    scheduler = FakeScheduler()
    orchestrator = EnrichmentOrchestrator(
        store,
        source,
        EnrichmentConfig(seed_paper_ids=["P1"]),
        ClusteringConfig(),
        scheduler=scheduler,
    )
    return orchestrator, store, sink, scheduler


def test_recommendations_scenario_from_single_seed() -> None:
    """Seeding P1 then adding recommendations links P1 to both new papers."""

    source = FakePaperSource(["P1", "P2", "P3"])
    source.recommendations = ["P2", "P3"]
    orchestrator, store, sink, scheduler = _build(source)

    seeded = asyncio.run(orchestrator.fetch_initial_papers())
    assert seeded == ["P1"]
    assert store.repository.find("P1").position == Vector3(0.0, 0.0, 0.0)
    assert list(store.links) == []
    assert store.link_type is LinkType.RECOMMENDATION

    store.select("P1")
    added = asyncio.run(orchestrator.add_recommendations_from_selected())

    assert added == ["P2", "P3"]
    assert len(store.repository) == 3
    assert store.repository.find("P1").recommends == ["P2", "P3"]
    assert {link.key for link in store.links.recommendation} == {
        ("P1", "P2", "recommendation"),
        ("P1", "P3", "recommendation"),
    }
    assert store.link_type is LinkType.RECOMMENDATION
    assert store.tracker.selected_ids == []
    assert sink.highlights["P2"] is HighlightKind.ADDED
    assert sink.highlights["P1"] is None
    assert scheduler.scheduled[0][0] == pytest.approx(3.0)

    scheduler.run_all()
    assert sink.highlights["P2"] is None
    assert sink.highlights["P3"] is None
    assert orchestrator.busy is False


def test_second_request_while_busy_is_dropped() -> None:
    """A call during an in-flight fetch makes no network call and no change."""

    source = FakePaperSource(["P1", "C1"])
    source.citations = ["C1"]
    source.recommendations = ["C1"]
    orchestrator, store, _, _ = _build(source)
    asyncio.run(orchestrator.fetch_initial_papers())
    store.select("P1")

    async def _scenario() -> Tuple[List[str], List[str], List[Tuple[str, object]]]:
        source.gate = asyncio.Event()
        first = asyncio.create_task(orchestrator.add_citations_from_selected())
        await asyncio.sleep(0)
        assert orchestrator.busy is True
        calls_before = list(source.calls)
        second = await orchestrator.add_recommendations_from_selected()
        calls_during = list(source.calls)
        assert calls_during == calls_before
        source.gate.set()
        return await first, second, calls_during

    first, second, calls_during = asyncio.run(_scenario())

    assert second == []
    assert calls_during[-1] == ("citations", "P1")
    assert first == ["C1"]
    assert store.link_type is LinkType.CITATION
    assert orchestrator.busy is False


def test_pin_and_removal_during_pending_fetch_survive_merge() -> None:
    """The merge works on the graph as it is when the fetch resolves."""

    source = FakePaperSource(["P1", "N1", "N2"])
    source.recommendations = ["N1", "N2"]
    orchestrator, store, _, _ = _build(source)
    store.merge([Paper("P1"), Paper("Q")], radius=0.1)
    removed_source = store.repository.find("P1")
    store.select("P1")

    async def _scenario() -> List[str]:
        source.gate = asyncio.Event()
        pending = asyncio.create_task(orchestrator.add_recommendations_from_selected())
        await asyncio.sleep(0)
        assert orchestrator.busy is True
        store.tracker.pin("Q", Vector3(1.0, 1.0, 1.0))
        store.remove_selected()
        source.gate.set()
        return await pending

    added = asyncio.run(_scenario())

    assert added == ["N1", "N2"]
    assert store.repository.ids() == ["Q", "N1", "N2"]
    assert store.removed_ids == ["P1"]
    assert removed_source.recommends == []
    pinned = store.repository.find("Q")
    assert store.tracker.is_pinned("Q")
    assert pinned.fixed_position == Vector3(1.0, 1.0, 1.0)
    store.bridge.tick()
    assert pinned.position == Vector3(1.0, 1.0, 1.0)


def test_candidates_are_filtered_and_capped() -> None:
    """Present and removed papers are skipped and at most five are fetched."""

    new_ids = [f"N{index}" for index in range(8)]
    source = FakePaperSource(["P1", "P2", "GONE", *new_ids])
    source.recommendations = ["P2", "GONE", "P2", *new_ids]
    orchestrator, store, _, _ = _build(source)
    store.merge([Paper("P1"), Paper("P2"), Paper("GONE")], radius=0.1)
    store.select("GONE")
    store.remove_selected()
    store.select("P1")

    added = asyncio.run(orchestrator.add_recommendations_from_selected())

    assert added == new_ids[:5]
    assert source.calls[-1] == ("details", new_ids[:5])
    assert "GONE" not in store.repository


def test_empty_candidate_list_notifies_without_detail_fetch() -> None:
    source = FakePaperSource(["P1"])
    source.references = ["P1"]
    orchestrator, store, sink, _ = _build(source)
    asyncio.run(orchestrator.fetch_initial_papers())
    store.select("P1")

    added = asyncio.run(orchestrator.add_references_from_selected())

    assert added == []
    assert sink.notices[-1] == "No available papers to add"
    assert [name for name, _ in source.calls] == ["details", "references"]


def test_fetch_failure_leaves_graph_unchanged() -> None:
    """Retry exhaustion surfaces as a notice and mutates nothing."""

    source = FakePaperSource(["P1", "P2"])
    source.recommendations = ["P2"]
    orchestrator, store, sink, _ = _build(source)
    asyncio.run(orchestrator.fetch_initial_papers())
    store.select("P1")
    source.fail_details = True

    added = asyncio.run(orchestrator.add_recommendations_from_selected())

    assert added == []
    assert store.repository.ids() == ["P1"]
    assert store.repository.find("P1").recommends == []
    assert sink.notices[-1] == "No available papers to add"
    assert sink.highlights["P1"] is HighlightKind.SELECTED
    assert orchestrator.busy is False


def test_citations_require_exactly_one_selected_paper() -> None:
    source = FakePaperSource(["P1", "P2"])
    orchestrator, store, _, _ = _build(source)
    store.merge([Paper("P1"), Paper("P2")], radius=0.1)

    assert asyncio.run(orchestrator.add_citations_from_selected()) == []
    store.select("P1")
    store.select("P2")
    assert asyncio.run(orchestrator.add_citations_from_selected()) == []
    assert source.calls == []


def test_restore_deleted_is_all_or_nothing() -> None:
    source = FakePaperSource(["a", "b", "c"])
    orchestrator, store, _, _ = _build(source)
    store.merge([Paper("a"), Paper("b"), Paper("c")], radius=0.1)
    store.select("a")
    store.select("b")
    store.remove_selected()

    source.fail_details = True
    assert asyncio.run(orchestrator.restore_deleted()) == []
    assert store.repository.ids() == ["c"]
    assert store.removed_ids == ["a", "b"]

    source.fail_details = False
    restored = asyncio.run(orchestrator.restore_deleted())

    assert restored == ["a", "b"]
    assert set(store.repository.ids()) == {"a", "b", "c"}
    assert store.removed_ids == []


def test_seed_failure_falls_back_to_bare_papers() -> None:
    source = FakePaperSource()
    source.fail_details = True
    orchestrator, store, _, _ = _build(source)

    seeded = asyncio.run(orchestrator.fetch_initial_papers(["S1", "S2", "S3"]))

    assert seeded == ["S1", "S2", "S3"]
    for paper in store.papers:
        assert paper.title is None
        assert paper.references == []
        assert paper.recommends == []
        assert paper.position.length() == pytest.approx(0.1)


def test_author_papers_activate_author_links() -> None:
    source = FakePaperSource(["W1"])
    source.records["W1"] = PaperPayload.model_validate(
        {"paperId": "W1", "authors": [{"authorId": "A1", "name": "Ada"}]}
    )
    source.author_papers = ["W1"]
    orchestrator, store, _, _ = _build(source)
    store.merge(
        [Paper("P1", authors=[]), Paper.from_payload(PaperPayload.model_validate({"paperId": "P2", "authors": [{"authorId": "A1"}]}))],
        radius=0.1,
    )

    added = asyncio.run(orchestrator.add_papers_from_author("A1"))

    assert added == ["W1"]
    assert store.link_type is LinkType.AUTHOR
    assert [link.key for link in store.links.author] == [("P2", "W1", "author")]
    assert asyncio.run(orchestrator.add_papers_from_author("  ")) == []


def test_list_failure_notifies_and_clears_busy() -> None:
    source = FakePaperSource(["P1"])
    source.fail_lists = True
    orchestrator, store, sink, _ = _build(source)
    asyncio.run(orchestrator.fetch_initial_papers())
    store.select("P1")

    assert asyncio.run(orchestrator.add_citations_from_selected()) == []
    assert sink.notices == ["No available papers to add"]
    assert orchestrator.busy is False


def test_clusters_are_laid_out_pinned_and_star_connected() -> None:
    source = FakePaperSource()
    orchestrator, store, _, _ = _build(source)
    store.merge([Paper(paper_id) for paper_id in ("a", "b", "c", "d", "e")], radius=0.1)

    created = orchestrator.create_clusters_from_assignment(
        [
            {"name": "Vision", "paperIds": ["a", "b", "c"]},
            {"name": "Language", "paperIds": ["d", "e", "unknown"]},
        ]
    )

    assert created is True
    assert store.tracker.pinned_ids == {"a", "b", "c", "d", "e"}
    assert store.repository.find("b").cluster_name == "Vision"
    assert store.repository.find("e").cluster_name == "Language"
    assert store.tracker.user_connections == [("a", "b"), ("a", "c"), ("d", "e")]
    assert store.link_type is LinkType.CUSTOM
    assert len(store.links.custom) == 3
    assert len(store.bridge.animator) == 5


def test_malformed_cluster_payload_is_rejected() -> None:
    orchestrator, store, _, _ = _build(FakePaperSource())
    store.merge([Paper("a")], radius=0.1)

    assert orchestrator.create_clusters_from_assignment([{"paperIds": ["a"]}]) is False
    assert orchestrator.create_clusters_from_assignment([{"name": "Nothing", "paperIds": ["zzz"]}]) is False
    assert store.tracker.pinned_ids == set()
    assert store.link_type is LinkType.RECOMMENDATION
