"""Tests for the FastAPI surface over a graph session."""
from __future__ import annotations

import time
from typing import Callable, List, Sequence, Tuple

import pytest
from fastapi.testclient import TestClient

from xrscholar.config import AppConfig, load_config
from xrscholar.contracts import (
    AuthorPapersResponse,
    CitationsResponse,
    PaperPayload,
    RecommendationsResponse,
    ReferencesResponse,
)
from xrscholar.graph.models import Paper, Vector3
from xrscholar.main import create_app
from xrscholar.session import GraphSession


class StubSource:
    """Paper source answering citations with a single new paper."""

    def __init__(self) -> None:
        self.requests: List[str] = []

    async def get_details_for_multiple_papers(self, paper_ids: Sequence[str]) -> List[PaperPayload]:
        self.requests.append("details")
        return [
            PaperPayload(paperId=paper_id, title=f"Paper {paper_id}", references=[{"paperId": "p1"}])
            for paper_id in paper_ids
        ]

    async def fetch_recommendations(self, positive_ids, negative_ids=(), *, limit=5, fields="paperId"):
        return RecommendationsResponse()

    async def get_citations_for_paper(self, paper_id: str, *, limit: int) -> CitationsResponse:
        self.requests.append("citations")
        return CitationsResponse(data=[{"citingPaper": {"paperId": "c1"}}])

    async def get_references_for_paper(self, paper_id: str, *, limit: int) -> ReferencesResponse:
        return ReferencesResponse()

    async def get_authors_papers(self, author_id: str, *, limit: int) -> AuthorPapersResponse:
        return AuthorPapersResponse()


def _client() -> Tuple[TestClient, GraphSession, StubSource]:
    source = StubSource()
    scheduled: List[Tuple[float, Callable[[], None]]] = []
    session = GraphSession(
        load_config(),
        source=source,
        scheduler=lambda delay, callback: scheduled.append((delay, callback)),
    )
    session.store.merge(
        [Paper("p1", title="Seed", abstract="About graphs"), Paper("p2", title="Other")],
        radius=0.1,
    )
    return TestClient(create_app(session=session)), session, source


def test_health_endpoint() -> None:
    client, _, _ = _client()

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": "0.1.0"}


def test_snapshot_lists_id_title_and_abstract() -> None:
    client, _, _ = _client()

    response = client.get("/graph/snapshot")

    assert response.status_code == 200
    assert response.json() == [
        {"paperId": "p1", "title": "Seed", "abstract": "About graphs"},
        {"paperId": "p2", "title": "Other", "abstract": None},
    ]


def test_paper_details_and_missing_paper() -> None:
    client, session, _ = _client()
    session.store.insights.add_summary("p1", "A seed paper")

    details = client.get("/graph/papers/p1")
    missing = client.get("/graph/papers/nope")

    assert details.status_code == 200
    assert details.json()["insights"]["summary"] == "A seed paper"
    assert details.json()["paperId"] == "p1"
    assert missing.status_code == 404


def test_citation_event_grows_graph() -> None:
    """Posting an event runs the enrichment before responding."""

    client, session, source = _client()
    session.store.select("p1")

    response = client.post("/graph/events", json={"event": "recommendByCitations", "data": {}})

    assert response.status_code == 200
    assert response.json() == {"event": "recommendByCitations", "handled": True, "busy": False}
    assert source.requests == ["citations", "details"]
    assert "c1" in session.store.repository

    selection = client.get("/graph/selection").json()
    assert selection["selected"] == []
    assert selection["link_type"] == "citation"

    frame = client.get("/graph/frame").json()
    assert frame["link_type"] == "citation"
    assert set(frame["positions"]) == {"p1", "p2", "c1"}
    assert len(frame["edges"]) == 1
    assert len(frame["edges"][0]) == 2


def test_unknown_event_returns_404() -> None:
    client, _, _ = _client()

    response = client.post("/graph/events", json={"event": "launchRockets"})

    assert response.status_code == 404


CLUSTER_EVENT = {
    "event": "createClustersGemini",
    "data": {
        "clusters": [
            {"name": "Left", "paperIds": ["a", "b"]},
            {"name": "Right", "paperIds": ["c", "d"]},
        ]
    },
}


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _config(*, tick_interval_ms: int, animation_ms: int) -> AppConfig:
    base = load_config()
    return base.model_copy(
        update={
            "simulation": base.simulation.model_copy(update={"tick_interval_ms": tick_interval_ms}),
            "clustering": base.clustering.model_copy(update={"animation_ms": animation_ms}),
        }
    )


def _cluster_session(config: AppConfig, **kwargs) -> GraphSession:
    scheduled: List[Tuple[float, Callable[[], None]]] = []
    session = GraphSession(
        config,
        source=StubSource(),
        scheduler=lambda delay, callback: scheduled.append((delay, callback)),
        **kwargs,
    )
    session.store.merge([Paper(paper_id) for paper_id in ("a", "b", "c", "d")], radius=0.1)
    return session


def _assert_cluster_slots(positions: dict) -> None:
    major = load_config().clustering.major_radius
    minor = load_config().clustering.minor_radius
    for hub_id, member_id in (("a", "b"), ("c", "d")):
        hub = Vector3(*positions[hub_id])
        member = Vector3(*positions[member_id])
        assert hub.length() == pytest.approx(major)
        assert member.distance_to(hub) == pytest.approx(minor)


def test_tick_endpoint_moves_clusters_to_their_slots() -> None:
    clock = FakeClock()
    session = _cluster_session(_config(tick_interval_ms=0, animation_ms=1000), clock=clock)
    client = TestClient(create_app(session=session))
    before = client.get("/graph/frame").json()["positions"]

    assert client.post("/graph/events", json=CLUSTER_EVENT).status_code == 200
    unchanged = client.get("/graph/frame").json()["positions"]
    clock.now = 0.5
    halfway = client.post("/graph/tick").json()["positions"]
    clock.now = 1.0
    done = client.post("/graph/tick").json()["positions"]

    assert unchanged == before
    assert halfway["b"] != before["b"]
    assert done["b"] != halfway["b"]
    assert len(session.bridge.animator) == 0
    _assert_cluster_slots(done)
    assert client.get("/graph/frame").json()["positions"] == done


def test_startup_runs_tick_loop_until_shutdown() -> None:
    session = _cluster_session(_config(tick_interval_ms=5, animation_ms=50))
    app = create_app(session=session)

    with TestClient(app) as client:
        assert app.state.tick_task is not None
        assert client.post("/graph/events", json=CLUSTER_EVENT).status_code == 200
        deadline = time.monotonic() + 2.0
        while len(session.bridge.animator) and time.monotonic() < deadline:
            time.sleep(0.02)
        positions = client.get("/graph/frame").json()["positions"]

    assert len(session.bridge.animator) == 0
    _assert_cluster_slots(positions)
    assert app.state.tick_task is None


def test_cluster_prompt_lists_current_papers() -> None:
    client, _, _ = _client()

    response = client.get("/graph/cluster-prompt")

    assert response.status_code == 200
    body = response.json()
    assert body["papers"] == 2
    assert '"paperId": "p1"' in body["prompt"]
    assert '"title": "Other"' in body["prompt"]
