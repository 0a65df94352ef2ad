"""FastAPI application factory exposing the graph session to the scene host."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from xrscholar.assistant.clustering import build_cluster_prompt
from xrscholar.config import AppConfig, load_config
from xrscholar.session import GraphSession
from xrscholar.simulation.bridge import Frame

LOGGER = logging.getLogger(__name__)


class EventRequest(BaseModel):
    """Named event forwarded from the assistant or voice channel."""

    event: str = Field(..., min_length=1, description="Event name, e.g. recommendByCitations")
    data: Dict[str, Any] = Field(default_factory=dict, description="Event payload")


class EventResponse(BaseModel):
    """Outcome of a dispatched event."""

    event: str
    handled: bool
    busy: bool


class SnapshotEntry(BaseModel):
    """Identifier, title and abstract of one paper."""

    paperId: str
    title: Optional[str] = None
    abstract: Optional[str] = None


class SelectionResponse(BaseModel):
    """Current selection, focus, pins and link type."""

    selected: List[str]
    focused: Optional[str] = None
    pinned: List[str]
    removed: List[str]
    link_type: str
    busy: bool


class FrameResponse(BaseModel):
    """Node positions and active edge segments of the latest tick."""

    link_type: str
    positions: Dict[str, List[float]]
    edges: List[List[List[float]]]

    @classmethod
    def from_frame(cls, frame: Frame) -> "FrameResponse":
        return cls(
            link_type=frame.link_type.value,
            positions={paper_id: list(position) for paper_id, position in frame.positions.items()},
            edges=[[list(start), list(end)] for start, end in frame.edges],
        )


class ClusterPromptResponse(BaseModel):
    """Instructions and paper snapshot for the clustering assistant."""

    prompt: str
    papers: int


def create_app(
    config: AppConfig | None = None,
    session: Optional[GraphSession] = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Optional pre-loaded configuration. If omitted, the default
            configuration defined in config.yaml is used.
        session: Optional pre-built graph session. When omitted a session is
            built from ``config`` and seeded on startup.

    Returns:
        FastAPI: Configured FastAPI application.
    """

    resolved_config = config or (session.config if session is not None else load_config())
    app = FastAPI(title=resolved_config.server.title, version=resolved_config.server.version)
    app.state.app_config = resolved_config
    graph_session = session or GraphSession(resolved_config)
    app.state.graph_session = graph_session
    app.state.tick_task = None

    @app.on_event("startup")
    async def _start_session() -> None:
        if not graph_session.store.papers:
            await graph_session.start()
        if graph_session.config.simulation.tick_interval_ms > 0:
            app.state.tick_task = asyncio.create_task(graph_session.run_ticks())

    @app.on_event("shutdown")
    async def _close_session() -> None:
        tick_task = app.state.tick_task
        if tick_task is not None:
            tick_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await tick_task
            app.state.tick_task = None
        await graph_session.aclose()

    allowed_origins = resolved_config.server.allowed_origins
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/health", tags=["system"], summary="Service health probe")
    def health() -> dict[str, str]:
        """Return service health information."""

        return {"status": "ok", "version": resolved_config.server.version}

    @app.get("/graph/snapshot", tags=["graph"], summary="Papers currently in the graph")
    def snapshot() -> List[SnapshotEntry]:
        return [
            SnapshotEntry(paperId=paper.paper_id, title=paper.title, abstract=paper.abstract)
            for paper in graph_session.store.snapshot()
        ]

    @app.get("/graph/selection", tags=["graph"], summary="Selection, focus and pins")
    def selection() -> SelectionResponse:
        store = graph_session.store
        return SelectionResponse(
            selected=store.tracker.selected_ids,
            focused=store.tracker.focused_id,
            pinned=sorted(store.tracker.pinned_ids),
            removed=store.removed_ids,
            link_type=store.link_type.value,
            busy=graph_session.orchestrator.busy,
        )

    @app.get("/graph/papers/{paper_id}", tags=["graph"], summary="Paper details with insights")
    def paper_details(paper_id: str) -> Dict[str, Any]:
        details = graph_session.store.describe(paper_id)
        if details is None:
            raise HTTPException(status_code=404, detail="Paper not found")
        return details

    @app.get("/graph/frame", tags=["graph"], summary="Latest node positions and edges")
    def frame() -> FrameResponse:
        return FrameResponse.from_frame(graph_session.bridge.frame())

    @app.post("/graph/tick", tags=["graph"], summary="Advance the simulation by one tick")
    async def tick() -> FrameResponse:
        """Let a host without the background loop drive the simulation."""

        return FrameResponse.from_frame(graph_session.bridge.tick())

    @app.get("/graph/cluster-prompt", tags=["assistant"], summary="Prompt for clustering the graph")
    def cluster_prompt() -> ClusterPromptResponse:
        snapshot = graph_session.store.snapshot()
        return ClusterPromptResponse(prompt=build_cluster_prompt(snapshot), papers=len(snapshot))

    @app.post("/graph/events", tags=["graph"], summary="Dispatch a named graph event")
    async def dispatch_event(payload: EventRequest) -> EventResponse:
        handled = await graph_session.dispatcher.dispatch(payload.event, payload.data)
        if not handled:
            raise HTTPException(status_code=404, detail=f"Unknown event: {payload.event}")
        return EventResponse(event=payload.event, handled=True, busy=graph_session.orchestrator.busy)

    return app


__all__ = [
    "ClusterPromptResponse",
    "EventRequest",
    "EventResponse",
    "FrameResponse",
    "SelectionResponse",
    "create_app",
]
