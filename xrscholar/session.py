"""Composition root wiring one interactive graph session from configuration."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from xrscholar.config import AppConfig
from xrscholar.enrichment.client import PaperSource, SemanticScholarClient
from xrscholar.enrichment.orchestrator import EnrichmentOrchestrator, Scheduler, call_later
from xrscholar.events import EventDispatcher
from xrscholar.graph.gestures import GestureTracker
from xrscholar.graph.store import GraphStore
from xrscholar.simulation.bridge import FixedPointSolver, ForceSolver, RenderSink, SimulationBridge

LOGGER = logging.getLogger(__name__)


class GraphSession:
    """Own every component of one graph view.

    Collaborators that talk to the outside world (paper source, solver, render
    sink, clock, scheduler) can be injected; defaults are built from ``config``.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        source: Optional[PaperSource] = None,
        solver: Optional[ForceSolver] = None,
        sink: Optional[RenderSink] = None,
        clock: Callable[[], float] = time.monotonic,
        scheduler: Scheduler = call_later,
    ) -> None:
        self.config = config
        self._owned_client: Optional[SemanticScholarClient] = None
        if source is None:
            self._owned_client = SemanticScholarClient(config.semantic_scholar)
            source = self._owned_client
        self.source = source
        self.bridge = SimulationBridge(solver or FixedPointSolver(), config.simulation, sink=sink, clock=clock)
        self.store = GraphStore(self.bridge)
        self.orchestrator = EnrichmentOrchestrator(
            self.store,
            source,
            config.enrichment,
            config.clustering,
            scheduler=scheduler,
        )
        self.gestures = GestureTracker(self.store, config.gestures, drag_alpha=config.simulation.drag_alpha)
        self.store.subscribe_nodes(
            lambda snapshot: self.gestures.retain({paper.paper_id for paper in snapshot})
        )
        self.dispatcher = EventDispatcher(self.store, self.orchestrator)
        LOGGER.info("Graph session created", extra={"seeds": list(config.enrichment.seed_paper_ids)})

    async def start(self) -> None:
        """Load the configured seed papers."""

        await self.orchestrator.fetch_initial_papers()

    async def run_ticks(self) -> None:
        """Advance the simulation at the configured interval until cancelled."""

        interval = self.config.simulation.tick_interval_ms / 1000.0
        LOGGER.info("Simulation tick loop started", extra={"interval_seconds": interval})
        while True:
            self.bridge.tick()
            await asyncio.sleep(interval)

    async def aclose(self) -> None:
        if self._owned_client is not None:
            await self._owned_client.aclose()


__all__ = ["GraphSession"]
