"""Coupling between the paper repository, the force solver and the renderer."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple, runtime_checkable

from xrscholar.config import SimulationConfig
from xrscholar.graph.layout import ease_out_quad
from xrscholar.graph.models import Link, LinkType, Paper, Vector3

LOGGER = logging.getLogger(__name__)

Segment = Tuple[Vector3, Vector3]


class HighlightKind(str, Enum):
    """Highlight styles the render host applies to node meshes."""

    SELECTED = "selected"
    PENDING = "pending"
    FOCUSED = "focused"
    ADDED = "added"


@runtime_checkable
class ForceSolver(Protocol):
    """Iterative position solver consumed as a black box."""

    def set_nodes(self, papers: Sequence[Paper]) -> None:
        """Replace the solver's node array."""

    def set_links(self, links: Sequence[Link], *, distance: float, strength: float) -> None:
        """Replace the link force edges and their rest length and stiffness."""

    def set_alpha(self, alpha: float) -> None:
        """Raise or lower the simulation heat."""

    def tick(self) -> None:
        """Advance the simulation by one step, writing ``x``/``y``/``z``."""


@runtime_checkable
class RenderSink(Protocol):
    """Narrow render-sync interface implemented by the scene host."""

    def render_nodes(self, papers: Sequence[Paper]) -> None:
        """Recreate node meshes for ``papers``."""

    def render_links(self, link_type: LinkType, links: Sequence[Link]) -> None:
        """Recreate the line system for the active link type."""

    def update_frame(self, frame: "Frame") -> None:
        """Move meshes and lines to the positions of one tick."""

    def set_highlight(self, paper_id: str, kind: Optional[HighlightKind]) -> None:
        """Apply or clear (``None``) a highlight on a node."""

    def notify(self, message: str) -> None:
        """Show a transient user-facing message."""


class NullRenderSink:
    """Render sink used when no scene host is attached."""

    def render_nodes(self, papers: Sequence[Paper]) -> None:
        return None

    def render_links(self, link_type: LinkType, links: Sequence[Link]) -> None:
        return None

    def update_frame(self, frame: "Frame") -> None:
        return None

    def set_highlight(self, paper_id: str, kind: Optional[HighlightKind]) -> None:
        return None

    def notify(self, message: str) -> None:
        LOGGER.info("Notice: %s", message)


class FixedPointSolver:
    """Minimal solver that only enforces fixed positions.

    Free nodes keep whatever position they were given. It lets the core run
    headless (tests, the HTTP surface) when no physics engine is attached.
    """

    def __init__(self) -> None:
        self.nodes: List[Paper] = []
        self.links: List[Link] = []
        self.alpha = 0.0
        self.link_distance = 0.0
        self.link_strength = 0.0

    def set_nodes(self, papers: Sequence[Paper]) -> None:
        self.nodes = list(papers)

    def set_links(self, links: Sequence[Link], *, distance: float, strength: float) -> None:
        self.links = list(links)
        self.link_distance = distance
        self.link_strength = strength

    def set_alpha(self, alpha: float) -> None:
        self.alpha = alpha

    def tick(self) -> None:
        for paper in self.nodes:
            fixed = paper.fixed_position
            if fixed is not None:
                paper.position = fixed
        self.alpha *= 0.99


@dataclass(frozen=True)
class Frame:
    """Positions and edge segments published for one solver tick."""

    positions: Dict[str, Vector3]
    edges: List[Segment]
    link_type: LinkType


@dataclass
class _Animation:
    paper: Paper
    start: Vector3
    end: Vector3
    started_at: float
    duration: float
    on_complete: Optional[Callable[[Paper], None]] = None


class NodeAnimator:
    """Drive fixed positions of papers towards targets over time."""

    def __init__(self) -> None:
        self._animations: Dict[str, _Animation] = {}

    def __len__(self) -> int:
        return len(self._animations)

    def start(
        self,
        paper: Paper,
        start: Vector3,
        end: Vector3,
        *,
        duration_seconds: float,
        now: float,
        on_complete: Optional[Callable[[Paper], None]] = None,
    ) -> None:
        """Animate ``paper`` from ``start`` to ``end``, replacing any running animation."""

        paper.fix_at(start)
        self._animations[paper.paper_id] = _Animation(
            paper=paper,
            start=start,
            end=end,
            started_at=now,
            duration=max(duration_seconds, 0.0),
            on_complete=on_complete,
        )

    def cancel(self, paper_ids: Iterable[str]) -> None:
        for paper_id in paper_ids:
            self._animations.pop(paper_id, None)

    def step(self, now: float) -> List[str]:
        """Advance every animation; return ids whose animation finished."""

        finished: List[str] = []
        for paper_id, animation in list(self._animations.items()):
            if animation.duration <= 0:
                t = 1.0
            else:
                t = ease_out_quad((now - animation.started_at) / animation.duration)
            animation.paper.fix_at(animation.start.lerp(animation.end, t))
            if t >= 1.0:
                finished.append(paper_id)
                del self._animations[paper_id]
                if animation.on_complete is not None:
                    animation.on_complete(animation.paper)
        return finished


class SimulationBridge:
    """Keep the external solver in step with the repository and publish ticks."""

    def __init__(
        self,
        solver: ForceSolver,
        settings: SimulationConfig,
        *,
        sink: Optional[RenderSink] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._solver = solver
        self._settings = settings
        self._sink: RenderSink = sink or NullRenderSink()
        self._clock = clock
        self._papers: List[Paper] = []
        self._links: List[Link] = []
        self._link_type = LinkType.RECOMMENDATION
        self._listeners: List[Callable[[Frame], None]] = []
        self.animator = NodeAnimator()

    @property
    def sink(self) -> RenderSink:
        return self._sink

    @property
    def solver(self) -> ForceSolver:
        return self._solver

    def now(self) -> float:
        return self._clock()

    def on_tick(self, callback: Callable[[Frame], None]) -> None:
        self._listeners.append(callback)

    def reseed(
        self,
        papers: Sequence[Paper],
        *,
        pinned: Optional[Set[str]] = None,
        freeze: bool = True,
    ) -> None:
        """Hand the current node array to the solver.

        With ``freeze`` every paper is held in place while the
        solver ingests the array, then released again unless it is pinned.
        """

        kept = pinned or set()
        self._papers = list(papers)
        if freeze:
            for paper in self._papers:
                if not paper.is_fixed:
                    paper.fix_in_place()
        self._solver.set_nodes(self._papers)
        self._solver.set_alpha(self._settings.insert_alpha)
        if freeze:
            for paper in self._papers:
                if paper.paper_id not in kept:
                    paper.release()
        LOGGER.debug("Solver reseeded", extra={"nodes": len(self._papers), "pinned": len(kept)})

    def set_links(self, link_type: LinkType, links: Sequence[Link]) -> None:
        """Use ``links`` as the solver's link force and the rendered edge list."""

        self._link_type = link_type
        self._links = list(links)
        self._solver.set_links(
            self._links,
            distance=self._settings.link_distance,
            strength=self._settings.link_strength,
        )
        self._sink.render_links(link_type, self._links)

    def nudge(self, alpha: Optional[float] = None) -> None:
        """Reheat the layout so it can relax after a structural change."""

        self._solver.set_alpha(self._settings.settle_alpha if alpha is None else alpha)

    def animate_to(
        self,
        paper: Paper,
        target: Vector3,
        duration_ms: int,
        *,
        on_complete: Optional[Callable[[Paper], None]] = None,
    ) -> None:
        self.animator.start(
            paper,
            paper.position,
            target,
            duration_seconds=duration_ms / 1000.0,
            now=self._clock(),
            on_complete=on_complete,
        )

    def tick(self) -> Frame:
        """Advance animations and the solver once and publish the frame."""

        self.animator.step(self._clock())
        self._solver.tick()
        frame = self.frame()
        self._sink.update_frame(frame)
        for listener in list(self._listeners):
            listener(frame)
        return frame

    def frame(self) -> Frame:
        """Build positions and edges from the current endpoint positions."""

        positions = {paper.paper_id: paper.position for paper in self._papers}
        edges = [link.segment() for link in self._links]
        return Frame(positions=positions, edges=edges, link_type=self._link_type)


__all__ = [
    "FixedPointSolver",
    "ForceSolver",
    "Frame",
    "HighlightKind",
    "NodeAnimator",
    "NullRenderSink",
    "RenderSink",
    "Segment",
    "SimulationBridge",
]
