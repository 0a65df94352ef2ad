"""Interpretation of pick, drag and hover callbacks from the scene host."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from xrscholar.config import GestureConfig
from xrscholar.graph.models import Vector3
from xrscholar.graph.store import GraphStore

LOGGER = logging.getLogger(__name__)


@dataclass
class _PointerState:
    picked_at: Optional[float] = None
    drag_origin: Optional[Vector3] = None
    dragging: bool = False
    moved: bool = False


class GestureTracker:
    """Turn raw pointer events on paper nodes into selection, focus and pins.

    A pick released within ``click_delay_ms`` that never turned into a real
    drag is a click. Holding a node without moving it past ``drag_threshold``
    is a long press. Dragging pins the node where it is dropped and, while two
    nodes are dragged at once, brings them close enough to connect them.
    """

    def __init__(self, store: GraphStore, settings: GestureConfig, *, drag_alpha: float) -> None:
        self._store = store
        self._settings = settings
        self._drag_alpha = drag_alpha
        self._states: Dict[str, _PointerState] = {}
        self._hovered: Optional[str] = None
        self._pointer_over: Set[str] = set()

    def _state(self, paper_id: str) -> _PointerState:
        return self._states.setdefault(paper_id, _PointerState())

    @property
    def hovered_id(self) -> Optional[str]:
        return self._hovered

    @property
    def dragging_ids(self) -> List[str]:
        return [paper_id for paper_id, state in self._states.items() if state.dragging]

    def is_dragging(self, paper_id: str) -> bool:
        state = self._states.get(paper_id)
        return bool(state and state.dragging)

    # hover -----------------------------------------------------------------

    def pointer_over(self, paper_id: str) -> None:
        LOGGER.debug("Pointer over node", extra={"paper_id": paper_id})
        self._pointer_over.add(paper_id)
        self._hovered = paper_id

    def pointer_out(self, paper_id: str) -> None:
        LOGGER.debug("Pointer out of node", extra={"paper_id": paper_id})
        self._pointer_over.discard(paper_id)
        if self._hovered == paper_id and not self.is_dragging(paper_id):
            self._hovered = None

    # picking ---------------------------------------------------------------

    def pick_down(self, paper_id: str, now: float) -> None:
        """Record the start of a pick; ``now`` is in seconds."""

        state = self._state(paper_id)
        state.picked_at = now
        state.moved = False
        LOGGER.debug("Pick down", extra={"paper_id": paper_id, "at": now})

    def long_press(self, paper_id: str) -> bool:
        """Focus a paper that is held but has not been moved.

        The host calls this once ``click_delay_ms`` has elapsed after
        :meth:`pick_down`.
        """

        state = self._states.get(paper_id)
        if state is None or not state.dragging or state.moved:
            return False
        LOGGER.info("Long press detected", extra={"paper_id": paper_id})
        self._store.focus(paper_id)
        return True

    def pick_up(self, paper_id: str, now: float) -> bool:
        """Handle the end of a pick.

        Returns:
            bool: ``True`` when the pick counted as a click.
        """

        state = self._state(paper_id)
        started = state.picked_at
        state.picked_at = None
        if state.moved:
            LOGGER.debug("Pick up ignored, node was dragged", extra={"paper_id": paper_id})
            return False
        if started is None or (now - started) * 1000.0 >= self._settings.click_delay_ms:
            return False
        LOGGER.info("Short click detected", extra={"paper_id": paper_id})
        if paper_id == self._store.tracker.focused_id:
            self._store.focus(None)
            self._store.select(paper_id)
        else:
            self._store.toggle_selection(paper_id)
        return True

    # dragging --------------------------------------------------------------

    def drag_start(self, paper_id: str, position: Vector3) -> None:
        state = self._state(paper_id)
        state.dragging = True
        state.moved = False
        state.drag_origin = Vector3(*position)
        LOGGER.debug("Drag started", extra={"paper_id": paper_id, "position": list(position)})

    def drag_move(self, paper_id: str, position: Vector3) -> List[str]:
        """Follow the pointer, pin the node and look for proximity connections.

        Returns:
            List[str]: Papers a proximity connection was detected with.
        """

        paper = self._store.repository.find(paper_id)
        if paper is None:
            LOGGER.warning("Drag on unknown paper", extra={"paper_id": paper_id})
            return []
        state = self._state(paper_id)
        target = Vector3(*position)
        if state.drag_origin is None:
            state.drag_origin = target
        if target.distance_to(state.drag_origin) > self._settings.drag_threshold:
            state.moved = True
        paper.position = target
        self._store.tracker.pin(paper_id, target)
        if state.moved:
            self._store.bridge.nudge(self._drag_alpha)

        others: Dict[str, Vector3] = {}
        for other_id in self.dragging_ids:
            other = self._store.repository.find(other_id)
            if other_id != paper_id and other is not None:
                others[other_id] = other.position
        if not others:
            return []
        return self._store.tracker.check_proximity_connections(
            paper_id, target, others, self._settings.proximity_threshold
        )

    def drag_end(self, paper_id: str) -> None:
        """Finish a drag; the node stays pinned where it was released."""

        state = self._state(paper_id)
        state.dragging = False
        state.drag_origin = None
        if self._hovered == paper_id and paper_id not in self._pointer_over:
            self._hovered = None
        self._store.tracker.end_proximity_window()
        LOGGER.debug("Drag ended", extra={"paper_id": paper_id})

    def retain(self, live_ids: Set[str]) -> None:
        """Drop pointer state of papers that left the graph."""

        for paper_id in [known for known in self._states if known not in live_ids]:
            self._states.pop(paper_id, None)
            self._pointer_over.discard(paper_id)
        if self._hovered is not None and self._hovered not in live_ids:
            self._hovered = None


__all__ = ["GestureTracker"]
