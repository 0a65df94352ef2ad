"""Routing of named assistant and voice events to graph operations."""
from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from xrscholar.assistant.clustering import parse_cluster_response
from xrscholar.enrichment.orchestrator import EnrichmentOrchestrator
from xrscholar.graph.store import GraphStore

LOGGER = logging.getLogger(__name__)

EventData = Mapping[str, Any]
Handler = Callable[[EventData], Union[Any, Awaitable[Any]]]


class EventDispatcher:
    """Dispatch events such as ``recommendByCitations`` to the graph core.

    Handlers may be plain or coroutine functions; :meth:`dispatch` awaits the
    latter so every operation has finished when it returns.
    """

    def __init__(self, store: GraphStore, orchestrator: EnrichmentOrchestrator) -> None:
        self._store = store
        self._orchestrator = orchestrator
        self._handlers: Dict[str, Handler] = {
            "recommendByThematicSimilarity": lambda data: orchestrator.add_recommendations_from_selected(),
            "recommendByCitations": lambda data: orchestrator.add_citations_from_selected(),
            "recommendByReferences": lambda data: orchestrator.add_references_from_selected(),
            "recommendByAuthor": lambda data: orchestrator.add_papers_from_author(data.get("authorId")),
            "restoreDeletedPapers": lambda data: orchestrator.restore_deleted(),
            "createClustersGemini": self._create_clusters,
            "toggleLinks": lambda data: store.cycle_link_type(),
            "setLinkType": lambda data: store.set_link_type(data.get("linkType")),
            "deletePaper": lambda data: store.remove_selected(),
            "clearNodeSelection": lambda data: store.clear_selection(),
            "unpinNodes": lambda data: store.unpin_all(),
            "connectSelectedNodes": lambda data: store.connect_selected(),
            "summarizePaperGemini": self._summarize,
            "generateKeywordsGemini": self._keywords,
            "annotateGemini": self._annotate,
            "clearAnnotations": self._clear_annotations,
        }

    @property
    def event_names(self) -> List[str]:
        return sorted(self._handlers)

    def register(self, name: str, handler: Handler) -> None:
        self._handlers[name] = handler

    async def dispatch(self, name: str, data: Optional[EventData] = None) -> bool:
        """Run the handler registered for ``name``.

        Returns:
            bool: ``False`` when no handler is registered for ``name``.
        """

        handler = self._handlers.get(name)
        if handler is None:
            LOGGER.warning("Ignoring unknown event", extra={"event": name})
            return False
        payload: EventData = data or {}
        LOGGER.info("Dispatching event", extra={"event": name, "data": dict(payload)})
        result = handler(payload)
        if inspect.isawaitable(result):
            await result
        return True

    def _create_clusters(self, data: EventData) -> bool:
        """Lay out clusters from a parsed ``clusters`` list or raw assistant ``response`` text."""

        clusters = data.get("clusters")
        response = data.get("response")
        if clusters is None and isinstance(response, str):
            try:
                clusters = parse_cluster_response(response)
            except ValueError:
                return False
        if not isinstance(clusters, list):
            LOGGER.warning("createClustersGemini event without a clusters list", extra={"data": dict(data)})
            return False
        return self._orchestrator.create_clusters_from_assignment(clusters)

    def _target_paper(self, data: EventData) -> Optional[str]:
        paper_id = data.get("paperId") or self._store.tracker.focused_id
        if not paper_id or paper_id not in self._store.repository:
            LOGGER.warning("Assistant event for unknown paper", extra={"paper_id": paper_id})
            return None
        return str(paper_id)

    def _summarize(self, data: EventData) -> None:
        paper_id = self._target_paper(data)
        if paper_id is not None:
            self._store.insights.add_summary(paper_id, str(data.get("response") or ""))

    def _keywords(self, data: EventData) -> None:
        paper_id = self._target_paper(data)
        if paper_id is not None:
            self._store.insights.add_keywords(paper_id, data.get("response") or [])

    def _annotate(self, data: EventData) -> None:
        paper_id = self._target_paper(data)
        if paper_id is not None:
            self._store.insights.add_annotations(paper_id, str(data.get("response") or ""))

    def _clear_annotations(self, data: EventData) -> None:
        paper_id = self._target_paper(data)
        if paper_id is not None:
            self._store.insights.clear_annotations(paper_id)


__all__ = ["EventDispatcher"]
