"""Remote paper data and the orchestration that grows the graph from it."""

from .client import PaperSource, PaperSourceError, SemanticScholarClient
from .orchestrator import EnrichmentOrchestrator

__all__ = [
    "EnrichmentOrchestrator",
    "PaperSource",
    "PaperSourceError",
    "SemanticScholarClient",
]
