"""Prompt construction and answer parsing for the clustering assistant."""
from __future__ import annotations

import json
import logging
from typing import Iterable, List

from pydantic import ValidationError

from xrscholar.contracts import ClusterAssignment, ClusterResponse, PaperSnapshot

LOGGER = logging.getLogger(__name__)

CLUSTER_PROMPT = (
    "You are an AI that clusters academic papers based on thematic similarity. "
    'Given a list of papers, each with a unique "paperId", "title", and "abstract", '
    "organize them into at least 2 clusters with at least 2 papers per cluster.\n"
    "Instructions:\n"
    "- Group papers by thematic similarity of their title and abstract.\n"
    "- Give every cluster a short descriptive name summarizing the common theme.\n"
    "- Each paper appears in exactly one cluster. Do not leave any paper unclustered.\n"
    "Output format:\n"
    '{"clusters": [{"name": "AI in Healthcare", "paperIds": ["p1", "p2"]}, '
    '{"name": "Quantum Computing & Security", "paperIds": ["p3", "p4"]}]}\n'
    "Return only the JSON object, without commentary, labels or code fences. "
    "The first and last characters must be { and }.\n"
    "Now process the following input and generate clusters accordingly:"
)


def build_cluster_prompt(snapshot: Iterable[PaperSnapshot]) -> str:
    """Return the clustering instructions followed by the paper snapshot as JSON."""

    papers = [paper.model_dump(by_alias=True) for paper in snapshot]
    return f"{CLUSTER_PROMPT}\n\n{json.dumps({'papers': papers}, indent=4)}"


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
        if cleaned[:4].lower() == "json":
            cleaned = cleaned[4:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_cluster_response(text: str) -> List[ClusterAssignment]:
    """Parse an assistant answer into cluster assignments.

    Raises:
        ValueError: If the text is not a JSON object with a ``clusters`` list.
    """

    response_text = _strip_fences(text or "")
    try:
        parsed = json.loads(response_text)
    except json.JSONDecodeError as exc:
        LOGGER.error("Clustering assistant returned non-JSON content: %s", response_text)
        raise ValueError("Clustering response is not valid JSON") from exc
    if not isinstance(parsed, dict) or not isinstance(parsed.get("clusters"), list):
        LOGGER.error("Clustering response clusters field malformed: %s", parsed)
        raise ValueError("Clustering response must contain a clusters list")
    try:
        response = ClusterResponse.model_validate(parsed)
    except ValidationError as exc:
        LOGGER.error("Clustering response failed validation: %s", exc)
        raise ValueError("Clustering response failed validation") from exc
    return list(response.clusters)


__all__ = ["CLUSTER_PROMPT", "build_cluster_prompt", "parse_cluster_response"]
