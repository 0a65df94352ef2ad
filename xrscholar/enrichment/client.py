"""Async client for the Semantic Scholar graph and recommendation APIs."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import httpx
from pydantic import ValidationError

from xrscholar.config import SemanticScholarConfig
from xrscholar.contracts import (
    AuthorPapersResponse,
    CitationsResponse,
    PaperPayload,
    RecommendationsResponse,
    ReferencesResponse,
)

LOGGER = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class PaperSourceError(RuntimeError):
    """Raised when the paper-data source keeps failing after all retries."""


@runtime_checkable
class PaperSource(Protocol):
    """Fallible async source of paper metadata, citations and recommendations."""

    async def get_details_for_multiple_papers(self, paper_ids: Sequence[str]) -> List[PaperPayload]:
        """Return full records for ``paper_ids``."""

    async def fetch_recommendations(
        self,
        positive_ids: Sequence[str],
        negative_ids: Sequence[str] = (),
        *,
        limit: int = 5,
        fields: str = "paperId",
    ) -> RecommendationsResponse:
        """Return papers recommended from the positive and negative examples."""

    async def get_citations_for_paper(self, paper_id: str, *, limit: int) -> CitationsResponse:
        """Return papers citing ``paper_id``."""

    async def get_references_for_paper(self, paper_id: str, *, limit: int) -> ReferencesResponse:
        """Return papers referenced by ``paper_id``."""

    async def get_authors_papers(self, author_id: str, *, limit: int) -> AuthorPapersResponse:
        """Return papers written by ``author_id``."""


class SemanticScholarClient:
    """Paper source backed by ``httpx.AsyncClient`` with a fixed-delay retry loop.

    Every request is attempted up to ``max_attempts`` times, waiting
    ``retry_delay_seconds`` between attempts, on any transport error, non-2xx
    status or undecodable body. Only after the last attempt fails is a
    :class:`PaperSourceError` raised.
    """

    def __init__(
        self,
        settings: SemanticScholarConfig,
        *,
        client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.timeout_seconds)
        self._sleep = sleep
        self._headers: Dict[str, str] = {"Content-Type": "application/json"}
        if settings.api_key:
            self._headers["x-api-key"] = settings.api_key

    async def aclose(self) -> None:
        """Close underlying HTTP resources if this instance owns them."""

        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "SemanticScholarClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def get_details_for_multiple_papers(self, paper_ids: Sequence[str]) -> List[PaperPayload]:
        ids = [paper_id for paper_id in paper_ids if paper_id]
        if not ids:
            raise ValueError("paper_ids must be a non-empty sequence")
        payload = await self._request_with_retries(
            "POST",
            f"{self._settings.graph_url}/paper/batch",
            params={"fields": ",".join(self._settings.detail_fields)},
            body={"ids": ids},
            description="paper details",
        )
        if not isinstance(payload, list):
            raise PaperSourceError("Paper details response was not a list")
        papers: List[PaperPayload] = []
        for entry in payload:
            if entry is None:
                continue
            try:
                papers.append(PaperPayload.model_validate(entry))
            except ValidationError as exc:
                LOGGER.warning("Skipping malformed paper record: %s", exc)
        LOGGER.info("Paper details received", extra={"requested": len(ids), "received": len(papers)})
        return papers

    async def fetch_recommendations(
        self,
        positive_ids: Sequence[str],
        negative_ids: Sequence[str] = (),
        *,
        limit: int = 5,
        fields: str = "paperId",
    ) -> RecommendationsResponse:
        positives = [paper_id for paper_id in positive_ids if paper_id]
        if not positives:
            raise ValueError("positive_ids must be a non-empty sequence")
        LOGGER.info("Requesting recommendations", extra={"positive_ids": positives})
        payload = await self._request_with_retries(
            "POST",
            f"{self._settings.recommendations_url}/papers",
            params={"limit": limit, "fields": fields},
            body={"positivePaperIds": positives, "negativePaperIds": list(negative_ids)},
            description="recommendations",
        )
        return self._validate(RecommendationsResponse, payload, "recommendations")

    async def get_citations_for_paper(self, paper_id: str, *, limit: int) -> CitationsResponse:
        if not paper_id:
            raise ValueError("paper_id must be a non-empty string")
        payload = await self._request_with_retries(
            "GET",
            f"{self._settings.graph_url}/paper/{paper_id}/citations",
            params={"fields": "paperId", "limit": limit},
            description="citations",
        )
        return self._validate(CitationsResponse, payload, "citations")

    async def get_references_for_paper(self, paper_id: str, *, limit: int) -> ReferencesResponse:
        if not paper_id:
            raise ValueError("paper_id must be a non-empty string")
        payload = await self._request_with_retries(
            "GET",
            f"{self._settings.graph_url}/paper/{paper_id}/references",
            params={"fields": "paperId", "limit": limit},
            description="references",
        )
        return self._validate(ReferencesResponse, payload, "references")

    async def get_authors_papers(self, author_id: str, *, limit: int) -> AuthorPapersResponse:
        if not author_id:
            raise ValueError("author_id must be a non-empty string")
        payload = await self._request_with_retries(
            "GET",
            f"{self._settings.graph_url}/author/{author_id}/papers",
            params={"fields": "paperId", "limit": limit},
            description="author papers",
        )
        return self._validate(AuthorPapersResponse, payload, "author papers")

    @staticmethod
    def _validate(model: Any, payload: Any, description: str) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            LOGGER.error("Unexpected %s payload: %s", description, exc)
            raise PaperSourceError(f"Unexpected {description} payload") from exc

    async def _request_with_retries(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        description: str,
    ) -> Any:
        """Send the request, retrying with a fixed delay until attempts run out."""

        max_attempts = self._settings.max_attempts
        last_error = "no attempt made"
        for attempt in range(1, max_attempts + 1):
            start = time.perf_counter()
            try:
                response = await self._client.request(
                    method,
                    url,
                    params=params,
                    json=body,
                    headers=self._headers,
                )
                elapsed = time.perf_counter() - start
                if response.is_success:
                    payload = response.json()
                    if attempt > 1:
                        LOGGER.info(
                            "Request for %s succeeded after %s attempts (%.2fs)",
                            description,
                            attempt,
                            elapsed,
                        )
                    return payload
                last_error = f"status {response.status_code} - {response.text}"
                LOGGER.warning(
                    "Request for %s failed with status %s after %.2fs (attempt %s/%s)",
                    description,
                    response.status_code,
                    elapsed,
                    attempt,
                    max_attempts,
                )
            except (httpx.HTTPError, json.JSONDecodeError) as exc:
                last_error = f"{exc.__class__.__name__}: {exc}"
                LOGGER.warning(
                    "Request for %s raised %s (attempt %s/%s)",
                    description,
                    exc.__class__.__name__,
                    attempt,
                    max_attempts,
                )
            if attempt < max_attempts:
                await self._sleep(self._settings.retry_delay_seconds)
        LOGGER.error("All %s attempts for %s failed: %s", max_attempts, description, last_error)
        raise PaperSourceError(f"All {max_attempts} attempts failed. Last error: {last_error}")


__all__ = ["PaperSource", "PaperSourceError", "SemanticScholarClient"]
