"""Immutable wire contracts exchanged with the paper-data source and assistant."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _FrozenBaseModel(BaseModel):
    """Base model enforcing immutability and accepting camelCase payloads."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class AuthorPayload(_FrozenBaseModel):
    """Author entry attached to a paper record."""

    author_id: Optional[str] = Field(None, alias="authorId")
    name: Optional[str] = None


class ReferencePayload(_FrozenBaseModel):
    """Reference entry pointing at a cited paper."""

    paper_id: Optional[str] = Field(None, alias="paperId")


class PaperPayload(_FrozenBaseModel):
    """Paper record returned by the batch detail and author endpoints."""

    paper_id: str = Field(..., alias="paperId", min_length=1)
    title: Optional[str] = None
    abstract: Optional[str] = None
    authors: List[AuthorPayload] = Field(default_factory=list)
    references: List[ReferencePayload] = Field(default_factory=list)
    reference_count: Optional[int] = Field(None, alias="referenceCount", ge=0)
    citation_count: Optional[int] = Field(None, alias="citationCount", ge=0)
    year: Optional[int] = None
    venue: Optional[str] = None

    @field_validator("authors", "references", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        """Treat explicit ``null`` collections as empty lists."""

        return [] if value is None else value


class PaperIdPayload(_FrozenBaseModel):
    """Minimal payload carrying a single paper identifier."""

    paper_id: Optional[str] = Field(None, alias="paperId")


class RecommendationsResponse(_FrozenBaseModel):
    """Response body of the multi-paper recommendation endpoint."""

    recommended_papers: List[PaperIdPayload] = Field(default_factory=list, alias="recommendedPapers")

    def paper_ids(self) -> List[str]:
        """Return recommended identifiers in ranking order."""

        return [paper.paper_id for paper in self.recommended_papers if paper.paper_id]


class CitationItem(_FrozenBaseModel):
    """One citing paper of a citations page."""

    citing_paper: PaperIdPayload = Field(..., alias="citingPaper")


class CitationsResponse(_FrozenBaseModel):
    """Page of papers citing a given paper."""

    data: List[CitationItem] = Field(default_factory=list)

    def paper_ids(self) -> List[str]:
        return [item.citing_paper.paper_id for item in self.data if item.citing_paper.paper_id]


class ReferenceItem(_FrozenBaseModel):
    """One cited paper of a references page."""

    cited_paper: PaperIdPayload = Field(..., alias="citedPaper")


class ReferencesResponse(_FrozenBaseModel):
    """Page of papers referenced by a given paper."""

    data: List[ReferenceItem] = Field(default_factory=list)

    def paper_ids(self) -> List[str]:
        return [item.cited_paper.paper_id for item in self.data if item.cited_paper.paper_id]


class AuthorPapersResponse(_FrozenBaseModel):
    """Page of papers written by an author."""

    data: List[PaperIdPayload] = Field(default_factory=list)

    def paper_ids(self) -> List[str]:
        return [item.paper_id for item in self.data if item.paper_id]


class ClusterAssignment(_FrozenBaseModel):
    """Named group of papers proposed by the clustering assistant."""

    name: str
    paper_ids: List[str] = Field(default_factory=list, alias="paperIds")


class ClusterResponse(_FrozenBaseModel):
    """Envelope of a clustering assistant answer."""

    clusters: List[ClusterAssignment] = Field(default_factory=list)


class PaperSnapshot(_FrozenBaseModel):
    """Reduced paper view handed to summarisation and clustering models."""

    paper_id: str = Field(..., alias="paperId")
    title: Optional[str] = None
    abstract: Optional[str] = None


__all__ = [
    "AuthorPayload",
    "ReferencePayload",
    "PaperPayload",
    "PaperIdPayload",
    "RecommendationsResponse",
    "CitationItem",
    "CitationsResponse",
    "ReferenceItem",
    "ReferencesResponse",
    "AuthorPapersResponse",
    "ClusterAssignment",
    "ClusterResponse",
    "PaperSnapshot",
]
