"""Mutable graph records shared by the repository, solver and renderer."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from xrscholar.contracts import PaperPayload, PaperSnapshot


class Vector3(NamedTuple):
    """Point or direction in world space."""

    x: float
    y: float
    z: float

    def __add__(self, other: "Vector3") -> "Vector3":  # type: ignore[override]
        return Vector3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def distance_to(self, other: "Vector3") -> float:
        return (self - other).length()

    def lerp(self, other: "Vector3", t: float) -> "Vector3":
        """Interpolate linearly towards ``other`` by the fraction ``t``."""

        return Vector3(
            self.x + (other.x - self.x) * t,
            self.y + (other.y - self.y) * t,
            self.z + (other.z - self.z) * t,
        )


ORIGIN = Vector3(0.0, 0.0, 0.0)

Color = Tuple[float, float, float]


class LinkType(str, Enum):
    """Edge categories derived from the paper set."""

    RECOMMENDATION = "recommendation"
    CITATION = "citation"
    AUTHOR = "author"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: object) -> Optional["LinkType"]:
        """Return the matching member or ``None`` for unknown values."""

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Author:
    """Author reference attached to a paper."""

    author_id: Optional[str]
    name: Optional[str] = None


@dataclass(eq=False)
class Paper:
    """Graph node representing one academic work.

    ``x``/``y``/``z`` is owned by the force solver. ``fx``/``fy``/``fz`` is the
    optional fixed position; when present the solver must not move the node.
    """

    paper_id: str
    title: Optional[str] = None
    abstract: Optional[str] = None
    authors: List[Author] = field(default_factory=list)
    references: List[str] = field(default_factory=list)
    reference_count: Optional[int] = None
    citation_count: Optional[int] = None
    year: Optional[int] = None
    venue: Optional[str] = None
    recommends: List[str] = field(default_factory=list)
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    fx: Optional[float] = None
    fy: Optional[float] = None
    fz: Optional[float] = None
    color: Optional[Color] = None
    cluster_name: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: PaperPayload) -> "Paper":
        """Build a node from a paper-data source record."""

        return cls(
            paper_id=payload.paper_id,
            title=payload.title,
            abstract=payload.abstract,
            authors=[Author(author_id=author.author_id, name=author.name) for author in payload.authors],
            references=[ref.paper_id for ref in payload.references if ref.paper_id],
            reference_count=payload.reference_count,
            citation_count=payload.citation_count,
            year=payload.year,
            venue=payload.venue,
        )

    @classmethod
    def placeholder(cls, paper_id: str) -> "Paper":
        """Return a bare node used when metadata could not be fetched."""

        return cls(paper_id=paper_id)

    @property
    def position(self) -> Vector3:
        return Vector3(self.x, self.y, self.z)

    @position.setter
    def position(self, value: Vector3) -> None:
        self.x, self.y, self.z = float(value[0]), float(value[1]), float(value[2])

    @property
    def fixed_position(self) -> Optional[Vector3]:
        if self.fx is None or self.fy is None or self.fz is None:
            return None
        return Vector3(self.fx, self.fy, self.fz)

    @property
    def is_fixed(self) -> bool:
        return self.fixed_position is not None

    def fix_at(self, position: Vector3) -> None:
        """Fix the node at ``position`` so the solver leaves it in place."""

        self.fx, self.fy, self.fz = float(position[0]), float(position[1]), float(position[2])

    def fix_in_place(self) -> None:
        self.fix_at(self.position)

    def release(self) -> None:
        self.fx = None
        self.fy = None
        self.fz = None

    def author_ids(self) -> List[str]:
        return [author.author_id for author in self.authors if author.author_id]

    def snapshot(self) -> PaperSnapshot:
        return PaperSnapshot(paper_id=self.paper_id, title=self.title, abstract=self.abstract)

    def to_dict(self) -> Dict[str, object]:
        """Return a JSON-serialisable payload for API responses."""

        return {
            "paperId": self.paper_id,
            "title": self.title,
            "abstract": self.abstract,
            "authors": [{"authorId": author.author_id, "name": author.name} for author in self.authors],
            "references": list(self.references),
            "referenceCount": self.reference_count,
            "citationCount": self.citation_count,
            "year": self.year,
            "venue": self.venue,
            "recommends": list(self.recommends),
            "position": list(self.position),
            "pinned": self.is_fixed,
            "color": list(self.color) if self.color is not None else None,
            "clusterName": self.cluster_name,
        }


@dataclass(frozen=True)
class Link:
    """Directed edge between two papers currently held by the repository."""

    source: Paper
    target: Paper
    link_type: LinkType

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.source.paper_id, self.target.paper_id, self.link_type.value)

    def references_any(self, paper_ids: "frozenset[str] | set[str]") -> bool:
        return self.source.paper_id in paper_ids or self.target.paper_id in paper_ids

    def segment(self) -> Tuple[Vector3, Vector3]:
        """Return the edge as a pair of current endpoint positions."""

        return (self.source.position, self.target.position)


@dataclass
class LinkSets:
    """Edge lists per link type."""

    citation: List[Link] = field(default_factory=list)
    recommendation: List[Link] = field(default_factory=list)
    author: List[Link] = field(default_factory=list)
    custom: List[Link] = field(default_factory=list)

    def of_type(self, link_type: LinkType) -> List[Link]:
        if link_type is LinkType.CITATION:
            return self.citation
        if link_type is LinkType.RECOMMENDATION:
            return self.recommendation
        if link_type is LinkType.AUTHOR:
            return self.author
        if link_type is LinkType.CUSTOM:
            return self.custom
        raise ValueError(f"Unsupported link type: {link_type!r}")

    def __iter__(self) -> Iterator[Link]:
        for link_type in LinkType:
            yield from self.of_type(link_type)

    def without(self, paper_ids: "frozenset[str] | set[str]") -> "LinkSets":
        """Return a copy dropping every link touching ``paper_ids``."""

        return LinkSets(
            citation=[link for link in self.citation if not link.references_any(paper_ids)],
            recommendation=[link for link in self.recommendation if not link.references_any(paper_ids)],
            author=[link for link in self.author if not link.references_any(paper_ids)],
            custom=[link for link in self.custom if not link.references_any(paper_ids)],
        )

    def counts(self) -> Dict[str, int]:
        return {link_type.value: len(self.of_type(link_type)) for link_type in LinkType}


__all__ = [
    "Author",
    "Color",
    "Link",
    "LinkSets",
    "LinkType",
    "ORIGIN",
    "Paper",
    "Vector3",
]
