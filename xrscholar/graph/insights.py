"""Assistant-produced notes attached to papers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

LOGGER = logging.getLogger(__name__)


@dataclass
class PaperInsight:
    """Summary, keywords and annotations gathered for one paper."""

    summary: Optional[str] = None
    keywords: List[str] = field(default_factory=list)
    annotations: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "summary": self.summary,
            "keywords": list(self.keywords),
            "annotations": self.annotations,
        }


class InsightStore:
    """Keep the latest assistant output per paper id."""

    def __init__(self) -> None:
        self._insights: Dict[str, PaperInsight] = {}

    def get(self, paper_id: str) -> Optional[PaperInsight]:
        return self._insights.get(paper_id)

    def _entry(self, paper_id: str) -> PaperInsight:
        return self._insights.setdefault(paper_id, PaperInsight())

    def add_summary(self, paper_id: str, summary: str) -> None:
        LOGGER.info("Summary stored", extra={"paper_id": paper_id})
        self._entry(paper_id).summary = summary

    def add_keywords(self, paper_id: str, keywords: Iterable[str] | str) -> None:
        if isinstance(keywords, str):
            parsed = [item.strip() for item in keywords.split(",")]
        else:
            parsed = [str(item).strip() for item in keywords]
        self._entry(paper_id).keywords = [item for item in parsed if item]
        LOGGER.info("Keywords stored", extra={"paper_id": paper_id, "count": len(self._entry(paper_id).keywords)})

    def add_annotations(self, paper_id: str, annotations: str) -> None:
        self._entry(paper_id).annotations = annotations

    def clear_annotations(self, paper_id: str) -> None:
        if paper_id in self._insights:
            self._insights[paper_id].annotations = None


__all__ = ["InsightStore", "PaperInsight"]
