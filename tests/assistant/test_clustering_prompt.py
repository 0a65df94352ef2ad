"""Tests for the clustering assistant prompt and answer parsing."""
from __future__ import annotations

import json

import pytest

from xrscholar.assistant import build_cluster_prompt, parse_cluster_response
from xrscholar.contracts import PaperSnapshot


def test_prompt_embeds_snapshot_as_json() -> None:
    snapshot = [
        PaperSnapshot(paperId="p1", title="Deep Learning in Healthcare", abstract="Models for diagnostics."),
        PaperSnapshot(paperId="p2", title="AI in Radiology", abstract=None),
    ]

    prompt = build_cluster_prompt(snapshot)
    instructions, payload = prompt.split("\n\n", 1)

    assert "at least 2 clusters" in instructions
    assert json.loads(payload) == {
        "papers": [
            {"paperId": "p1", "title": "Deep Learning in Healthcare", "abstract": "Models for diagnostics."},
            {"paperId": "p2", "title": "AI in Radiology", "abstract": None},
        ]
    }


def test_parse_strips_code_fences() -> None:
    text = '```json\n{"clusters": [{"name": "Vision", "paperIds": ["p1", "p2"]}]}\n```'

    clusters = parse_cluster_response(text)

    assert [cluster.name for cluster in clusters] == ["Vision"]
    assert clusters[0].paper_ids == ["p1", "p2"]


@pytest.mark.parametrize(
    "text",
    [
        "Sure! Here are your clusters.",
        '{"groups": []}',
        '{"clusters": [{"paperIds": ["p1"]}]}',
        "",
    ],
)
def test_parse_rejects_malformed_answers(text: str) -> None:
    with pytest.raises(ValueError):
        parse_cluster_response(text)
