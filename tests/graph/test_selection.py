"""Tests for selection, pins, user connections and proximity gestures."""
from __future__ import annotations

from typing import Tuple

from xrscholar.graph.links import LinkTypeSelector
from xrscholar.graph.models import LinkType, Paper, Vector3
from xrscholar.graph.repository import PaperRepository
from xrscholar.graph.selection import SelectionTracker


def _tracker(*paper_ids: str) -> Tuple[SelectionTracker, PaperRepository, LinkTypeSelector]:
    repository = PaperRepository()
    repository.upsert_many([Paper(paper_id) for paper_id in paper_ids])
    selector = LinkTypeSelector()
    return SelectionTracker(repository, selector), repository, selector


def test_connect_creates_connection_and_activates_custom_links() -> None:
    tracker, repository, selector = _tracker("P1", "P2")

    assert tracker.connect("P1", "P2") is True

    assert tracker.user_connections == [("P1", "P2")]
    assert selector.active is LinkType.CUSTOM
    assert [link.key for link in repository.links.custom] == [("P1", "P2", "custom")]


def test_connect_existing_pair_surfaces_then_removes() -> None:
    """A repeated connect first shows custom links, then deletes the pair."""

    tracker, repository, selector = _tracker("P1", "P2")
    tracker.connect("P1", "P2")
    selector.set_active(LinkType.AUTHOR)

    assert tracker.connect("P2", "P1") is False
    assert selector.active is LinkType.CUSTOM
    assert tracker.user_connections == [("P1", "P2")]

    assert tracker.connect("P2", "P1") is False
    assert tracker.user_connections == []
    assert repository.links.custom == []


def test_connect_rejects_self_loops_and_missing_ids() -> None:
    tracker, _, selector = _tracker("P1")

    assert tracker.connect("P1", "P1") is False
    assert tracker.connect("P1", "") is False
    assert tracker.user_connections == []
    assert selector.active is LinkType.RECOMMENDATION


def test_connect_rejects_papers_outside_the_repository() -> None:
    tracker, repository, selector = _tracker("P1")

    assert tracker.connect("P1", "ghost") is False
    assert tracker.connect("ghost", "P1") is False

    assert tracker.user_connections == []
    assert repository.links.custom == []
    assert selector.active is LinkType.RECOMMENDATION


def test_connect_selected_requires_exactly_two_papers() -> None:
    tracker, _, _ = _tracker("a", "b", "c")
    tracker.select("a")

    assert tracker.connect_selected() is False

    tracker.select("b")
    assert tracker.connect_selected() is True

    tracker.select("c")
    assert tracker.connect_selected() is False
    assert tracker.user_connections == [("a", "b")]


def test_proximity_connects_once_per_window() -> None:
    """Papers connected by proximity are excluded until the window ends."""

    tracker, _, _ = _tracker("a", "b")
    candidates = {"b": Vector3(0.03, 0.0, 0.0)}

    matched = tracker.check_proximity_connections("a", Vector3(0.0, 0.0, 0.0), candidates, 0.05)
    again = tracker.check_proximity_connections("a", Vector3(0.0, 0.0, 0.0), candidates, 0.05)

    assert matched == ["b"]
    assert again == []
    assert tracker.user_connections == [("a", "b")]
    assert tracker.excluded_ids == {"a", "b"}

    tracker.end_proximity_window()
    assert tracker.excluded_ids == set()


def test_proximity_ignores_far_candidates() -> None:
    tracker, _, _ = _tracker("a", "b")

    matched = tracker.check_proximity_connections(
        "a", Vector3(0.0, 0.0, 0.0), {"b": Vector3(0.05, 0.0, 0.0)}, 0.05
    )

    assert matched == []
    assert tracker.user_connections == []


def test_forget_clears_selection_pins_and_focus() -> None:
    tracker, _, _ = _tracker("a", "b")
    tracker.select("a")
    tracker.select("b")
    tracker.pin("a", Vector3(1.0, 2.0, 3.0))
    tracker.focus("a")

    tracker.forget(["a"])

    assert tracker.selected_ids == ["b"]
    assert tracker.pinned_ids == set()
    assert tracker.focused_id is None


def test_pin_and_unpin_all_release_fixed_positions() -> None:
    tracker, repository, _ = _tracker("a", "b")
    tracker.pin("a", Vector3(1.0, 2.0, 3.0))
    repository.find("b").fix_in_place()

    assert repository.find("a").fixed_position == Vector3(1.0, 2.0, 3.0)
    assert tracker.is_pinned("a")

    tracker.unpin_all()

    assert tracker.pinned_ids == set()
    assert not repository.find("a").is_fixed
    assert not repository.find("b").is_fixed


def test_reset_selection_to_focus() -> None:
    tracker, _, _ = _tracker("a", "b")
    tracker.select("a")
    tracker.select("b")

    tracker.reset_selection_to_focus()
    assert tracker.selected_ids == []

    tracker.focus("b")
    tracker.select("a")
    tracker.reset_selection_to_focus()
    assert tracker.selected_ids == ["b"]
