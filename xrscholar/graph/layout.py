"""Spatial placement helpers for seeding nodes and arranging clusters."""
from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from xrscholar.graph.models import ORIGIN, Vector3

# pi * (1 + sqrt(5)) is congruent to the golden angle pi * (3 - sqrt(5)) mirrored
# modulo 2*pi, so consecutive points advance by the golden angle.
GOLDEN_ANGLE = math.pi * (1.0 + math.sqrt(5.0))
TAU = 2.0 * math.pi


@dataclass(frozen=True)
class ClusterLayout:
    """Target positions produced for a set of clusters."""

    centers: List[Vector3]
    members: List[Dict[str, Vector3]]


def lattice_positions(
    n: int,
    center: Vector3 = ORIGIN,
    radius: float = 1.0,
    *,
    offset: Optional[float] = None,
    rng: Optional[random.Random] = None,
) -> List[Vector3]:
    """Distribute ``n`` points evenly on a sphere using a Fibonacci lattice.

    Point ``i`` sits at latitude ``acos(1 - 2(i + 0.5)/n)`` and longitude
    ``(GOLDEN_ANGLE * i + offset) mod 2pi``. The longitude offset is drawn once
    per call so repeated layouts do not line up; pass ``offset`` for a
    deterministic result.

    Args:
        n: Number of points to generate.
        center: Sphere centre.
        radius: Sphere radius.
        offset: Optional fixed longitude offset in radians.
        rng: Optional random source used when ``offset`` is omitted.

    Returns:
        List[Vector3]: ``n`` points, each at distance ``radius`` from ``center``.
    """

    if n <= 0:
        return []
    if radius < 0:
        raise ValueError("radius must be non-negative")
    if offset is None:
        offset = TAU * (rng or random).random()
    positions: List[Vector3] = []
    for index in range(n):
        phi = math.acos(1.0 - 2.0 * (index + 0.5) / n)
        theta = (GOLDEN_ANGLE * index + offset) % TAU
        positions.append(
            Vector3(
                center.x + radius * math.sin(phi) * math.cos(theta),
                center.y + radius * math.sin(phi) * math.sin(theta),
                center.z + radius * math.cos(phi),
            )
        )
    return positions


def cluster_positions(
    clusters: Sequence[Sequence[str]],
    *,
    major_radius: float,
    minor_radius: float,
    center: Vector3 = ORIGIN,
    rng: Optional[random.Random] = None,
) -> ClusterLayout:
    """Place cluster centres on one lattice and each cluster's members on another.

    The first member of every cluster is placed on the cluster centre itself so
    the star of custom links radiates from it; the remaining members take the
    lattice slots of the small sphere around that centre.
    """

    centers = lattice_positions(len(clusters), center, major_radius, rng=rng)
    members: List[Dict[str, Vector3]] = []
    for cluster_center, paper_ids in zip(centers, clusters):
        slots = lattice_positions(len(paper_ids), cluster_center, minor_radius, rng=rng)
        targets: Dict[str, Vector3] = {}
        for index, paper_id in enumerate(paper_ids):
            if paper_id in targets:
                continue
            targets[paper_id] = cluster_center if index == 0 else slots[index]
        members.append(targets)
    return ClusterLayout(centers=centers, members=members)


def ease_out_quad(t: float) -> float:
    """Decelerating ease ``t(2 - t)`` on normalised time clamped to ``[0, 1]``."""

    clamped = min(max(t, 0.0), 1.0)
    return clamped * (2.0 - clamped)


__all__ = [
    "ClusterLayout",
    "GOLDEN_ANGLE",
    "cluster_positions",
    "ease_out_quad",
    "lattice_positions",
]
