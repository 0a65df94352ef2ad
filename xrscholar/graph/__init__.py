"""Paper records, link derivation, layout and selection state."""

from .insights import InsightStore, PaperInsight
from .layout import ClusterLayout, cluster_positions, ease_out_quad, lattice_positions
from .links import LINK_TYPE_CYCLE, LinkClassifier, LinkTypeSelector, UserConnection
from .models import ORIGIN, Author, Link, LinkSets, LinkType, Paper, Vector3
from .repository import PaperRepository
from .selection import SelectionTracker

__all__ = [
    "Author",
    "ClusterLayout",
    "InsightStore",
    "LINK_TYPE_CYCLE",
    "Link",
    "LinkClassifier",
    "LinkSets",
    "LinkType",
    "LinkTypeSelector",
    "ORIGIN",
    "Paper",
    "PaperInsight",
    "PaperRepository",
    "SelectionTracker",
    "UserConnection",
    "Vector3",
    "cluster_positions",
    "ease_out_quad",
    "lattice_positions",
]
