"""Bridge between the graph state, the force solver and the renderer."""

from .bridge import (
    FixedPointSolver,
    ForceSolver,
    Frame,
    HighlightKind,
    NodeAnimator,
    NullRenderSink,
    RenderSink,
    SimulationBridge,
)

__all__ = [
    "FixedPointSolver",
    "ForceSolver",
    "Frame",
    "HighlightKind",
    "NodeAnimator",
    "NullRenderSink",
    "RenderSink",
    "SimulationBridge",
]
