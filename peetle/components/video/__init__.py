"""Overlay planning and filter graph primitives.

``render_plan`` and ``renderer`` depend on the caption renderer and are
imported by module path to keep this package import-light.
"""

from .filter_graph import FilterGraph, FilterStage, filter_call
from .overlay_planner import OverlayPlanner

__all__ = ["FilterGraph", "FilterStage", "filter_call", "OverlayPlanner"]
