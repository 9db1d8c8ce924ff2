"""Scene structures, view-graph processing, filters and two-view geometry for global structure-from-motion."""

__version__ = "0.1.0"