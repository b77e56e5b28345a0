"""beads-ops: async operation scheduling, progress tracking and result caching for the bd CLI."""

__version__ = "0.1.0"
