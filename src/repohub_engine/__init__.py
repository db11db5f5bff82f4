"""repohub-engine: dependency-aware update cascades across many repositories."""

__version__ = "0.1.0"
