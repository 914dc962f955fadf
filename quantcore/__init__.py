"""quantcore - multi-sleeve allocation and rate-limited execution engine."""

__version__ = "0.1.0"
