"""Search-everywhere: fuzzy-ranked search over a live workspace."""

__version__ = "0.1.0"
