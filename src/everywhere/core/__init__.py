"""Indexing, deduplication and ranking core."""
