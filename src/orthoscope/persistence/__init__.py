"""Persistence layer for the orthology index and provenance tracking."""

from orthoscope.persistence.duckdb_store import IndexStore
from orthoscope.persistence.provenance import ProvenanceTracker

__all__ = ["IndexStore", "ProvenanceTracker"]
