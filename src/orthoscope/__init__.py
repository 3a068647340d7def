"""orthoscope: hierarchical orthology index and homology-aware multi-species queries."""

__version__ = "0.1.0"
