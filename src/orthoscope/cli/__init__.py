"""Command line interface for orthoscope."""
