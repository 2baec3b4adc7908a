"""Incident spreadsheet ingestion pipeline.

Normalizes report cells, classifies rows with priority-ordered rules, derives
validated records against a cut-window calendar and aggregates ticket linkage.
"""

__version__ = "0.1.0"
