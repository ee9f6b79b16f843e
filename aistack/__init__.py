"""Idle-based auto-suspend and a terminal control-panel model for a local AI stack."""

__version__ = "0.1.0"