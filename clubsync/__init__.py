"""Synchronize a learner spreadsheet with downstream systems."""

__version__ = "0.1.0"
