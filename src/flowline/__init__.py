"""Flowline: stage-pipeline lifecycle engine for planning initiatives."""

__version__ = "0.1.0"
