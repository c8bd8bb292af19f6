"""Inkwell: content lifecycle and social-graph consistency engine."""

__version__ = "0.1.0"
