"""Leafnote: a personal reading tracker with simple recommendations."""

__version__ = "0.1.0"
