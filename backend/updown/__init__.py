"""Pari-mutuel up/down price rounds."""

__version__ = "0.1.0"
