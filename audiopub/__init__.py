"""Audiopub: a small service for sharing and discussing short audio clips."""

__version__ = "1.0.0"
