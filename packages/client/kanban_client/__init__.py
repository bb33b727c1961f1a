"""Async client for the Kanban API with optimistic board updates."""

__version__ = "0.1.0"
