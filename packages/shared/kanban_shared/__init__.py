"""Wire schemas shared by the Kanban API server and its Python board client."""

__version__ = "0.1.0"
