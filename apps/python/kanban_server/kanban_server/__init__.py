"""Kanban FastAPI server."""
