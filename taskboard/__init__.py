"""Kanban board service over markdown checkbox task lines."""
