"""Taskboard: team projects, tasks and comments with role-based access control."""

__version__ = "0.1.0"
