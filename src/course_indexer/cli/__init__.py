"""
CLI Module - Command-line interface for the course indexer.
===========================================================

Provides CLI commands for:
- Building the index from the content root
- Inspecting index statistics and recent runs
- Searching a persisted index
- Clearing persisted index files

Usage:
    course-indexer --help
    course-indexer index
    course-indexer stats
    course-indexer search "langchain memory" --type code

Components:
- main: Typer CLI application
"""

from course_indexer.cli.main import app, cli

__all__ = ["app", "cli"]
