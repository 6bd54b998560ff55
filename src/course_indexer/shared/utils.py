"""
Utilities Module - Common helper functions.
==========================================

Provides utility functions for:
- Identifier conversion (unit directory names to export names)
- File I/O (JSON)
- Directory management
- Text and duration formatting for operator output
"""

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from course_indexer.shared.logging import get_logger

logger = get_logger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Identifiers
# ─────────────────────────────────────────────────────────────────────────────


def to_camel_case(identifier: str) -> str:
    """
    Convert a hyphenated unit identifier to its camel-cased export name.

    Example:
        >>> to_camel_case("rag-knowledge-base")
        'ragKnowledgeBase'
    """
    return re.sub(r"-([a-z])", lambda m: m.group(1).upper(), identifier)


# ─────────────────────────────────────────────────────────────────────────────
# Directory Management
# ─────────────────────────────────────────────────────────────────────────────


def ensure_directory(path: Path) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Returns:
        The path (for chaining)
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


# ─────────────────────────────────────────────────────────────────────────────
# JSON File I/O
# ─────────────────────────────────────────────────────────────────────────────


def load_json(file_path: Path) -> Any:
    """
    Load data from a JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file is not valid JSON
    """
    with open(Path(file_path), "r", encoding="utf-8") as f:
        return json.load(f)


def write_text_atomic(file_path: Path, text: str) -> None:
    """
    Write text to a file via a temporary sibling and an atomic rename.

    A reader never observes a half-written snapshot.
    """
    file_path = Path(file_path)
    ensure_directory(file_path.parent)

    fd, tmp_name = tempfile.mkstemp(dir=file_path.parent, prefix=f".{file_path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, file_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def save_json(file_path: Path, data: Any, indent: int = 2) -> None:
    """
    Save data to a JSON file.

    Args:
        file_path: Path to JSON file
        data: Data to save (must be JSON serializable)
        indent: Indentation level (default: 2)
    """
    write_text_atomic(file_path, json.dumps(data, indent=indent, ensure_ascii=False, default=str))
    logger.debug(f"Saved JSON to {file_path}")


# ─────────────────────────────────────────────────────────────────────────────
# Text Utilities
# ─────────────────────────────────────────────────────────────────────────────


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate text to a maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated
    """
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix


def preview_text(text: str, max_length: int = 150) -> str:
    """Collapse a chunk into a single-line preview."""
    return truncate_text(re.sub(r"\s*\n\s*", " ", text).strip(), max_length)


def format_duration(milliseconds: float) -> str:
    """
    Format a duration for display.

    Example:
        >>> format_duration(75_000)
        '1m 15s'
    """
    seconds = int(milliseconds // 1000)
    minutes, remaining = divmod(seconds, 60)
    if minutes > 0:
        return f"{minutes}m {remaining}s"
    return f"{seconds}s"
