"""
Loader Module - Discover course units and materialize course trees.
===================================================================

A content root holds one directory per course unit. A unit exposes its
course definition either as a Python package (``__init__.py``) or as a
YAML/JSON manifest. The exported definition is resolved by an ordered
strategy chain:

1. a camel-cased export matching the unit id (``rag-knowledge-base`` →
   ``ragKnowledgeBase``)
2. a ``default`` export
3. the first export shaped like a course (``id`` plus a ``modules`` list)

If no strategy matches, loading fails with MissingExportError.
"""

import importlib.util
import json
import re
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import ValidationError

from course_indexer.shared.config import get_settings
from course_indexer.shared.exceptions import ContentLoadError, MissingExportError
from course_indexer.shared.logging import get_logger
from course_indexer.shared.schemas import Course
from course_indexer.shared.utils import to_camel_case

logger = get_logger(__name__)

# Namespace under which unit packages are registered in sys.modules
UNIT_MODULE_PREFIX = "course_indexer_units"

DEFAULT_EXPORT = "default"


# ─────────────────────────────────────────────────────────────────────────────
# Export Resolution
# ─────────────────────────────────────────────────────────────────────────────


ExportStrategy = Callable[[Mapping[str, Any], str], Optional[Any]]


def _camel_case_export(exports: Mapping[str, Any], unit_id: str) -> Optional[Any]:
    return exports.get(to_camel_case(unit_id))


def _default_export(exports: Mapping[str, Any], unit_id: str) -> Optional[Any]:
    return exports.get(DEFAULT_EXPORT)


def _structural_export(exports: Mapping[str, Any], unit_id: str) -> Optional[Any]:
    for value in exports.values():
        if looks_like_course(value):
            return value
    return None


EXPORT_STRATEGIES: tuple[tuple[str, ExportStrategy], ...] = (
    ("camel-case export", _camel_case_export),
    ("default export", _default_export),
    ("course-shaped export", _structural_export),
)


def _module_safe_name(unit_id: str) -> str:
    return re.sub(r"\W", "_", unit_id)


def looks_like_course(value: Any) -> bool:
    """Check whether a value structurally matches {id, modules: list}."""
    if isinstance(value, Course):
        return True
    if isinstance(value, type) or value is None:
        return False
    if isinstance(value, Mapping):
        return "id" in value and isinstance(value.get("modules"), list)
    return hasattr(value, "id") and isinstance(getattr(value, "modules", None), list)


def resolve_course_export(exports: Mapping[str, Any], unit_id: str) -> Course:
    """
    Resolve the course definition exported by a unit.

    Args:
        exports: Exported names of the unit, in definition order
        unit_id: Unit identifier (directory name)

    Returns:
        Validated Course

    Raises:
        MissingExportError: If no strategy finds a definition
        ContentLoadError: If the found definition is not a valid course
    """
    for name, strategy in EXPORT_STRATEGIES:
        value = strategy(exports, unit_id)
        if value is None:
            continue

        logger.debug(f"Resolved course for unit '{unit_id}' via {name}")
        return _to_course(value, unit_id)

    raise MissingExportError(unit_id, tried=[name for name, _ in EXPORT_STRATEGIES])


def _to_course(value: Any, unit_id: str) -> Course:
    if isinstance(value, Course):
        return value
    try:
        if isinstance(value, Mapping):
            return Course.model_validate(dict(value))
        return Course.model_validate(value, from_attributes=True)
    except ValidationError as e:
        raise ContentLoadError(unit_id, f"invalid course definition: {e}") from e


# ─────────────────────────────────────────────────────────────────────────────
# Content Loader
# ─────────────────────────────────────────────────────────────────────────────


class ContentLoader:
    """
    Discovers course units on disk and loads them into Course trees.

    Example:
        >>> loader = ContentLoader(Path("content"))
        >>> for unit_id in loader.list_course_units():
        ...     course = loader.load_course(unit_id)
    """

    def __init__(
        self,
        content_root: Optional[Path] = None,
        index_filename: Optional[str] = None,
        manifest_filenames: Optional[list[str]] = None,
    ):
        settings = get_settings()
        self.content_root = Path(content_root or settings.get_effective_content_root())
        self.index_filename = index_filename or settings.content.index_filename
        self.manifest_filenames = manifest_filenames or settings.content.manifest_filenames

    def list_course_units(self) -> list[str]:
        """
        List course unit identifiers under the content root.

        Only directories count; hidden entries are skipped. Ordered by name
        so that runs are reproducible.

        Raises:
            ContentLoadError: If the content root cannot be listed
        """
        if not self.content_root.is_dir():
            raise ContentLoadError(
                str(self.content_root), "content root does not exist or is not a directory"
            )

        units = sorted(
            entry.name
            for entry in self.content_root.iterdir()
            if entry.is_dir() and not entry.name.startswith(".")
        )
        logger.debug(f"Found {len(units)} course units in {self.content_root}")
        return units

    def load_course(self, unit_id: str) -> Course:
        """
        Load the course defined by a unit.

        Raises:
            MissingExportError: If the unit exports no course definition
            ContentLoadError: If the unit cannot be imported or parsed
        """
        unit_path = self.content_root / unit_id
        exports = self.load_exports(unit_id)
        course = resolve_course_export(exports, unit_id)

        logger.debug(
            f"Loaded course '{course.id}' from {unit_path} "
            f"({len(course.modules)} modules, {course.lesson_count} lessons)"
        )
        return course

    def load_exports(self, unit_id: str) -> dict[str, Any]:
        """Read the exported names of a unit, in definition order."""
        unit_path = self.content_root / unit_id
        if not unit_path.is_dir():
            raise ContentLoadError(unit_id, f"unit directory not found: {unit_path}")

        package_file = unit_path / self.index_filename
        if package_file.exists():
            return self._load_package_exports(unit_id, package_file)

        for filename in self.manifest_filenames:
            manifest_file = unit_path / filename
            if manifest_file.exists():
                return self._load_manifest_exports(unit_id, manifest_file)

        raise ContentLoadError(
            unit_id,
            f"no course definition file ({', '.join([self.index_filename, *self.manifest_filenames])})",
        )

    def _load_package_exports(self, unit_id: str, package_file: Path) -> dict[str, Any]:
        """Import a unit package and collect its public names."""
        module_name = f"{UNIT_MODULE_PREFIX}.{_module_safe_name(unit_id)}"
        spec = importlib.util.spec_from_file_location(
            module_name,
            package_file,
            submodule_search_locations=[str(package_file.parent)],
        )
        if spec is None or spec.loader is None:
            raise ContentLoadError(unit_id, f"cannot import {package_file}")

        module = importlib.util.module_from_spec(spec)
        # Registered before execution so relative imports inside the unit resolve
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise ContentLoadError(unit_id, f"{type(e).__name__}: {e}") from e
        finally:
            for name in [n for n in sys.modules if n == module_name or n.startswith(module_name + ".")]:
                del sys.modules[name]

        public_names = getattr(module, "__all__", None)
        if public_names is None:
            public_names = [n for n in vars(module) if not n.startswith("_")]
        return {name: getattr(module, name) for name in public_names if hasattr(module, name)}

    def _load_manifest_exports(self, unit_id: str, manifest_file: Path) -> dict[str, Any]:
        """
        Parse a YAML/JSON manifest into exports.

        A manifest whose document is itself a course is the default export;
        otherwise its top-level keys are named exports.
        """
        try:
            with open(manifest_file, encoding="utf-8") as f:
                if manifest_file.suffix == ".json":
                    document = json.load(f)
                else:
                    document = yaml.safe_load(f)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ContentLoadError(unit_id, f"cannot parse {manifest_file.name}: {e}") from e

        if looks_like_course(document):
            return {DEFAULT_EXPORT: document}
        if isinstance(document, Mapping):
            return dict(document)

        raise ContentLoadError(unit_id, f"{manifest_file.name} does not contain a mapping")
