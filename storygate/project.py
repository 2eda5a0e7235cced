"""Project discovery: where the story lives and which tools it configures.

Every check decides whether it can run by looking at the project root (the
nearest directory above the story holding package.json). A missing tool
configuration is not an error: the check is reported as SKIP.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from storygate.constants import (
    ESLINT_CONFIG_FILES,
    PACKAGE_JSON,
    STORY_SUFFIX,
    STORYBOOK_CONFIG_DIR,
    TEST_RUNNER_PACKAGES,
    TSCONFIG,
)
from storygate.errors import ProjectRootNotFoundError

logger = logging.getLogger(__name__)


def find_project_root(start_path: Path) -> Path:
    """Find the project root by walking up from the story file.

    Args:
        start_path: The story file (or a directory inside the project).

    Returns:
        The nearest ancestor directory containing package.json.

    Raises:
        ProjectRootNotFoundError: If no ancestor holds package.json.
    """
    start = start_path.resolve()
    current = start if start.is_dir() else start.parent

    # Walk up until we find package.json or hit the filesystem root
    while current != current.parent:
        if (current / PACKAGE_JSON).exists():
            return current
        current = current.parent

    if (current / PACKAGE_JSON).exists():
        return current

    raise ProjectRootNotFoundError(str(start_path))


def read_package_json(project_root: Path) -> dict[str, Any]:
    """Load package.json, returning an empty dict when it is unreadable."""
    package_file = project_root / PACKAGE_JSON
    try:
        data = json.loads(package_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.debug("Cannot read %s: %s", package_file, e)
        return {}
    return data if isinstance(data, dict) else {}


def has_eslint_config(project_root: Path) -> bool:
    """Check if ESLint is configured in the project."""
    if any((project_root / name).exists() for name in ESLINT_CONFIG_FILES):
        return True
    return "eslintConfig" in read_package_json(project_root)


def has_typescript_config(project_root: Path) -> bool:
    """Check if TypeScript is configured in the project."""
    return (project_root / TSCONFIG).exists()


def has_storybook_config(project_root: Path) -> bool:
    """Check if the project has a .storybook configuration directory."""
    return (project_root / STORYBOOK_CONFIG_DIR).is_dir()


def has_test_runner(project_root: Path) -> bool:
    """Check if the Storybook test-runner is declared as a dependency.

    Both devDependencies and dependencies are consulted.
    """
    package = read_package_json(project_root)
    for section in ("devDependencies", "dependencies"):
        declared = package.get(section)
        if isinstance(declared, dict) and any(pkg in declared for pkg in TEST_RUNNER_PACKAGES):
            return True
    return False


def story_identifier(story_path: Path) -> str:
    """Derive the test identifier from a story file name.

    The identifier is the base name without its extension and without the
    ``.stories`` suffix: ``Button.stories.tsx`` -> ``Button``.
    """
    stem = story_path.stem
    if stem.endswith(STORY_SUFFIX):
        stem = stem[: -len(STORY_SUFFIX)]
    return stem


def relative_posix(path: Path, root: Path) -> str:
    """Path relative to root with forward slashes, as the Node tools expect."""
    try:
        return path.resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return path.resolve().as_posix()
