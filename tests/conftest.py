"""Shared pytest fixtures for storygate tests.

External Node tools are never required: tool commands in the settings are
replaced by small Python scripts run with the current interpreter.
"""

from __future__ import annotations

import json
import os
import sys
import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest

from storygate.config import Settings

if TYPE_CHECKING:
    from collections.abc import Iterator


# =============================================================================
# Story sources
# =============================================================================

CSF3_STORY = textwrap.dedent(
    """\
    import type { Meta, StoryObj } from '@storybook/react';
    import { Button } from './Button';

    const meta = {
      title: 'Example/Button',
      component: Button,
    } satisfies Meta<typeof Button>;

    export default meta;
    type Story = StoryObj<typeof meta>;

    export const Primary: Story = {
      args: { primary: true, label: 'Button' },
    };
    """
)

CSF2_STORY = textwrap.dedent(
    """\
    import { storiesOf } from '@storybook/react';
    import { Button } from './Button';

    storiesOf('Button', module).add('primary', () => <Button primary />);
    """
)


# =============================================================================
# Environment isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_storygate_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Remove STORYGATE_* variables so the host environment cannot leak in."""
    for key in list(os.environ):
        if key.startswith("STORYGATE_"):
            monkeypatch.delenv(key)
    yield


# =============================================================================
# Project fixtures
# =============================================================================


def write_package_json(root: Path, **extra: Any) -> Path:
    """Write a minimal package.json into root."""
    package = {"name": "demo-app", "version": "1.0.0", **extra}
    path = root / "package.json"
    path.write_text(json.dumps(package, indent=2))
    return path


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A bare project: package.json and nothing else configured."""
    root = tmp_path / "app"
    root.mkdir()
    write_package_json(root)
    (root / "src" / "components").mkdir(parents=True)
    return root


@pytest.fixture
def story_file(project_dir: Path) -> Path:
    """A CSF3 story at src/components/Button.stories.tsx."""
    path = project_dir / "src" / "components" / "Button.stories.tsx"
    path.write_text(CSF3_STORY)
    return path


@pytest.fixture
def csf2_story_file(project_dir: Path) -> Path:
    """A deprecated CSF2 story at src/components/Legacy.stories.jsx."""
    path = project_dir / "src" / "components" / "Legacy.stories.jsx"
    path.write_text(CSF2_STORY)
    return path


@pytest.fixture
def with_test_runner(project_dir: Path) -> Path:
    """Declare @storybook/test-runner as a devDependency."""
    write_package_json(project_dir, devDependencies={"@storybook/test-runner": "^0.17.0"})
    return project_dir


# =============================================================================
# Fake tools
# =============================================================================

ScriptFactory = Callable[..., tuple[str, ...]]


@pytest.fixture
def fake_tool(tmp_path: Path) -> ScriptFactory:
    """Factory writing a Python script that stands in for a Node tool.

    The returned command tuple is suitable for any *_command setting. The
    script receives the same arguments the real tool would.

    Usage:
        command = fake_tool("print('ok')", name="eslint")
    """
    tools_dir = tmp_path / "tools"
    tools_dir.mkdir(exist_ok=True)

    def _make(body: str, *, name: str = "tool") -> tuple[str, ...]:
        script = tools_dir / f"{name}.py"
        script.write_text("import sys\n" + textwrap.dedent(body), encoding="utf-8")
        return (sys.executable, str(script))

    return _make


@pytest.fixture
def fast_settings() -> Callable[..., Settings]:
    """Factory for Settings with short timeouts, overridable per test."""

    def _make(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "poll_interval": 0.0,
            "startup_attempts": 3,
            "live_test_timeout": 10.0,
            "tool_timeout": 10.0,
        }
        values.update(overrides)
        return Settings(**values)

    return _make
