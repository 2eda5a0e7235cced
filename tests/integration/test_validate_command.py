"""Integration tests for `storygate validate`.

Tests cover:
- Text report, score and exit codes (PASS, WARNING, FAIL)
- Usage errors (missing story, no project root, bad option values)
- JSON output mode (per-command --json and global --format json)
- Configured tool commands from .storygate.yaml
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest
from click.testing import CliRunner

from storygate.cli import cli
from storygate.config import save_config


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click test runner."""
    return CliRunner()


def _configure_tools(project_dir: Path, **commands: tuple[str, ...]) -> None:
    save_config(project_dir, {key: list(value) for key, value in commands.items()})


class TestValidateText:
    """Human-readable output."""

    @pytest.mark.integration
    def test_bare_project_passes(self, runner: CliRunner, story_file: Path) -> None:
        result = runner.invoke(cli, ["validate", str(story_file)])

        assert result.exit_code == 0, result.output
        assert "Validating story:" in result.output
        assert "linting: SKIP" in result.output
        assert "typeScript: SKIP" in result.output
        assert "formatCompliance: PASS" in result.output
        assert "renderTest: SKIP" in result.output
        assert "interactionTest: SKIP" in result.output
        assert "Overall Score: 100% (PASS)" in result.output
        assert "Passed: 1/1" in result.output
        assert "Skipped: 4" in result.output

    @pytest.mark.integration
    def test_csf2_story_fails(self, runner: CliRunner, csf2_story_file: Path) -> None:
        result = runner.invoke(cli, ["validate", str(csf2_story_file)])

        assert result.exit_code == 1
        assert "formatCompliance: FAIL" in result.output
        assert "Error: Detected CSF2 format" in result.output
        assert "Overall Score: 0% (FAIL)" in result.output

    @pytest.mark.integration
    def test_two_of_three_is_warning(
        self,
        runner: CliRunner,
        story_file: Path,
        project_dir: Path,
        fake_tool: Callable[..., tuple[str, ...]],
    ) -> None:
        (project_dir / ".eslintrc.json").write_text("{}")
        (project_dir / "tsconfig.json").write_text("{}")
        _configure_tools(
            project_dir,
            lint_command=fake_tool("sys.exit(0)\n", name="eslint"),
            typecheck_command=fake_tool(
                "print('error TS2304: Cannot find name Foo')\nsys.exit(2)\n", name="tsc"
            ),
        )

        result = runner.invoke(cli, ["validate", str(story_file)])

        assert result.exit_code == 2, result.output
        assert "linting: PASS" in result.output
        assert "typeScript: FAIL" in result.output
        assert "Overall Score: 67% (WARNING)" in result.output

    @pytest.mark.integration
    def test_long_diagnostics_are_truncated(
        self,
        runner: CliRunner,
        story_file: Path,
        project_dir: Path,
        fake_tool: Callable[..., tuple[str, ...]],
    ) -> None:
        (project_dir / ".eslintrc.json").write_text("{}")
        _configure_tools(
            project_dir,
            lint_command=fake_tool("print('x' * 500)\nsys.exit(1)\n", name="eslint"),
        )

        result = runner.invoke(cli, ["validate", str(story_file)])

        assert "x" * 200 + "..." in result.output
        assert "x" * 201 not in result.output

    @pytest.mark.integration
    def test_missing_story(self, runner: CliRunner, project_dir: Path) -> None:
        result = runner.invoke(cli, ["validate", str(project_dir / "Nope.stories.tsx")])

        assert result.exit_code == 1
        assert "Story file not found" in result.output

    @pytest.mark.integration
    def test_no_project_root(self, runner: CliRunner, tmp_path: Path) -> None:
        story = tmp_path / "Lonely.stories.tsx"
        story.write_text("export default {};")

        result = runner.invoke(cli, ["validate", str(story)])

        assert result.exit_code == 1
        assert "Could not find project root" in result.output

    @pytest.mark.integration
    def test_invalid_port_is_usage_error(self, runner: CliRunner, story_file: Path) -> None:
        result = runner.invoke(cli, ["validate", str(story_file), "--port", "0"])

        assert result.exit_code == 1
        assert "Invalid value for 'port'" in result.output

    @pytest.mark.integration
    def test_broken_config_is_usage_error(
        self, runner: CliRunner, story_file: Path, project_dir: Path
    ) -> None:
        (project_dir / ".storygate.yaml").write_text("port: [unclosed\n")

        result = runner.invoke(cli, ["validate", str(story_file)])

        assert result.exit_code == 1
        assert "Failed to parse config file" in result.output


class TestValidateJson:
    """Machine-readable output."""

    @pytest.mark.integration
    def test_json_flag_outputs_envelope(self, runner: CliRunner, story_file: Path) -> None:
        result = runner.invoke(cli, ["validate", str(story_file), "--json"])

        assert result.exit_code == 0, result.output
        envelope = json.loads(result.output)
        assert envelope["success"] is True
        assert envelope["command"] == "validate"
        assert "errors" not in envelope
        data = envelope["data"]
        assert data["summary"]["score"] == 100
        assert data["summary"]["overallStatus"] == "PASS"
        assert data["checks"]["formatCompliance"] == {
            "status": "PASS",
            "error": None,
            "metadata": {"csfVersion": "CSF3"},
        }

    @pytest.mark.integration
    def test_help_documents_envelope_nesting(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["validate", "--help"])

        assert result.exit_code == 0
        help_text = " ".join(result.output.split())
        assert 'nested under the "data" key' in help_text
        assert "target, timestamp, checks and summary" in help_text

    @pytest.mark.integration
    def test_global_format_json_on_failure(
        self, runner: CliRunner, csf2_story_file: Path
    ) -> None:
        result = runner.invoke(cli, ["--format", "json", "validate", str(csf2_story_file)])

        assert result.exit_code == 1
        envelope = json.loads(result.output)
        assert envelope["success"] is False
        assert envelope["errors"] == [
            {"type": "formatCompliance", "message": "Detected CSF2 format"}
        ]
        assert envelope["data"]["summary"]["failedChecks"] == 1

    @pytest.mark.integration
    def test_json_keeps_full_diagnostic(
        self,
        runner: CliRunner,
        story_file: Path,
        project_dir: Path,
        fake_tool: Callable[..., tuple[str, ...]],
    ) -> None:
        (project_dir / ".eslintrc.json").write_text("{}")
        _configure_tools(
            project_dir,
            lint_command=fake_tool("print('y' * 500)\nsys.exit(1)\n", name="eslint"),
        )

        result = runner.invoke(cli, ["validate", str(story_file), "--json"])

        envelope = json.loads(result.output)
        assert envelope["data"]["checks"]["linting"]["error"] == "y" * 500

    @pytest.mark.integration
    def test_json_usage_error(self, runner: CliRunner, project_dir: Path) -> None:
        result = runner.invoke(cli, ["validate", str(project_dir / "Nope.stories.tsx"), "--json"])

        assert result.exit_code == 1
        envelope = json.loads(result.output)
        assert envelope["success"] is False
        assert envelope["errors"][0]["code"] == "SGATE-USE001"
        assert envelope["errors"][0]["type"] == "TargetNotFoundError"
