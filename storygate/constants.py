"""Shared constants for storygate.

This module contains constants that are used across multiple modules
to avoid duplication and ensure consistency.
"""

from __future__ import annotations

# Check names, used as keys of ValidationReport.checks and in JSON output
LINTING = "linting"
TYPESCRIPT = "typeScript"
FORMAT_COMPLIANCE = "formatCompliance"
RENDER_TEST = "renderTest"
INTERACTION_TEST = "interactionTest"

# Suffix stripped from a story file's stem to get its test identifier
STORY_SUFFIX = ".stories"

# File marking the project root
PACKAGE_JSON = "package.json"

ESLINT_CONFIG_FILES: tuple[str, ...] = (
    ".eslintrc",
    ".eslintrc.js",
    ".eslintrc.cjs",
    ".eslintrc.json",
    ".eslintrc.yml",
    ".eslintrc.yaml",
    "eslint.config.js",
    "eslint.config.cjs",
    "eslint.config.mjs",
    "eslint.config.ts",
)

TSCONFIG = "tsconfig.json"
TSCONFIG_APP = "tsconfig.app.json"

# Test files never belong in a single-story type check
TSCONFIG_EXCLUDES: tuple[str, ...] = (
    "**/*.spec.ts",
    "**/*.test.ts",
    "**/*.spec.tsx",
    "**/*.test.tsx",
)

STORYBOOK_CONFIG_DIR = ".storybook"

# Any of these in package.json means the live tests can run
TEST_RUNNER_PACKAGES: tuple[str, ...] = (
    "@storybook/test-runner",
    "@storybook/testing-library",
)

# Diagnostic length shown per check in text output (JSON keeps everything)
DISPLAY_ERROR_LIMIT = 200

# Score thresholds for the overall verdict
PASS_THRESHOLD = 80
WARNING_THRESHOLD = 60
