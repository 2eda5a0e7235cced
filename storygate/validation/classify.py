"""Classification of live-test output into render and interaction results.

test-storybook runs Jest, which reports every story of every file in one
text stream. This module scopes that stream to a single story file and to
the two kinds of sub-test the runner generates for each story:

- ``smoke-test``: the story renders without throwing (render check)
- ``play-test``: the story's play function runs without failing
  (interaction check)

A typical failing fragment looks like::

    FAIL browser: chromium src/stories/render-error.stories.tsx
      Test/RenderError
        Primary
          ✕ smoke-test (50 ms)

      ● Test/RenderError › Primary › smoke-test

        Message:
          Component failed to render

          at BrokenComponent (http://127.0.0.1:6006/src/stories/BrokenComponent.tsx:6:9)

The matching is regular-expression based and lives behind ``classify()`` so
it can be replaced by a structured report without touching the callers.
"""

from __future__ import annotations

import re
import textwrap
from collections.abc import Iterable
from dataclasses import dataclass, field

from storygate.constants import INTERACTION_TEST, RENDER_TEST, STORY_SUFFIX
from storygate.validation.results import CheckResult, CheckStatus

_HEADER_RE = re.compile(r"^\s*(?P<verdict>PASS|FAIL)\b(?P<rest>.*)$")
_MARKER_RE = re.compile(r"^\s*●\s+(?P<title>.*?)\s*$")
_LISTING_RE = re.compile(
    r"^\s*(?P<glyph>[✓✔√✕✖×○◯])\s+(?P<name>.*?)(?:\s+\(\d+(?:\.\d+)?\s*m?s\))?\s*$"
)
_MESSAGE_RE = re.compile(r"^\s*Message:\s*(?P<inline>.*)$")
_STACK_RE = re.compile(r"^\s*at\s+\S")

_PASSED_GLYPHS = frozenset("✓✔√")
_FAILED_GLYPHS = frozenset("✕✖×")

NOT_FOUND_MESSAGE = "Story not found in test output"


@dataclass(frozen=True)
class SubTestCategory:
    """One kind of generated sub-test and the check it feeds.

    Attributes:
        label: Human-readable name used in messages.
        check_name: Key of the check in the report.
        pattern: Matches the sub-test name (last segment of a Jest title).
    """

    label: str
    check_name: str
    pattern: re.Pattern[str]

    def matches(self, test_name: str) -> bool:
        return self.pattern.match(test_name.strip()) is not None


RENDER = SubTestCategory(
    label="Render",
    check_name=RENDER_TEST,
    pattern=re.compile(r"(?:smoke|render)(?:[- ]?test)?\b", re.IGNORECASE),
)
INTERACTION = SubTestCategory(
    label="Interaction",
    check_name=INTERACTION_TEST,
    pattern=re.compile(r"(?:play|interaction)(?:[- ]?test)?\b", re.IGNORECASE),
)


@dataclass(frozen=True)
class LiveTestOutcome:
    """Render and interaction results for one story file."""

    render: CheckResult
    interaction: CheckResult

    def as_checks(self) -> dict[str, CheckResult]:
        """Results keyed by check name."""
        return {RENDER_TEST: self.render, INTERACTION_TEST: self.interaction}


@dataclass(frozen=True)
class _Listing:
    """One line of Jest's result tree, e.g. ``✕ smoke-test (50 ms)``."""

    name: str
    glyph: str

    @property
    def passed(self) -> bool:
        return self.glyph in _PASSED_GLYPHS

    @property
    def failed(self) -> bool:
        return self.glyph in _FAILED_GLYPHS


@dataclass
class _FailureBlock:
    """Lines from one ``●`` marker up to the next marker or file header.

    ``in_file`` is True inside the story file's section, False inside another
    file's section and None before the first header.
    """

    title: str
    in_file: bool | None
    lines: list[str] = field(default_factory=list)

    @property
    def test_name(self) -> str:
        return self.title.rsplit("›", 1)[-1].strip()

    def references(self, ref: re.Pattern[str]) -> bool:
        return any(_STACK_RE.match(line) and ref.search(line) for line in self.lines)

    def message(self) -> str:
        collected: list[str] = []
        capturing = False
        for line in self.lines:
            if not capturing:
                found = _MESSAGE_RE.match(line)
                if found:
                    capturing = True
                    if found.group("inline"):
                        collected.append(found.group("inline"))
                continue
            if _STACK_RE.match(line):
                break
            collected.append(line)
        return textwrap.dedent("\n".join(collected)).strip()

    def summary(self) -> str:
        """Message, or the body up to the first stack line, prefixed by the title."""
        body = self.message()
        if not body:
            head: list[str] = []
            for line in self.lines:
                if _STACK_RE.match(line):
                    break
                head.append(line)
            body = textwrap.dedent("\n".join(head)).strip()
        return f"{self.title}: {body}" if body else self.title


def file_reference_pattern(identifier: str) -> re.Pattern[str]:
    """Pattern matching ``<identifier>.stories.<ext>`` as a whole path segment."""
    return re.compile(
        r"(?<![\w-])" + re.escape(identifier) + re.escape(STORY_SUFFIX) + r"\.\w+",
        re.IGNORECASE,
    )


def module_reference_pattern(identifier: str) -> re.Pattern[str]:
    """Pattern matching a module named after the identifier, story or component.

    ``Button`` matches ``Button.tsx`` and ``Button.stories.tsx`` but not
    ``IconButton.tsx``.
    """
    return re.compile(
        r"(?<![\w-])" + re.escape(identifier) + r"(?:" + re.escape(STORY_SUFFIX) + r")?\.\w+",
        re.IGNORECASE,
    )


def _split_blocks(lines: Iterable[str], file_ref: re.Pattern[str]) -> list[_FailureBlock]:
    blocks: list[_FailureBlock] = []
    current: _FailureBlock | None = None
    in_file: bool | None = None
    for line in lines:
        marker = _MARKER_RE.match(line)
        header = _HEADER_RE.match(line)
        if marker:
            current = _FailureBlock(title=marker.group("title"), in_file=in_file)
            blocks.append(current)
        elif header:
            in_file = file_ref.search(header.group("rest")) is not None
            current = None
        elif current is not None:
            current.lines.append(line)
    return blocks


def _story_blocks(
    blocks: Iterable[_FailureBlock], file_ref: re.Pattern[str], module_ref: re.Pattern[str]
) -> list[_FailureBlock]:
    """Blocks reported for the story file.

    A block belongs to the story when it sits in the file's section, when a
    stack line names the story file, or, outside any other file's section,
    when a stack line names a module called after the identifier.
    """
    return [
        b
        for b in blocks
        if b.in_file
        or b.references(file_ref)
        or (b.in_file is None and b.references(module_ref))
    ]


def _section_listings(lines: Iterable[str], file_ref: re.Pattern[str]) -> list[_Listing]:
    """Result-tree lines listed under PASS/FAIL headers naming the story file."""
    listings: list[_Listing] = []
    in_section = False
    for line in lines:
        header = _HEADER_RE.match(line)
        if header:
            in_section = file_ref.search(header.group("rest")) is not None
            continue
        if not in_section:
            continue
        listing = _LISTING_RE.match(line)
        if listing:
            listings.append(_Listing(name=listing.group("name"), glyph=listing.group("glyph")))
    return listings


def _classify_category(
    category: SubTestCategory,
    identifier: str,
    blocks: list[_FailureBlock],
    listings: list[_Listing],
) -> CheckResult:
    generic = f"{category.label} test failed"
    failing = [b for b in blocks if category.matches(b.test_name)]
    if failing:
        messages: list[str] = []
        for block in failing:
            message = block.message()
            if message and message not in messages:
                messages.append(message)
        titles = list(dict.fromkeys(b.title for b in failing))
        return CheckResult.failed(
            "\n\n".join(messages) or generic,
            metadata={"failedTests": titles},
        )

    relevant = [item for item in listings if category.matches(item.name)]
    failed_names = list(dict.fromkeys(item.name for item in relevant if item.failed))
    if failed_names:
        return CheckResult.failed(generic, metadata={"failedTests": failed_names})

    if any(item.passed for item in relevant):
        return CheckResult.passed()

    return CheckResult.skipped(f"No {category.label.lower()} test found for {identifier}")


def classify(text: str, identifier: str) -> LiveTestOutcome:
    """Classify live-test output for one story file.

    Render and interaction are decided independently: a failure in one never
    changes the other. Only ``✓`` listings count as passing evidence; a
    ``✕`` listing or a ``●`` block fails its category even when the message
    cannot be extracted. When the file failed but neither category produced
    a verdict (the suite did not load), both fail with the suite's message.

    Args:
        text: Everything the live-test tool printed (stdout and stderr).
        identifier: Story identifier, e.g. ``Button`` for ``Button.stories.tsx``.

    Returns:
        LiveTestOutcome with one CheckResult per sub-test category.
    """
    file_ref = file_reference_pattern(identifier)

    if not file_ref.search(text):
        not_found = CheckResult.skipped(NOT_FOUND_MESSAGE)
        return LiveTestOutcome(render=not_found, interaction=not_found)

    lines = text.splitlines()
    blocks = _story_blocks(
        _split_blocks(lines, file_ref), file_ref, module_reference_pattern(identifier)
    )
    failed_header = any(
        header and header.group("verdict") == "FAIL" and file_ref.search(header.group("rest"))
        for header in map(_HEADER_RE.match, lines)
    )

    if not failed_header and not blocks:
        return LiveTestOutcome(render=CheckResult.passed(), interaction=CheckResult.passed())

    listings = _section_listings(lines, file_ref)
    render = _classify_category(RENDER, identifier, blocks, listings)
    interaction = _classify_category(INTERACTION, identifier, blocks, listings)

    undecided = render.status is CheckStatus.SKIP and interaction.status is CheckStatus.SKIP
    if failed_header and undecided:
        summaries = list(dict.fromkeys(b.summary() for b in blocks))
        suite_failed = CheckResult.failed(
            "\n\n".join(summaries) or f"Test suite failed for {identifier}",
            metadata={"failedTests": list(dict.fromkeys(b.title for b in blocks))},
        )
        return LiveTestOutcome(render=suite_failed, interaction=suite_failed)

    return LiveTestOutcome(render=render, interaction=interaction)
