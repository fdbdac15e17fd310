"""Decide whether an observed event is a success worth celebrating.

Text pulled from the event is scored against ``SUCCESS_PATTERNS``; the best
pattern whose score reaches ``acceptance_ratio`` of its own confidence wins.
Task events with a clean exit code fall back to keyword checks on the task
name and command. Accepted decisions are rate limited by a cooldown.
"""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Callable, Iterable, Optional

from codetempo.models.success import (
    Celebration,
    CelebrationSource,
    CelebrationType,
    SuccessEvent,
    SuccessPattern,
)
from codetempo.services.celebrations import celebration_request
from codetempo.services.generation_service import RequestDispatcher

log = logging.getLogger(__name__)


def _regex(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


SUCCESS_PATTERNS: tuple[SuccessPattern, ...] = (
    # Compilation
    SuccessPattern(
        matcher=_regex(r"webpack.*compiled successfully"),
        celebration_type="compilation_success",
        confidence=0.95,
        description="Webpack compilation successful",
    ),
    SuccessPattern(
        matcher=_regex(r"typescript.*compilation.*complete"),
        celebration_type="compilation_success",
        confidence=0.9,
        description="TypeScript compilation complete",
    ),
    SuccessPattern(
        matcher=_regex(r"built? successfully"),
        celebration_type="compilation_success",
        confidence=0.85,
        description="Build successful",
    ),
    SuccessPattern(
        matcher=_regex(r"compilation.*successful"),
        celebration_type="compilation_success",
        confidence=0.9,
        description="Compilation successful",
    ),
    # Tests
    SuccessPattern(
        matcher=_regex(r"all tests? pass(ed)?"),
        celebration_type="test_pass",
        confidence=0.95,
        description="All tests passed",
    ),
    SuccessPattern(
        matcher=_regex(r"\d+ passing"),
        celebration_type="test_pass",
        confidence=0.8,
        description="Tests passing",
    ),
    SuccessPattern(
        matcher=_regex(r"jest.*\d+.*passed"),
        celebration_type="test_pass",
        confidence=0.9,
        description="Jest tests passed",
    ),
    SuccessPattern(
        matcher=_regex(r"mocha.*\d+.*passing"),
        celebration_type="test_pass",
        confidence=0.9,
        description="Mocha tests passing",
    ),
    # Deployment
    SuccessPattern(
        matcher=_regex(r"deploy(ed|ment).*success"),
        celebration_type="deployment",
        confidence=0.95,
        description="Deployment successful",
    ),
    SuccessPattern(
        matcher=_regex(r"published.*successfully"),
        celebration_type="deployment",
        confidence=0.9,
        description="Package published successfully",
    ),
    SuccessPattern(
        matcher=_regex(r"build.*deployed"),
        celebration_type="deployment",
        confidence=0.85,
        description="Build deployed",
    ),
    # Bug fixes, inferred from wording
    SuccessPattern(
        matcher=_regex(r"fix(ed)?.*bug"),
        celebration_type="bug_fix",
        confidence=0.7,
        description="Bug fix detected",
    ),
    SuccessPattern(
        matcher=_regex(r"resolved.*issue"),
        celebration_type="bug_fix",
        confidence=0.7,
        description="Issue resolved",
    ),
    SuccessPattern(
        matcher=_regex(r"error.*resolved"),
        celebration_type="bug_fix",
        confidence=0.8,
        description="Error resolved",
    ),
)

BUILD_KEYWORDS = (
    "build", "compile", "webpack", "rollup", "parcel", "vite", "tsc", "babel",
    "esbuild", "swc", "maven", "gradle", "cargo build", "go build", "make", "cmake",
)
TEST_KEYWORDS = (
    "test", "jest", "mocha", "jasmine", "karma", "cypress", "playwright", "vitest",
    "ava", "tap", "lab", "pytest", "unittest", "phpunit", "rspec", "gtest",
)
DEPLOY_KEYWORDS = (
    "deploy", "publish", "release", "ship", "upload", "push", "heroku", "vercel",
    "netlify", "aws deploy", "docker push", "npm publish", "yarn publish",
)

EXIT_CODE_CONFIDENCE = 0.8

# Checked in this order within each pass of exit_code_rule.
EXIT_CODE_RULES: tuple[tuple[tuple[str, ...], CelebrationType, str], ...] = (
    (BUILD_KEYWORDS, "compilation_success", "Build task completed successfully (exit code 0)"),
    (TEST_KEYWORDS, "test_pass", "Test task completed successfully (exit code 0)"),
    (DEPLOY_KEYWORDS, "deployment", "Deploy task completed successfully (exit code 0)"),
)


def extract_text(event: SuccessEvent) -> str:
    """Flatten an event into the text the pattern table is scored against."""
    details = event.details
    if event.kind == "terminal_output":
        return str(details.get("message") or "")
    if event.kind == "task_success":
        return f"{details.get('taskName', '')} {details.get('command', '')} completed"
    if event.kind == "diagnostic_improvement":
        return (
            f"errors reduced from {details.get('previousErrors')} "
            f"to {details.get('currentErrors')}"
        )
    if event.kind == "file_system":
        return f"new file created: {details.get('filePath', '')}"
    if event.kind == "manual":
        return str(details.get("description") or "manual celebration")
    return ""


def _mentions(keyword: str, text: str) -> bool:
    return re.search(rf"(?<![a-z0-9]){re.escape(keyword)}s?(?![a-z0-9])", text) is not None


def exit_code_rule(text: str) -> Optional[tuple[tuple[str, ...], CelebrationType, str]]:
    """Pick the rule for a clean task exit from its lowercased name and command.

    Multi-word phrases such as ``docker push`` are tried across every rule
    before single keywords, and keywords only match whole tokens, so
    ``myapp:latest`` is not a test run.
    """
    for phrases in (True, False):
        for rule in EXIT_CODE_RULES:
            if any((" " in keyword) == phrases and _mentions(keyword, text) for keyword in rule[0]):
                return rule
    return None


class SuccessClassifier:
    """Scores success events and dispatches celebration music.

    Args:
        patterns: Pattern table to score against.
        cooldown_seconds: Minimum time between accepted celebrations.
        acceptance_ratio: Fraction of a pattern's own confidence its score
            must reach to be accepted.
        clock: Monotonic clock in seconds, injectable for tests.
        dispatcher: Receives accepted celebration requests.
        enabled: Master switch.
        celebration_drops: Celebration-specific switch.
    """

    def __init__(
        self,
        patterns: Iterable[SuccessPattern] = SUCCESS_PATTERNS,
        *,
        cooldown_seconds: float = 5.0,
        acceptance_ratio: float = 0.8,
        clock: Callable[[], float] = time.monotonic,
        dispatcher: Optional[RequestDispatcher] = None,
        enabled: bool = True,
        celebration_drops: bool = True,
    ):
        self.patterns = tuple(patterns)
        self.cooldown_seconds = cooldown_seconds
        self.acceptance_ratio = acceptance_ratio
        self.dispatcher = dispatcher
        self.enabled = enabled
        self.celebration_drops = celebration_drops
        self._clock = clock
        self._last_celebration: Optional[float] = None

    @property
    def active(self) -> bool:
        return self.enabled and self.celebration_drops

    def in_cooldown(self) -> bool:
        if self._last_celebration is None:
            return False
        return self._clock() - self._last_celebration < self.cooldown_seconds

    def analyze(self, event: SuccessEvent) -> Optional[SuccessPattern]:
        """Return the winning pattern for ``event`` without side effects."""
        detection = self._detect(event)
        return detection[0] if detection else None

    def _detect(self, event: SuccessEvent) -> Optional[tuple[SuccessPattern, CelebrationSource]]:
        text = extract_text(event)
        if not text:
            return None

        best: Optional[SuccessPattern] = None
        best_score = 0.0
        for pattern in self.patterns:
            score = pattern.score(text)
            if score > best_score and score >= pattern.confidence * self.acceptance_ratio:
                best = pattern
                best_score = score
        if best is not None:
            return best, "pattern"

        if event.kind == "task_success" and event.details.get("exitCode") == 0:
            task_name = event.details.get("taskName") or ""
            command = event.details.get("command") or ""
            text = f"{task_name} {command}".lower()
            rule = exit_code_rule(text)
            if rule is not None:
                _, celebration_type, description = rule
                pattern = SuccessPattern(
                    matcher=f"exit_code_0_{celebration_type}",
                    celebration_type=celebration_type,
                    confidence=EXIT_CODE_CONFIDENCE,
                    description=description,
                )
                return pattern, "exit_code"
        return None

    async def classify(self, event: SuccessEvent) -> Optional[Celebration]:
        """Score ``event`` and, if accepted, dispatch its celebration."""
        if not self.active:
            return None

        log.debug("Processing success event %s: %s", event.kind, event.details)
        if self.in_cooldown():
            log.info("Success detection in cooldown period, skipping celebration")
            return None

        detection = self._detect(event)
        if detection is None:
            return None

        pattern, source = detection
        context = json.dumps(event.details, default=str) if event.details else None
        return await self.trigger(
            pattern.celebration_type,
            pattern.description,
            context=context,
            confidence=pattern.confidence,
            source=source,
        )

    async def trigger(
        self,
        celebration_type: CelebrationType,
        description: str,
        context: Optional[str] = None,
        *,
        confidence: float = 1.0,
        source: CelebrationSource = "manual",
    ) -> Optional[Celebration]:
        """Dispatch a celebration, bypassing the cooldown but not the switches."""
        if not self.active:
            return None

        self._last_celebration = self._clock()
        log.info("Triggering %s celebration - %s", celebration_type, description)

        request = celebration_request(celebration_type, context)
        if self.dispatcher is not None:
            await self.dispatcher.submit(request, "success_celebration")

        return Celebration(
            celebration_type=celebration_type,
            description=description,
            confidence=confidence,
            source=source,
            request=request,
        )
