"""Observers that turn raw editor events into music requests and success events."""

from __future__ import annotations

import asyncio
import logging
import posixpath
from datetime import datetime
from typing import Any, Awaitable, Callable, Literal, Optional, Protocol

from pydantic import BaseModel, Field

from codetempo.models.code_signal import CodeSignal
from codetempo.models.music_request import MusicRequest
from codetempo.models.success import SuccessEvent
from codetempo.services.diagnostic_synthesizer import DiagnosticSynthesizer
from codetempo.services.generation_service import RequestDispatcher
from codetempo.services.parameter_synthesizer import ParameterSynthesizer
from codetempo.services.success_classifier import SuccessClassifier

log = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class CodeAnalyzer(Protocol):
    async def analyze(self, code: str, language_id: str, file_extension: str = "") -> CodeSignal: ...


# ── Document analysis ───────────────────────────────


class DocumentSnapshot(BaseModel):
    """Contents of an open document at one point in time."""

    uri: str = Field(description="Document identifier, e.g. file:///src/app.py")
    language_id: str = Field(description="Editor language id, e.g. 'python'")
    text: str = Field(description="Full document text")

    @property
    def line_count(self) -> int:
        return self.text.count("\n") + 1

    @property
    def file_extension(self) -> str:
        return posixpath.splitext(self.uri)[1]


class DocumentAnalysisScheduler:
    """Debounced per-document analysis.

    Every ``schedule`` call restarts the quiet-period timer of that
    document only; when the timer fires the latest snapshot is analyzed,
    synthesized and submitted.
    """

    def __init__(
        self,
        analyzer: CodeAnalyzer,
        synthesizer: ParameterSynthesizer,
        dispatcher: RequestDispatcher,
        *,
        debounce: float = 2.0,
        min_chars: int = 50,
        sleep: Sleep = asyncio.sleep,
    ):
        self.analyzer = analyzer
        self.synthesizer = synthesizer
        self.dispatcher = dispatcher
        self.debounce = debounce
        self.min_chars = min_chars
        self._sleep = sleep
        self._timers: dict[str, asyncio.Task] = {}
        self._last_content: dict[str, str] = {}

    @property
    def pending(self) -> list[str]:
        return [uri for uri, task in self._timers.items() if not task.done()]

    def schedule(self, document: DocumentSnapshot) -> asyncio.Task:
        timer = self._timers.pop(document.uri, None)
        if timer is not None and not timer.done():
            timer.cancel()
        task = asyncio.create_task(self._fire(document))
        self._timers[document.uri] = task
        return task

    async def _fire(self, document: DocumentSnapshot) -> None:
        await self._sleep(self.debounce)
        if self._timers.get(document.uri) is asyncio.current_task():
            del self._timers[document.uri]
        await self.analyze_now(document)

    async def analyze_now(self, document: DocumentSnapshot) -> Optional[MusicRequest]:
        """Analyze ``document`` immediately, skipping unchanged or tiny content."""
        if self._last_content.get(document.uri) == document.text:
            log.debug("Skipping analysis of %s, content unchanged", document.uri)
            return None
        if len(document.text.strip()) < self.min_chars:
            log.debug("Skipping analysis of %s, content too short", document.uri)
            return None
        self._last_content[document.uri] = document.text

        log.info("Analyzing %s code (%d lines)", document.language_id, document.line_count)
        try:
            signal = await self.analyzer.analyze(
                document.text, document.language_id, document.file_extension
            )
            request = self.synthesizer.synthesize(
                signal, document.language_id, document.line_count
            )
            await self.dispatcher.submit(request, "code_analysis")
        except Exception:
            log.exception("Error analyzing %s", document.uri)
            return None
        return request

    def forget(self, uri: str) -> None:
        timer = self._timers.pop(uri, None)
        if timer is not None:
            timer.cancel()
        self._last_content.pop(uri, None)

    async def cancel_pending(self) -> None:
        """Cancel every pending debounce timer without analyzing."""
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.cancel()
        await asyncio.gather(*timers, return_exceptions=True)

    async def close(self) -> None:
        await self.cancel_pending()


# ── Diagnostics ─────────────────────────────────────


class DiagnosticCounts(BaseModel):
    errors: int = Field(default=0, ge=0)
    warnings: int = Field(default=0, ge=0)
    infos: int = Field(default=0, ge=0)
    hints: int = Field(default=0, ge=0)


class DiagnosticSummary(BaseModel):
    error_count: int
    warning_count: int
    info_count: int
    hint_count: int
    total_count: int
    timestamp: datetime = Field(default_factory=datetime.now)

    @classmethod
    def from_counts(cls, counts: DiagnosticCounts) -> DiagnosticSummary:
        return cls(
            error_count=counts.errors,
            warning_count=counts.warnings,
            info_count=counts.infos,
            hint_count=counts.hints,
            total_count=counts.errors + counts.warnings + counts.infos + counts.hints,
        )


DiagnosticTrend = Literal["improving", "degrading", "stable", "unknown"]

SIGNIFICANT_ERROR_REDUCTION = 3


def has_improved(previous: Optional[DiagnosticSummary], current: DiagnosticSummary) -> bool:
    """Fewer errors, or the same errors with fewer warnings."""
    if previous is None:
        return False
    return current.error_count < previous.error_count or (
        current.error_count == previous.error_count
        and current.warning_count < previous.warning_count
    )


class DiagnosticTracker:
    """Debounced diagnostic feedback for the active document."""

    def __init__(
        self,
        synthesizer: DiagnosticSynthesizer,
        dispatcher: RequestDispatcher,
        classifier: Optional[SuccessClassifier] = None,
        *,
        debounce: float = 1.5,
        sleep: Sleep = asyncio.sleep,
    ):
        self.synthesizer = synthesizer
        self.dispatcher = dispatcher
        self.classifier = classifier
        self.debounce = debounce
        self._sleep = sleep
        self._timer: Optional[asyncio.Task] = None
        self._previous: Optional[DiagnosticSummary] = None
        self._current: Optional[DiagnosticSummary] = None

    @property
    def current(self) -> Optional[DiagnosticSummary]:
        return self._current

    def update(self, counts: DiagnosticCounts) -> asyncio.Task:
        """Restart the quiet period; the latest counts win."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.create_task(self._fire(counts))
        return self._timer

    async def _fire(self, counts: DiagnosticCounts) -> None:
        await self._sleep(self.debounce)
        await self.apply(counts)

    async def apply(self, counts: DiagnosticCounts) -> DiagnosticSummary:
        summary = DiagnosticSummary.from_counts(counts)
        previous = self._current
        log.info(
            "Diagnostic summary - %d errors, %d warnings",
            summary.error_count,
            summary.warning_count,
        )

        improved = has_improved(previous, summary)
        try:
            request = self.synthesizer.synthesize(
                summary.error_count,
                summary.warning_count,
                previous.error_count if previous else None,
            )
            await self.dispatcher.submit(request, "error_feedback")
        except Exception:
            log.exception("Error generating diagnostic music")

        if improved and previous is not None:
            await self._check_celebration(previous, summary)

        self._previous, self._current = previous, summary
        return summary

    async def _check_celebration(
        self, previous: DiagnosticSummary, current: DiagnosticSummary
    ) -> None:
        if previous.error_count > 0 and current.error_count == 0:
            log.info("All errors resolved, triggering bug fix celebration")
            if self.classifier is not None:
                await self.classifier.trigger("bug_fix", f"Fixed {previous.error_count} errors")
            return

        reduction = previous.error_count - current.error_count
        if reduction >= SIGNIFICANT_ERROR_REDUCTION:
            log.info("Great progress! Resolved %d error(s)", reduction)

    def trend(self) -> DiagnosticTrend:
        if self._current is None or self._previous is None:
            return "unknown"
        if self._current.error_count < self._previous.error_count:
            return "improving"
        if self._current.error_count > self._previous.error_count:
            return "degrading"
        return "stable"

    async def cancel_pending(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            timer.cancel()
            await asyncio.gather(timer, return_exceptions=True)

    async def close(self) -> None:
        await self.cancel_pending()


# ── Tasks, terminal output and build artifacts ──────

SUCCESS_MARKERS = (
    "✓", "success", "passed", "ok", "done", "completed", "built successfully",
    "compilation successful", "tests passed", "build succeeded", "deployed",
    "published", "installed", "updated", "created", "generated",
)
ERROR_MARKERS = (
    "✗", "error", "failed", "exception", "build failed", "compilation failed",
    "tests failed", "deployment failed", "fatal", "critical", "crashed",
)
WARNING_MARKERS = ("warning", "warn", "deprecated", "caution", "notice", "advisory")
BUILD_MARKERS = (
    "webpack compiled successfully",
    "typescript compilation complete",
    "babel compiled successfully",
    "jest tests passed",
    "npm run build succeeded",
    "yarn build completed",
    "mvn clean install success",
    "gradle build successful",
    "cargo build finished",
    "go build successful",
    "python setup.py install",
    "pip install successful",
)

BUILD_OUTPUT_DIRS = frozenset({"dist", "build", "out", "target", ".next", "public"})
SIGNIFICANT_EXTENSIONS = (
    ".js", ".html", ".css", ".wasm", ".exe", ".jar",
    ".war", ".zip", ".tar.gz", ".deb", ".rpm", ".msi",
)
SIGNIFICANT_FILENAMES = frozenset(
    {"index.html", "main.js", "bundle.js", "app.js", "style.css", "main.css", "manifest.json"}
)

TerminalEventType = Literal["success", "error", "warning", "info"]


def annotate_message(message: str) -> list[str]:
    """Tag ``message`` with every marker it contains, e.g. ``success:passed``."""
    lower = message.lower()
    tags = [f"success:{m}" for m in SUCCESS_MARKERS if m in lower]
    tags += [f"error:{m}" for m in ERROR_MARKERS if m in lower]
    tags += [f"warning:{m}" for m in WARNING_MARKERS if m in lower]
    tags += [f"build:{m}" for m in BUILD_MARKERS if m in lower]
    return tags


def _path_parts(path: str) -> list[str]:
    return [part for part in path.replace("\\", "/").split("/") if part]


def is_build_output_path(path: str) -> bool:
    """True when ``path`` lies inside a conventional build output directory."""
    return any(part in BUILD_OUTPUT_DIRS for part in _path_parts(path)[:-1])


def is_significant_build_artifact(path: str) -> bool:
    lower = path.lower()
    parts = _path_parts(lower)
    name = parts[-1] if parts else ""
    return lower.endswith(SIGNIFICANT_EXTENSIONS) or name in SIGNIFICANT_FILENAMES


class TaskEventObserver:
    """Turns task, terminal and filesystem notifications into success events."""

    def __init__(self, classifier: SuccessClassifier):
        self.classifier = classifier

    async def on_task_process_end(
        self,
        name: str,
        command: Optional[str],
        exit_code: int,
        source: Optional[str] = None,
    ) -> None:
        command = command or name
        succeeded = exit_code == 0
        await self.on_terminal_output(
            f"Task {name} {'succeeded' if succeeded else 'failed'}",
            event_type="success" if succeeded else "error",
            command=command,
            exit_code=exit_code,
        )
        if succeeded:
            await self.classifier.classify(
                SuccessEvent(
                    kind="task_success",
                    details={
                        "taskName": name,
                        "taskType": source,
                        "command": command,
                        "exitCode": exit_code,
                    },
                )
            )

    async def on_terminal_output(
        self,
        message: str,
        event_type: TerminalEventType = "info",
        command: Optional[str] = None,
        exit_code: Optional[int] = None,
    ) -> list[str]:
        """Annotate ``message``; success messages are forwarded to the classifier."""
        tags = annotate_message(message)
        log.debug("Terminal event (%s): %s %s", event_type, message, tags)
        if event_type == "success":
            await self.classifier.classify(
                SuccessEvent(
                    kind="terminal_output",
                    details={
                        "message": message,
                        "patterns": tags,
                        "command": command,
                        "exitCode": exit_code,
                    },
                )
            )
        return tags

    async def on_file_created(self, path: str) -> bool:
        """Forward significant build artifacts; returns whether it was forwarded."""
        if not is_build_output_path(path):
            return False
        log.debug("New file created in build directory: %s", path)
        if not is_significant_build_artifact(path):
            return False
        await self.classifier.classify(
            SuccessEvent(kind="file_system", details={"filePath": path, "event": "created"})
        )
        return True
