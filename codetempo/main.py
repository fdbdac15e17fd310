"""CLI entry point: derive music parameters from code, diagnostics or successes."""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
import time
from pathlib import Path

from codetempo.agent.analysis_agent import CodeAnalysisClient
from codetempo.config import Settings
from codetempo.models.code_signal import CodeSignal
from codetempo.models.generation import TriggerType
from codetempo.models.music_request import MusicRequest
from codetempo.models.success import CelebrationType
from codetempo.services.celebrations import CELEBRATION_PROFILES, celebration_request
from codetempo.services.diagnostic_synthesizer import DiagnosticSynthesizer
from codetempo.services.generation_service import StubGenerationService
from codetempo.services.parameter_synthesizer import ParameterSynthesizer, complexity_score
from codetempo.services.playback import NullAudioPlayer
from codetempo.services.session import CodeTempoSession

log = logging.getLogger(__name__)

EXTENSION_LANGUAGES = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".java": "java",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".hpp": "cpp",
    ".c": "c",
    ".h": "c",
    ".go": "go",
    ".rs": "rust",
    ".sql": "sql",
    ".json": "json",
    ".html": "html",
    ".css": "css",
}

MOCK_POLL_INTERVAL = 0.5


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate music parameters from live coding activity."
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log pipeline steps to stderr.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log full debug trace of analysis replies and synthesis stages.",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write logs to this file.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze a source file and print its music request.")
    analyze.add_argument("file", help="Source file to analyze.")
    analyze.add_argument(
        "--language", "-l",
        default=None,
        help="Language id (default: inferred from the file extension).",
    )
    analyze.add_argument("--generate", action="store_true", help="Submit the request for generation.")
    analyze.add_argument(
        "--mock",
        action="store_true",
        help="Skip the analysis service and use the offline stub generator and silent player.",
    )
    analyze.add_argument("--seed", type=int, default=None, help="Seed for the tier draws.")

    diagnostics = sub.add_parser("diagnostics", help="Print the music request for a diagnostic picture.")
    diagnostics.add_argument("--errors", "-e", type=int, required=True)
    diagnostics.add_argument("--warnings", "-w", type=int, default=0)
    diagnostics.add_argument("--previous", "-p", type=int, default=None, help="Previous error count.")
    diagnostics.add_argument("--generate", action="store_true")
    diagnostics.add_argument("--mock", action="store_true")

    celebrate = sub.add_parser("celebrate", help="Print (or generate) a celebration request.")
    celebrate.add_argument("celebration_type", choices=sorted(CELEBRATION_PROFILES))
    celebrate.add_argument("--context", default=None)
    celebrate.add_argument("--generate", action="store_true")
    celebrate.add_argument("--mock", action="store_true")

    serve = sub.add_parser("serve", help="Run the event intake API server.")
    serve.add_argument("--host", default=None, help="Bind address (default: $HOST or 127.0.0.1).")
    serve.add_argument("--port", type=int, default=None, help="Port (default: $PORT or 8000).")

    return parser.parse_args(argv)


def setup_logging(verbose: bool = False, debug: bool = False, log_file: str | None = None) -> None:
    """Setup logging to the console and, optionally, a file."""
    if debug:
        log_level = logging.DEBUG
    elif verbose:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def infer_language(path: Path) -> str:
    return EXTENSION_LANGUAGES.get(path.suffix.lower(), path.suffix.lstrip(".").lower() or "plaintext")


def _session(mock: bool) -> CodeTempoSession:
    # The CLI prints audio urls instead of playing them; the session would
    # stop playback on close anyway.
    settings = Settings.from_env()
    if mock:
        settings = settings.model_copy(update={"poll_interval": MOCK_POLL_INTERVAL})
        return CodeTempoSession(
            settings, service=StubGenerationService(), player=NullAudioPlayer()
        )
    return CodeTempoSession(settings, player=NullAudioPlayer())


async def _generate(request: MusicRequest, trigger: TriggerType, mock: bool) -> int:
    session = _session(mock)
    try:
        job = await session.generate(request, trigger)
        log.info("Submitted job %s (%s)", job.id, job.status)
        outcome = await session.lifecycle.wait()
        if outcome is None:
            print(job.model_dump_json(indent=2))
            return 1
        print(outcome.model_dump_json(indent=2))
        return 0 if outcome.kind in ("streaming", "complete") else 1
    finally:
        await session.close()


async def run_analyze(args: argparse.Namespace) -> int:
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: no such file: {path}", file=sys.stderr)
        return 1

    code = path.read_text(encoding="utf-8", errors="replace")
    language_id = args.language or infer_language(path)
    line_count = code.count("\n") + 1

    if args.mock:
        signal = CodeSignal.fallback(language_id)
    else:
        signal = await CodeAnalysisClient().analyze(code, language_id, path.suffix)

    synthesizer = ParameterSynthesizer(random.Random(args.seed))
    request = synthesizer.synthesize(signal, language_id, line_count)
    log.info("Complexity score: %.1f/10", complexity_score(signal, line_count))
    print(request.model_dump_json(indent=2))

    if args.generate:
        return await _generate(request, "code_analysis", args.mock)
    return 0


async def run_diagnostics(args: argparse.Namespace) -> int:
    if args.errors < 0 or args.warnings < 0:
        print("Error: counts must be non-negative", file=sys.stderr)
        return 1
    request = DiagnosticSynthesizer().synthesize(args.errors, args.warnings, args.previous)
    print(request.model_dump_json(indent=2))
    if args.generate:
        return await _generate(request, "error_feedback", args.mock)
    return 0


async def run_celebrate(args: argparse.Namespace) -> int:
    celebration_type: CelebrationType = args.celebration_type
    request = celebration_request(celebration_type, args.context)
    print(request.model_dump_json(indent=2))
    if args.generate:
        return await _generate(request, "success_celebration", args.mock)
    return 0


async def main(args: argparse.Namespace) -> int:
    start_time = time.time()
    log.info("=" * 80)
    log.info("Running %s", args.command)
    log.info("=" * 80)

    if args.command == "analyze":
        code = await run_analyze(args)
    elif args.command == "diagnostics":
        code = await run_diagnostics(args)
    else:
        code = await run_celebrate(args)

    log.info("Completed in %.2fs", time.time() - start_time)
    return code


def run(argv: list[str] | None = None) -> None:
    """Console script entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose, args.debug, args.log_file)

    if args.command == "serve":
        # uvicorn owns its event loop
        from codetempo.api_server import main as serve

        serve(args.host, args.port)
        return

    sys.exit(asyncio.run(main(args)))


if __name__ == "__main__":
    run()
