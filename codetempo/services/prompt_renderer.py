"""Stage 3 of synthesis: render a compact natural-language prompt.

Rendering is a pure function of the request's other fields; numeric fields
are never touched, so rendering the same request twice yields the same text.
"""

from __future__ import annotations

import re
from typing import Literal, Optional

from codetempo.models.music_request import MusicRequest
from codetempo.services.size_classifier import LONG_FILE_LINES, VERY_LONG_FILE_LINES

StressTier = Literal["high", "medium", "calm", "none"]

MAX_PROMPT_INSTRUMENTS = 4
HIGH_STRESS_INSTRUMENT_KEYWORDS = ("percussion", "strings", "brass", "orchestral", "piano")
CALM_BPM_THRESHOLD = 70

_LINES_TAG = re.compile(r"^(\d+)_lines$")

_STRESS_CLAUSES = {
    "high": "URGENT, overwhelming stress. ",
    "medium": "Building tension and stress. ",
    "calm": "Calm and peaceful. ",
    "none": "",
}


def tagged_line_count(tags: tuple[str, ...]) -> Optional[int]:
    """Return the line count carried by a ``<n>_lines`` tag, if any."""
    for tag in tags:
        match = _LINES_TAG.match(tag)
        if match:
            return int(match.group(1))
    return None


def stress_tier(request: MusicRequest) -> StressTier:
    lines = tagged_line_count(request.tags) or 0
    if (
        "high_stress" in request.tags
        or lines >= VERY_LONG_FILE_LINES
        or request.complexity == "very_complex"
    ):
        return "high"
    if lines >= LONG_FILE_LINES or request.complexity in ("complex", "very_complex"):
        return "medium"
    if request.bpm < CALM_BPM_THRESHOLD:
        return "calm"
    return "none"


def key_instruments(instruments: tuple[str, ...], high_stress: bool) -> list[str]:
    if high_stress:
        selected = [
            inst
            for inst in instruments
            if any(keyword in inst for keyword in HIGH_STRESS_INSTRUMENT_KEYWORDS)
        ]
        if selected:
            return selected[:MAX_PROMPT_INSTRUMENTS]
    # Also the high-stress fallback when nothing matched, so the prompt still names instruments.
    return list(instruments[:MAX_PROMPT_INSTRUMENTS])


def _complexity_clause(request: MusicRequest, tier: StressTier) -> str:
    lines = tagged_line_count(request.tags) or 0
    if tier == "high":
        return "Overwhelming complexity. "
    if tier == "medium":
        return "Mounting tension. "
    if request.complexity == "simple" and lines < LONG_FILE_LINES:
        return "Simple and gentle. "
    return ""


def format_number(value: float) -> str:
    return f"{value:g}"


def render_prompt(request: MusicRequest) -> MusicRequest:
    """Return a copy of ``request`` with its prompt rendered."""
    tier = stress_tier(request)

    prompt = f"{request.genre} at {request.bpm} BPM, {request.mood} mood. "
    prompt += _STRESS_CLAUSES[tier]
    instruments = key_instruments(request.instruments, tier == "high")
    prompt += f"Instruments: {', '.join(instruments)}. "
    prompt += _complexity_clause(request, tier)
    prompt += f"Energy {format_number(request.energy)}/10, {request.duration}s duration."

    return request.model_copy(update={"prompt": prompt})
