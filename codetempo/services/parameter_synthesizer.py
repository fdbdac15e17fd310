"""Turn a CodeSignal into a fully specified MusicRequest.

Three stages, each returning a new immutable request:

1. base parameters from the complexity tier (the only random step),
2. contextual modification by language and file size,
3. prompt rendering (``prompt_renderer.render_prompt``).
"""

from __future__ import annotations

import logging
import random
from typing import Optional

from pydantic import BaseModel, ConfigDict

from codetempo.agent.debug import trace_stage
from codetempo.models.code_signal import CodeSignal
from codetempo.models.music_request import MusicRequest
from codetempo.services.prompt_renderer import render_prompt
from codetempo.services.size_classifier import (
    HIGH_STRESS_MULTIPLIER,
    LONG_FILE_LINES,
    MASSIVE_FILE_LINES,
    VERY_LONG_FILE_LINES,
    score_multiplier,
    size_class,
)

log = logging.getLogger(__name__)

MIN_BPM = 40
MAX_BPM = 200
MIN_ENERGY = 1
MAX_ENERGY = 10


class ComplexityTier(BaseModel):
    model_config = ConfigDict(frozen=True)

    bpm_range: tuple[int, int]
    energy_range: tuple[int, int]
    instruments: tuple[str, ...]
    genre: str
    stress_factor: float
    tension: str
    structure: str
    score: int


COMPLEXITY_TIERS: dict[str, ComplexityTier] = {
    "simple": ComplexityTier(
        bpm_range=(50, 70),
        energy_range=(1, 3),
        instruments=("soft piano", "ambient pad", "gentle strings", "nature sounds"),
        genre="meditative ambient",
        stress_factor=0.1,
        tension="minimal",
        structure="peaceful flowing melody with minimal changes",
        score=3,
    ),
    "moderate": ComplexityTier(
        bpm_range=(70, 95),
        energy_range=(3, 5),
        instruments=("piano", "strings", "light percussion", "soft synth"),
        genre="focused ambient",
        stress_factor=0.3,
        tension="building",
        structure="gentle building progression with subtle variations",
        score=5,
    ),
    "complex": ComplexityTier(
        bpm_range=(95, 130),
        energy_range=(5, 8),
        instruments=("synth", "strings", "percussion", "bass", "electronic beats"),
        genre="intense progressive",
        stress_factor=0.6,
        tension="escalating",
        structure="layered composition with escalating tension and rapid dynamic changes",
        score=8,
    ),
    "very_complex": ComplexityTier(
        bpm_range=(130, 180),
        energy_range=(8, 10),
        instruments=(
            "heavy orchestral",
            "industrial percussion",
            "distorted synth",
            "intense bass",
            "urgent strings",
        ),
        genre="high-stress cinematic",
        stress_factor=0.9,
        tension="overwhelming",
        structure=(
            "intense chaotic orchestral journey with overwhelming multiple "
            "movements and urgent tempo shifts"
        ),
        score=10,
    ),
}


class LanguageOverride(BaseModel):
    model_config = ConfigDict(frozen=True)

    genre: str
    instruments: tuple[str, ...]
    tags: tuple[str, ...]
    energy_delta: int = 0
    bpm_delta: int = 0
    bpm_floor: int = MIN_BPM


LANGUAGE_OVERRIDES: dict[str, LanguageOverride] = {
    "javascript": LanguageOverride(
        genre="modern electronic",
        instruments=("synth", "electronic beats", "ambient pad"),
        tags=("frontend", "dynamic"),
    ),
    "typescript": LanguageOverride(
        genre="structured electronic",
        instruments=("piano", "synth", "strings"),
        tags=("typed", "structured"),
    ),
    "python": LanguageOverride(
        genre="algorithmic ambient",
        instruments=("piano", "strings", "subtle percussion"),
        tags=("algorithmic", "clean"),
    ),
    "java": LanguageOverride(
        genre="enterprise orchestral",
        instruments=("orchestral", "brass", "strings"),
        tags=("enterprise", "robust"),
    ),
    "cpp": LanguageOverride(
        genre="intense technical",
        instruments=("orchestral", "electronic", "heavy percussion"),
        tags=("performance", "technical"),
        energy_delta=1,
    ),
    "rust": LanguageOverride(
        genre="modern technical",
        instruments=("electronic", "orchestral hybrid", "percussion"),
        tags=("safe", "fast"),
        energy_delta=1,
    ),
    "html": LanguageOverride(
        genre="structural ambient",
        instruments=("piano", "soft strings", "ambient pad"),
        tags=("markup", "structure"),
    ),
    "css": LanguageOverride(
        genre="design ambient",
        instruments=("piano", "ambient pad", "soft synth"),
        tags=("design", "visual"),
    ),
    "sql": LanguageOverride(
        genre="data ambient",
        instruments=("piano", "strings", "minimal percussion"),
        tags=("data", "query"),
        bpm_delta=-10,
        bpm_floor=60,
    ),
}

TENSION_INSTRUMENTS = ("urgent percussion", "building tension")
ESCALATING_INSTRUMENTS = ("rapid percussion", "tense strings", "escalating intensity")
MAXIMUM_STRESS_INSTRUMENTS = ("dissonant harmonies", "urgent brass", "overwhelming orchestral")


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def complexity_score(signal: CodeSignal, line_count: int) -> float:
    """Overall 1-10 stress score for telemetry; never fed back into a request."""
    tier = COMPLEXITY_TIERS.get(signal.complexity)
    base = tier.score if tier else 6
    energy = signal.energy if signal.energy is not None else 5
    score = clamp(base * score_multiplier(line_count) + energy * 0.2, 1, 10)
    return round(score, 1)


class ParameterSynthesizer:
    """Synthesizes music requests from code analysis signals.

    Args:
        rng: Random source for the tier draws used when a signal carries no
            recommended BPM or energy. Inject a seeded ``random.Random`` for
            deterministic output.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def synthesize(self, signal: CodeSignal, language_id: str, line_count: int) -> MusicRequest:
        log.info(
            "Synthesizing music for %s %s code (%d lines), complexity score %.1f/10",
            signal.complexity,
            language_id,
            line_count,
            complexity_score(signal, line_count),
        )
        trace_stage("input signal", signal)

        base = self.base_parameters(signal)
        trace_stage("base parameters", base)

        contextual = self.apply_context(base, language_id, line_count)
        trace_stage("contextual parameters", contextual)

        final = render_prompt(contextual)
        log.info("Generated music prompt: %s", final.prompt)
        return final

    def base_parameters(self, signal: CodeSignal) -> MusicRequest:
        """Stage 1: tier defaults, with the signal's own tempo/energy preferred."""
        tier = COMPLEXITY_TIERS[signal.complexity]

        if signal.recommended_bpm is not None:
            bpm = signal.recommended_bpm
        else:
            bpm = self.rng.randint(*tier.bpm_range)

        if signal.energy is not None:
            energy = signal.energy
        else:
            energy = self.rng.randint(*tier.energy_range)

        return MusicRequest(
            bpm=bpm,
            mood=signal.mood,
            genre=signal.genre or tier.genre,
            energy=energy,
            complexity=signal.complexity,
            instruments=tier.instruments,
            structure=tier.structure,
            duration=60,
            tags=(signal.code_type, signal.complexity, signal.mood, tier.tension),
            context="code_analysis",
        )

    def apply_context(self, request: MusicRequest, language_id: str, line_count: int) -> MusicRequest:
        """Stage 2: language overrides, then file-size stress scaling."""
        override = LANGUAGE_OVERRIDES.get(language_id)

        bpm = request.bpm
        energy = request.energy
        genre = request.genre
        instruments = request.instruments
        tags = request.tags
        if override is not None:
            genre = override.genre
            instruments = override.instruments
            tags = tags + override.tags
            if override.energy_delta:
                energy = clamp(energy + override.energy_delta, MIN_ENERGY, MAX_ENERGY)
            if override.bpm_delta:
                bpm = max(bpm + override.bpm_delta, override.bpm_floor)

        size = size_class(line_count)
        bpm = int(clamp(bpm + size.bpm_adjustment, MIN_BPM, MAX_BPM))
        energy = clamp(
            (energy + size.energy_adjustment) * size.stress_multiplier, MIN_ENERGY, MAX_ENERGY
        )

        if line_count >= LONG_FILE_LINES:
            instruments = instruments + TENSION_INSTRUMENTS
        if line_count >= VERY_LONG_FILE_LINES:
            instruments = instruments + ESCALATING_INSTRUMENTS
            genre = f"high-tension {genre}"
        if line_count >= MASSIVE_FILE_LINES:
            instruments = instruments + MAXIMUM_STRESS_INSTRUMENTS
            genre = f"overwhelming {genre}"

        stress_tag = "high_stress" if size.stress_multiplier > HIGH_STRESS_MULTIPLIER else "manageable"

        return request.model_copy(
            update={
                "bpm": bpm,
                "energy": round(energy, 1),
                "genre": genre,
                "instruments": instruments,
                "duration": size.duration_seconds,
                "tags": tags + (f"{max(0, line_count)}_lines", stress_tag),
            }
        )
