"""Structured assessment of a source snippet, as returned by the analysis service."""

from __future__ import annotations

import re
from typing import Any, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field

Complexity = Literal["simple", "moderate", "complex", "very_complex"]
Mood = Literal["calm", "focused", "energetic", "intense"]
CodeType = Literal[
    "algorithm", "data_structure", "ui_frontend", "backend_api", "utility", "test"
]

COMPLEXITIES: tuple[str, ...] = get_args(Complexity)
MOODS: tuple[str, ...] = get_args(Mood)
CODE_TYPES: tuple[str, ...] = get_args(CodeType)

MIN_RECOMMENDED_BPM = 60
MAX_RECOMMENDED_BPM = 140
MIN_ENERGY = 1
MAX_ENERGY = 10


class LanguageProfile(BaseModel):
    """Default signal values used when the analysis is missing or invalid."""

    model_config = ConfigDict(frozen=True)

    code_type: CodeType = "utility"
    recommended_bpm: int = 90
    energy: int = 5
    mood: Mood = "focused"


DEFAULT_PROFILE = LanguageProfile()

LANGUAGE_PROFILES: dict[str, LanguageProfile] = {
    "javascript": LanguageProfile(code_type="ui_frontend", recommended_bpm=120, energy=7, mood="energetic"),
    "typescript": LanguageProfile(code_type="ui_frontend", recommended_bpm=115, energy=7, mood="energetic"),
    "react": LanguageProfile(code_type="ui_frontend", recommended_bpm=125, energy=8, mood="energetic"),
    "html": LanguageProfile(code_type="ui_frontend", recommended_bpm=110, energy=6, mood="focused"),
    "css": LanguageProfile(code_type="ui_frontend", recommended_bpm=100, energy=5, mood="calm"),
    "python": LanguageProfile(code_type="algorithm", recommended_bpm=95, energy=6, mood="focused"),
    "java": LanguageProfile(code_type="backend_api", recommended_bpm=90, energy=5, mood="focused"),
    "cpp": LanguageProfile(code_type="algorithm", recommended_bpm=100, energy=7, mood="intense"),
    "c": LanguageProfile(code_type="algorithm", recommended_bpm=95, energy=6, mood="focused"),
    "go": LanguageProfile(code_type="backend_api", recommended_bpm=85, energy=5, mood="focused"),
    "rust": LanguageProfile(code_type="algorithm", recommended_bpm=105, energy=7, mood="intense"),
    "sql": LanguageProfile(code_type="data_structure", recommended_bpm=80, energy=4, mood="calm"),
    "json": LanguageProfile(code_type="utility", recommended_bpm=70, energy=3, mood="calm"),
}


def language_profile(language_id: str) -> LanguageProfile:
    return LANGUAGE_PROFILES.get(language_id, DEFAULT_PROFILE)


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _coerce_int(value: Any) -> int | None:
    """Read a leading integer the way a lenient parser would ("95 BPM" -> 95)."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value == value else None
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else None
    return None


class CodeSignal(BaseModel):
    """Coarse musical reading of a piece of code."""

    model_config = ConfigDict(frozen=True)

    complexity: Complexity = Field(description="Overall structural complexity tier")
    mood: Mood = Field(description="Perceived mood of the code")
    patterns: list[str] = Field(
        default_factory=list, description="Detected code patterns, e.g. ['recursion']"
    )
    code_type: CodeType = Field(description="Broad category of the code")
    recommended_bpm: Optional[int] = Field(
        default=None,
        ge=MIN_RECOMMENDED_BPM,
        le=MAX_RECOMMENDED_BPM,
        description="Suggested tempo; None means draw from the complexity tier",
    )
    energy: Optional[int] = Field(
        default=None,
        ge=MIN_ENERGY,
        le=MAX_ENERGY,
        description="Suggested energy on a 1-10 scale; None means draw from the tier",
    )
    genre: str = Field(default="ambient", description="Suggested genre")
    description: str = Field(default="Code analysis", description="Short description")

    @classmethod
    def fallback(cls, language_id: str) -> CodeSignal:
        """Default signal for a language, used when analysis is unavailable."""
        profile = language_profile(language_id)
        return cls(
            complexity="moderate",
            mood=profile.mood,
            patterns=[language_id],
            code_type=profile.code_type,
            recommended_bpm=profile.recommended_bpm,
            energy=profile.energy,
            genre="ambient",
            description=f"{language_id} code analysis (fallback)",
        )

    @classmethod
    def from_payload(cls, payload: dict[str, Any], language_id: str) -> CodeSignal:
        """Validate a raw analysis payload field by field.

        Every field outside its domain is replaced with the value from the
        language's default profile, so the result never carries an
        unvalidated value.
        """
        profile = language_profile(language_id)

        complexity = payload.get("complexity")
        if complexity not in COMPLEXITIES:
            complexity = "moderate"

        mood = payload.get("mood")
        if mood not in MOODS:
            mood = profile.mood

        code_type = payload.get("codeType", payload.get("code_type"))
        if code_type not in CODE_TYPES:
            code_type = profile.code_type

        bpm = _coerce_int(payload.get("recommendedBPM", payload.get("recommended_bpm")))
        if bpm is None or not MIN_RECOMMENDED_BPM <= bpm <= MAX_RECOMMENDED_BPM:
            bpm = profile.recommended_bpm

        energy = _coerce_int(payload.get("energy"))
        if energy is None or not MIN_ENERGY <= energy <= MAX_ENERGY:
            energy = profile.energy

        patterns = payload.get("patterns")
        if isinstance(patterns, list):
            patterns = [str(p) for p in patterns]
        else:
            patterns = []

        genre = payload.get("genre")
        description = payload.get("description")

        return cls(
            complexity=complexity,
            mood=mood,
            patterns=patterns,
            code_type=code_type,
            recommended_bpm=bpm,
            energy=energy,
            genre=genre if isinstance(genre, str) and genre else "ambient",
            description=description
            if isinstance(description, str) and description
            else "Code analysis",
        )
