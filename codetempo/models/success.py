"""Success detection models: pattern table entries, observed events and decisions."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from codetempo.models.music_request import MusicRequest

CelebrationType = Literal["compilation_success", "bug_fix", "test_pass", "deployment"]
SuccessEventKind = Literal[
    "terminal_output", "task_success", "diagnostic_improvement", "file_system", "manual"
]
CelebrationSource = Literal["pattern", "exit_code", "manual"]


class SuccessPattern(BaseModel):
    """One entry of the static success pattern table."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    matcher: Union[str, re.Pattern] = Field(
        description="Case-insensitive substring or compiled regular expression"
    )
    celebration_type: CelebrationType
    confidence: float = Field(gt=0.0, le=1.0, description="Score awarded on a match")
    description: str

    def score(self, text: str) -> float:
        """Return this pattern's confidence if it matches ``text``, else 0."""
        if isinstance(self.matcher, str):
            return self.confidence if self.matcher.lower() in text.lower() else 0.0
        return self.confidence if self.matcher.search(text) else 0.0


class SuccessEvent(BaseModel):
    """An observed occurrence that may indicate a success worth celebrating."""

    kind: SuccessEventKind
    details: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)


class Celebration(BaseModel):
    """Accepted celebration decision, including the music it dispatched."""

    model_config = ConfigDict(frozen=True)

    celebration_type: CelebrationType
    description: str
    confidence: float
    source: CelebrationSource
    request: MusicRequest
    timestamp: datetime = Field(default_factory=datetime.now)
