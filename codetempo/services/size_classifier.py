"""Line-count stress buckets.

Longer files map to faster, more energetic and longer music. Buckets use
exclusive upper bounds and are monotonic in every field.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class SizeClass(BaseModel):
    model_config = ConfigDict(frozen=True)

    bpm_adjustment: int
    energy_adjustment: int
    duration_seconds: int
    stress_multiplier: float


# (exclusive upper bound, bucket); None closes the table.
SIZE_BUCKETS: tuple[tuple[int | None, SizeClass], ...] = (
    (25, SizeClass(bpm_adjustment=-15, energy_adjustment=-1, duration_seconds=25, stress_multiplier=0.6)),
    (50, SizeClass(bpm_adjustment=0, energy_adjustment=0, duration_seconds=40, stress_multiplier=0.9)),
    (100, SizeClass(bpm_adjustment=20, energy_adjustment=2, duration_seconds=60, stress_multiplier=1.4)),
    (150, SizeClass(bpm_adjustment=35, energy_adjustment=3, duration_seconds=75, stress_multiplier=1.8)),
    (300, SizeClass(bpm_adjustment=50, energy_adjustment=4, duration_seconds=90, stress_multiplier=2.2)),
    (500, SizeClass(bpm_adjustment=70, energy_adjustment=5, duration_seconds=120, stress_multiplier=2.7)),
    (None, SizeClass(bpm_adjustment=90, energy_adjustment=6, duration_seconds=150, stress_multiplier=3.0)),
)

# Scoring multipliers on the same boundaries, used only by complexity_score.
SCORE_MULTIPLIERS: tuple[tuple[int | None, float], ...] = (
    (25, 0.7),
    (50, 1.0),
    (100, 1.6),
    (150, 2.2),
    (300, 2.8),
    (500, 3.5),
    (None, 4.0),
)

LONG_FILE_LINES = 50
VERY_LONG_FILE_LINES = 150
MASSIVE_FILE_LINES = 300
HIGH_STRESS_MULTIPLIER = 1.2


def size_class(line_count: int) -> SizeClass:
    """Return the stress bucket for ``line_count`` (negative counts act as 0)."""
    line_count = max(0, line_count)
    for upper, bucket in SIZE_BUCKETS:
        if upper is None or line_count < upper:
            return bucket
    raise AssertionError("size buckets must end with an open bucket")


def score_multiplier(line_count: int) -> float:
    line_count = max(0, line_count)
    for upper, multiplier in SCORE_MULTIPLIERS:
        if upper is None or line_count < upper:
            return multiplier
    raise AssertionError("score multipliers must end with an open bucket")
