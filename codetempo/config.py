"""Runtime tunables.

Endpoint URLs and credentials are read by the clients themselves; this model
only holds behavioural knobs that the session hands to each component.
"""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, Field

ENV_PREFIX = "CODETEMPO_"


class Settings(BaseModel):
    enabled: bool = Field(default=True, description="Master switch for music generation")
    celebration_drops: bool = Field(default=True, description="Allow success celebrations")

    celebration_cooldown: float = Field(
        default=5.0, ge=0.0, description="Seconds between accepted celebrations"
    )
    acceptance_ratio: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Fraction of a pattern's own confidence its score must reach",
    )

    poll_interval: float = Field(default=5.0, ge=0.0, description="Seconds between status polls")
    max_polls: int = Field(default=60, ge=1, description="Status polls before giving up")
    max_poll_errors: int = Field(
        default=10, ge=1, description="Poll count after which status errors stop polling"
    )

    analysis_debounce: float = Field(
        default=2.0, ge=0.0, description="Quiet period after the last edit before analysis"
    )
    diagnostics_debounce: float = Field(
        default=1.5, ge=0.0, description="Quiet period after diagnostics change"
    )
    min_analysis_chars: int = Field(
        default=50, ge=0, description="Skip documents with fewer non-blank characters"
    )
    analysis_max_chars: int = Field(
        default=2000, ge=1, description="Source characters sent to the analysis service"
    )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Build settings from ``CODETEMPO_*`` environment variables.

        ``CODETEMPO_POLL_INTERVAL=2`` overrides ``poll_interval`` and so on;
        unknown variables are ignored.
        """
        environ = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}
        for name in cls.model_fields:
            value = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                overrides[name] = value
        return cls.model_validate(overrides)
