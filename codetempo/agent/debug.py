"""Debug tracing utilities for the analysis and synthesis steps."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel

log = logging.getLogger(__name__)


def _format_value(value: Any, max_length: int | None = 300) -> str:
    """Format a value for display, truncating if needed."""
    if isinstance(value, str):
        s = value
    elif isinstance(value, BaseModel):
        s = value.model_dump_json(indent=2)
    elif isinstance(value, dict):
        s = json.dumps(value, indent=2, default=str)
    else:
        s = str(value)

    if max_length is not None and len(s) > max_length:
        return s[:max_length] + f"\n... (truncated {len(s) - max_length} chars)"
    return s


def trace_analysis_request(language_id: str, code_length: int, truncated: bool) -> None:
    """Log what is about to be sent to the analysis service."""
    if not log.isEnabledFor(logging.DEBUG):
        return
    log.debug("=" * 80)
    log.debug("ANALYSIS REQUEST")
    log.debug("=" * 80)
    log.debug(f"Language: {language_id}")
    log.debug(f"Code length: {code_length} chars (truncated: {truncated})")
    log.debug("=" * 80)


def trace_analysis_response(raw: str) -> None:
    """Log the raw text returned by the analysis service."""
    if not log.isEnabledFor(logging.DEBUG):
        return
    log.debug("=" * 80)
    log.debug("ANALYSIS RESPONSE")
    log.debug("=" * 80)
    log.debug(_format_value(raw, max_length=None))
    log.debug("=" * 80)


def trace_stage(stage: str, value: Any) -> None:
    """Log one synthesis stage's output in full."""
    if not log.isEnabledFor(logging.DEBUG):
        return
    log.debug("=" * 80)
    log.debug(stage.upper())
    log.debug("=" * 80)
    log.debug(_format_value(value, max_length=None))
    log.debug("=" * 80)
