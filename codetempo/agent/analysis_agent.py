from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

from codetempo.agent.debug import trace_analysis_request, trace_analysis_response
from codetempo.agent.prompts import ANALYSIS_INSTRUCTIONS
from codetempo.models.code_signal import CodeSignal

log = logging.getLogger(__name__)

# OpenAI-compatible analysis endpoint; set CODETEMPO_ANALYSIS_KEY
DEFAULT_ANALYSIS_URL = "https://api.tandemn.com/api/v1"
DEFAULT_MODEL_NAME = "casperhansen/deepseek-r1-distill-llama-70b-awq"

MAX_CODE_LENGTH = 2000
TRUNCATION_MARKER = "\n... (truncated)"


def truncate_code(code: str, max_length: int = MAX_CODE_LENGTH) -> tuple[str, bool]:
    if len(code) > max_length:
        return code[:max_length] + TRUNCATION_MARKER, True
    return code, False


def build_analysis_prompt(code: str, language_id: str) -> str:
    return (
        f"Analyze this {language_id} code for music generation purposes.\n\n"
        f"CODE TO ANALYZE:\n```{language_id}\n{code}\n```\n\n"
        f"{ANALYSIS_INSTRUCTIONS}"
    )


def _first_balanced_object(text: str) -> Optional[str]:
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return text[start : i + 1]
    return None


def extract_json_object(text: str) -> dict[str, Any]:
    """Pull the JSON object out of a model reply.

    Tries the outermost ``{...}`` span first; if that does not parse (e.g.
    the reply contains several objects), falls back to the first balanced
    object. Raises ``ValueError`` when neither yields a JSON object.
    """
    json_start = text.find("{")
    json_end = text.rfind("}") + 1
    if json_start < 0 or json_end <= json_start:
        raise ValueError("No JSON found in analysis response")

    try:
        parsed = json.loads(text[json_start:json_end])
    except json.JSONDecodeError:
        candidate = _first_balanced_object(text)
        if candidate is None:
            raise ValueError("No complete JSON object in analysis response")
        parsed = json.loads(candidate)

    if not isinstance(parsed, dict):
        raise ValueError("Analysis response JSON is not an object")
    return parsed


class CodeAnalysisClient:
    """Asks an OpenAI-compatible chat model for a musical reading of code.

    Configured via environment variables:
      - CODETEMPO_ANALYSIS_URL: base URL of the chat-completions API
      - CODETEMPO_ANALYSIS_KEY: API key
      - CODETEMPO_ANALYSIS_MODEL: model name

    ``analyze`` never raises for service or parse failures; it falls back to
    the language's default signal instead.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        model_name: str | None = None,
        max_code_length: int = MAX_CODE_LENGTH,
        client: AsyncOpenAI | None = None,
    ):
        self.base_url = (
            base_url or os.environ.get("CODETEMPO_ANALYSIS_URL") or DEFAULT_ANALYSIS_URL
        ).rstrip("/")
        self.model = model_name or os.environ.get("CODETEMPO_ANALYSIS_MODEL") or DEFAULT_MODEL_NAME
        self.max_code_length = max_code_length
        self._client = client or AsyncOpenAI(
            base_url=self.base_url,
            api_key=api_key or os.environ.get("CODETEMPO_ANALYSIS_KEY") or "not-set",
        )

    async def analyze(self, code: str, language_id: str, file_extension: str = "") -> CodeSignal:
        start = time.time()
        truncated_code, truncated = truncate_code(code, self.max_code_length)
        trace_analysis_request(language_id, len(code), truncated)

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "user", "content": build_analysis_prompt(truncated_code, language_id)}
                ],
                temperature=0.3,
                max_tokens=10000,
            )
        except OpenAIError as e:
            log.error("Code analysis request failed: %s", e)
            return CodeSignal.fallback(language_id)

        if not response.choices or response.choices[0].message is None:
            log.error("Invalid response format from analysis service")
            return CodeSignal.fallback(language_id)

        raw = response.choices[0].message.content or ""
        trace_analysis_response(raw)
        log.info("Analysis completed in %.2fs", time.time() - start)

        try:
            payload = extract_json_object(raw)
        except ValueError as e:
            log.warning("Failed to parse analysis response, using fallback: %s", e)
            return CodeSignal.fallback(language_id)

        signal = CodeSignal.from_payload(payload, language_id)
        log.info(
            "Code analysis: %s / %s / %s (%s)",
            signal.complexity,
            signal.mood,
            signal.code_type,
            file_extension or language_id,
        )
        return signal
