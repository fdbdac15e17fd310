"""Fixed music profiles for each kind of success."""

from __future__ import annotations

from typing import Optional

from codetempo.models.music_request import MusicRequest
from codetempo.models.success import CelebrationType

CELEBRATION_PROFILES: dict[str, MusicRequest] = {
    "compilation_success": MusicRequest(
        bpm=130,
        mood="triumphant",
        genre="epic orchestral",
        energy=9,
        complexity="celebration",
        instruments=("orchestral", "brass", "timpani", "strings"),
        structure="epic build with climactic drop",
        duration=45,
        tags=("celebration", "success", "compilation", "victory"),
        prompt=(
            "Epic orchestral celebration with triumphant brass and powerful timpani, "
            "building to a victorious climax for successful code compilation"
        ),
        context="compilation_success_celebration",
    ),
    "bug_fix": MusicRequest(
        bpm=110,
        mood="relieved",
        genre="uplifting electronic",
        energy=7,
        complexity="celebration",
        instruments=("piano", "strings", "electronic", "light percussion"),
        structure="tension release with harmonic resolution",
        duration=30,
        tags=("relief", "resolution", "bug_fix", "harmony"),
        prompt=(
            "Uplifting electronic music with tension release and harmonic resolution, "
            "celebrating the successful fixing of a bug"
        ),
        context="bug_fix_celebration",
    ),
    "test_pass": MusicRequest(
        bpm=120,
        mood="confident",
        genre="uplifting pop electronic",
        energy=8,
        complexity="celebration",
        instruments=("synth", "electronic beats", "piano", "bass"),
        structure="uplifting major key celebration",
        duration=35,
        tags=("confidence", "testing", "validation", "success"),
        prompt=(
            "Confident uplifting electronic music in major key, celebrating successful "
            "test completion and code validation"
        ),
        context="test_pass_celebration",
    ),
    "deployment": MusicRequest(
        bpm=140,
        mood="victorious",
        genre="full orchestral finale",
        energy=10,
        complexity="celebration",
        instruments=("full orchestra", "choir", "brass", "strings", "timpani"),
        structure="full orchestral finale with choir",
        duration=60,
        tags=("deployment", "finale", "achievement", "launch"),
        prompt=(
            "Magnificent full orchestral finale with choir, celebrating the successful "
            "deployment and launch of the project"
        ),
        context="deployment_celebration",
    ),
}


def celebration_request(
    celebration_type: CelebrationType, context: Optional[str] = None
) -> MusicRequest:
    """Return the celebration profile, with ``context`` appended to its prompt."""
    request = CELEBRATION_PROFILES[celebration_type]
    if context:
        request = request.model_copy(update={"prompt": f"{request.prompt}. Context: {context}"})
    return request
