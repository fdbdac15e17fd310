from pydantic import BaseModel, ConfigDict, Field


class MusicRequest(BaseModel):
    """Fully resolved music generation parameters.

    Built in stages (base -> contextual -> prompt); each stage returns a new
    value via ``model_copy`` and never mutates the previous one.
    """

    model_config = ConfigDict(frozen=True)

    bpm: int = Field(description="Tempo in BPM")
    mood: str = Field(description="Primary mood, e.g. 'focused'")
    genre: str = Field(description="Musical genre or style, e.g. 'algorithmic ambient'")
    energy: float = Field(ge=1, le=10, description="Energy on a 1-10 scale")
    complexity: str = Field(description="Complexity tier, severity or 'celebration'")
    instruments: tuple[str, ...] = Field(
        default=(), description="Key instruments in priority order"
    )
    structure: str = Field(default="", description="Structural description of the piece")
    duration: int = Field(description="Target duration in seconds")
    tags: tuple[str, ...] = Field(default=(), description="Ordered descriptive tags")
    prompt: str = Field(default="", description="Natural language generation prompt")
    context: str = Field(
        default="", description="Origin label, e.g. 'code_analysis' or 'diagnostic_feedback'"
    )
