"""
Pydantic data models for the WritArcade comic engine

Runtime-validated shapes for everything that crosses a component boundary:
generation requests, game metadata, panel drafts, image results, feedback
records and the gameplay events streamed to clients.

LIMITS
======
| Field                     | Min | Max     | Model             |
|---------------------------|-----|---------|-------------------|
| GenerationRequest.source  | -   | 20,000  | GenerationRequest |
| PanelOption.id            | 1   | 4       | PanelOption       |
| Feedback rating           | 1   | 5       | ImageFeedback     |
| GameMetadata.primary_color| #RRGGBB      | GameMetadata      |
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Dict, Literal, Any
from enum import Enum
import json
import time

from writarcade.config.limits import (
    PROMPT_MAX_LENGTH,
    MESSAGE_MAX_LENGTH,
    ARTICLE_CONTEXT_MAX_LENGTH,
    OPTIONS_PER_PANEL,
    MIN_RATING,
    MAX_RATING,
)


FAILED_BACKEND_ID = "failed"


# ============================================================================
# Enums
# ============================================================================

class Difficulty(str, Enum):
    EASY = "easy"
    HARD = "hard"


class PacingPhase(str, Enum):
    """Narrative-arc stage for a panel"""
    SETUP = "setup"
    ESCALATION = "escalation"
    CLIMAX = "climax"
    RESOLUTION = "resolution"


class LengthUnit(str, Enum):
    SENTENCES = "sentences"
    WORDS = "words"


class PanelState(str, Enum):
    """States of the per-panel readiness state machine"""
    AWAITING_INPUT = "awaiting_input"
    TEXT_STREAMING = "text_streaming"
    TEXT_READY = "text_ready"
    IMAGES_GENERATING = "images_generating"
    PANEL_READY = "panel_ready"
    STORY_COMPLETE = "story_complete"


# ============================================================================
# Game generation
# ============================================================================

class GameCustomization(BaseModel):
    """Optional constraints declared by the player when generating a game"""
    genre: Optional[str] = Field(None, max_length=50)
    difficulty: Optional[Difficulty] = None


class GenerationRequest(BaseModel):
    """One structured game generation call. Discarded after the response."""
    source_text: Optional[str] = Field(None, max_length=PROMPT_MAX_LENGTH)
    source_url: Optional[str] = None
    customization: GameCustomization = Field(default_factory=GameCustomization)
    model_id: Optional[str] = None
    prompt_name: Optional[str] = None


class GameMetadata(BaseModel):
    """Schema the language model must fill when generating a game"""
    title: str
    description: str
    tagline: str
    genre: str
    subgenre: str
    primary_color: str = Field(..., pattern=r"^#[0-9A-Fa-f]{6}$")

    @field_validator("title", "genre", "subgenre")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class GameGenerationResult(BaseModel):
    """Validated game metadata plus the prompt provenance"""
    game: GameMetadata
    prompt_model: str
    prompt_name: str
    prompt_text: Optional[str] = None
    attempts: int = 1


# ============================================================================
# Panels
# ============================================================================

class PanelOption(BaseModel):
    """A numbered player choice. The only option shape past the parser."""
    id: int = Field(..., ge=1, le=OPTIONS_PER_PANEL)
    text: str = Field(..., min_length=1)


class PanelDraft(BaseModel):
    """Working state for the panel currently being generated"""
    panel_index: int = Field(..., ge=1)
    raw_text: str = ""
    narrative_text: str = ""
    options: List[PanelOption] = Field(default_factory=list)
    is_text_complete: bool = False
    is_final: bool = False

    def append(self, delta: str) -> None:
        self.raw_text += delta


class LengthBudget(BaseModel):
    """Hard range for narrative length"""
    unit: LengthUnit = LengthUnit.SENTENCES
    minimum: int = Field(2, ge=0)
    maximum: int = Field(4, ge=1)

    @field_validator("maximum")
    @classmethod
    def max_not_below_min(cls, v: int, info) -> int:
        minimum = info.data.get("minimum")
        if minimum is not None and v < minimum:
            raise ValueError("maximum must be >= minimum")
        return v

    def describe(self) -> str:
        if self.minimum == self.maximum:
            return f"exactly {self.maximum} {self.unit.value}"
        return f"{self.minimum}-{self.maximum} {self.unit.value}"


# ============================================================================
# Images and feedback
# ============================================================================

class ImageResult(BaseModel):
    """Outcome of one panel image request. image_url None = no image."""
    image_url: Optional[str] = None
    backend_id: str
    generated_at: float = Field(default_factory=time.time)

    @property
    def failed(self) -> bool:
        return self.backend_id == FAILED_BACKEND_ID


class ModelPerformanceRecord(BaseModel):
    backend_id: str
    rating_count: int = 0
    running_average_score: float = 0.0


class ImageFeedback(BaseModel):
    backend_id: str = Field(..., min_length=1)
    rating: int = Field(..., ge=MIN_RATING, le=MAX_RATING)


# ============================================================================
# Readiness and progress
# ============================================================================

class PanelReadiness(BaseModel):
    text_ready: bool = False
    images_ready: bool = False

    @property
    def presentable(self) -> bool:
        return self.text_ready and self.images_ready


class StoryProgress(BaseModel):
    current_panel_index: int = Field(0, ge=0)
    max_panels: int = Field(5, ge=1)

    @property
    def is_final_panel(self) -> bool:
        return self.current_panel_index == self.max_panels


class PanelRecord(BaseModel):
    """A panel that reached PANEL_READY"""
    draft: PanelDraft
    image: ImageResult
    user_input: Optional[str] = None


# ============================================================================
# Gameplay events (transport boundary)
# ============================================================================

EventKind = Literal["content", "options", "image", "end", "error"]


class GameplayEvent(BaseModel):
    """A discrete record streamed to the client while a panel is generated"""
    kind: EventKind
    payload: Dict[str, Any] = Field(default_factory=dict)

    def to_sse(self) -> str:
        """Frame as a server-sent event"""
        return f"data: {json.dumps({'type': self.kind, **self.payload})}\n\n"


# ============================================================================
# API requests
# ============================================================================

class StartSessionRequest(BaseModel):
    """Start playing a generated game"""
    game: GameMetadata
    article_context: Optional[str] = Field(None, max_length=ARTICLE_CONTEXT_MAX_LENGTH)
    model_id: Optional[str] = None


class PanelRequest(BaseModel):
    """
    Next player action for a session.

    option_id picks one of the current options; user_input is free text;
    retry replays the last failed panel. With none set the game opens.
    """
    option_id: Optional[int] = Field(None, ge=1, le=OPTIONS_PER_PANEL)
    user_input: Optional[str] = Field(None, max_length=MESSAGE_MAX_LENGTH)
    retry: bool = False
