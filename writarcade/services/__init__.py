"""Services package for WritArcade"""

from .exceptions import (
    WritArcadeError,
    GenerationValidationError,
    GameGenerationError,
    NarrativeGenerationError,
    PanelStateError,
)
from .llm_router import LLMRouter, get_llm_router, init_llm_router, reset_llm_router
from .validation_service import clean_json_output, auto_fix_game_data
from .text_processing import (
    enforce_length,
    count_sentences,
    count_words,
    parse_options,
    clean_narrative_text,
    split_narrative_and_options,
)
from .pacing import get_pacing_phase, get_pacing_guidance, is_final_panel
from .model_tracker import (
    ModelPerformanceTracker,
    get_model_tracker,
    init_model_tracker,
    reset_model_tracker,
)
from .image_backends import ImageBackend, VeniceImageClient
from .image_synthesizer import ImageSynthesizer
from .readiness import ReadinessGate
from .narrator import PanelNarrator
from .game_generator import GameGenerator
from .events import EventEmitter, session_events
from .session import StorySession

__all__ = [
    "WritArcadeError",
    "GenerationValidationError",
    "GameGenerationError",
    "NarrativeGenerationError",
    "PanelStateError",
    "LLMRouter",
    "get_llm_router",
    "init_llm_router",
    "reset_llm_router",
    "clean_json_output",
    "auto_fix_game_data",
    "enforce_length",
    "count_sentences",
    "count_words",
    "parse_options",
    "clean_narrative_text",
    "split_narrative_and_options",
    "get_pacing_phase",
    "get_pacing_guidance",
    "is_final_panel",
    "ModelPerformanceTracker",
    "get_model_tracker",
    "init_model_tracker",
    "reset_model_tracker",
    "ImageBackend",
    "VeniceImageClient",
    "ImageSynthesizer",
    "ReadinessGate",
    "PanelNarrator",
    "GameGenerator",
    "EventEmitter",
    "session_events",
    "StorySession",
]
