"""
Engine exceptions

Image failures are deliberately absent: a failed image is a valid
ImageResult with backend_id "failed", never an exception.
"""

from typing import Any, Optional


class WritArcadeError(Exception):
    """Base class for engine errors"""


class GenerationValidationError(WritArcadeError):
    """Structured output still violates its constraints after all retries"""

    def __init__(self, attempts: int, reason: str, last_result: Optional[Any] = None):
        self.attempts = attempts
        self.reason = reason
        self.last_result = last_result
        super().__init__(f"Generation failed validation after {attempts} attempts: {reason}")


class GameGenerationError(WritArcadeError):
    """Transport or backend failure while generating game metadata"""


class NarrativeGenerationError(WritArcadeError):
    """Transport/backend failure or timeout while streaming a panel"""

    def __init__(self, message: str, panel_index: Optional[int] = None):
        self.panel_index = panel_index
        super().__init__(message)


class PanelStateError(WritArcadeError):
    """Illegal transition requested from the readiness gate"""

    def __init__(self, message: str, state: Optional[str] = None):
        self.state = state
        super().__init__(message)
