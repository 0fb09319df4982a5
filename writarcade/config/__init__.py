"""Configuration package for WritArcade"""

from .settings import Settings, get_settings
from .limits import (
    PROMPT_MAX_LENGTH,
    MESSAGE_MAX_LENGTH,
    ARTICLE_CONTEXT_MAX_LENGTH,
    IMAGE_PROMPT_EXCERPT_LENGTH,
    COVER_DESCRIPTION_EXCERPT_LENGTH,
    OPTIONS_PER_PANEL,
    MIN_RATING,
    MAX_RATING,
)

__all__ = [
    "Settings",
    "get_settings",
    "PROMPT_MAX_LENGTH",
    "MESSAGE_MAX_LENGTH",
    "ARTICLE_CONTEXT_MAX_LENGTH",
    "IMAGE_PROMPT_EXCERPT_LENGTH",
    "COVER_DESCRIPTION_EXCERPT_LENGTH",
    "OPTIONS_PER_PANEL",
    "MIN_RATING",
    "MAX_RATING",
]
