"""
Centralized Validation Limits

All content length limits in one place for consistency.
Import these in both API routes and Pydantic models.
"""

# =============================================================================
# USER INPUT LIMITS
# =============================================================================

# Game prompts (topic text or pasted article)
PROMPT_MAX_LENGTH = 20000

# Player messages (custom actions typed instead of a numbered option)
MESSAGE_MAX_LENGTH = 1000

# =============================================================================
# GENERATION LIMITS
# =============================================================================

# Article text carried into game and narrative prompts
ARTICLE_CONTEXT_MAX_LENGTH = 4000

# Narrative excerpt used to build an image prompt
IMAGE_PROMPT_EXCERPT_LENGTH = 400

# Description excerpt used to build cover art prompts
COVER_DESCRIPTION_EXCERPT_LENGTH = 200

# Numbered choices offered on every non-final panel
OPTIONS_PER_PANEL = 4

# =============================================================================
# FEEDBACK LIMITS
# =============================================================================

MIN_RATING = 1
MAX_RATING = 5
