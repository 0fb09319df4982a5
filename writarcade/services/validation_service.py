"""
Validation Service for LLM Output Processing

This module cleans and repairs LLM-generated JSON before it is validated
against the game metadata schema. Handles common issues:
- Markdown code fences and preamble text around the JSON object
- Trailing commas, JavaScript comments
- camelCase keys where the schema expects snake_case
- Hex colors missing the leading '#' or written in shorthand

Architecture:
- Called by GameGenerator before pydantic validation
- Stateless utility functions (no class needed)
"""

import json
import re
import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


# =========================================================================
# JSON CLEANING UTILITIES
# =========================================================================

def clean_json_output(output: str) -> str:
    """
    Clean markdown code blocks from LLM output and repair common JSON issues.

    Handles:
    - Markdown code blocks (```json ... ```)
    - Preamble text before JSON (e.g., "Here is your game:\n{...}")
    - Trailing commas and // or /* */ comments
    - Invalid control characters

    Args:
        output: Raw LLM output possibly containing markdown

    Returns:
        Cleaned JSON string ready for parsing
    """
    if not output:
        return ""

    result_str = output.strip()

    # Keep \t, \n, \r - they are valid when escaped
    result_str = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f]', '', result_str)

    # Strategy 1: JSON inside a markdown code block
    json_match = re.search(r'```(?:json)?\s*(\{[\s\S]*\})\s*```', result_str)
    if json_match:
        extracted = json_match.group(1).strip()
        if _is_valid_json(extracted):
            return extracted
        result_str = extracted

    # Strategy 2: first balanced JSON object anywhere in the text
    extracted = _extract_json_object(result_str)
    if extracted:
        if _is_valid_json(extracted):
            return extracted
        result_str = extracted

    if _is_valid_json(result_str):
        return result_str

    # Repair: comments and trailing commas
    repaired = re.sub(r'//[^\n"]*$', '', result_str, flags=re.MULTILINE)
    repaired = re.sub(r'/\*.*?\*/', '', repaired, flags=re.DOTALL)
    repaired = re.sub(r',(\s*[}\]])', r'\1', repaired)

    if repaired != result_str:
        logger.info(f"JSON repaired ({len(result_str)} → {len(repaired)} chars)")

    return repaired


def _is_valid_json(text: str) -> bool:
    try:
        json.loads(text, strict=False)
        return True
    except json.JSONDecodeError:
        return False


def _extract_json_object(text: str) -> Optional[str]:
    """
    Extract a JSON object from text by finding balanced braces.

    Handles preamble like "Sure! Here is the game:\n{...}".

    Args:
        text: Raw text that may contain JSON somewhere within it

    Returns:
        The extracted JSON string, or None if no balanced object found
    """
    start_idx = text.find('{')
    if start_idx == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i in range(start_idx, len(text)):
        char = text[i]

        if escape_next:
            escape_next = False
            continue

        if char == '\\' and in_string:
            escape_next = True
            continue

        if char == '"':
            in_string = not in_string
            continue

        if in_string:
            continue

        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                return text[start_idx:i + 1]

    return None


# =========================================================================
# GAME METADATA AUTO-FIX
# =========================================================================

# Keys the model sometimes returns in camelCase or with synonyms
GAME_FIELD_ALIASES = {
    "primaryColor": "primary_color",
    "primarycolor": "primary_color",
    "color": "primary_color",
    "subGenre": "subgenre",
    "sub_genre": "subgenre",
    "tagLine": "tagline",
    "name": "title",
}


def auto_fix_game_data(game_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Attempt to auto-fix common shape issues in generated game metadata.

    Fixes:
    - camelCase / synonym keys (primaryColor → primary_color)
    - Hex color without '#' ("ff3366" → "#ff3366")
    - Shorthand hex color ("#f36" → "#ff3366")
    - Non-string scalar values (coerced to str)

    Semantic constraints (genre match) are NOT fixed here.

    Args:
        game_data: Parsed JSON dict from the LLM

    Returns:
        New dict with fixes applied
    """
    fixed: Dict[str, Any] = {}
    for key, value in game_data.items():
        target = GAME_FIELD_ALIASES.get(key, key)
        # Explicit snake_case key wins over an alias
        if target in fixed and target != key:
            continue
        fixed[target] = value

    for key in ("title", "description", "tagline", "genre", "subgenre"):
        if key in fixed and fixed[key] is not None and not isinstance(fixed[key], str):
            fixed[key] = str(fixed[key])

    color = fixed.get("primary_color")
    if isinstance(color, str):
        color = color.strip()
        if re.fullmatch(r'[0-9A-Fa-f]{6}', color) or re.fullmatch(r'[0-9A-Fa-f]{3}', color):
            color = f"#{color}"
        if re.fullmatch(r'#[0-9A-Fa-f]{3}', color):
            color = "#" + "".join(c * 2 for c in color[1:])
        fixed["primary_color"] = color

    return fixed
