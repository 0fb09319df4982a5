"""
Pacing Controller - narrative arc guidance per panel

Maps a panel's position in the story to a dramatic phase and the
instructions the narrator must follow for it:

    first third   → SETUP       (exposition, establish stakes)
    middle third  → ESCALATION  (complications, rising tension)
    final third   → CLIMAX      (confrontation, highest stakes)
    last panel    → RESOLUTION  (mandatory conclusion, ending choices)

Pure functions of (current_panel, max_panels); no side effects.

Usage:
    from writarcade.services.pacing import get_pacing_guidance

    guidance = get_pacing_guidance(current_panel=2, max_panels=5)
"""

from writarcade.config.limits import OPTIONS_PER_PANEL
from writarcade.models import PacingPhase


PHASE_GUIDANCE = {
    PacingPhase.SETUP: (
        "PHASE: SETUP. Introduce the protagonist, the world and what is at stake. "
        "Ground the reader in one vivid, concrete image. Plant a hook that promises conflict."
    ),
    PacingPhase.ESCALATION: (
        "PHASE: ESCALATION. Complicate the situation. Raise the stakes, introduce an obstacle "
        "or a reversal, and make the consequences of the last choice felt."
    ),
    PacingPhase.CLIMAX: (
        "PHASE: CLIMAX. Drive toward the decisive confrontation. Tension is at its peak; every "
        "option must carry real risk and point toward how the story will be decided."
    ),
}

# Options on non-final panels keep the story going
STANDARD_OPTIONS_DIRECTIVE = (
    f"End with exactly {OPTIONS_PER_PANEL} numbered options (1. 2. 3. 4.), each a distinct "
    "action the player can take. The story continues after this panel."
)

# The final panel must not contain any "keep going" framing
FINAL_PANEL_DIRECTIVE = (
    "PHASE: RESOLUTION. This is the FINAL panel. You MUST conclude the story in this panel: "
    "resolve the central conflict and give the protagonist a clear fate. "
    "No cliffhangers, no unresolved threads, no teasers for later adventures. "
    f"End with exactly {OPTIONS_PER_PANEL} numbered options (1. 2. 3. 4.). "
    "Each option is a different ENDING: it decides how the story ends, "
    "never what happens afterwards."
)


def _validate_position(current_panel: int, max_panels: int) -> None:
    if max_panels < 1:
        raise ValueError(f"max_panels must be >= 1, got {max_panels}")
    if current_panel < 1 or current_panel > max_panels:
        raise ValueError(f"current_panel must be within 1..{max_panels}, got {current_panel}")


def get_pacing_phase(current_panel: int, max_panels: int) -> PacingPhase:
    """
    Get the dramatic phase for a 1-based panel index.

    Args:
        current_panel: Panel being generated (1-based)
        max_panels: Total panel budget for the story

    Returns:
        PacingPhase

    Raises:
        ValueError: If the panel index is outside 1..max_panels
    """
    _validate_position(current_panel, max_panels)

    if current_panel == max_panels:
        return PacingPhase.RESOLUTION

    position = current_panel / max_panels
    if position <= 1 / 3:
        return PacingPhase.SETUP
    if position <= 2 / 3:
        return PacingPhase.ESCALATION
    return PacingPhase.CLIMAX


def get_pacing_guidance(current_panel: int, max_panels: int) -> str:
    """
    Get the narrative instructions for a panel.

    Args:
        current_panel: Panel being generated (1-based)
        max_panels: Total panel budget for the story

    Returns:
        Guidance string for the narrator's system prompt
    """
    phase = get_pacing_phase(current_panel, max_panels)
    header = f"Panel {current_panel} of {max_panels}."

    if phase == PacingPhase.RESOLUTION:
        return f"{header} {FINAL_PANEL_DIRECTIVE}"

    remaining = max_panels - current_panel
    return (
        f"{header} {PHASE_GUIDANCE[phase]} "
        f"{remaining} more panel{'s' if remaining != 1 else ''} before the ending. "
        f"{STANDARD_OPTIONS_DIRECTIVE}"
    )


def is_final_panel(current_panel: int, max_panels: int) -> bool:
    _validate_position(current_panel, max_panels)
    return current_panel == max_panels
