"""
Panel Narration Prompt

System instruction for one streamed comic panel. Combines the game details,
optional article context, the scene-isolation rule, a hard length directive
and the pacing guidance for the panel's place in the arc.
"""

from typing import Optional


SCENE_ISOLATION_RULE = (
    "Describe ONLY the new moment that follows the player's choice. "
    "Do not recap earlier panels or repeat what the player already knows."
)


def get_panel_system_prompt(
    length_directive: str,
    pacing_guidance: str,
    title: Optional[str] = None,
    genre: Optional[str] = None,
    subgenre: Optional[str] = None,
    description: Optional[str] = None,
    tagline: Optional[str] = None,
    article_context: Optional[str] = None,
) -> str:
    """
    Build the system instruction for a panel.

    Args:
        length_directive: e.g. "2-4 sentences"
        pacing_guidance: Output of get_pacing_guidance()
        title/genre/subgenre/description/tagline: Game details, when known
        article_context: Source article excerpt for thematic continuity

    Returns:
        System prompt string
    """
    sections = ["You are an interactive comic story engine. Each reply is ONE comic panel."]

    if title:
        sections.append(f"""# GAME DETAILS
Title: {title}
Genre: {genre or 'Adventure'}
Subgenre: {subgenre or ''}
Description: {description or ''}
Tagline: {tagline or ''}""")

    if article_context:
        sections.append(f"""# ARTICLE CONTEXT (use to enhance narrative authenticity)
{article_context}""")

    rules = [
        "Stay in character and maintain the game's tone",
        SCENE_ISOLATION_RULE,
        f"LENGTH: the narrative before the options must be {length_directive}. This is a hard limit.",
        "Be concise, witty, and engaging",
        "Make choices meaningful with real consequences",
        'Begin each option on its own line with the number, period, and space (e.g., "1. ")',
        "Do not add headings such as **Panel 1:** or **Options:**",
    ]
    if article_context:
        rules.append("Incorporate themes from the article")

    sections.append("# RULES\n" + "\n".join(f"* {r}" for r in rules))
    sections.append(f"# PACING\n{pacing_guidance}")

    return "\n\n".join(sections)


def get_opening_instruction() -> str:
    return "Start the game now. Set the scene for the first panel and present the choices."
