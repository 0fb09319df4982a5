"""
Game Generation Prompt

Asks the model for one interactive text-game idea as a JSON object matching
GameMetadata. Declared genre/difficulty constraints are appended, and retries
prepend a stricter preamble restating the violated constraint.
"""

from typing import Optional


def get_generate_game_prompt(
    topic: str = "",
    genre: Optional[str] = None,
    difficulty: Optional[str] = None,
) -> str:
    """
    Build the game generation prompt.

    Args:
        topic: Player topic or article text (may already carry a retry preamble)
        genre: Required genre, if the player declared one
        difficulty: "easy" or "hard", if declared

    Returns:
        Prompt string
    """
    prompt = """I am GameCreator-GPT, an AI specializing in generating creative and engaging game ideas. Generate a unique interactive text-based game idea that avoids common tropes like escape rooms and island games. The game should be exciting, dramatic, and fun.

Respond with a JSON object with exactly these fields:
- title: An engaging game title
- genre: Main genre (e.g., "Mystery", "Adventure", "Sci-Fi")
- subgenre: More specific genre (e.g., "Detective Thriller", "Space Opera")
- description: Detailed game description that matches the genre
- tagline: A funny, witty, and edgy tagline the main character would say
- primary_color: A hex color like "#33CCFF" with high contrast against #000000"""

    if genre:
        prompt += f"\n\nIMPORTANT: The genre MUST be {genre}. Make sure the game fits this genre perfectly."

    if difficulty:
        if difficulty == "easy":
            guide = "The game should be relatively easy with straightforward choices and clear consequences."
        else:
            guide = "The game should be challenging with complex choices, hidden mechanics, and difficult decisions."
        prompt += f"\n\nDifficulty: {guide}"

    if topic:
        prompt += f"\n\nThe user has specifically requested a game about: {topic}"

    return prompt


def get_genre_constraint_preamble(genre: str) -> str:
    return f'CRITICAL: The game MUST be in the "{genre}" genre. This is not negotiable.\n\n'


def get_schema_constraint_preamble() -> str:
    return (
        "You MUST provide ONLY valid JSON with these exact fields: title, description, "
        "tagline, genre, subgenre, primary_color. No additional text.\n\n"
    )
