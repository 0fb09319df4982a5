"""
Panel Image Prompts

Comic-style prompts for per-panel images and game cover art. Genre picks the
illustration style; everything pushes away from photorealism.
"""

from typing import Optional

from writarcade.config.limits import IMAGE_PROMPT_EXCERPT_LENGTH, COVER_DESCRIPTION_EXCERPT_LENGTH


PANEL_GENRE_STYLES = {
    "horror": "dark comic book panel, bold inking, high contrast shadows, moody lighting, ominous atmosphere, graphic novel style",
    "mystery": "noir comic panel, dramatic shadows, suspicious atmosphere, comic book illustration, bold lines, high contrast",
    "comedy": "bright cartoon comic panel, exaggerated expressions, vibrant colors, playful illustration, comic style, humorous",
    "adventure": "action comic panel, dynamic poses, motion lines, epic scale, dramatic composition, comic book illustration",
    "sci-fi": "futuristic comic panel, tech aesthetic, neon accents, science fiction illustration, bold comic style, otherworldly",
    "fantasy": "magical comic panel, mystical illustration, glowing effects, enchanted atmosphere, fantasy comic style, detailed",
}
DEFAULT_PANEL_STYLE = "comic panel illustration, bold lines, digital art style"

COVER_GENRE_STYLES = {
    "horror": "dark comic book cover art, bold inking, moody lighting, ominous atmosphere, graphic novel style",
    "mystery": "noir comic cover, dramatic lighting, mysterious and intrigue, detective aesthetic, comic style",
    "comedy": "bright cartoon comic cover, colorful, whimsical, playful illustration, comic style",
    "adventure": "epic comic cover, grand scale, dramatic action, dynamic composition, comic book style",
    "sci-fi": "futuristic comic cover, technological aesthetic, neon accents, cyberpunk illustration, sci-fi comic style",
    "fantasy": "magical comic cover, mystical illustration, enchanted atmosphere, fantasy comic style",
}
DEFAULT_COVER_STYLE = "comic panel illustration, bold lines"


def get_panel_image_prompt(
    narrative: str,
    genre: str,
    style: Optional[str] = None,
    primary_color: Optional[str] = None,
) -> str:
    """
    Build the image prompt for one narrative moment.

    Args:
        narrative: Panel narrative (only the first 400 chars are used)
        genre: Game genre, selects the illustration style
        style: Style tag, e.g. "comic_book" or "manga"
        primary_color: Game color for palette matching

    Returns:
        Prompt string
    """
    genre_style = PANEL_GENRE_STYLES.get((genre or "").lower(), DEFAULT_PANEL_STYLE)
    excerpt = narrative[:IMAGE_PROMPT_EXCERPT_LENGTH]
    color = f", featuring {primary_color} color palette and accents" if primary_color else ""
    style_tag = f" Style: {style.replace('_', ' ')}." if style and style != "comic_book" else ""

    return (
        f'{genre_style} depicting this scene{color}: "{excerpt}". '
        f"Comic book illustration, professional artwork, high quality digital art, "
        f"expressive and dynamic. NOT photorealistic. Comic/illustrated aesthetic.{style_tag}"
    )


def get_cover_image_prompt(title: str, description: str, genre: str) -> str:
    """Build the cover art prompt for a generated game."""
    genre_style = COVER_GENRE_STYLES.get((genre or "").lower(), DEFAULT_COVER_STYLE)
    return (
        f'{genre_style} for a game titled "{title}". '
        f"{description[:COVER_DESCRIPTION_EXCERPT_LENGTH]}. High quality comic book illustration, "
        f"professional artwork, expressive and detailed. NOT photorealistic."
    )
