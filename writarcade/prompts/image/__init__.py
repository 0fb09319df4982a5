from .panel_image import get_panel_image_prompt, get_cover_image_prompt

__all__ = ["get_panel_image_prompt", "get_cover_image_prompt"]
