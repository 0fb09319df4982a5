from .narrate_panel import get_panel_system_prompt, get_opening_instruction

__all__ = ["get_panel_system_prompt", "get_opening_instruction"]
