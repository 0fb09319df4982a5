"""
Models package - Pydantic data models for WritArcade

Re-exports all models for cleaner imports:
    from writarcade.models import PanelDraft, PanelOption, ImageResult
"""

from writarcade.models.models import *
