from .generate_game import (
    get_generate_game_prompt,
    get_genre_constraint_preamble,
    get_schema_constraint_preamble,
)

__all__ = [
    "get_generate_game_prompt",
    "get_genre_constraint_preamble",
    "get_schema_constraint_preamble",
]
