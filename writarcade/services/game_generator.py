"""
Game Generator - schema-constrained game metadata

Turns a topic or article into GameMetadata (title, genre, tagline, ...)
with one structured LLM call per attempt. The backend guarantees the JSON
shape at best; genre conformance is checked here.

Retry policy (explicit bounded loop, 1 + max_retries attempts):
- Schema failure (bad JSON / pydantic error) → retry demanding exact fields
- Declared genre not matched               → retry restating the genre
- Retries exhausted                        → GenerationValidationError
- Transport failure                        → GameGenerationError (no retry)

Usage:
    generator = GameGenerator()
    result = await generator.generate(GenerationRequest(
        source_text=article,
        customization=GameCustomization(genre="Horror"),
    ))
"""

import json
import logging
import time
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from writarcade.config.limits import ARTICLE_CONTEXT_MAX_LENGTH
from writarcade.models import GameGenerationResult, GameMetadata, GenerationRequest
from writarcade.prompts.game import (
    get_generate_game_prompt,
    get_genre_constraint_preamble,
    get_schema_constraint_preamble,
)
from writarcade.services.exceptions import GameGenerationError, GenerationValidationError
from writarcade.services.llm_router import LLMRouter, get_llm_router
from writarcade.services.logger import get_logger
from writarcade.services.validation_service import auto_fix_game_data, clean_json_output

logger = logging.getLogger(__name__)

ROLE = "game_generator"
PROMPT_NAME = "GenerateGame-v2"


def genre_matches(requested: str, generated: str) -> bool:
    """Case-insensitive substring match in either direction."""
    requested = (requested or "").strip().lower()
    generated = (generated or "").strip().lower()
    if not requested:
        return True
    if not generated:
        return False
    return requested in generated or generated in requested


def parse_game_metadata(content: Optional[str]) -> GameMetadata:
    """
    Parse raw model output into GameMetadata.

    Raises:
        json.JSONDecodeError: Output holds no parseable JSON object
        ValidationError: JSON does not satisfy the schema
    """
    data = json.loads(clean_json_output(content or ""), strict=False)
    if not isinstance(data, dict):
        raise json.JSONDecodeError("Expected a JSON object", str(data), 0)
    return GameMetadata.model_validate(auto_fix_game_data(data))


class GameGenerator:
    """Generates game metadata with validation and bounded retries"""

    def __init__(
        self,
        router: Optional[LLMRouter] = None,
        completion_fn: Optional[Callable[..., Any]] = None,
        max_retries: int = 2,
    ):
        """
        Args:
            router: LLM router (defaults to the process singleton)
            completion_fn: Async completion callable, litellm.acompletion by default
            max_retries: Retries after the first attempt
        """
        self._router = router or get_llm_router()
        if completion_fn is None:
            import litellm
            completion_fn = litellm.acompletion
        self._completion_fn = completion_fn
        self.max_retries = max_retries

    def _build_topic(self, request: GenerationRequest) -> str:
        if request.source_text:
            return request.source_text[:ARTICLE_CONTEXT_MAX_LENGTH]
        if request.source_url:
            return f"Generate a game based on content from: {request.source_url}"
        return ""

    async def generate(self, request: GenerationRequest) -> GameGenerationResult:
        """
        Generate and validate game metadata.

        Args:
            request: Topic/article plus optional genre and difficulty

        Returns:
            GameGenerationResult with the attempt count

        Raises:
            GenerationValidationError: Constraints still violated after all retries.
                                       last_result holds the final parsed game, if any.
            GameGenerationError: The LLM call itself failed
        """
        llm_kwargs = self._router.get_llm_kwargs(ROLE, model_override=request.model_id)
        model = llm_kwargs["model"]
        genre = request.customization.genre
        difficulty = request.customization.difficulty.value if request.customization.difficulty else None
        topic = self._build_topic(request)

        # Stricter preambles accumulate across retries, newest first
        preambles: List[str] = []
        last_result: Optional[GameGenerationResult] = None
        last_reason = ""
        max_attempts = 1 + self.max_retries

        for attempt in range(1, max_attempts + 1):
            prompt = get_generate_game_prompt("".join(preambles) + topic, genre, difficulty)
            logger.info(f"🎮 Generating game (attempt {attempt}/{max_attempts}, model={model})")

            started = time.time()
            try:
                response = await self._completion_fn(
                    messages=[{"role": "user", "content": prompt}],
                    response_format=GameMetadata,
                    **llm_kwargs
                )
                content = response.choices[0].message.content
            except Exception as e:
                get_logger().llm_api_call(model, ROLE, time.time() - started, status="error")
                logger.error(f"❌ Game generation call failed: {e}")
                raise GameGenerationError(
                    f"Failed to generate game after {attempt} attempts" if attempt > 1
                    else "Failed to generate game"
                ) from e

            get_logger().llm_api_call(model, ROLE, time.time() - started, len(content or ""))

            try:
                game = parse_game_metadata(content)
            except (json.JSONDecodeError, ValidationError) as e:
                last_reason = f"schema validation failed: {e}"
                logger.warning(f"⚠️ Schema validation failed (attempt {attempt}/{max_attempts})")
                self._add_preamble(preambles, get_schema_constraint_preamble())
                continue

            suffix = f"-retry{attempt - 1}" if attempt > 1 else ""
            result = GameGenerationResult(
                game=game,
                prompt_model=model,
                prompt_name=request.prompt_name or f"{PROMPT_NAME}{suffix}",
                prompt_text=request.source_text,
                attempts=attempt,
            )
            last_result = result

            if genre and not genre_matches(genre, game.genre):
                last_reason = f'genre mismatch: requested "{genre}", got "{game.genre}"'
                logger.warning(f"⚠️ {last_reason}. Retrying with stricter prompt.")
                self._add_preamble(preambles, get_genre_constraint_preamble(genre))
                continue

            logger.info(f"✅ Game generated: \"{game.title}\" ({game.genre}) in {attempt} attempt(s)")
            return result

        logger.error(f"❌ Game generation exhausted {max_attempts} attempts: {last_reason}")
        raise GenerationValidationError(
            attempts=max_attempts,
            reason=last_reason,
            last_result=last_result,
        )

    @staticmethod
    def _add_preamble(preambles: List[str], preamble: str) -> None:
        if preamble not in preambles:
            preambles.insert(0, preamble)
