"""
Panel Narrator - streams one comic panel from the language model

One streaming litellm.acompletion call per panel. The system instruction
carries the scene-isolation rule, the length directive, the pacing guidance
and the game details; the conversation history follows, then the player's
choice (or an instruction to open the game).

Text deltas are yielded as they arrive. Any transport or backend failure,
a stalled stream or an overrun deadline raises NarrativeGenerationError.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from writarcade.config.settings import Settings, get_settings
from writarcade.models import GameMetadata, LengthBudget, LengthUnit
from writarcade.prompts.narrator import get_opening_instruction, get_panel_system_prompt
from writarcade.services.exceptions import NarrativeGenerationError
from writarcade.services.llm_router import LLMRouter, get_llm_router
from writarcade.services.logger import get_logger

logger = logging.getLogger(__name__)

ROLE = "narrator"


def budget_from_settings(settings: Settings) -> LengthBudget:
    return LengthBudget(
        unit=LengthUnit(settings.narrative_length_unit.lower()),
        minimum=settings.narrative_min,
        maximum=settings.narrative_max,
    )


class PanelNarrator:
    """Streams panel narrative with per-chunk and overall deadlines"""

    def __init__(
        self,
        router: Optional[LLMRouter] = None,
        settings: Optional[Settings] = None,
        completion_fn: Optional[Callable[..., Any]] = None,
    ):
        self._router = router or get_llm_router()
        self._settings = settings or get_settings()
        if completion_fn is None:
            import litellm
            completion_fn = litellm.acompletion
        self._completion_fn = completion_fn

    def build_messages(
        self,
        history: List[Dict[str, str]],
        user_input: Optional[str],
        guidance: str,
        budget: LengthBudget,
        game: Optional[GameMetadata] = None,
        article_context: Optional[str] = None,
    ) -> List[Dict[str, str]]:
        system_prompt = get_panel_system_prompt(
            length_directive=budget.describe(),
            pacing_guidance=guidance,
            title=game.title if game else None,
            genre=game.genre if game else None,
            subgenre=game.subgenre if game else None,
            description=game.description if game else None,
            tagline=game.tagline if game else None,
            article_context=article_context,
        )
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m["role"], "content": m["content"]} for m in history)
        messages.append({"role": "user", "content": user_input or get_opening_instruction()})
        return messages

    async def stream_panel(
        self,
        history: List[Dict[str, str]],
        user_input: Optional[str],
        guidance: str,
        model_id: Optional[str] = None,
        game: Optional[GameMetadata] = None,
        article_context: Optional[str] = None,
        budget: Optional[LengthBudget] = None,
        panel_index: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """
        Stream the narrative and options for one panel.

        Args:
            history: Prior {"role", "content"} messages
            user_input: Player's choice text, None to open the game
            guidance: Pacing guidance for this panel
            model_id: Model to use instead of the narrator role's default
            game: Game details for the system instruction
            article_context: Optional source article excerpt
            budget: Length budget (defaults to settings)
            panel_index: Used in error reports

        Yields:
            Text deltas in arrival order

        Raises:
            NarrativeGenerationError: Backend failure, stall or deadline overrun
        """
        budget = budget or budget_from_settings(self._settings)
        messages = self.build_messages(history, user_input, guidance, budget, game, article_context)
        llm_kwargs = self._router.get_llm_kwargs(ROLE, model_override=model_id)
        # The deadlines below govern the stream; the router's timeout would only cap the request
        llm_kwargs.pop("timeout", None)

        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + self._settings.narrative_timeout_seconds
        chunk_timeout = self._settings.narrative_chunk_timeout_seconds

        def remaining() -> float:
            left = deadline - loop.time()
            if left <= 0:
                raise asyncio.TimeoutError()
            return left

        model = llm_kwargs["model"]
        logger.info(f"📝 Streaming panel {panel_index or '?'} with {model}")
        output_chars = 0
        response = None
        try:
            response = await asyncio.wait_for(
                self._completion_fn(messages=messages, stream=True, **llm_kwargs),
                timeout=remaining(),
            )
            iterator = response.__aiter__()
            while True:
                try:
                    chunk = await asyncio.wait_for(
                        iterator.__anext__(),
                        timeout=min(chunk_timeout, remaining()),
                    )
                except StopAsyncIteration:
                    break
                if chunk.choices and chunk.choices[0].delta.content:
                    output_chars += len(chunk.choices[0].delta.content)
                    yield chunk.choices[0].delta.content

            get_logger().llm_api_call(model, ROLE, loop.time() - started, output_chars)

        except asyncio.TimeoutError as e:
            get_logger().llm_api_call(model, ROLE, loop.time() - started, output_chars, status="timeout")
            logger.error(f"⏱️ Narrative stream timed out (panel {panel_index})")
            raise NarrativeGenerationError("Narrative generation timed out", panel_index) from e
        except NarrativeGenerationError:
            raise
        except Exception as e:
            get_logger().llm_api_call(model, ROLE, loop.time() - started, output_chars, status="error")
            logger.error(f"❌ Narrative stream failed (panel {panel_index}): {e}")
            raise NarrativeGenerationError(f"Narrative generation failed: {e}", panel_index) from e
        finally:
            aclose = getattr(response, "aclose", None)
            if aclose is not None:
                try:
                    await aclose()
                except Exception as e:
                    logger.debug(f"Stream close failed: {e}")
