"""
Story Session - one player's run through a generated game

Drives the panel loop:

    begin panel → stream text (content events) → enforce length → parse options
        → text ready → start image (fan-out) → options event
        → image event → gate joins both flags (fan-in) → end event

The final panel ends the story: its options are ending variants carried in
the end event, and the next player action completes the story.

Usage:
    session = StorySession(game, narrator, synthesizer)
    async for event in session.play_panel():
        send(event.to_sse())
    async for event in session.choose(2):
        send(event.to_sse())
"""

import asyncio
import logging
import time
import uuid
from typing import AsyncIterator, Dict, List, Optional

from writarcade.config.settings import Settings, get_settings
from writarcade.models import (
    GameMetadata,
    GameplayEvent,
    ImageResult,
    LengthBudget,
    PanelDraft,
    PanelOption,
    PanelRecord,
    PanelState,
)
from writarcade.prompts.narrator import get_opening_instruction
from writarcade.services.events import (
    EVENT_PANEL_FAILED,
    EVENT_PANEL_READY,
    EVENT_PANEL_STARTED,
    EVENT_STORY_COMPLETE,
    EventEmitter,
    session_events,
)
from writarcade.services.exceptions import NarrativeGenerationError, PanelStateError
from writarcade.services.image_synthesizer import ImageSynthesizer
from writarcade.services.logger import WritArcadeLogger, get_logger
from writarcade.services.narrator import PanelNarrator, budget_from_settings
from writarcade.services.pacing import get_pacing_guidance, get_pacing_phase
from writarcade.services.readiness import ReadinessGate
from writarcade.services.text_processing import (
    clean_narrative_text,
    enforce_length,
    find_option,
    parse_options,
    split_narrative_and_options,
)

logger = logging.getLogger(__name__)

GENERATING_STATES = (
    PanelState.TEXT_STREAMING,
    PanelState.TEXT_READY,
    PanelState.IMAGES_GENERATING,
)

_NO_FAILED_PANEL = object()


class StorySession:
    """Sequential panel generation for one game, with narrative/image fan-out per panel"""

    def __init__(
        self,
        game: GameMetadata,
        narrator: PanelNarrator,
        synthesizer: ImageSynthesizer,
        settings: Optional[Settings] = None,
        article_context: Optional[str] = None,
        model_id: Optional[str] = None,
        session_id: Optional[str] = None,
        budget: Optional[LengthBudget] = None,
        emitter: Optional[EventEmitter] = None,
        session_logger: Optional[WritArcadeLogger] = None,
    ):
        self.settings = settings or get_settings()
        self.session_id = session_id or str(uuid.uuid4())
        self.game = game
        self.article_context = article_context
        self.model_id = model_id
        self.budget = budget or budget_from_settings(self.settings)
        self.gate = ReadinessGate(self.settings.max_panels)
        self.history: List[Dict[str, str]] = []
        self.panels: List[PanelRecord] = []
        self.chosen_ending: Optional[PanelOption] = None

        self._narrator = narrator
        self._synthesizer = synthesizer
        self._emitter = emitter or session_events
        self._log = session_logger or get_logger()
        self._failed_input = _NO_FAILED_PANEL

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> PanelState:
        return self.gate.state

    @property
    def is_complete(self) -> bool:
        return self.gate.state == PanelState.STORY_COMPLETE

    @property
    def current_panel(self) -> Optional[PanelRecord]:
        return self.panels[-1] if self.panels else None

    @property
    def has_failed_panel(self) -> bool:
        return self._failed_input is not _NO_FAILED_PANEL

    def _history_window(self) -> List[Dict[str, str]]:
        limit = self.settings.history_message_limit
        return self.history[-limit:] if limit > 0 else []

    def _commit(self, draft: PanelDraft, text: str, image: ImageResult, user_input: Optional[str]) -> None:
        self.history.append({"role": "user", "content": user_input or get_opening_instruction()})
        self.history.append({"role": "assistant", "content": text})
        limit = self.settings.history_message_limit
        if limit > 0 and len(self.history) > limit:
            del self.history[:-limit]
        self.panels.append(PanelRecord(draft=draft, image=image, user_input=user_input))
        self._failed_input = _NO_FAILED_PANEL

    def _rollback_in_flight_panel(self, image_task: Optional[asyncio.Task]) -> None:
        if image_task is not None and not image_task.done():
            image_task.cancel()
        if self.gate.state in GENERATING_STATES:
            self.gate.fail_panel()

    # =========================================================================
    # PANEL LOOP
    # =========================================================================

    async def play_panel(self, user_input: Optional[str] = None) -> AsyncIterator[GameplayEvent]:
        """
        Generate the next panel and stream its events.

        Args:
            user_input: Player's choice text; None opens the game

        Yields:
            content (per delta), options (non-final panels), image, end

        Raises:
            PanelStateError: Story complete, or a panel is already generating
            NarrativeGenerationError: Text generation failed; the panel was
                rolled back and can be replayed with retry_panel()
        """
        if self.gate.state == PanelState.PANEL_READY:
            if self.gate.advance() == PanelState.STORY_COMPLETE:
                await self._on_story_complete()
        if self.gate.state == PanelState.STORY_COMPLETE:
            raise PanelStateError("Story is complete", PanelState.STORY_COMPLETE.value)

        index = self.gate.begin_panel()
        max_panels = self.gate.max_panels
        is_final = self.gate.is_final_panel()
        phase = get_pacing_phase(index, max_panels)
        guidance = get_pacing_guidance(index, max_panels)
        draft = PanelDraft(panel_index=index, is_final=is_final)
        started_at = time.time()

        self._log.panel_started(self.session_id, index, max_panels, phase.value)
        await self._emitter.emit(EVENT_PANEL_STARTED, self.session_id, {
            "panel": index,
            "phase": phase.value,
        })

        image_task: Optional[asyncio.Task] = None
        try:
            stream = self._narrator.stream_panel(
                self._history_window(),
                user_input,
                guidance,
                model_id=self.model_id,
                game=self.game,
                article_context=self.article_context,
                budget=self.budget,
                panel_index=index,
            )
            try:
                async for delta in stream:
                    draft.append(delta)
                    yield GameplayEvent(kind="content", payload={"content": delta})
            finally:
                await stream.aclose()

            if not draft.raw_text.strip():
                raise NarrativeGenerationError("Model returned an empty panel", index)

            text = enforce_length(draft.raw_text, self.budget)
            narrative, options_block = split_narrative_and_options(text)
            draft.narrative_text = clean_narrative_text(narrative)
            draft.options = parse_options(options_block or text)
            draft.is_text_complete = True
            self.gate.mark_text_ready()

            self.gate.mark_images_started()
            image_task = asyncio.create_task(
                self._synthesizer.generate_narrative_image(
                    draft.narrative_text,
                    self.game.genre,
                    primary_color=self.game.primary_color,
                )
            )

            if not is_final:
                yield GameplayEvent(kind="options", payload={
                    "options": [o.model_dump() for o in draft.options],
                })

            image = await image_task
            self.gate.mark_images_ready()
            await self.gate.wait_until_ready()
            self._commit(draft, text, image, user_input)

        except NarrativeGenerationError as e:
            self._rollback_in_flight_panel(image_task)
            self._failed_input = user_input
            self._log.panel_failed(self.session_id, index, str(e))
            await self._emitter.emit(EVENT_PANEL_FAILED, self.session_id, {
                "panel": index,
                "error": str(e),
            })
            raise
        except (asyncio.CancelledError, GeneratorExit):
            self._rollback_in_flight_panel(image_task)
            raise

        self._log.image_generated(self.session_id, index, image.backend_id, not image.failed)
        self._log.panel_ready(self.session_id, index, len(draft.options), time.time() - started_at)
        await self._emitter.emit(EVENT_PANEL_READY, self.session_id, {
            "panel": index,
            "final": is_final,
            "backend": image.backend_id,
        })

        yield GameplayEvent(kind="image", payload={
            "imageUrl": image.image_url,
            "model": image.backend_id,
        })

        end_payload = {
            "panel": index,
            "maxPanels": max_panels,
            "narrative": draft.narrative_text,
            "final": is_final,
        }
        if is_final:
            end_payload["endings"] = [o.model_dump() for o in draft.options]
        yield GameplayEvent(kind="end", payload=end_payload)

    async def choose(self, option_id: int) -> AsyncIterator[GameplayEvent]:
        """
        Act on one of the current panel's options.

        On a regular panel this plays the next panel. On the final panel the
        option is an ending: it is recorded and the story completes.

        Raises:
            PanelStateError: The current panel is not ready for a choice
            ValueError: option_id is not one of the current options
        """
        panel = self.current_panel
        if self.gate.state != PanelState.PANEL_READY or panel is None:
            raise PanelStateError(f"Cannot choose while {self.gate.state.value}", self.gate.state.value)

        option = find_option(panel.draft.options, option_id)
        if option is None:
            raise ValueError(f"Option {option_id} is not available on panel {panel.draft.panel_index}")

        if not self.gate.can_accept_next_choice():
            self.chosen_ending = option
            self.history.append({"role": "user", "content": option.text})
            await self.finish()
            yield GameplayEvent(kind="end", payload={
                "storyComplete": True,
                "ending": option.model_dump(),
            })
            return

        async for event in self.play_panel(option.text):
            yield event

    async def retry_panel(self) -> AsyncIterator[GameplayEvent]:
        """Replay the input of the last failed panel."""
        if not self.has_failed_panel:
            raise PanelStateError("No failed panel to retry", self.gate.state.value)
        async for event in self.play_panel(self._failed_input):
            yield event

    async def finish(self) -> PanelState:
        """
        End the story now.

        Raises:
            PanelStateError: A panel is still being generated
        """
        if self.is_complete:
            return self.gate.state
        self.gate.complete_story()
        await self._on_story_complete()
        return self.gate.state

    async def _on_story_complete(self) -> None:
        self._log.story_complete(self.session_id, len(self.panels))
        await self._emitter.emit(EVENT_STORY_COMPLETE, self.session_id, {
            "panels": len(self.panels),
            "ending": self.chosen_ending.text if self.chosen_ending else None,
        })
