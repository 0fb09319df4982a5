"""
Readiness Gate - per-panel state machine joining text and image work

    AWAITING_INPUT → TEXT_STREAMING → TEXT_READY → IMAGES_GENERATING
                                                         ↓
                     AWAITING_INPUT | STORY_COMPLETE ← PANEL_READY

The text flag and the images flag are independent and may be set in either
order. Whichever arrives second fires the PANEL_READY transition, and it
fires exactly once per panel: listeners run once and the asyncio event is
set once.

A panel is only presentable when both flags are set, and the next player
choice is only accepted from PANEL_READY on a non-final panel.
"""

import asyncio
import logging
import threading
from typing import Callable, List, Optional

from writarcade.models import PanelReadiness, PanelState, StoryProgress
from writarcade.services.exceptions import PanelStateError

logger = logging.getLogger(__name__)

IN_PANEL_STATES = (
    PanelState.TEXT_STREAMING,
    PanelState.TEXT_READY,
    PanelState.IMAGES_GENERATING,
    PanelState.PANEL_READY,
)


class ReadinessGate:
    """Two-flag join for one story's panels"""

    def __init__(self, max_panels: int = 5):
        if max_panels < 1:
            raise ValueError(f"max_panels must be >= 1, got {max_panels}")
        self.max_panels = max_panels
        self._lock = threading.Lock()
        self._state = PanelState.AWAITING_INPUT
        self._panel_index = 0
        self._text_ready = False
        self._images_started = False
        self._images_ready = False
        self._fired = False
        self._ready_event: Optional[asyncio.Event] = None
        self._listeners: List[Callable[[int], None]] = []

    # =========================================================================
    # INSPECTION
    # =========================================================================

    @property
    def state(self) -> PanelState:
        return self._state

    @property
    def panel_index(self) -> int:
        return self._panel_index

    @property
    def progress(self) -> StoryProgress:
        return StoryProgress(current_panel_index=self._panel_index, max_panels=self.max_panels)

    @property
    def readiness(self) -> PanelReadiness:
        return PanelReadiness(text_ready=self._text_ready, images_ready=self._images_ready)

    def is_final_panel(self) -> bool:
        return self._panel_index == self.max_panels

    def is_presentable(self) -> bool:
        return self._text_ready and self._images_ready

    def can_accept_next_choice(self) -> bool:
        return self._state == PanelState.PANEL_READY and not self.is_final_panel()

    def on_panel_ready(self, callback: Callable[[int], None]) -> None:
        """Register a listener called with the panel index on each PANEL_READY."""
        self._listeners.append(callback)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def begin_panel(self) -> int:
        """
        Start the next panel.

        Returns:
            The new 1-based panel index

        Raises:
            PanelStateError: Not awaiting input, or the panel budget is spent
        """
        with self._lock:
            if self._state != PanelState.AWAITING_INPUT:
                raise PanelStateError(f"Cannot begin a panel while {self._state.value}", self._state.value)
            if self._panel_index >= self.max_panels:
                raise PanelStateError(
                    f"Story already used all {self.max_panels} panels", self._state.value
                )
            self._panel_index += 1
            self._reset_flags()
            self._ready_event = asyncio.Event()
            self._state = PanelState.TEXT_STREAMING
            index = self._panel_index

        logger.debug(f"Panel {index}/{self.max_panels}: text streaming")
        return index

    def mark_text_ready(self) -> None:
        self._set_flag("text")

    def mark_images_started(self) -> None:
        with self._lock:
            self._require_in_panel("start images")
            self._images_started = True
            self._state = self._derive_state()

    def mark_images_ready(self) -> None:
        self._set_flag("images")

    def fail_panel(self) -> None:
        """
        Abandon the current panel and roll the index back so it can be retried.

        Raises:
            PanelStateError: No panel in progress, or it already reached PANEL_READY
        """
        with self._lock:
            if self._state not in IN_PANEL_STATES or self._state == PanelState.PANEL_READY:
                raise PanelStateError(f"Cannot fail a panel while {self._state.value}", self._state.value)
            failed_index = self._panel_index
            self._panel_index -= 1
            self._reset_flags()
            self._state = PanelState.AWAITING_INPUT

        logger.warning(f"⚠️ Panel {failed_index} failed, rolled back for retry")

    def advance(self) -> PanelState:
        """
        Consume the ready panel on the player's next action.

        Returns:
            AWAITING_INPUT, or STORY_COMPLETE after the final panel

        Raises:
            PanelStateError: The current panel is not PANEL_READY
        """
        with self._lock:
            if self._state != PanelState.PANEL_READY:
                raise PanelStateError(f"Cannot advance while {self._state.value}", self._state.value)
            if self._panel_index >= self.max_panels:
                self._state = PanelState.STORY_COMPLETE
            else:
                self._state = PanelState.AWAITING_INPUT
            return self._state

    def complete_story(self) -> PanelState:
        """
        End the story early or after the final panel.

        Raises:
            PanelStateError: A panel is still being generated
        """
        with self._lock:
            if self._state == PanelState.STORY_COMPLETE:
                return self._state
            if self._state not in (PanelState.PANEL_READY, PanelState.AWAITING_INPUT):
                raise PanelStateError(f"Cannot complete story while {self._state.value}", self._state.value)
            self._state = PanelState.STORY_COMPLETE
            return self._state

    async def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the current panel to become presentable.

        Returns:
            True once PANEL_READY fired, False on timeout
        """
        event = self._ready_event
        if event is None:
            raise PanelStateError("No panel has been started", self._state.value)
        try:
            await asyncio.wait_for(event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _reset_flags(self) -> None:
        self._text_ready = False
        self._images_started = False
        self._images_ready = False
        self._fired = False

    def _require_in_panel(self, action: str) -> None:
        if self._state not in IN_PANEL_STATES:
            raise PanelStateError(f"Cannot {action} while {self._state.value}", self._state.value)

    def _derive_state(self) -> PanelState:
        if self._text_ready and self._images_ready:
            return PanelState.PANEL_READY
        if self._text_ready and self._images_started:
            return PanelState.IMAGES_GENERATING
        if self._text_ready:
            return PanelState.TEXT_READY
        return PanelState.TEXT_STREAMING

    def _set_flag(self, flag: str) -> None:
        with self._lock:
            self._require_in_panel(f"mark {flag} ready")
            if flag == "text":
                self._text_ready = True
            else:
                self._images_started = True
                self._images_ready = True
            self._state = self._derive_state()

            fire = self._state == PanelState.PANEL_READY and not self._fired
            if fire:
                self._fired = True
            index = self._panel_index
            event = self._ready_event
            listeners = list(self._listeners)

        if not fire:
            return

        logger.info(f"✅ Panel {index}/{self.max_panels} ready")
        if event is not None:
            event.set()
        for callback in listeners:
            callback(index)
