"""
API routes for WritArcade

REST endpoints for game generation, story sessions (panels streamed as
server-sent events) and image feedback.
"""

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from typing import AsyncIterator, Dict, Optional
import json
import logging

from writarcade.config import get_settings
from writarcade.models import (
    GameplayEvent,
    GenerationRequest,
    ImageFeedback,
    PanelRequest,
    PanelState,
    StartSessionRequest,
)
from writarcade.services.events import EVENT_STORY_COMPLETE, session_events
from writarcade.services.exceptions import (
    GameGenerationError,
    GenerationValidationError,
    NarrativeGenerationError,
    PanelStateError,
    WritArcadeError,
)
from writarcade.services.game_generator import GameGenerator
from writarcade.services.image_synthesizer import ImageSynthesizer
from writarcade.services.model_tracker import ModelPerformanceTracker, get_model_tracker
from writarcade.services.narrator import PanelNarrator
from writarcade.services.session import StorySession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["games"])

# Global services (will be set by main app)
_game_generator: Optional[GameGenerator] = None
_narrator: Optional[PanelNarrator] = None
_synthesizer: Optional[ImageSynthesizer] = None
_tracker: Optional[ModelPerformanceTracker] = None

# In-memory session registry (process-local)
_sessions: Dict[str, StorySession] = {}


def set_services(
    game_generator: GameGenerator,
    narrator: PanelNarrator,
    synthesizer: ImageSynthesizer,
    tracker: Optional[ModelPerformanceTracker] = None,
):
    """Set the global service instances"""
    global _game_generator, _narrator, _synthesizer, _tracker
    _game_generator = game_generator
    _narrator = narrator
    _synthesizer = synthesizer
    _tracker = tracker or get_model_tracker()


def reset_sessions():
    """Drop all sessions (useful for testing)."""
    for session_id in list(_sessions):
        session_events.remove_session_queue(session_id)
    _sessions.clear()


def _require(service, name: str):
    if service is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return service


def _get_session(session_id: str) -> StorySession:
    session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _game_complete() -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={"error": "This game has reached its conclusion.", "gameComplete": True},
    )


# ==================== Games ====================

@router.post("/games/generate")
async def generate_game(request: GenerationRequest):
    """
    Generate game metadata from a topic or article.

    Returns the validated game plus prompt provenance and cover art
    (cover_image_url is null when image generation is unavailable).
    """
    generator = _require(_game_generator, "Game generator")
    if not request.source_text and not request.source_url:
        raise HTTPException(status_code=400, detail="source_text or source_url is required")

    try:
        result = await generator.generate(request)
    except GenerationValidationError as e:
        raise HTTPException(status_code=422, detail={
            "error": e.reason,
            "attempts": e.attempts,
            "last_result": e.last_result.model_dump() if e.last_result else None,
        })
    except GameGenerationError as e:
        raise HTTPException(status_code=502, detail=str(e))

    cover = await _synthesizer.generate_cover_image(result.game) if _synthesizer else None

    response = result.model_dump()
    response["cover_image_url"] = cover.image_url if cover else None
    return response


# ==================== Sessions ====================

@router.post("/sessions")
async def start_session(request: StartSessionRequest):
    """Create a story session for a generated game."""
    session = StorySession(
        game=request.game,
        narrator=_require(_narrator, "Narrator"),
        synthesizer=_require(_synthesizer, "Image synthesizer"),
        settings=get_settings(),
        article_context=request.article_context,
        model_id=request.model_id,
    )
    _sessions[session.session_id] = session
    session_events.create_session_queue(session.session_id)
    logger.info(f"🎮 Session {session.session_id[:8]} started: \"{request.game.title}\"")
    return {
        "session_id": session.session_id,
        "max_panels": session.gate.max_panels,
        "state": session.state.value,
    }


@router.get("/sessions/{session_id}")
async def get_session_status(session_id: str):
    session = _get_session(session_id)
    current = session.current_panel
    return {
        "session_id": session.session_id,
        "state": session.state.value,
        "current_panel": session.gate.panel_index,
        "max_panels": session.gate.max_panels,
        "panels_completed": len(session.panels),
        "game_complete": session.is_complete,
        "can_choose": session.gate.can_accept_next_choice(),
        "options": [o.model_dump() for o in current.draft.options] if current else [],
        "retry_available": session.has_failed_panel,
    }


def _select_events(session: StorySession, request: PanelRequest) -> AsyncIterator[GameplayEvent]:
    if request.retry:
        return session.retry_panel()
    if request.option_id is not None:
        return session.choose(request.option_id)
    return session.play_panel(request.user_input)


@router.post("/sessions/{session_id}/panels")
async def play_panel(session_id: str, request: PanelRequest):
    """
    Play the next panel and stream it as server-sent events.

    Frames: data: {"type": "content"|"options"|"image"|"end"|"error", ...}
    """
    session = _get_session(session_id)
    if session.is_complete:
        raise _game_complete()

    events = _select_events(session, request)

    # Pull the first event before committing to a 200 stream, so state
    # errors still come back as proper HTTP errors
    try:
        first = await events.__anext__()
    except StopAsyncIteration:
        first = None
    except PanelStateError as e:
        if session.is_complete:
            raise _game_complete()
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NarrativeGenerationError as e:
        raise HTTPException(status_code=502, detail={"error": str(e), "retry_available": True})

    async def event_stream():
        try:
            if first is not None:
                yield first.to_sse()
            async for event in events:
                yield event.to_sse()
        except WritArcadeError as e:
            logger.error(f"❌ Panel stream error (session {session_id[:8]}): {e}")
            yield GameplayEvent(kind="error", payload={
                "error": str(e),
                "retry_available": session.has_failed_panel,
            }).to_sse()
        finally:
            await events.aclose()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/sessions/{session_id}/finish")
async def finish_session(session_id: str):
    session = _get_session(session_id)
    try:
        state = await session.finish()
    except PanelStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"session_id": session_id, "state": state.value, "game_complete": state == PanelState.STORY_COMPLETE}


@router.get("/sessions/{session_id}/events")
async def stream_session_events(session_id: str):
    """
    Stream panel lifecycle events for a session as server-sent events.

    Events are buffered from session start, so a late subscriber still sees
    every panel. The stream ends after story_complete.
    """
    _get_session(session_id)
    event_queue = session_events.get_session_queue(session_id)
    if event_queue is None:
        raise HTTPException(status_code=404, detail="Session not found")

    async def event_stream():
        while True:
            event = await event_queue.get()
            yield f"data: {json.dumps(event.to_dict())}\n\n"
            if event.event_type == EVENT_STORY_COMPLETE:
                break

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.delete("/sessions/{session_id}")
async def end_session(session_id: str):
    _get_session(session_id)
    del _sessions[session_id]
    session_events.remove_session_queue(session_id)
    return {"session_id": session_id, "deleted": True}


# ==================== Images ====================

@router.post("/images/feedback")
async def record_image_feedback(feedback: ImageFeedback):
    """Rate a panel image 1-5; later backend selection favors higher-rated models."""
    tracker = _tracker or get_model_tracker()
    try:
        record = tracker.record_feedback(feedback.backend_id, feedback.rating)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return record.model_dump()


@router.get("/images/stats")
async def get_image_stats():
    tracker = _tracker or get_model_tracker()
    return {
        "models": tracker.get_model_stats(),
        "cache": _synthesizer.get_cache_stats() if _synthesizer else None,
    }


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "WritArcade",
        "services_initialized": _narrator is not None and _synthesizer is not None,
        "active_sessions": len(_sessions),
    }
