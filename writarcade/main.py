"""
WritArcade - Main Application

Turns articles into short, choice-driven comic stories: generated game
metadata, streamed panel narrative and one illustration per panel.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import uvicorn
from contextlib import asynccontextmanager
from pathlib import Path
import logging
import sys
import os
from datetime import datetime

from writarcade import __version__
from writarcade.config import get_settings
from writarcade.services.logger import init_logger
from writarcade.services.llm_router import init_llm_router
from writarcade.services.model_tracker import init_model_tracker
from writarcade.services.image_backends import VeniceImageClient
from writarcade.services.image_synthesizer import ImageSynthesizer
from writarcade.services.narrator import PanelNarrator
from writarcade.services.game_generator import GameGenerator
from writarcade.api.routes import router, set_services

# Configure logging to both file and console
log_dir = Path("logs")
log_dir.mkdir(exist_ok=True)
log_file = log_dir / f"writarcade_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

file_formatter = logging.Formatter(
    '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
console_formatter = logging.Formatter('%(message)s')

# File handler (detailed logs)
file_handler = logging.FileHandler(log_file, encoding='utf-8')
file_handler.setLevel(logging.DEBUG)
file_handler.setFormatter(file_formatter)

# Console handler (user-friendly output)
console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(console_formatter)

logging.basicConfig(
    level=logging.DEBUG,
    handlers=[file_handler, console_handler]
)

logger = logging.getLogger(__name__)
logger.info(f"📝 Logging to: {log_file}")

# Global services
image_client: VeniceImageClient = None


def _mask(key: str) -> str:
    return f"{key[:8]}...{key[-4:]}" if len(key) > 12 else "***"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle management for the application.

    Initializes services on startup, cleans up on shutdown.
    """
    global image_client

    settings = get_settings()

    print("🎮 Initializing WritArcade...")

    init_logger(debug_mode=settings.debug_mode, settings=settings)

    # Set environment variables for LiteLLM
    if settings.openai_api_key:
        os.environ["OPENAI_API_KEY"] = settings.openai_api_key
        print(f"✅ OPENAI_API_KEY: {_mask(settings.openai_api_key)}")
    if settings.anthropic_api_key:
        os.environ["ANTHROPIC_API_KEY"] = settings.anthropic_api_key
        print(f"✅ ANTHROPIC_API_KEY: {_mask(settings.anthropic_api_key)}")
    if settings.google_api_key:
        os.environ["GOOGLE_API_KEY"] = settings.google_api_key
        os.environ["GEMINI_API_KEY"] = settings.google_api_key
        print(f"✅ GOOGLE_API_KEY: {_mask(settings.google_api_key)}")
    if not (settings.openai_api_key or settings.anthropic_api_key or settings.google_api_key):
        print("❌ No language model API key set! Game generation and narration will fail.")
        print("   💡 Set OPENAI_API_KEY, ANTHROPIC_API_KEY or GOOGLE_API_KEY in .env file")

    # Initialize LLM Router (loads models.yaml + TEST_*_MODEL overrides)
    llm_router = init_llm_router(settings.models_config_path, settings.default_model)
    print("📋 LLM Router initialized")
    llm_router.log_configuration()

    tracker = init_model_tracker()

    image_client = VeniceImageClient(
        api_key=settings.venice_api_key,
        api_base=settings.venice_api_base,
        timeout=settings.image_timeout_seconds,
    )
    synthesizer = ImageSynthesizer(
        image_client,
        tracker=tracker,
        backends=settings.get_image_backends(),
        timeout=settings.image_timeout_seconds,
        style=settings.image_style,
        aspect_ratio=settings.image_aspect_ratio,
    )
    print(f"🎨 Image synthesizer ready ({', '.join(synthesizer.backends)})")

    set_services(
        game_generator=GameGenerator(llm_router, max_retries=settings.game_generation_max_retries),
        narrator=PanelNarrator(llm_router, settings),
        synthesizer=synthesizer,
        tracker=tracker,
    )

    print(f"🎮 WritArcade ready on port {settings.port}!")
    print(f"📚 API Documentation: http://localhost:{settings.port}/docs")

    yield

    # Shutdown
    print("👋 Shutting down WritArcade...")
    if image_client:
        await image_client.close()


app = FastAPI(
    title="WritArcade",
    description="Article-to-comic interactive story engine",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Validation error handler - log details, answer 400
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    error_details = []
    for error in errors:
        input_val = error.get('input', 'N/A')
        if isinstance(input_val, str) and len(input_val) > 100:
            input_val = input_val[:100] + "..."
        error_details.append(f"{error['loc']}: {error['msg']} (input: {input_val})")

    logger.error(f"❌ Validation Error on {request.url.path}: " + " | ".join(error_details))

    return JSONResponse(
        status_code=400,
        content={"detail": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in errors]}
    )


# Global exception handler - catch unhandled exceptions to prevent crashes
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_id = datetime.now().strftime('%Y%m%d_%H%M%S_%f')
    logger.exception(f"❌ UNHANDLED EXCEPTION [{error_id}] {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error_id": error_id,
            "message": "An unexpected error occurred. Please try again."
        }
    )


app.include_router(router)


@app.get("/")
async def root():
    return {
        "message": "Welcome to WritArcade!",
        "docs": "/docs",
        "health": "/api/health",
        "version": __version__
    }


def main():
    """Run the application"""
    settings = get_settings()
    uvicorn.run(
        "writarcade.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    main()
