"""
Image Synthesizer - one comic image per panel, cached and rating-aware

Flow per request:
1. Cache lookup (sha256 of prompt, genre and style)
2. Join an identical in-flight request if one exists
3. Pick a backend: weighted by player ratings, uniform when unrated
4. Build the comic prompt and call the backend under a timeout
5. Cache successes; failures come back as ImageResult(backend_id="failed")

Never raises for backend trouble. A panel without an image is still a panel.

Usage:
    synthesizer = ImageSynthesizer(VeniceImageClient(api_key), tracker=get_model_tracker())
    result = await synthesizer.generate_narrative_image(narrative, genre="Horror")
"""

import asyncio
import hashlib
import logging
import random
from typing import Dict, List, Optional, Tuple

from writarcade.models import FAILED_BACKEND_ID, GameMetadata, ImageResult
from writarcade.prompts.image import get_cover_image_prompt, get_panel_image_prompt
from writarcade.services.image_backends import ImageBackend
from writarcade.services.model_tracker import ModelPerformanceTracker, get_model_tracker

logger = logging.getLogger(__name__)

DEFAULT_BACKENDS = ["venice-sd35", "qwen-image", "hidream", "wai-Illustrious"]

ASPECT_RATIO_DIMENSIONS: Dict[str, Tuple[int, int]] = {
    "square": (1024, 1024),
    "landscape": (1280, 768),
    "portrait": (768, 1280),
}


class ImageSynthesizer:
    """Panel image generation with caching, request coalescing and learned backend choice"""

    def __init__(
        self,
        backend: ImageBackend,
        tracker: Optional[ModelPerformanceTracker] = None,
        backends: Optional[List[str]] = None,
        timeout: float = 90.0,
        style: str = "comic_book",
        aspect_ratio: str = "landscape",
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            backend: Image API client
            tracker: Rating table (defaults to the process singleton)
            backends: Backend ids eligible for selection
            timeout: Seconds before a backend call is abandoned
            style: Default style tag
            aspect_ratio: Default aspect ratio ("square", "landscape", "portrait")
            rng: Random source for backend selection (seed it in tests)
        """
        self._backend = backend
        self._tracker = tracker or get_model_tracker()
        self.backends = list(backends or DEFAULT_BACKENDS)
        self.timeout = timeout
        self.style = style
        self.aspect_ratio = aspect_ratio
        self._rng = rng or random.Random()

        self._cache: Dict[str, ImageResult] = {}
        self._in_flight: Dict[str, asyncio.Future] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def cache_key(prompt: str, genre: str, style: str) -> str:
        raw = f"{prompt}\x1f{(genre or '').lower()}\x1f{style}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()

    # =========================================================================
    # BACKEND SELECTION
    # =========================================================================

    def select_backend(self) -> str:
        """
        Choose the backend for the next request.

        Rated backends are weighted by their running average. Unrated ones
        get the mean of the rated averages so they are still explored.
        Without any ratings the choice is uniform.
        """
        records = {
            r.backend_id: r.running_average_score
            for r in self._tracker.get_all_records()
            if r.backend_id in self.backends
        }
        if not records:
            return self._rng.choice(self.backends)

        rated_mean = sum(records.values()) / len(records)
        weights = [records.get(b, rated_mean) for b in self.backends]
        return self._rng.choices(self.backends, weights=weights, k=1)[0]

    # =========================================================================
    # GENERATION
    # =========================================================================

    async def generate(
        self,
        prompt: str,
        genre: str,
        style: Optional[str] = None,
        aspect_ratio: Optional[str] = None,
        primary_color: Optional[str] = None,
    ) -> ImageResult:
        """
        Generate (or fetch from cache) the image for a narrative moment.

        Args:
            prompt: Narrative text the image should depict
            genre: Game genre, selects the illustration style
            style: Style tag (defaults to the synthesizer's)
            aspect_ratio: "square" | "landscape" | "portrait"
            primary_color: Optional palette hint

        Returns:
            ImageResult. backend_id == "failed" and image_url None on failure.
        """
        style = style or self.style
        key = self.cache_key(prompt, genre, style)
        enhanced = get_panel_image_prompt(prompt, genre, style, primary_color)
        return await self._generate_cached(key, enhanced, aspect_ratio or self.aspect_ratio)

    async def generate_narrative_image(
        self,
        narrative: str,
        genre: str,
        primary_color: Optional[str] = None,
    ) -> ImageResult:
        return await self.generate(
            narrative,
            genre,
            style=self.style,
            aspect_ratio=self.aspect_ratio,
            primary_color=primary_color,
        )

    async def generate_cover_image(self, game: GameMetadata) -> ImageResult:
        """Cover art for a generated game (square, cached by prompt)."""
        prompt = get_cover_image_prompt(game.title, game.description, game.genre)
        key = self.cache_key(prompt, game.genre, "cover")
        return await self._generate_cached(key, prompt, "square")

    async def _generate_cached(self, key: str, enhanced_prompt: str, aspect_ratio: str) -> ImageResult:
        async with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._hits += 1
                logger.info(f"🖼️ Image cache hit ({key[:12]}...)")
                return cached

            pending = self._in_flight.get(key)
            if pending is None:
                self._misses += 1
                future = asyncio.get_running_loop().create_future()
                self._in_flight[key] = future

        if pending is not None:
            logger.debug(f"Joining in-flight image request ({key[:12]}...)")
            # Shielded so a cancelled waiter does not cancel the shared request
            return await asyncio.shield(pending)

        result = ImageResult(image_url=None, backend_id=FAILED_BACKEND_ID)
        try:
            result = await self._request(enhanced_prompt, aspect_ratio)
        finally:
            self._in_flight.pop(key, None)
            if result.image_url:
                self._cache[key] = result
            if not future.done():
                future.set_result(result)
        return result

    async def _request(self, enhanced_prompt: str, aspect_ratio: str) -> ImageResult:
        backend_id = self.select_backend()
        width, height = ASPECT_RATIO_DIMENSIONS.get(aspect_ratio, ASPECT_RATIO_DIMENSIONS["landscape"])
        logger.info(f"🎨 Generating image with {backend_id} ({width}x{height})")

        try:
            image_url = await asyncio.wait_for(
                self._backend.generate(enhanced_prompt, backend_id, width, height),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"⏱️ Image generation timed out after {self.timeout}s ({backend_id})")
            return ImageResult(image_url=None, backend_id=FAILED_BACKEND_ID)
        except Exception as e:
            logger.warning(f"⚠️ Image generation failed ({backend_id}): {e}")
            return ImageResult(image_url=None, backend_id=FAILED_BACKEND_ID)

        if not image_url:
            logger.warning(f"⚠️ {backend_id} returned no image")
            return ImageResult(image_url=None, backend_id=FAILED_BACKEND_ID)

        logger.info(f"✅ Image ready from {backend_id}")
        return ImageResult(image_url=image_url, backend_id=backend_id)

    # =========================================================================
    # CACHE MANAGEMENT
    # =========================================================================

    def clear_cache(self) -> None:
        self._cache.clear()
        self._hits = 0
        self._misses = 0
        logger.info("🧹 Image cache cleared")

    def get_cache_stats(self) -> Dict[str, int]:
        return {
            "size": len(self._cache),
            "hits": self._hits,
            "misses": self._misses,
            "in_flight": len(self._in_flight),
        }
