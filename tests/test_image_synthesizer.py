"""
Tests for the image synthesizer: caching, request coalescing, degraded
results and rating-weighted backend selection.

Run with: python -m pytest tests/test_image_synthesizer.py -v
"""

import asyncio
import random
import sys
from collections import Counter
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import FakeImageBackend, make_game
from writarcade.services.image_synthesizer import ImageSynthesizer
from writarcade.services.model_tracker import ModelPerformanceTracker


class RecordingRandom(random.Random):
    """Seeded random that remembers the weights it was asked to use."""

    def __init__(self, seed=0):
        super().__init__(seed)
        self.last_weights = None

    def choices(self, population, weights=None, **kwargs):
        self.last_weights = list(weights) if weights is not None else None
        return super().choices(population, weights=weights, **kwargs)


class TestCaching:

    def setup_method(self):
        self.backend = FakeImageBackend()
        self.tracker = ModelPerformanceTracker()
        self.synthesizer = ImageSynthesizer(self.backend, tracker=self.tracker, rng=random.Random(1))

    def test_identical_request_hits_cache(self):
        async def run():
            first = await self.synthesizer.generate("A lighthouse in a storm.", "Horror")
            second = await self.synthesizer.generate("A lighthouse in a storm.", "Horror")
            return first, second

        first, second = asyncio.run(run())

        assert len(self.backend.calls) == 1
        assert second == first
        assert self.synthesizer.get_cache_stats()["hits"] == 1

    def test_genre_and_style_are_part_of_key(self):
        async def run():
            await self.synthesizer.generate("A lighthouse.", "Horror")
            await self.synthesizer.generate("A lighthouse.", "Comedy")
            await self.synthesizer.generate("A lighthouse.", "Horror", style="manga")

        asyncio.run(run())
        assert len(self.backend.calls) == 3

    def test_concurrent_identical_requests_share_one_call(self):
        self.backend.delay = 0.05

        async def run():
            return await asyncio.gather(*[
                self.synthesizer.generate("The vault door opens.", "Mystery") for _ in range(5)
            ])

        results = asyncio.run(run())

        assert len(self.backend.calls) == 1
        assert all(r.image_url == results[0].image_url for r in results)
        assert self.synthesizer.get_cache_stats()["in_flight"] == 0

    def test_clear_cache(self):
        async def run():
            await self.synthesizer.generate("A lighthouse.", "Horror")
            self.synthesizer.clear_cache()
            await self.synthesizer.generate("A lighthouse.", "Horror")

        asyncio.run(run())
        assert len(self.backend.calls) == 2
        assert self.synthesizer.get_cache_stats()["size"] == 1


class TestDegradedResults:

    def setup_method(self):
        self.tracker = ModelPerformanceTracker()

    def test_backend_error_returns_failed_result(self):
        backend = FakeImageBackend(error=ConnectionError("boom"))
        synthesizer = ImageSynthesizer(backend, tracker=self.tracker)

        result = asyncio.run(synthesizer.generate("A storm.", "Horror"))

        assert result.image_url is None
        assert result.backend_id == "failed"
        assert result.failed

    def test_failures_are_not_cached(self):
        backend = FakeImageBackend(error=ConnectionError("boom"))
        synthesizer = ImageSynthesizer(backend, tracker=self.tracker)

        async def run():
            await synthesizer.generate("A storm.", "Horror")
            await synthesizer.generate("A storm.", "Horror")

        asyncio.run(run())
        assert len(backend.calls) == 2
        assert synthesizer.get_cache_stats()["size"] == 0

    def test_empty_image_is_failure(self):
        backend = FakeImageBackend(url=None)
        synthesizer = ImageSynthesizer(backend, tracker=self.tracker)

        result = asyncio.run(synthesizer.generate("A storm.", "Horror"))

        assert result.backend_id == "failed"
        assert synthesizer.get_cache_stats()["size"] == 0

    def test_timeout_returns_failed_result(self):
        backend = FakeImageBackend(delay=0.5)
        synthesizer = ImageSynthesizer(backend, tracker=self.tracker, timeout=0.05)

        result = asyncio.run(synthesizer.generate("A storm.", "Horror"))

        assert result.backend_id == "failed"

    def test_cancelled_owner_releases_waiters(self):
        backend = FakeImageBackend(delay=0.5)
        synthesizer = ImageSynthesizer(backend, tracker=self.tracker)

        async def run():
            owner = asyncio.create_task(synthesizer.generate("A storm.", "Horror"))
            await asyncio.sleep(0.01)
            waiter = asyncio.create_task(synthesizer.generate("A storm.", "Horror"))
            await asyncio.sleep(0.01)
            owner.cancel()
            return await waiter

        result = asyncio.run(run())
        assert result.backend_id == "failed"
        assert len(backend.calls) == 1


class TestBackendSelection:

    def setup_method(self):
        self.tracker = ModelPerformanceTracker()

    def test_uniform_without_ratings(self):
        synthesizer = ImageSynthesizer(FakeImageBackend(), tracker=self.tracker, rng=random.Random(7))

        picks = Counter(synthesizer.select_backend() for _ in range(400))

        assert set(picks) == set(synthesizer.backends)

    def test_weighted_toward_higher_ratings(self):
        self.tracker.record_feedback("good", 5)
        self.tracker.record_feedback("bad", 1)
        synthesizer = ImageSynthesizer(
            FakeImageBackend(), tracker=self.tracker, backends=["good", "bad"], rng=random.Random(42)
        )

        picks = Counter(synthesizer.select_backend() for _ in range(1000))

        assert picks["good"] > 700
        assert picks["bad"] > 0

    def test_unrated_backends_get_mean_weight(self):
        self.tracker.record_feedback("a", 5)
        self.tracker.record_feedback("b", 1)
        rng = RecordingRandom()
        synthesizer = ImageSynthesizer(FakeImageBackend(), tracker=self.tracker, backends=["a", "b", "c"], rng=rng)

        synthesizer.select_backend()

        assert rng.last_weights == [5.0, 1.0, 3.0]

    def test_ratings_for_unknown_backends_ignored(self):
        self.tracker.record_feedback("retired-model", 5)
        rng = RecordingRandom()
        synthesizer = ImageSynthesizer(FakeImageBackend(), tracker=self.tracker, backends=["a", "b"], rng=rng)

        assert synthesizer.select_backend() in ("a", "b")
        assert rng.last_weights is None

    def test_result_names_selected_backend(self):
        backend = FakeImageBackend()
        synthesizer = ImageSynthesizer(backend, tracker=self.tracker, backends=["only-one"])

        result = asyncio.run(synthesizer.generate("A storm.", "Horror"))

        assert result.backend_id == "only-one"
        assert backend.calls[0]["model"] == "only-one"


class TestPrompts:

    def setup_method(self):
        self.backend = FakeImageBackend()
        self.synthesizer = ImageSynthesizer(self.backend, tracker=ModelPerformanceTracker())

    def test_narrative_prompt_and_dimensions(self):
        narrative = "The keeper climbs the stairs. " * 30
        asyncio.run(self.synthesizer.generate_narrative_image(narrative, "Horror", primary_color="#1A2B3C"))

        call = self.backend.calls[0]
        assert "dark comic book panel" in call["prompt"]
        assert "#1A2B3C" in call["prompt"]
        assert narrative[:400] in call["prompt"]
        assert narrative[:401] not in call["prompt"]
        assert (call["width"], call["height"]) == (1280, 768)

    def test_square_aspect(self):
        asyncio.run(self.synthesizer.generate("A storm.", "Comedy", aspect_ratio="square"))
        assert (self.backend.calls[0]["width"], self.backend.calls[0]["height"]) == (1024, 1024)

    def test_cover_image(self):
        game = make_game()
        result = asyncio.run(self.synthesizer.generate_cover_image(game))

        call = self.backend.calls[0]
        assert game.title in call["prompt"]
        assert "cover" in call["prompt"]
        assert (call["width"], call["height"]) == (1024, 1024)
        assert result.image_url == self.backend.url
