"""
Tests for the structured game generator retry loop.

The LLM is replaced by a scripted completion function; no network calls.

Run with: python -m pytest tests/test_game_generator.py -v
"""

import asyncio
import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import FakeCompletion
from writarcade.config.limits import ARTICLE_CONTEXT_MAX_LENGTH
from writarcade.models import Difficulty, GameCustomization, GameMetadata, GenerationRequest
from writarcade.services.exceptions import GameGenerationError, GenerationValidationError
from writarcade.services.game_generator import GameGenerator, genre_matches, parse_game_metadata
from writarcade.services.llm_router import LLMRouter


def game_json(genre: str = "Horror", **overrides) -> str:
    data = {
        "title": "Night Shift at the Archive",
        "description": "A night clerk discovers the archive files itself.",
        "tagline": "Overtime was never this permanent.",
        "genre": genre,
        "subgenre": "Bureaucratic horror",
        "primary_color": "#CC3344",
    }
    data.update(overrides)
    return json.dumps(data)


def horror_request(**kwargs) -> GenerationRequest:
    return GenerationRequest(
        source_text=kwargs.pop("source_text", "A city archive that rewrites itself at night"),
        customization=GameCustomization(genre="Horror", difficulty=kwargs.pop("difficulty", None)),
        **kwargs,
    )


class TestGameGenerator:

    def setup_method(self):
        self.router = LLMRouter()

    def _generator(self, script, max_retries=2):
        completion = FakeCompletion(script)
        return GameGenerator(self.router, completion_fn=completion, max_retries=max_retries), completion

    def test_first_attempt_success(self):
        generator, completion = self._generator([game_json()])

        result = asyncio.run(generator.generate(horror_request()))

        assert result.attempts == 1
        assert result.game.genre == "Horror"
        assert result.prompt_name == "GenerateGame-v2"
        assert result.prompt_model == "gpt-4o-mini"
        assert len(completion.calls) == 1
        assert completion.calls[0]["response_format"] is GameMetadata

    def test_genre_mismatch_retries_with_stricter_prompt(self):
        generator, completion = self._generator([game_json("Comedy"), game_json("Horror")])

        result = asyncio.run(generator.generate(horror_request()))

        assert result.attempts == 2
        assert result.prompt_name == "GenerateGame-v2-retry1"
        retry_prompt = completion.calls[1]["messages"][0]["content"]
        assert 'CRITICAL: The game MUST be in the "Horror" genre' in retry_prompt
        assert "CRITICAL" not in completion.calls[0]["messages"][0]["content"]

    def test_schema_failure_retries_demanding_exact_fields(self):
        generator, completion = self._generator(["Sorry, I cannot do JSON today.", game_json()])

        result = asyncio.run(generator.generate(horror_request()))

        assert result.attempts == 2
        assert "ONLY valid JSON" in completion.calls[1]["messages"][0]["content"]

    def test_invalid_color_is_schema_failure(self):
        generator, completion = self._generator([game_json(primary_color="red"), game_json()])

        result = asyncio.run(generator.generate(horror_request()))

        assert result.attempts == 2

    def test_exhausted_retries_raise_with_last_result(self):
        generator, completion = self._generator([game_json("Comedy")] * 3)

        with pytest.raises(GenerationValidationError) as exc_info:
            asyncio.run(generator.generate(horror_request()))

        error = exc_info.value
        assert error.attempts == 3
        assert "genre mismatch" in error.reason
        assert error.last_result.game.genre == "Comedy"
        assert len(completion.calls) == 3

    def test_preambles_not_duplicated(self):
        generator, completion = self._generator([game_json("Comedy")] * 3)

        with pytest.raises(GenerationValidationError):
            asyncio.run(generator.generate(horror_request()))

        assert completion.calls[2]["messages"][0]["content"].count("CRITICAL") == 1

    def test_zero_retries_means_one_attempt(self):
        generator, completion = self._generator([game_json("Comedy")], max_retries=0)

        with pytest.raises(GenerationValidationError) as exc_info:
            asyncio.run(generator.generate(horror_request()))

        assert exc_info.value.attempts == 1
        assert len(completion.calls) == 1

    def test_transport_failure_not_retried(self):
        generator, completion = self._generator([ConnectionError("upstream down"), game_json()])

        with pytest.raises(GameGenerationError):
            asyncio.run(generator.generate(horror_request()))

        assert len(completion.calls) == 1

    def test_no_genre_declared_accepts_any(self):
        generator, _ = self._generator([game_json("Space Opera")])

        request = GenerationRequest(source_text="Mining colony on a comet")
        result = asyncio.run(generator.generate(request))

        assert result.game.genre == "Space Opera"

    def test_article_truncated(self):
        generator, completion = self._generator([game_json()])

        asyncio.run(generator.generate(horror_request(source_text="x" * (ARTICLE_CONTEXT_MAX_LENGTH + 500))))

        prompt = completion.calls[0]["messages"][0]["content"]
        assert "x" * ARTICLE_CONTEXT_MAX_LENGTH in prompt
        assert "x" * (ARTICLE_CONTEXT_MAX_LENGTH + 1) not in prompt

    def test_url_only_request(self):
        generator, completion = self._generator([game_json()])

        request = GenerationRequest(source_url="https://example.com/article", customization=GameCustomization(genre="Horror"))
        asyncio.run(generator.generate(request))

        assert "content from: https://example.com/article" in completion.calls[0]["messages"][0]["content"]

    def test_difficulty_guidance(self):
        generator, completion = self._generator([game_json()])

        asyncio.run(generator.generate(horror_request(difficulty=Difficulty.HARD)))

        assert "challenging" in completion.calls[0]["messages"][0]["content"]

    def test_model_override(self):
        generator, completion = self._generator([game_json()])

        result = asyncio.run(generator.generate(horror_request(model_id="claude-3-5-haiku-latest")))

        assert completion.calls[0]["model"] == "claude-3-5-haiku-latest"
        assert result.prompt_model == "claude-3-5-haiku-latest"


class TestGenreMatching:

    def test_case_insensitive_substring_either_way(self):
        assert genre_matches("horror", "Cosmic Horror")
        assert genre_matches("Sci-Fi Thriller", "sci-fi")
        assert not genre_matches("Horror", "Comedy")

    def test_blank_values(self):
        assert genre_matches("", "Anything")
        assert not genre_matches("Horror", "")


class TestParseGameMetadata:

    def test_fenced_camel_case_reply(self):
        content = (
            "Here you go:\n```json\n"
            '{"title": "T", "description": "D", "tagline": "L", "genre": "Mystery", '
            '"subGenre": "Noir", "primaryColor": "3cf",}\n```'
        )
        game = parse_game_metadata(content)
        assert game.subgenre == "Noir"
        assert game.primary_color == "#33ccff"

    def test_empty_content(self):
        with pytest.raises(json.JSONDecodeError):
            parse_game_metadata(None)
