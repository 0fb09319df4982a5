"""
Tests for the terminal/debug logger.

Run with: python -m pytest tests/test_logger.py -v
"""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from writarcade.config.settings import Settings
from writarcade.services.logger import WritArcadeLogger


class TestLlmApiCallLog:

    def test_jsonl_written_when_enabled(self, tmp_path):
        settings = Settings(debug_api_calls=True, debug_log_dir=str(tmp_path))
        log = WritArcadeLogger(settings=settings)

        log.llm_api_call("gpt-4o-mini", "narrator", latency=1.5, output_chars=240)
        log.llm_api_call("gpt-4o-mini", "game_generator", status="error")

        lines = log.api_calls_log.read_text().splitlines()
        entries = [json.loads(line) for line in lines]
        assert [e["role"] for e in entries] == ["narrator", "game_generator"]
        assert entries[0]["output_chars"] == 240
        assert entries[1]["status"] == "error"

    def test_disabled_by_default(self, tmp_path, capsys):
        log = WritArcadeLogger(settings=Settings(debug_log_dir=str(tmp_path)))

        log.llm_api_call("gpt-4o-mini", "narrator")

        assert capsys.readouterr().out == ""
        assert list(tmp_path.iterdir()) == []


class TestLifecycleLines:

    def test_panel_lines_printed(self, capsys):
        log = WritArcadeLogger()

        log.panel_started("abcdef123456", 2, 5, "escalation")
        log.story_complete("abcdef123456", 5)

        out = capsys.readouterr().out
        assert "abcdef12" in out
        assert "5 panels" in out
