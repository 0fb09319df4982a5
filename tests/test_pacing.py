"""
Unit tests for the pacing controller.

Run with: python -m pytest tests/test_pacing.py -v
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from writarcade.models import PacingPhase
from writarcade.services.pacing import get_pacing_guidance, get_pacing_phase, is_final_panel


class TestPacingPhase:

    def test_five_panel_arc(self):
        phases = [get_pacing_phase(i, 5) for i in range(1, 6)]
        assert phases == [
            PacingPhase.SETUP,
            PacingPhase.ESCALATION,
            PacingPhase.ESCALATION,
            PacingPhase.CLIMAX,
            PacingPhase.RESOLUTION,
        ]

    def test_three_panel_arc(self):
        assert get_pacing_phase(1, 3) == PacingPhase.SETUP
        assert get_pacing_phase(2, 3) == PacingPhase.ESCALATION
        assert get_pacing_phase(3, 3) == PacingPhase.RESOLUTION

    def test_single_panel_story_is_resolution(self):
        assert get_pacing_phase(1, 1) == PacingPhase.RESOLUTION

    def test_last_panel_always_resolution(self):
        for max_panels in range(1, 12):
            assert get_pacing_phase(max_panels, max_panels) == PacingPhase.RESOLUTION

    @pytest.mark.parametrize("current,max_panels", [(0, 5), (6, 5), (1, 0), (-1, 3)])
    def test_out_of_range_rejected(self, current, max_panels):
        with pytest.raises(ValueError):
            get_pacing_phase(current, max_panels)


class TestPacingGuidance:

    def test_final_panel_demands_conclusion(self):
        guidance = get_pacing_guidance(5, 5)
        assert "FINAL" in guidance
        assert "conclude" in guidance
        assert "ENDING" in guidance

    def test_final_panel_has_no_continuation_framing(self):
        guidance = get_pacing_guidance(5, 5).lower()
        assert "continu" not in guidance
        assert "remain" not in guidance

    def test_non_final_panels_continue(self):
        for i in range(1, 5):
            guidance = get_pacing_guidance(i, 5)
            assert "continues" in guidance
            assert "FINAL" not in guidance

    def test_guidance_names_position(self):
        guidance = get_pacing_guidance(2, 5)
        assert guidance.startswith("Panel 2 of 5.")
        assert "3 more panels before the ending" in guidance

    def test_single_remaining_panel_grammar(self):
        assert "1 more panel before the ending" in get_pacing_guidance(4, 5)

    def test_phase_specific_text(self):
        assert "SETUP" in get_pacing_guidance(1, 5)
        assert "ESCALATION" in get_pacing_guidance(2, 5)
        assert "CLIMAX" in get_pacing_guidance(4, 5)


class TestIsFinalPanel:

    def test_only_last_is_final(self):
        assert [is_final_panel(i, 4) for i in range(1, 5)] == [False, False, False, True]
