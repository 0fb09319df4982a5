"""
Unit tests for length enforcement, option parsing and narrative cleanup.

Run with: python -m pytest tests/test_text_processing.py -v
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from writarcade.models import LengthBudget, LengthUnit
from writarcade.services.text_processing import (
    clean_narrative_text,
    count_sentences,
    count_words,
    enforce_length,
    find_option,
    parse_options,
    split_narrative_and_options,
    split_sentences,
)

SENTENCES_2_4 = LengthBudget(unit=LengthUnit.SENTENCES, minimum=2, maximum=4)
OPTIONS = "1. Open the door\n2. Run\n3. Hide\n4. Call out"


class TestSplitting:

    def test_split_at_first_option(self):
        narrative, options = split_narrative_and_options(f"The hall is dark.\n\n{OPTIONS}")
        assert narrative == "The hall is dark.\n\n"
        assert options == OPTIONS

    def test_no_options_means_all_narrative(self):
        assert split_narrative_and_options("Just a story.") == ("Just a story.", "")

    def test_bulleted_and_colon_markers(self):
        assert split_narrative_and_options("Story.\n- 1) Go")[1] == "- 1) Go"
        assert split_narrative_and_options("Story.\n1: Go")[1] == "1: Go"

    def test_ten_is_not_a_boundary(self):
        assert split_narrative_and_options("Story.\n10. Later")[1] == ""

    def test_sentence_split(self):
        assert split_sentences("The door creaks. Nobody answers!") == ["The door creaks.", "Nobody answers!"]
        assert split_sentences("Wait... what?") == ["Wait...", "what?"]

    def test_counts(self):
        assert count_sentences("One. Two! Three?") == 3
        assert count_sentences("") == 0
        assert count_words("one two  three") == 3


class TestEnforceLength:

    def test_over_max_sentences_trimmed_options_preserved(self):
        text = f"One. Two. Three. Four. Five. Six.\n\n{OPTIONS}"
        result = enforce_length(text, SENTENCES_2_4)
        assert result == f"One. Two. Three. Four.\n\n{OPTIONS}"

    def test_compliant_text_unchanged(self):
        text = f"The hall is dark. Something breathes.\n\n{OPTIONS}"
        assert enforce_length(text, SENTENCES_2_4) == text

    def test_idempotent(self):
        text = f"A. B. C. D. E. F. G.\n{OPTIONS}"
        once = enforce_length(text, SENTENCES_2_4)
        assert enforce_length(once, SENTENCES_2_4) == once

    def test_below_minimum_not_padded(self):
        text = f"Just one.\n\n{OPTIONS}"
        assert enforce_length(text, SENTENCES_2_4) == text

    def test_without_options(self):
        assert enforce_length("A. B. C. D. E.", SENTENCES_2_4) == "A. B. C. D."

    def test_unterminated_tail_counts_as_sentence(self):
        assert enforce_length("One. Two. Three. Four. Five", SENTENCES_2_4) == "One. Two. Three. Four."

    def test_trimmed_sentences_get_punctuation_and_single_spaces(self):
        text = "First line\nstill first. Second   one. Third. Fourth. Fifth."
        assert enforce_length(text, SENTENCES_2_4) == "First line still first. Second one. Third. Fourth."

    def test_word_budget_keeps_whole_sentences(self):
        budget = LengthBudget(unit=LengthUnit.WORDS, minimum=1, maximum=5)
        result = enforce_length("The cat sat down. The dog barked loudly today.", budget)
        assert result == "The cat sat down."

    def test_word_budget_cuts_single_long_sentence(self):
        budget = LengthBudget(unit=LengthUnit.WORDS, minimum=1, maximum=3)
        assert enforce_length("One two three four five six seven.", budget) == "One two three."

    def test_empty_text(self):
        assert enforce_length("", SENTENCES_2_4) == ""

    def test_result_within_max(self):
        text = f"{' '.join(f'Sentence {i}.' for i in range(20))}\n{OPTIONS}"
        result = enforce_length(text, SENTENCES_2_4)
        narrative, options = split_narrative_and_options(result)
        assert count_sentences(narrative) == 4
        assert options == OPTIONS


class TestParseOptions:

    def test_standard_block(self):
        options = parse_options(OPTIONS)
        assert [(o.id, o.text) for o in options] == [
            (1, "Open the door"), (2, "Run"), (3, "Hide"), (4, "Call out"),
        ]

    def test_bullets_and_parens(self):
        options = parse_options("* 1. Open\n- 2) Run\n3) Hide")
        assert [o.id for o in options] == [1, 2, 3]

    def test_fallback_separators(self):
        options = parse_options("1: Open\n2 - Run")
        assert [(o.id, o.text) for o in options] == [(1, "Open"), (2, "Run")]

    def test_fallback_used_when_primary_finds_one(self):
        options = parse_options("1. Open\n2: Run")
        assert [o.id for o in options] == [1, 2]

    def test_first_occurrence_wins(self):
        options = parse_options("1. First\n1. Second\n2. Other")
        assert [(o.id, o.text) for o in options] == [(1, "First"), (2, "Other")]

    def test_out_of_range_ids_dropped(self):
        options = parse_options("0. Zero\n5. Five\n1. One\n2. Two")
        assert [o.id for o in options] == [1, 2]

    def test_sorted_by_id(self):
        options = parse_options("3. C\n1. A\n2. B")
        assert [o.id for o in options] == [1, 2, 3]

    def test_bold_unwrapped(self):
        assert parse_options("1. **Run** away\n2. Stay")[0].text == "Run away"

    @pytest.mark.parametrize("block", [
        "• 1. Open\n• 2. Run",
        "**1.** Open\n**2.** Run",
        "**1**. Open\n**2**. Run",
        "* **1.** Open\n* **2.** Run",
    ])
    def test_bullet_and_bold_numbers(self, block):
        options = parse_options(block)
        assert [(o.id, o.text) for o in options] == [(1, "Open"), (2, "Run")]

    @pytest.mark.parametrize("block", ["• 1. Open\n• 2. Run", "**1.** Open\n**2.** Run"])
    def test_split_block_parses(self, block):
        narrative, options = split_narrative_and_options(f"The hall is dark.\n\n{block}")
        assert narrative == "The hall is dark.\n\n"
        assert len(parse_options(options)) == 2

    def test_none_offered(self):
        assert parse_options("") == []
        assert parse_options("No choices here.") == []

    def test_find_option(self):
        options = parse_options(OPTIONS)
        assert find_option(options, 3).text == "Hide"
        assert find_option(options, 9) is None


class TestCleanNarrative:

    def test_markers_removed(self):
        raw = "**Panel 2:** The vault **hums**.\n\nSomething moves."
        assert clean_narrative_text(raw) == "The vault hums. Something moves."

    def test_narration_and_options_headers(self):
        raw = "**Narration:** Rain falls.\n**Options:**"
        assert clean_narrative_text(raw) == "Rain falls."

    def test_empty(self):
        assert clean_narrative_text("") == ""

