"""
Text Processing for streamed panel narrative

Pure functions applied to raw model output once a panel finishes streaming:
- Options-boundary detection (narrative vs. numbered choice block)
- Length enforcement against a sentence or word budget
- Numbered option extraction with a strict pass and a loose fallback
- Markdown cleanup of panel/narration markers

Model output is untrusted. Nothing here raises on malformed text; the worst
case is an unchanged narrative or an empty option list.

Architecture:
- Pure functions with no external dependencies
- Called by StorySession after the narrator stream ends
"""

import re
from typing import List, Optional, Tuple

from writarcade.config.limits import OPTIONS_PER_PANEL
from writarcade.models import LengthBudget, LengthUnit, PanelOption


# =========================================================================
# OPTIONS BOUNDARY
# =========================================================================

# Bullets accepted in front of an option number
OPTION_BULLETS = r"*\-•"

# Start of line, optional bullet, the digit 1 (optionally bold), separator, whitespace
OPTIONS_BOUNDARY_PATTERN = re.compile(
    rf"^[ \t]*(?:[{OPTION_BULLETS}][ \t]*)?(?:\*\*)?1(?:\*\*)?[.):](?:\*\*)?[ \t]+", re.MULTILINE
)


def split_narrative_and_options(text: str) -> Tuple[str, str]:
    """
    Split panel text at the first numbered-option marker.

    Args:
        text: Full accumulated panel text

    Returns:
        (narrative, options_block). options_block is "" when no marker
        exists, in which case the whole text is narrative.
    """
    if not text:
        return "", ""

    match = OPTIONS_BOUNDARY_PATTERN.search(text)
    if not match:
        return text, ""
    return text[:match.start()], text[match.start():]


# =========================================================================
# SENTENCE / WORD COUNTING
# =========================================================================

# A run of non-terminators, then terminators, then any closing quotes/brackets.
# A trailing fragment without a terminator still counts as a sentence.
_SENTENCE_PATTERN = re.compile(r'[^.!?]+(?:[.!?]+["\'”’)\]]*|$)')
_HAS_CONTENT = re.compile(r'\w')


def split_sentences(text: str) -> List[str]:
    """
    Split narrative on '.', '!' and '?', discarding empty fragments.

    Examples:
        "The door creaks. Nobody answers!" → ["The door creaks.", "Nobody answers!"]
        "Wait... what?" → ["Wait...", "what?"]
    """
    if not text:
        return []
    fragments = (m.group(0).strip() for m in _SENTENCE_PATTERN.finditer(text))
    return [f for f in fragments if _HAS_CONTENT.search(f)]


def count_sentences(text: str) -> int:
    return len(split_sentences(text))


def count_words(text: str) -> int:
    return len(text.split()) if text else 0


def _finish_sentence(sentence: str) -> str:
    """Collapse internal whitespace and make sure the sentence is terminated."""
    sentence = " ".join(sentence.split())
    if not re.search(r'[.!?]["\'”’)\]]*$', sentence):
        sentence = sentence.rstrip(",;:-–— ") + "."
    return sentence


def _trim_to_sentences(narrative: str, maximum: int) -> str:
    kept = split_sentences(narrative)[:maximum]
    return " ".join(_finish_sentence(s) for s in kept)


def _trim_to_words(narrative: str, maximum: int) -> str:
    # Prefer whole sentences; only cut mid-sentence when the first one alone
    # is over budget
    kept: List[str] = []
    total = 0
    for sentence in split_sentences(narrative):
        words = count_words(sentence)
        if total + words > maximum:
            break
        kept.append(_finish_sentence(sentence))
        total += words

    if kept:
        return " ".join(kept)

    return _finish_sentence(" ".join(narrative.split()[:maximum]))


# =========================================================================
# LENGTH ENFORCEMENT
# =========================================================================

def enforce_length(text: str, budget: LengthBudget) -> str:
    """
    Fit the narrative part of a panel to its length budget.

    Everything from the first numbered option onward is preserved verbatim.
    Narrative over the maximum is cut back to whole sentences. Narrative
    under the minimum is returned as-is; there is no padding.

    Compliant text is returned unchanged, so the function is idempotent.

    Args:
        text: Narrative and options as streamed
        budget: Sentence or word range

    Returns:
        Text with the narrative trimmed to at most budget.maximum units
    """
    if not text:
        return text

    narrative, options_block = split_narrative_and_options(text)

    if budget.unit == LengthUnit.WORDS:
        if count_words(narrative) <= budget.maximum:
            return text
        trimmed = _trim_to_words(narrative, budget.maximum)
    else:
        if count_sentences(narrative) <= budget.maximum:
            return text
        trimmed = _trim_to_sentences(narrative, budget.maximum)

    if options_block:
        return f"{trimmed}\n\n{options_block}"
    return trimmed


# =========================================================================
# OPTION PARSING
# =========================================================================

# "1. text", "1) text", "* 1. text", "- 2) text", "• 3. text"
PRIMARY_OPTION_PATTERN = re.compile(rf"^[{OPTION_BULLETS}]?\s*(\d+)[.)]\s+(.+)$")

# "1: text", "2 - text", "3.text" - only used when the strict pass finds < 2
FALLBACK_OPTION_PATTERN = re.compile(rf"^[{OPTION_BULLETS}]?\s*(\d+)\s*[.):\-]\s*(.+)$")


def _clean_option_text(text: str) -> str:
    text = re.sub(r'\*\*(.*?)\*\*', r'\1', text)
    return text.strip()


def _scan_options(lines: List[str], pattern: re.Pattern) -> List[PanelOption]:
    found = {}
    for line in lines:
        match = pattern.match(_clean_option_text(line))
        if not match:
            continue
        option_id = int(match.group(1))
        text = match.group(2).strip()
        if 1 <= option_id <= OPTIONS_PER_PANEL and text and option_id not in found:
            found[option_id] = PanelOption(id=option_id, text=text)
    return [found[k] for k in sorted(found)]


def parse_options(text: str) -> List[PanelOption]:
    """
    Extract numbered choices (ids 1-4) from model output.

    Bold markers are dropped first, so "**1.** Run" reads as "1. Run".
    Primary pass accepts "1. " / "1) " lines with an optional bullet. When
    that yields fewer than 2 options, a looser pass also accepts ':' and '-'
    separators. Duplicate ids keep their first occurrence.

    Args:
        text: Raw text believed to contain an options block

    Returns:
        Options sorted by id, at most 4. Empty when none were offered.
    """
    if not text:
        return []

    lines = text.split("\n")
    options = _scan_options(lines, PRIMARY_OPTION_PATTERN)

    if len(options) < 2:
        options = _scan_options(lines, FALLBACK_OPTION_PATTERN)

    return options


def find_option(options: List[PanelOption], option_id: int) -> Optional[PanelOption]:
    return next((o for o in options if o.id == option_id), None)


# =========================================================================
# NARRATIVE CLEANUP
# =========================================================================

def clean_narrative_text(raw_text: str) -> str:
    """
    Strip formatting the model adds around panel narrative.

    Removes **Panel N:**, **Narration:** and **Options:** markers, unwraps
    any other bold spans, and collapses whitespace to single spaces.

    Example: "**Panel 2:** The vault **hums**.\\n\\nSomething moves."
             → "The vault hums. Something moves."
    """
    if not raw_text:
        return ""

    cleaned = re.sub(r'\*\*Panel \d+:?\*\*\s*', '', raw_text, flags=re.IGNORECASE)
    cleaned = re.sub(r'\*\*Narration:?\*\*\s*', '', cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r'\*\*Options:?\*\*\s*', '', cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r'\*\*(.*?)\*\*', r'\1', cleaned)
    return " ".join(cleaned.split())
