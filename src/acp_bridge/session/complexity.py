"""Keyword heuristic that decides whether a prompt deserves a plan."""

from __future__ import annotations

import re
from dataclasses import dataclass

MULTI_STEP_WORDS = ("first", "then", "next", "after", "finally", "step", "phase")
SUBSTANTIAL_WORDS = (
    "implement",
    "create",
    "build",
    "refactor",
    "restructure",
    "migrate",
    "optimize",
)

LONG_PROMPT_CHARS = 200
SHORT_PROMPT_WORDS = 15
MAX_SUMMARY_CHARS = 100

SIMPLE_SUMMARY = "Processing simple request"


@dataclass(frozen=True)
class ComplexityAnalysis:
    is_complex: bool
    needs_plan: bool
    summary: str
    estimated_steps: int


def analyze_prompt(prompt: str) -> ComplexityAnalysis:
    """Classify a prompt. Keywords match as substrings of the lower-cased text."""
    lowered = prompt.lower()

    multi_step = any(word in lowered for word in MULTI_STEP_WORDS)
    substantial_matches = [word for word in SUBSTANTIAL_WORDS if word in lowered]
    substantial = bool(substantial_matches)
    is_long = len(prompt) > LONG_PROMPT_CHARS

    is_complex = multi_step or substantial or is_long
    needs_plan = is_complex and (multi_step or is_long or len(substantial_matches) > 1)

    estimated_steps = 1
    if multi_step:
        estimated_steps += 2
    if substantial:
        estimated_steps += 1
    if is_long:
        estimated_steps += 1

    return ComplexityAnalysis(
        is_complex=is_complex,
        needs_plan=needs_plan,
        summary=summarize_prompt(prompt, is_complex),
        estimated_steps=estimated_steps,
    )


def summarize_prompt(prompt: str, is_complex: bool) -> str:
    if not is_complex:
        return SIMPLE_SUMMARY
    if len(prompt.split()) <= SHORT_PROMPT_WORDS:
        return prompt

    first_sentence = re.split(r"[.!?]", prompt, maxsplit=1)[0]
    if len(first_sentence) <= MAX_SUMMARY_CHARS:
        return first_sentence
    return first_sentence[: MAX_SUMMARY_CHARS - 3] + "..."
