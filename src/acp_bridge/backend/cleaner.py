"""Strip terminal control sequences and UI chrome from CLI output."""

from __future__ import annotations

import re

_ANSI_PATTERNS = [
    re.compile(r"\x1b\[[0-9;]*[A-Za-z]"),
    re.compile(r"\x1b\[38;2;[\d;]+m"),  # truecolor foreground
    re.compile(r"\x1b\[48;2;[\d;]+m"),  # truecolor background
    re.compile(r"\x1b\][^\x07]*\x07"),  # OSC
    re.compile(r"\x1b\[[\x30-\x3f]*[\x20-\x2f]*[\x40-\x7e]"),  # CSI
    re.compile(r"\x1bP[^\x1b]*\x1b\\"),  # DCS
    re.compile(r"\x1bX[^\x1b]*\x1b\\"),  # SOS
    re.compile(r"\x1b\^[^\x1b]*\x1b\\"),  # PM
    re.compile(r"\x1b_[^\x1b]*\x1b\\"),  # APC
    re.compile(r"\x1b\[\d+(;\d+)*m"),
    re.compile(r"\x1b\[\d*[ABCDHJ]"),
    re.compile(r"\x1b\[[\dK]*"),
    re.compile(r"\x1b[\[\]()#;?]*(?:[0-9]{1,4}(?:;[0-9]{0,4})*)?[0-9A-PRZcf-ntqry=><]"),
    # Color fragments left behind when a sequence was split across reads
    re.compile(r";2;\d+;\d+;\d+m"),
    re.compile(r"\d+;\d+;\d+m"),
]

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_BOX_DRAWING = re.compile(r"[╭╮╯╰─│●]")
_BLANK_LINES = re.compile(r"\s*\n\s*\n\s*")

_SKIP_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"do you want to connect",
        r"vs code",
        r"\[y/n\]",
        r"loading",
        r"tips for getting started",
        r"ask questions",
        r"no sandbox",
        r"qwen3-coder",
        r"context left",
        r"main\*",
    )
]

MIN_CONTENT_LENGTH = 3


def clean_output(raw: str) -> str:
    """Remove escape sequences, control characters and box glyphs; trim."""
    if not raw:
        return ""

    cleaned = raw
    for pattern in _ANSI_PATTERNS:
        cleaned = pattern.sub("", cleaned)

    cleaned = _CONTROL_CHARS.sub("", cleaned)  # keeps \t and \n
    cleaned = _BOX_DRAWING.sub("", cleaned)
    cleaned = _BLANK_LINES.sub("\n", cleaned)
    return cleaned.strip()


def extract_content(raw: str) -> str:
    """Cleaned text worth showing to the user, or "" for noise."""
    cleaned = clean_output(raw)
    if len(cleaned) < MIN_CONTENT_LENGTH:
        return ""
    if any(pattern.search(cleaned) for pattern in _SKIP_PATTERNS):
        return ""
    return cleaned
