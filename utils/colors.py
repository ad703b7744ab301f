"""Colour and style token extraction from existing front-end code."""

import re
from collections import Counter

# Tailwind utility prefixes that carry a colour, keyed by the scheme role
_CLASS_PATTERNS = {
    "backgrounds": re.compile(r"\bbg-[a-z]+(?:-\d{2,3})?(?:/\d+)?\b"),
    "gradients": re.compile(r"\b(?:from|via|to)-[a-z]+-\d{2,3}\b"),
    "text": re.compile(r"\btext-(?:[a-z]+-\d{2,3}|white|black)\b"),
    "borders": re.compile(r"\bborder-[a-z]+-\d{2,3}(?:/\d+)?\b"),
    "shadows": re.compile(r"\bshadow-(?:sm|md|lg|xl|2xl|inner|none)\b"),
    "rings": re.compile(r"\bring-[a-z]+-\d{2,3}\b"),
    "accents": re.compile(r"\baccent-[a-z]+-\d{2,3}\b"),
}
_HEX_COLOR = re.compile(r"#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{3})\b")
_NEUTRALS = ("gray", "slate", "zinc", "neutral", "stone", "white", "black")
_DARK_BACKGROUNDS = ("slate-900", "gray-900", "zinc-900", "neutral-900", "black", "slate-950")


def _top(matches, limit):
    return [value for value, _ in Counter(matches).most_common(limit)]


def extract_color_scheme(code):
    """Return the most used colour tokens in the code, or None if there are none."""
    if not code or not isinstance(code, str):
        return None

    found = {role: pattern.findall(code) for role, pattern in _CLASS_PATTERNS.items()}
    hex_colors = [c.lower() for c in _HEX_COLOR.findall(code)]
    if not hex_colors and not any(found[role] for role in found if role != "shadows"):
        return None

    return {
        "backgrounds": _top(found["backgrounds"], 3),
        "gradients": _top(found["gradients"], 3),
        "text": _top(found["text"], 3),
        "borders": _top(found["borders"], 2),
        "shadows": _top(found["shadows"], 2),
        "rings": _top(found["rings"], 2),
        "accents": _top(found["accents"], 2),
        "hex": _top(hex_colors, 5),
    }


def is_dark_theme(scheme):
    if not scheme:
        return False
    return any(any(dark in bg for dark in _DARK_BACKGROUNDS) for bg in scheme["backgrounds"])


def primary_color(scheme):
    """First non-neutral colour, preferring text classes, then hex values."""
    if not scheme:
        return ""
    for token in scheme["text"] + scheme["backgrounds"] + scheme["gradients"]:
        if not any(n in token for n in _NEUTRALS):
            return token.split("-", 1)[1]
    return scheme["hex"][0] if scheme["hex"] else ""
