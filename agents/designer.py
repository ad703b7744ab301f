"""Designer agent — produces a design system, or extracts one from existing code."""

import re
from collections import Counter

from agents.base import BaseAgent
from core.state import UXDesign
from utils.code_cleanup import is_script
from utils.colors import extract_color_scheme, is_dark_theme, primary_color

_ROUNDED = re.compile(r"\brounded(?:-(?:none|sm|md|lg|xl|2xl|3xl|full))?\b")
_SHADOW = re.compile(r"\bshadow(?:-(?:sm|md|lg|xl|2xl|inner))?\b")
_BACKDROP = re.compile(r"\bbackdrop-blur(?:-\w+)?\b")
_GAP = re.compile(r"\b(?:gap|space-[xy])-\d+\b")
_PADDING = re.compile(r"\bp[xy]?-\d+\b")
_HEADING = re.compile(r"<h[1-3][^>]*className=[\"']([^\"']*)[\"']")
_INTERACTIONS = (
    ("hover:", "hover feedback on interactive elements"),
    ("focus:", "visible focus styles"),
    ("transition", "animated transitions"),
    ("disabled", "disabled states"),
    ("animate-", "loading or attention animations"),
)
_LAYOUTS = (
    ("grid-cols", "grid"),
    ("flex-col", "stacked flex column"),
    ("flex", "flex row"),
)


def _most_common(pattern, text, default=""):
    found = pattern.findall(text)
    return Counter(found).most_common(1)[0][0] if found else default


def extract_ux_from_code(files):
    """Derive a UX design from existing front-end code. Zero LLM calls.

    Returns None when the files carry no recognisable styling.
    """
    code = "\n".join(content for name, content in (files or {}).items()
                     if is_script(name) or name.endswith((".css", ".html")))
    scheme = extract_color_scheme(code)
    if scheme is None:
        return None

    dark = is_dark_theme(scheme)
    color_scheme = {
        "theme": "dark" if dark else "light",
        "background": scheme["backgrounds"][0] if scheme["backgrounds"] else "",
        "primary": primary_color(scheme),
        "text": scheme["text"][0] if scheme["text"] else "",
        "gradients": scheme["gradients"],
        "hex": scheme["hex"],
    }

    shadow = _most_common(_SHADOW, code)
    design_style = {
        "aesthetic": "glassmorphism" if _BACKDROP.search(code) else ("dark" if dark else "clean"),
        "corners": _most_common(_ROUNDED, code, "rounded-none"),
        "shadows": shadow or "none",
        "effects": "backdrop-blur" if _BACKDROP.search(code) else ("gradients" if scheme["gradients"] else "none"),
    }

    layout = {"spacing": _most_common(_GAP, code), "padding": _most_common(_PADDING, code)}
    for token, name in _LAYOUTS:
        if token in code:
            layout["grid"] = name
            break

    headings = _HEADING.findall(code)
    return UXDesign(
        color_scheme=color_scheme,
        design_style=design_style,
        interaction_patterns=[label for token, label in _INTERACTIONS if token in code],
        layout=layout,
        typography={"headings": headings[0]} if headings else {},
        source="extracted",
    )


class DesignerAgent(BaseAgent):
    """Designs the look and feel the code writer applies to every file."""

    name = "designer"
    description = "Creates a design system or extracts one from existing code"
    role = "designer"
    prompt_name = "designer"

    def design(self, app_name, tagline="", message="", mode="create_new") -> UXDesign:
        user_message = (
            f"APP: {app_name or 'Untitled'}\n"
            f"TAGLINE: {tagline}\n"
            f"USER REQUEST: {message}"
        )
        data = self.call_json(self.system_prompt(mode=mode), user_message)
        return UXDesign.from_dict(data, source="designer")

    def extract_from_code(self, files):
        return extract_ux_from_code(files)
