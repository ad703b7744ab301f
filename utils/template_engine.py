"""Prompt template loading using string.Template for safe rendering."""

import os
from functools import lru_cache
from string import Template


def get_prompts_dir():
    """Return the absolute path to the agent prompts directory."""
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "agents", "prompts")


@lru_cache(maxsize=None)
def load_prompt(name):
    """Load a prompt file (without extension) and return its contents."""
    prompts_dir = get_prompts_dir()
    path = os.path.join(prompts_dir, f"{name}.txt")
    resolved = os.path.realpath(path)
    if not resolved.startswith(os.path.realpath(prompts_dir) + os.sep):
        raise ValueError(f"Prompt path escapes prompts directory: {name}")
    with open(resolved, "r", encoding="utf-8") as f:
        return f.read()


def render_prompt(name, variables=None):
    """Load and render a prompt with the given variables.

    Uses string.Template for safe substitution - unknown placeholders
    are left as-is rather than raising errors, so JavaScript template
    literals inside prompts survive rendering.
    """
    return Template(load_prompt(name)).safe_substitute(variables or {})
