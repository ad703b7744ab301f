"""Per-agent model selection. Each role can be overridden from the environment."""

import os

from config.defaults import DEFAULTS

# role: (env var, max_tokens, temperature)
_ROLES = {
    "planner": ("MODEL_PLANNER", 4096, 0.7),
    "analyzer": ("MODEL_ANALYZER", 4096, 0.3),
    "code_writer": ("MODEL_CODE_WRITER", 16384, 0.7),
    "designer": ("MODEL_DESIGNER", 4096, 0.8),
    "debugger": ("MODEL_DEBUGGER", 4096, 0.3),
    "summarizer": ("MODEL_SUMMARIZER", 1024, 0.3),
}


def get_model_config(role):
    """Return {"model", "max_tokens", "temperature"} for an agent role.

    Model lookup order: role env var, STUDIO_MODEL, DEFAULTS["model"].
    """
    if role not in _ROLES:
        raise ValueError(f"Unknown agent role: {role}")
    env_var, max_tokens, temperature = _ROLES[role]
    model = (
        os.environ.get(env_var)
        or os.environ.get("STUDIO_MODEL")
        or DEFAULTS["model"]
    )
    return {"model": model, "max_tokens": max_tokens, "temperature": temperature}


def list_roles():
    return list(_ROLES)
