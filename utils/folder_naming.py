"""Output folder naming for generated projects: slug generation and dedup."""

import os
import re

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
PROJECTS_DIR = "projects"

_FILLER = {
    "build", "me", "a", "an", "the", "create", "make", "generate", "write",
    "for", "to", "with", "using", "that", "and", "app", "application",
    "website", "page", "please", "can", "you", "i", "want", "need", "some",
    "new", "react", "simple",
}

MAX_DEDUP = 1000


def slugify(text):
    """Convert text to a filesystem-safe slug."""
    text = text.lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_-]+", "_", text)
    return text.strip("_")


def extract_project_name(request):
    """Pull a short project name from the request text."""
    words = re.sub(r"[^\w\s]", "", request.lower()).split()
    meaningful = [w for w in words if w not in _FILLER]
    name = "_".join(meaningful[:3]) if meaningful else "project"
    return slugify(name)


def _check_containment(path, base_dir):
    resolved = os.path.realpath(path)
    if not resolved.startswith(os.path.realpath(base_dir) + os.sep):
        raise ValueError(f"Generated output path escapes base directory: {path}")
    return resolved


def get_output_dir(request, base_dir=None):
    """Return a deduplicated projects/<slug> directory for the request."""
    base_dir = base_dir or BASE_DIR
    project_name = extract_project_name(request)
    base = os.path.join(base_dir, PROJECTS_DIR, project_name)
    _check_containment(base, base_dir)

    if not os.path.exists(base):
        return base

    for counter in range(2, MAX_DEDUP + 2):
        candidate = f"{base}_{counter}"
        if not os.path.exists(candidate):
            return candidate

    raise RuntimeError(f"Too many duplicate projects (>{MAX_DEDUP}) for: {project_name}")
