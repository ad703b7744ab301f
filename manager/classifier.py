"""Keyword classifiers for routing requests.

Each classifier is a plain function so orchestrators can be handed a
replacement without changing their control flow.
"""

from core.state import Operation, PlanIntent, Scenario

# Simple-tweak verbs that let a request skip planning ...
SIMPLE_CHANGE_KEYWORDS = ("add", "change", "update")
# ... unless the request also asks for structural work.
STRUCTURAL_KEYWORDS = ("refactor", "redesign", "reorganize")

DEBUG_KEYWORDS = ("fix", "debug", "error", "bug")
REFACTOR_KEYWORDS = ("refactor", "reorganize", "restructure")


def _contains_any(text, keywords):
    return any(keyword in text for keyword in keywords)


def detect_scenario(message, files):
    """Return greenfield, skip or contextual for a (message, files) pair.

    Keyword matching is by substring, so "address" counts as "add".
    """
    if not files:
        return Scenario.GREENFIELD
    text = (message or "").lower()
    if _contains_any(text, SIMPLE_CHANGE_KEYWORDS) and not _contains_any(text, STRUCTURAL_KEYWORDS):
        return Scenario.SKIP
    return Scenario.CONTEXTUAL


def detect_operation(message, files):
    """Pick the code operation: generate, debug, refactor or modify."""
    if not files:
        return Operation.GENERATE
    text = (message or "").lower()
    if _contains_any(text, DEBUG_KEYWORDS):
        return Operation.DEBUG
    if _contains_any(text, REFACTOR_KEYWORDS):
        return Operation.REFACTOR
    return Operation.MODIFY


def classify_intent(message):
    """Planner intent for a contextual request."""
    return PlanIntent.REFACTOR if "refactor" in (message or "").lower() else PlanIntent.MODIFY