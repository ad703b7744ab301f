"""Exceptions raised across agent and orchestrator boundaries."""


class StudioError(Exception):
    """Base class for studio failures."""


class AgentError(StudioError):
    """An agent's model call failed or its response broke the output contract."""

    def __init__(self, agent, message):
        super().__init__(f"[{agent}] {message}")
        self.agent = agent


class AgentTimeoutError(AgentError):
    """A single agent call ran past its time budget."""


class PipelineCancelled(StudioError):
    """The caller cancelled the request; raised at the next step boundary."""


def check_cancelled(cancel_event):
    """Raise PipelineCancelled if the caller's threading.Event is set."""
    if cancel_event is not None and cancel_event.is_set():
        raise PipelineCancelled("request cancelled")
