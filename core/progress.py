"""Progress events emitted by orchestrators for UI display."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

LOGGER = logging.getLogger(__name__)


@dataclass
class ProgressEvent:
    orchestrator: str           # "plan", "code", "studio"
    phase: str                  # "analysis", "planning", "quality", "file", ...
    message: str
    timestamp: float = field(default_factory=time.time)
    data: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            "orchestrator": self.orchestrator,
            "phase": self.phase,
            "message": self.message,
            "timestamp": self.timestamp,
            "data": dict(self.data),
        }


class ProgressReporter:
    """Wraps an on_update sink so that a failing sink never reaches the pipeline."""

    def __init__(self, orchestrator, sink=None):
        self.orchestrator = orchestrator
        self.sink = sink

    def emit(self, phase, message, **data):
        event = ProgressEvent(self.orchestrator, phase, message, data=data)
        LOGGER.info("[%s:%s] %s", self.orchestrator, phase, message)
        if self.sink is None:
            return event
        try:
            self.sink(event)
        except Exception as e:  # noqa: BLE001 - telemetry must not break the pipeline
            LOGGER.warning("Progress sink failed on %s/%s: %s", self.orchestrator, phase, e)
        return event
