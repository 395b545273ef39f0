"""Event emitters for the deployment sequencer."""

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Iterable

from deployment_engine.core.events_model import DeploymentEvent

logger = logging.getLogger(__name__)


ALLOWED_EVENTS = {
    "run.started",
    "run.completed",
    "run.failed",
    "run.interrupted",
    "stage.started",
    "stage.completed",
    "stage.failed",
    "stage.skipped",
    "stage.reused",
}


class EventEmitter(ABC):
    """Abstract event emitter."""

    @abstractmethod
    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        """Emit one or more events."""
        pass


class LoggingEventEmitter(EventEmitter):
    """
    Logs events and keeps the most recent ones in memory (used by CLI and tests).

    Older events are dropped once ``max_events`` are held, so a long-lived
    API process does not grow without bound.
    """

    def __init__(self, max_events: int = 500):
        self.events = deque(maxlen=max_events)

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        for event in events:
            if event.event_type not in ALLOWED_EVENTS:
                raise ValueError(f"Invalid event type: {event.event_type}")
            if not event.run_id:
                raise ValueError("Event must have run_id")

            self.events.append(event)

            stage = f" stage={event.stage_id}" if event.stage_id else ""
            logger.info(f"[EVENT] {event.event_type} | run={event.run_id}{stage}")

    def event_types(self):
        return [event.event_type for event in self.events]


class MultiEventEmitter:
    """Fan-out to multiple emitters."""

    def __init__(self, emitters: Iterable[EventEmitter]):
        self._emitters = list(emitters)

    def emit(self, events: Iterable[DeploymentEvent]):
        events = list(events)
        for emitter in self._emitters:
            emitter.emit(events)


class NullEventEmitter(EventEmitter):
    """No-op emitter (used when events are not needed)."""

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        pass
