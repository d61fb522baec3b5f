"""
FSM Engine

A self configuring finite state machine with a shared payload, transition
history and Prometheus metrics.
"""

__version__ = "0.1.0"

from .core import FSM, default_initialize
from .config import FSMSettings
from .event import Event, EVENT_START
from .exceptions import (
    FSMError,
    NotCallableError,
    NotInvocableError,
    StateError,
    StateNotFoundError,
    StateAlreadyExistsError,
    InvalidStateArgumentError,
    EventError,
    EventNotFoundError,
    LogicalError,
    DuplicateEventError,
    FinalStateImmutableError,
    NotInitializedError,
    AlreadyFinishedError,
    InvalidInitialStateError,
)
from .log_formatter import configure_logging
from .payload import PayloadRef
from .state import (
    State,
    StateType,
    DEFAULT_INITIAL_STATE,
    DEFAULT_FINAL_STATE,
    initial_state,
    final_state,
)
from .tracking import StateTracker, TrackingHandler

__all__ = [
    "FSM",
    "FSMSettings",
    "Event",
    "EVENT_START",
    "State",
    "StateType",
    "DEFAULT_INITIAL_STATE",
    "DEFAULT_FINAL_STATE",
    "initial_state",
    "final_state",
    "default_initialize",
    "PayloadRef",
    "configure_logging",
    "StateTracker",
    "TrackingHandler",
    "FSMError",
    "NotCallableError",
    "NotInvocableError",
    "StateError",
    "StateNotFoundError",
    "StateAlreadyExistsError",
    "InvalidStateArgumentError",
    "EventError",
    "EventNotFoundError",
    "LogicalError",
    "DuplicateEventError",
    "FinalStateImmutableError",
    "NotInitializedError",
    "AlreadyFinishedError",
    "InvalidInitialStateError",
]
