"""
States of the machine: normal states plus the initial and final pseudo states.
"""

import logging
from enum import Enum
from typing import Dict, Iterator

from .event import Event, EVENT_START
from .exceptions import EventNotFoundError, FinalStateImmutableError

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_STATE = "DEFAULT_INITIAL_STATE"
DEFAULT_FINAL_STATE = "DEFAULT_FINAL_STATE"


class StateType(Enum):
    """Kinds of state. Fixed when the state is built."""
    INITIAL = "STATE_INITIAL"
    FINAL = "STATE_FINAL"
    NORMAL = "STATE_NORMAL"

    @property
    def accepts_events(self) -> bool:
        return _ACCEPTS_EVENTS[self]


_ACCEPTS_EVENTS = {
    StateType.INITIAL: True,
    StateType.NORMAL: True,
    StateType.FINAL: False,
}


class State:
    """
    A named vertex holding the events that leave it.

    Initial states are created with an unwired ``EVENT_START`` event.
    Final states never hold events.
    """

    def __init__(self, name: str, state_type: StateType = StateType.NORMAL):
        self.name = name
        self._type = state_type
        self._events: Dict[str, Event] = {}

        if state_type is StateType.INITIAL:
            self.add_event(Event(EVENT_START))

    @property
    def type(self) -> StateType:
        return self._type

    def get_type(self) -> StateType:
        return self._type

    def get_name(self) -> str:
        return self.name

    def add_event(self, event: Event) -> "State":
        """
        Register ``event`` on this state, replacing any event with the same name.

        Raises:
            FinalStateImmutableError: this is a final state
        """
        if not self._type.accepts_events:
            raise FinalStateImmutableError(
                f"Final state {self} cannot receive event {event.name}"
            )
        self._events[event.name] = event
        logger.debug(f"State {self}: registered event {event.name}")
        return self

    def get_event(self, event_name: str) -> Event:
        if event_name not in self._events:
            raise EventNotFoundError(f"Event {event_name} does not exist in {self}")
        return self._events[event_name]

    def has_event(self, event_name: str) -> bool:
        return event_name in self._events

    def remove_event(self, event_name: str) -> "State":
        if event_name not in self._events:
            raise EventNotFoundError(f"Event {event_name} does not exist in {self}")
        del self._events[event_name]
        return self

    def get_events(self) -> Dict[str, Event]:
        """Get a copy of the event map"""
        return dict(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._events.values()))

    def __contains__(self, item) -> bool:
        if isinstance(item, Event):
            return self._events.get(item.name) is item
        return item in self._events

    def __str__(self):
        return self.name

    def __repr__(self):
        return f"State({self.name!r}, {self._type.name})"


def initial_state(name: str = DEFAULT_INITIAL_STATE) -> State:
    """Build an initial state with its EVENT_START event"""
    return State(name, StateType.INITIAL)


def final_state(name: str = DEFAULT_FINAL_STATE) -> State:
    """Build a final state"""
    return State(name, StateType.FINAL)
