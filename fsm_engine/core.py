"""
Core state machine implementation with Prometheus metrics and transition history.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, List, NoReturn, Optional, Union

from . import metrics
from .config import FSMSettings
from .event import Event, EVENT_START, Action
from .exceptions import (
    AlreadyFinishedError,
    DuplicateEventError,
    EventNotFoundError,
    InvalidInitialStateError,
    InvalidStateArgumentError,
    NotCallableError,
    NotInitializedError,
    StateAlreadyExistsError,
    StateNotFoundError,
)
from .payload import PayloadRef
from .state import State, StateType, initial_state, final_state

logger = logging.getLogger(__name__)

InitializeFunction = Callable[["FSM"], Any]
StateArg = Union[str, State]


def default_initialize(fsm: "FSM") -> None:
    """
    Bootstrap used when no initialize function was set.

    Creates the default initial and final states, makes the initial state
    current and wires its EVENT_START event to the final state.
    """
    start = initial_state()
    end = final_state()
    fsm.add_state(start)
    fsm.set_current_state(start)
    fsm.add_state(end)
    start.get_event(EVENT_START).set_next_state(end.name)


class FSM:
    """
    A self configuring finite state machine.

    Features:
    - States and events created on demand by add_transition()
    - Initial and final pseudo states
    - Payload shared by reference with every transition action
    - Transition history and Prometheus metrics
    """

    def __init__(self, name: Optional[str] = None, settings: Optional[FSMSettings] = None):
        """
        Initialize state machine.

        Args:
            name: Free-form label, used in logs and metric labels
            settings: Observability settings, read from FSM_* env vars if omitted
        """
        self.name = name
        self.settings = settings if settings is not None else FSMSettings.from_env()

        self._states: Dict[str, State] = {}
        self._current_state: Optional[State] = None
        self._previous_state: Optional[State] = None
        self._payload = PayloadRef()
        self._initialized = False
        self._initialize_function: Optional[InitializeFunction] = None
        self._history: List[Dict[str, Any]] = []

    @property
    def _label(self) -> str:
        return self.name or "fsm"

    def get_name(self) -> Optional[str]:
        return self.name

    # Graph management

    def add_state(self, state: StateArg) -> "FSM":
        """
        Add a state, given either a name or a State.

        Raises:
            InvalidStateArgumentError: ``state`` is neither a name nor a State
            StateAlreadyExistsError: a state with that name is registered
        """
        if isinstance(state, str) and state:
            state = State(state)
        elif not isinstance(state, State):
            raise InvalidStateArgumentError("State must be a state name or a State")

        if state.name in self._states:
            raise StateAlreadyExistsError(f"{state.name} already exists in FSM {self._label}")

        self._states[state.name] = state
        logger.debug(f"[SM:{self._label}] added state {state.name} ({state.type.name})")
        return self

    def add_states(self, states: Iterable[StateArg]) -> "FSM":
        """Add several states. Stops at the first failure, keeping earlier adds."""
        if isinstance(states, (str, State)):
            raise InvalidStateArgumentError("add_states expects an iterable of state names or States")
        for state in states:
            self.add_state(state)
        return self

    def add_final_state(self, name: str) -> "FSM":
        return self.add_state(final_state(name))

    def remove_state(self, name: str) -> "FSM":
        if name not in self._states:
            raise StateNotFoundError(f"State {name} is missing, can't delete it")
        del self._states[name]
        logger.debug(f"[SM:{self._label}] removed state {name}")
        return self

    def get_state(self, name: str) -> State:
        if name not in self._states:
            raise StateNotFoundError(f"{name} not found")
        return self._states[name]

    def has_state(self, name: str) -> bool:
        return name in self._states

    def get_states(self) -> Dict[str, State]:
        """Get a copy of the name -> State map"""
        return dict(self._states)

    def get_number_of_final_states(self) -> int:
        return sum(1 for s in self._states.values() if s.type is StateType.FINAL)

    # Transition authoring

    def add_transition(self,
                       state_name: str,
                       event_name: str,
                       next_state_name: str,
                       action: Optional[Action] = None) -> "FSM":
        """
        Bind ``state_name`` to ``next_state_name`` through ``event_name``.

        Missing source and target states are created as normal states. States
        created before a failing step are kept.

        Raises:
            DuplicateEventError: the source state already has ``event_name``
            FinalStateImmutableError: the source state is final
            NotCallableError: ``action`` is set but not callable
        """
        if not self.has_state(state_name):
            self.add_state(state_name)
        state = self.get_state(state_name)

        if state.has_event(event_name):
            raise DuplicateEventError(
                f"The state {state_name} has already registered event {event_name}"
            )

        event = Event(event_name)
        state.add_event(event)

        if not self.has_state(next_state_name):
            self.add_state(next_state_name)

        event.set_next_state(next_state_name)
        event.set_action(action)

        logger.debug(f"[SM:{self._label}] added transition: {state_name} -> {next_state_name} on {event_name}")
        return self

    # Initialization protocol

    def is_initialized(self) -> bool:
        return self._initialized

    def set_initialize_function(self, function: InitializeFunction) -> "FSM":
        """
        Replace the default bootstrap.

        Ignored once the machine is initialized; call reset() first.

        Raises:
            NotCallableError: ``function`` is not callable
        """
        if not callable(function):
            raise NotCallableError("The initialize function is not callable.")

        if self._initialized:
            logger.warning(f"[SM:{self._label}] already initialized, initialize function ignored until reset()")
            return self

        self._initialize_function = function
        return self

    def get_initialize_function(self) -> Optional[InitializeFunction]:
        return self._initialize_function

    def initialize(self) -> "FSM":
        """
        Run the initialize function once and check the starting state.

        Raises:
            InvalidInitialStateError: the current state is not an initial state
        """
        if self._initialized:
            return self

        if self._initialize_function is None:
            self._initialize_function = default_initialize

        self._initialize_function(self)

        current = self._current_state
        if current is not None and current.type is not StateType.INITIAL:
            raise InvalidInitialStateError(
                f"First state is expected to be of type {StateType.INITIAL.value}, "
                f"{current} is {current.type.value}"
            )

        self._initialized = True
        logger.info(f"[SM:{self._label}] INIT: state={current}")
        return self

    def set_current_state(self, state: StateArg) -> "FSM":
        """
        Set the current state by name or State.

        Raises:
            StateNotFoundError: no state has that name
            InvalidStateArgumentError: ``state`` is neither a name nor a State
        """
        if isinstance(state, str):
            state = self.get_state(state)
        elif not isinstance(state, State):
            raise InvalidStateArgumentError("A valid state is expected")

        self._current_state = state
        return self

    def get_current_state(self) -> Optional[State]:
        return self._current_state

    def get_previous_state(self) -> Optional[State]:
        return self._previous_state

    def start(self) -> "FSM":
        """Initialize, then dispatch EVENT_START"""
        self.initialize()
        return self.process_event(EVENT_START)

    def reset(self) -> "FSM":
        """Return the machine to its freshly constructed condition, name aside"""
        self._states = {}
        self._current_state = None
        self._previous_state = None
        self._payload = PayloadRef()
        self._initialize_function = None
        self._initialized = False
        self._history = []
        logger.info(f"[SM:{self._label}] RESET")
        return self

    # Payload

    def set_payload(self, payload: Any) -> "FSM":
        """
        Share ``payload`` with the machine and its actions.

        A PayloadRef is kept as is so the caller holds an alias of the box;
        any other value is wrapped in a new box.
        """
        if isinstance(payload, PayloadRef):
            self._payload = payload
        else:
            self._payload = PayloadRef(payload)
        return self

    def get_payload(self) -> Any:
        return self._payload.value

    def get_payload_ref(self) -> PayloadRef:
        return self._payload

    def clear_payload(self) -> "FSM":
        """Detach the payload box. Aliases held by callers are left untouched."""
        self._payload = PayloadRef()
        return self

    # Event dispatch

    def has_event(self, event_name: str) -> bool:
        """Whether the current state has an event named ``event_name``"""
        if self._current_state is None:
            return False
        return self._current_state.has_event(event_name)

    def is_finished(self) -> bool:
        return (self._initialized
                and self._current_state is not None
                and self._current_state.type is StateType.FINAL)

    def process_event(self, event_name: str) -> "FSM":
        """
        Fire ``event_name`` from the current state.

        The machine moves to the event's target state, then the event action
        runs with the machine and the shared payload. Actions may dispatch
        further events.

        Raises:
            NotInitializedError: initialize() has not run
            AlreadyFinishedError: the current state is final
            EventNotFoundError: the current state has no such event
            StateNotFoundError: the event's target state does not exist
        """
        if not self._initialized:
            self._reject(event_name, "not_initialized",
                         NotInitializedError("The FSM has not been initialized"))
        if self.is_finished():
            self._reject(event_name, "finished",
                         AlreadyFinishedError(f"The FSM is in final state {self._current_state}"))
        if not self.has_event(event_name):
            self._reject(event_name, "no_transition",
                         EventNotFoundError(f"Cant process event {event_name} on {self._current_state}"))

        transition_start = time.perf_counter()
        event = self._current_state.get_event(event_name)
        old_state = self._current_state

        try:
            self._transition(event)
        except StateNotFoundError as e:
            logger.warning(f"[SM:{self._label}] {e}")
            self._record_error(e)
            raise

        logger.info(f"[SM:{self._label}] TRANSITION: {old_state} -> {self._current_state} | trigger={event_name}")
        self._record_transition(old_state, self._current_state, event, time.perf_counter() - transition_start)

        try:
            event.invoke_action(self)
        except Exception as e:
            logger.error(f"[SM:{self._label}] action of event {event_name} failed: {e}")
            self._record_error(e)
            raise

        return self

    def _transition(self, event: Event) -> None:
        """Move to the event's target state. The target is resolved first."""
        next_state_name = event.get_next_state()
        if next_state_name is None:
            raise StateNotFoundError(
                f"Event {event.name} on {self._current_state} has no target state"
            )

        next_state = self.get_state(next_state_name)
        self._previous_state = self._current_state
        self._current_state = next_state

    def _reject(self, event_name: str, reason: str, error: Exception) -> NoReturn:
        logger.warning(
            f"[SM:{self._label}] REJECTED: trigger='{event_name}' "
            f"state={self._current_state} reason={reason}"
        )
        self._record_error(error)
        raise error

    def _record_error(self, error: Exception) -> None:
        if self.settings.metrics_enabled:
            metrics.record_error(self._label, error)

    def _record_transition(self, from_state: State, to_state: State, event: Event, latency: float) -> None:
        """Record transition in metrics and history"""
        if self.settings.metrics_enabled:
            metrics.record_transition(self._label, from_state.name, to_state.name, event.name, latency)

        if self.settings.history_size == 0:
            return

        transition_record = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'from': from_state.name,
            'to': to_state.name,
            'event': event.name,
            'latency_ms': latency * 1000,
        }
        if self.settings.dev_mode:
            transition_record['payload'] = repr(self._payload.value)

        self._history.append(transition_record)
        if len(self._history) > self.settings.history_size:
            self._history.pop(0)

    # Introspection

    def get_history(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get state transition history, oldest first"""
        if limit <= 0:
            return []
        return self._history[-limit:]

    def get_available_events(self) -> List[str]:
        """Get event names available from the current state"""
        if self._current_state is None:
            return []
        return sorted(e.name for e in self._current_state)

    def visualize(self) -> str:
        """Generate state diagram in PlantUML format"""
        lines = ["@startuml", f"title {self._label} State Machine", ""]

        # Add states
        for state in self._states.values():
            if state is self._current_state:
                lines.append(f"state {state.name} #yellow : Current State")
            else:
                lines.append(f"state {state.name}")

        lines.append("")

        for state in self._states.values():
            if state.type is StateType.INITIAL:
                lines.append(f"[*] --> {state.name}")

        # Add transitions
        for state in self._states.values():
            for event in state:
                target = event.get_next_state()
                if target is not None:
                    lines.append(f"{state.name} --> {target} : {event.name}")

        for state in self._states.values():
            if state.type is StateType.FINAL:
                lines.append(f"{state.name} --> [*]")

        lines.append("@enduml")
        return "\n".join(lines)

    # Collection access

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[State]:
        return iter(list(self._states.values()))

    def __contains__(self, item) -> bool:
        if isinstance(item, State):
            return self._states.get(item.name) is item
        return item in self._states

    def __getitem__(self, name: str) -> State:
        return self.get_state(name)

    def __setitem__(self, name: str, state: StateArg) -> None:
        state_name = state.name if isinstance(state, State) else state
        if state_name != name:
            raise InvalidStateArgumentError(f"Key {name} does not match state name {state_name}")
        self.add_state(state)

    def __delitem__(self, name: str) -> None:
        self.remove_state(name)

    def __repr__(self):
        return f"FSM({self.name!r}, states={len(self._states)}, current={self._current_state})"
