"""
Transition events owned by a state.
"""

import logging
from typing import Any, Callable, Optional, TYPE_CHECKING

from .exceptions import NotCallableError

if TYPE_CHECKING:
    from .core import FSM

logger = logging.getLogger(__name__)

EVENT_START = "EVENT_START"

Action = Callable[..., Any]


class Event:
    """
    A named arc leaving the state that owns it.

    The target is kept as a state name and resolved by the machine at
    dispatch time, so it may name a state that does not exist yet.
    """

    def __init__(self,
                 name: str,
                 next_state: Optional[str] = None,
                 action: Optional[Action] = None):
        self.name = name
        self.next_state = next_state
        self.action: Optional[Action] = None
        self.set_action(action)

    def get_name(self) -> str:
        return self.name

    def get_next_state(self) -> Optional[str]:
        return self.next_state

    def set_next_state(self, state_name: Optional[str]) -> "Event":
        """Set the target state name. Not validated until dispatch."""
        self.next_state = state_name
        return self

    def get_action(self) -> Optional[Action]:
        return self.action

    def set_action(self, action: Optional[Action]) -> "Event":
        """
        Set the action invoked after the transition fires.

        Raises:
            NotCallableError: ``action`` is set but not callable
        """
        if action and not callable(action):
            raise NotCallableError(f"The action of event {self.name} is not callable.")
        self.action = action if callable(action) else None
        return self

    def invoke_action(self, fsm: "FSM") -> Any:
        """
        Call the action with ``(fsm, event, payload_ref)``.

        Returns the action's result, or None when no action is set.
        """
        if self.action is None:
            return None
        logger.debug(f"Invoking action of event {self.name}")
        return self.action(fsm, self, fsm.get_payload_ref())

    def __repr__(self):
        return f"Event({self.name!r}, next_state={self.next_state!r})"
