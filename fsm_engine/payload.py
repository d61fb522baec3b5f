"""
Mutable payload box shared between a machine and its transition actions.
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class PayloadRef:
    """
    Holds the machine payload by reference.

    Actions receive the box itself, so rebinding ``ref.value`` inside one
    action is visible to the machine and to every later action.
    """
    value: Any = None

    def get(self) -> Any:
        return self.value

    def set(self, value: Any) -> None:
        self.value = value
