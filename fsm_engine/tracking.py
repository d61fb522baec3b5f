"""
State tracking from the engine's structured log lines.

Expected log formats:
- [SM:Name] INIT: state=StateName
- [SM:Name] TRANSITION: StateA -> StateB | trigger=event
- [SM:Name] REJECTED: trigger='event' state=StateA reason=no_transition
- [SM:Name] RESET
"""

import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple


class RecordType(Enum):
    """Types of machine lifecycle lines"""
    INIT = "INIT"
    TRANSITION = "TRANSITION"
    REJECTED = "REJECTED"
    RESET = "RESET"


@dataclass
class TransitionRecord:
    """Parsed lifecycle line"""
    timestamp: datetime
    state_machine: str
    record_type: RecordType
    from_state: Optional[str] = None
    to_state: Optional[str] = None
    current_state: Optional[str] = None
    trigger: Optional[str] = None
    reason: Optional[str] = None
    raw_log: str = ""


class StateTracker:
    """Tracks the current state of every machine seen in the logs"""

    PATTERNS = {
        'init': re.compile(r'^\[SM:(.+?)\] INIT: state=(.*)$'),
        'transition': re.compile(r'^\[SM:(.+?)\] TRANSITION: (.+?) -> (.+?) \| trigger=(.*)$'),
        'rejected': re.compile(r"^\[SM:(.+?)\] REJECTED: trigger='(.*)' state=(.*) reason=(\w+)$"),
        'reset': re.compile(r'^\[SM:(.+?)\] RESET$'),
    }

    def __init__(self):
        self._lock = threading.Lock()
        self._current_states: Dict[str, Optional[str]] = {}  # machine_name -> current_state
        self._transitions: List[TransitionRecord] = []
        self._rejected: List[TransitionRecord] = []

    def process_log_line(self, line: str, timestamp: Optional[datetime] = None) -> Optional[TransitionRecord]:
        """
        Process a single log line.
        Returns the parsed record if it's a machine lifecycle line, None otherwise.
        """
        if timestamp is None:
            timestamp = datetime.now()

        line = line.strip()
        for pattern_type, pattern in self.PATTERNS.items():
            match = pattern.match(line)
            if match:
                record = self._parse(pattern_type, match, timestamp, line)
                self._update_state(record)
                return record

        return None

    def _parse(self, pattern_type: str, match: re.Match,
               timestamp: datetime, raw_log: str) -> TransitionRecord:
        if pattern_type == 'init':
            sm_name, state = match.groups()
            return TransitionRecord(
                timestamp=timestamp,
                state_machine=sm_name,
                record_type=RecordType.INIT,
                current_state=None if state == 'None' else state,
                raw_log=raw_log
            )

        elif pattern_type == 'transition':
            sm_name, from_state, to_state, trigger = match.groups()
            return TransitionRecord(
                timestamp=timestamp,
                state_machine=sm_name,
                record_type=RecordType.TRANSITION,
                from_state=from_state,
                to_state=to_state,
                trigger=trigger,
                raw_log=raw_log
            )

        elif pattern_type == 'rejected':
            sm_name, trigger, state, reason = match.groups()
            return TransitionRecord(
                timestamp=timestamp,
                state_machine=sm_name,
                record_type=RecordType.REJECTED,
                current_state=None if state == 'None' else state,
                trigger=trigger,
                reason=reason,
                raw_log=raw_log
            )

        (sm_name,) = match.groups()
        return TransitionRecord(
            timestamp=timestamp,
            state_machine=sm_name,
            record_type=RecordType.RESET,
            raw_log=raw_log
        )

    def _update_state(self, record: TransitionRecord):
        with self._lock:
            if record.record_type == RecordType.INIT:
                self._current_states[record.state_machine] = record.current_state

            elif record.record_type == RecordType.TRANSITION:
                self._current_states[record.state_machine] = record.to_state
                self._transitions.append(record)

            elif record.record_type == RecordType.REJECTED:
                self._rejected.append(record)

            elif record.record_type == RecordType.RESET:
                self._current_states.pop(record.state_machine, None)

    def get_current_state(self, state_machine: str) -> Optional[str]:
        """Get current state of a state machine"""
        with self._lock:
            return self._current_states.get(state_machine)

    def get_all_states(self) -> Dict[str, Optional[str]]:
        with self._lock:
            return self._current_states.copy()

    def get_transitions(self, state_machine: Optional[str] = None) -> List[TransitionRecord]:
        """Get transition history, optionally filtered by state machine"""
        with self._lock:
            if state_machine:
                return [t for t in self._transitions if t.state_machine == state_machine]
            return self._transitions.copy()

    def get_rejected(self, state_machine: Optional[str] = None) -> List[TransitionRecord]:
        """Get rejected dispatch attempts"""
        with self._lock:
            if state_machine:
                return [r for r in self._rejected if r.state_machine == state_machine]
            return self._rejected.copy()

    def verify_transition_sequence(self, state_machine: str,
                                   expected_sequence: List[Tuple[str, str]]) -> bool:
        """
        Verify that a state machine went through expected transition sequence.
        expected_sequence: List of (from_state, to_state) tuples
        """
        if not expected_sequence:
            return True

        transitions = self.get_transitions(state_machine)

        if len(transitions) < len(expected_sequence):
            return False

        actual_sequence = [(t.from_state, t.to_state) for t in transitions[-len(expected_sequence):]]
        return actual_sequence == expected_sequence

    def clear(self):
        with self._lock:
            self._current_states.clear()
            self._transitions.clear()
            self._rejected.clear()


class TrackingHandler(logging.Handler):
    """Logging handler that feeds engine log records into a StateTracker"""

    def __init__(self, tracker: Optional[StateTracker] = None, level=logging.INFO):
        super().__init__(level)
        self.tracker = tracker or StateTracker()
        self._saved_level: Optional[int] = None

    def emit(self, record):
        try:
            self.tracker.process_log_line(
                record.getMessage(),
                datetime.fromtimestamp(record.created)
            )
        except Exception:
            self.handleError(record)

    def attach(self, logger_name: str = 'fsm_engine') -> "TrackingHandler":
        """Attach to the engine logger, lowering its level if needed"""
        logger = logging.getLogger(logger_name)
        self._saved_level = logger.level
        if logger.getEffectiveLevel() > self.level:
            logger.setLevel(self.level)
        logger.addHandler(self)
        return self

    def detach(self, logger_name: str = 'fsm_engine'):
        """Remove the handler and restore the level seen by attach()"""
        logger = logging.getLogger(logger_name)
        logger.removeHandler(self)
        if self._saved_level is not None:
            logger.setLevel(self._saved_level)
            self._saved_level = None
