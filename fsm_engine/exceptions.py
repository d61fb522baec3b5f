"""
Exception hierarchy for the FSM engine.
"""


class FSMError(Exception):
    """Base class for every error raised by the engine"""
    pass


class NotCallableError(FSMError, TypeError):
    """An action or initialize function is set but cannot be called"""
    pass


NotInvocableError = NotCallableError


class StateError(FSMError):
    """Base class for state lookup and registration errors"""
    pass


class StateNotFoundError(StateError, LookupError):
    """A named state does not exist in the machine"""
    pass


class StateAlreadyExistsError(StateError):
    """A state with the same name is already registered"""
    pass


class InvalidStateArgumentError(StateError, TypeError):
    """Argument is neither a state name nor a State"""
    pass


class EventError(FSMError):
    """Base class for event lookup errors"""
    pass


class EventNotFoundError(EventError, LookupError):
    """A named event is not registered on the state"""
    pass


class LogicalError(FSMError):
    """The call violates the machine's lifecycle or graph rules"""
    pass


class DuplicateEventError(LogicalError):
    """The event is already registered on the source state"""
    pass


class FinalStateImmutableError(LogicalError):
    """Final states cannot hold outgoing events"""
    pass


class NotInitializedError(LogicalError):
    """Dispatch attempted before initialize()"""
    pass


class AlreadyFinishedError(LogicalError):
    """Dispatch attempted after reaching a final state"""
    pass


class InvalidInitialStateError(LogicalError):
    """The initialize function left a non-initial current state"""
    pass
