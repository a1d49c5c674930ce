"""Tripline exception hierarchy.

All Tripline-specific exceptions inherit from TriplineError.

Only structural problems are exceptions: unparsable lines, unknown
identifiers, options that cannot be bound. Filtering, cooldowns and
failed requirements are reported as Result values instead.
"""


class TriplineError(Exception):
    """Base exception for all Tripline errors."""


class ParseError(TriplineError):
    """Raised when a script line cannot be turned into a directive."""

    def __init__(self, message: str, source_index: int | None = None) -> None:
        self.message = message
        self.source_index = source_index
        super().__init__(message)


class BindError(TriplineError):
    """Raised when option text cannot be bound onto a config model.

    Named BindError (not ValidationError) to avoid collision with
    pydantic.ValidationError, which is usually its cause.
    """


class CompileError(TriplineError):
    """Raised when a directive stream cannot be compiled into a forest.

    Carries the 1-based position of the offending line so authors can
    find the mistake in their script. The message already names it,
    e.g. ``No action with identifier "foo" found on line 3/5``.
    """

    def __init__(self, message: str, source_index: int) -> None:
        self.message = message
        self.source_index = source_index
        super().__init__(message)


class FactoryNotFoundError(TriplineError):
    """Raised when no factory is registered for an identifier."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f'No {kind} with identifier "{identifier}" found')


class DuplicateFactoryError(TriplineError):
    """Raised when a factory identifier is registered twice for one kind."""

    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(
            f"{kind.capitalize()} '{identifier}' is already registered. "
            f"Unregister it first to re-register."
        )


class ResultAlreadyCompletedError(TriplineError):
    """Raised when a FutureResult is completed a second time."""


class SchemaVersionError(TriplineError):
    """Raised when a bookkeeping database was written by a newer Tripline."""

    def __init__(self, found: int, supported: int) -> None:
        self.found = found
        self.supported = supported
        super().__init__(
            f"Execution database has schema version {found}, "
            f"this Tripline supports up to {supported}"
        )
