"""Exceptions raised by the schema core.

Two families:

- ``NamingConflictError`` and its subclasses describe user mistakes found
  while assigning identifiers.  They never leave the naming resolver: its
  public methods convert them into ``NamingError`` results.
- ``InternalInvariantError`` marks a broken precondition (a table referenced
  but never added, a residual cycle after cycle breaking, a namespace looked
  up before it was registered).  It is never converted into a diagnostic.
"""


class InternalInvariantError(RuntimeError):
    """Raised when the core detects a programming error."""

    pass


class NamingConflictError(Exception):
    """Base class for identifier assignment failures.

    Attributes:
        error_name: The offending identifier.
    """

    def __init__(self, message: str, error_name: str) -> None:
        super().__init__(message)
        self.error_name = error_name


class ReservedKeywordError(NamingConflictError):
    """Raised when an identifier equals a reserved PostgreSQL keyword."""

    pass


class DuplicateEntityCollisionError(NamingConflictError):
    """Raised when two explicitly named entities share an identifier."""

    pass


class NameTooLongError(NamingConflictError):
    """Raised when an identifier exceeds the PostgreSQL length limit."""

    pass
