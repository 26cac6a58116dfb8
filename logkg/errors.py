"""
Exception types raised by the log knowledge graph builder.
"""


class LogGraphError(Exception):
    """Base class for all logkg errors."""


class UnknownPatternScope(LogGraphError):
    """A registry entry carries a scope the matcher does not understand."""

    def __init__(self, pattern_name: str, scope):
        self.pattern_name = pattern_name
        self.scope = scope
        super().__init__(f"Pattern '{pattern_name}' has unrecognized scope: {scope!r}")


class PatternConfigError(LogGraphError):
    """Pattern configuration could not be read or compiled."""


class StoreIOFailure(LogGraphError):
    """Reading or writing persisted templates failed."""

    def __init__(self, path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Template store I/O failed for {path}: {cause}")
