"""
Error types raised by the conversation core.
"""


class JenesiError(Exception):
    """Base class for all JENESI errors."""


class InvariantViolation(JenesiError):
    """A log or window invariant was broken; this is a logic defect, never an external fault."""


class PersistenceError(JenesiError):
    """The conversation store could not read or write its payload."""


class SpeechError(JenesiError):
    """The speech backend produced no usable audio."""
