"""
Exception types for deflicker.

Every fatal condition of a run maps to one subclass of DeflickerError; the
CLI catches the base class, prints the message and exits non-zero.
"""


class DeflickerError(Exception):
    """Base class for all fatal deflicker conditions."""


class ConfigError(DeflickerError):
    """Invalid option value, unreadable input source or config file."""


class InputError(DeflickerError):
    """Not enough usable frames, or a listed frame does not exist."""


class WorkerError(DeflickerError):
    """A parallel worker terminated without returning its batch."""


class ZeroLuminanceError(DeflickerError):
    """A frame's original luminance is zero, so its brightness ratio is undefined."""


class OutputError(DeflickerError):
    """The output directory or an output file could not be written."""
