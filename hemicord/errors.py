"""Exception taxonomy for the hemicord pipeline.

Every fatal condition is a ``HemicordError``.  ``profiling.step`` stamps the
stage name onto errors escaping it, so ``pipeline.main`` can report which
stage failed.  ``MissingFileForID`` is the one recoverable error: the atlas
fold catches it, warns, and skips that ID.
"""

from typing import Any, Dict, Optional


class HemicordError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        self.stage = None
        super().__init__(self.message)


class InputNotFound(HemicordError):
    """Raised when a required input (mask, level map, catalog) is missing."""


class EmptyIDSet(HemicordError):
    """Raised when the atlas catalog has no tract IDs for one side."""


class NoFilesFound(HemicordError):
    """Raised when a side has IDs but none of their atlas files exist."""


class MissingFileForID(HemicordError):
    """Raised when a single atlas ID has no backing file (recoverable)."""


class ExternalToolFailure(HemicordError):
    """Raised when an external tool is missing or exits non-zero."""


class MissingLevelColumn(HemicordError):
    """Raised when a metrics table has no recognizable level column."""


class MissingValueColumn(HemicordError):
    """Raised when a metrics table has no usable value column."""
