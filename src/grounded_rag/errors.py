"""Exception types that cross component boundaries.

Only these reach a caller.  Everything else (a failed embedding
batch, an unreachable detail service, malformed model output) is
absorbed by the component that hit it and turned into a fallback value.
"""

from __future__ import annotations


class GroundedRagError(Exception):
    """Base class for errors raised by this package."""


class InvalidRequestError(GroundedRagError, ValueError):
    """Caller supplied missing or malformed input; no work was performed."""


class DocumentNotFoundError(GroundedRagError, LookupError):
    """The requested document does not exist."""


class ConfigurationError(GroundedRagError):
    """A required credential or setting is missing."""


class DocumentStoreError(GroundedRagError):
    """The document backend kept failing after all retries."""
