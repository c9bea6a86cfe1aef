from __future__ import annotations


class AnchoringError(Exception):
    """Base class for errors raised by the anchoring engine."""


class UnresolvableSelectionError(AnchoringError):
    """A selection could not be turned into finite offsets with end > start."""


class WrapError(AnchoringError):
    """A segment could not be wrapped in a marker element."""


class PersistenceError(AnchoringError):
    """The persistence collaborator failed to create, update or delete a record."""


class AnchoringInvariantError(AnchoringError):
    """The content tree violated a traversal invariant."""
