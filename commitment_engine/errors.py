"""Error taxonomy for commit, validation and lookup failures."""

from __future__ import annotations


class CommitmentError(Exception):
    """Base class for all engine errors."""


class FinalizedCommitError(CommitmentError):
    """Raised on any attempt to modify a finalized day."""

    def __init__(self, date: str, action: str = "modify"):
        self.date = date
        self.action = action
        super().__init__(f"cannot {action} a finalized commit ({date})")


class InvalidTimeError(CommitmentError, ValueError):
    """Malformed or out-of-range "HH:MM" value."""


class InvalidBlockError(CommitmentError, ValueError):
    """Block rejected before it reaches the store."""


class UnknownCommitError(CommitmentError, LookupError):
    """No commit exists for the requested date."""


class UnknownBlockError(CommitmentError, LookupError):
    """No block with the requested id in the commit."""
