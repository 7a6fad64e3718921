"""Exception types shared by the loaders, validator, and submission parser."""

from __future__ import annotations


class GoalWizardError(Exception):
    """Base class for goal wizard failures."""


class DataShapeError(GoalWizardError):
    """Raised when a data file does not have the expected header or layout."""


class DataSourceError(GoalWizardError):
    """Raised when no configured source for a data file could be read."""


class RowDecodeError(GoalWizardError):
    """Raised when one CSV row fails typed decoding."""

    def __init__(self, messages: list[str]):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class SubmissionParseError(GoalWizardError):
    """Raised when a pasted submission block cannot be recovered."""
