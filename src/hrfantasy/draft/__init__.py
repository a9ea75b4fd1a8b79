"""Team drafting: selection validation and team creation."""

from .builder import (
    TeamLimitExceeded,
    TeamSelection,
    TeamValidationError,
    build_team,
    validate_roster,
    validate_selection,
)

__all__ = [
    "TeamLimitExceeded",
    "TeamSelection",
    "TeamValidationError",
    "build_team",
    "validate_roster",
    "validate_selection",
]
