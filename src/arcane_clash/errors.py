"""Exception taxonomy shared by the engine and its collaborators."""
from __future__ import annotations


class ArcaneClashError(Exception):
    """Base class for every error raised by the game engine."""


class CatalogError(ArcaneClashError):
    """Card template data is missing or malformed.

    Fatal to game initialisation: the caller should report that the game
    cannot start.
    """


class CombatPreconditionError(ArcaneClashError):
    """The combat resolver was invoked with an ineligible card.

    This is a contract violation by the caller. The resolution is aborted and
    the game state is left untouched.
    """


class ExternalGenerationFailure(ArcaneClashError):
    """Art or description generation failed for a single card."""

    def __init__(self, card_title: str, reason: str) -> None:
        super().__init__(f"Generation failed for {card_title}: {reason}")
        self.card_title = card_title
        self.reason = reason


class IllegalActionError(ArcaneClashError):
    """An intent was rejected because the current phase does not allow it."""


__all__ = [
    "ArcaneClashError",
    "CatalogError",
    "CombatPreconditionError",
    "ExternalGenerationFailure",
    "IllegalActionError",
]
