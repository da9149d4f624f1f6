"""Exception types raised by the normalizer, the wizard and the generation client.

Services map them onto HTTP responses:

- ``WizardError`` subclasses are rule violations the user can correct (409).
- ``MalformedGenerationResultError`` is a ``ValueError``: the generator sent
  something that is neither known result shape (422).
- ``GenerationError`` subclasses come from the external generation service (502).
"""

from __future__ import annotations

from typing import Sequence


class WizardError(Exception):
    """Base class for recoverable wizard rule violations."""


class IllegalTransitionError(WizardError):
    def __init__(self, source: str, target: str, reason: str | None = None) -> None:
        self.source = source
        self.target = target
        message = f"Cannot move from stage '{source}' to '{target}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class StagePrerequisiteError(WizardError):
    def __init__(self, target: str, missing: Sequence[str]) -> None:
        self.target = target
        self.missing = list(missing)
        super().__init__(f"Stage '{target}' requires: {', '.join(self.missing)}")


class NoHistoryError(WizardError):
    """Back navigation requested with an empty stage history."""


class RedesignLimitExceededError(WizardError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Redesign limit of {limit} reached")


class PackageLimitError(WizardError):
    """The selected package does not allow the requested number of pages."""


class RedoTargetError(WizardError):
    """A redo request names pages the current website does not have."""


class SessionNotFoundError(KeyError):
    """The session was deleted or never existed."""


class MalformedGenerationResultError(ValueError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class EmptyManifestError(MalformedGenerationResultError):
    def __init__(self) -> None:
        super().__init__("Multi-page manifest lists no pages")


class GenerationError(Exception):
    """The external generation service failed or returned an error event."""


class GenerationIncompleteError(GenerationError):
    """The progress stream ended before a complete event arrived."""


class GenerationCancelledError(GenerationError):
    """The in-flight generation was cancelled by the caller."""


__all__ = [
    "EmptyManifestError",
    "GenerationCancelledError",
    "GenerationError",
    "GenerationIncompleteError",
    "IllegalTransitionError",
    "MalformedGenerationResultError",
    "NoHistoryError",
    "PackageLimitError",
    "RedesignLimitExceededError",
    "RedoTargetError",
    "SessionNotFoundError",
    "StagePrerequisiteError",
    "WizardError",
]
