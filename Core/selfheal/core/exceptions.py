class HealingError(RuntimeError):
    """Base class for self-healing failures."""


class InvalidExpressionError(HealingError):
    """Raised when a selector cannot be executed against the document."""


class ServiceUnavailableError(HealingError):
    """Raised when a synonym or locator suggestion service cannot be reached."""


class SelectorValidationError(HealingError):
    """Raised when a suggestion service returns an unusable payload."""


class ResolutionExhaustedError(HealingError):
    """Raised when no resolution tier produced a unique live match."""

    def __init__(self, reference: str) -> None:
        super().__init__(f"[SELF-HEALING] Could not find locator: {reference}")
        self.reference = reference
