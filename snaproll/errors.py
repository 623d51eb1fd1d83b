"""Exception type raised by snapshot roll-forward operations."""


class RollForwardError(Exception):
    """Raised when a roll-forward step cannot be completed."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message