from __future__ import annotations


class GroupOrderError(Exception):
    """Base class for failures the bot reports back to the participant."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputValidationError(GroupOrderError):
    """Raised when user input does not match what the current step expects."""


class PriceFormatError(InputValidationError):
    """Raised for non-numeric, negative or over-precise prices."""


class OrderLineFormatError(InputValidationError):
    """Raised when an order submission does not follow ``index:quantity``."""


class TokenError(InputValidationError):
    """Raised when a callback payload is not a known command."""


class AccessDeniedError(GroupOrderError):
    """Raised when the caller's role or ownership does not allow the action."""


class NotFoundError(GroupOrderError):
    """Raised when a referenced record does not exist."""


class RestaurantNotFoundError(NotFoundError):
    """Raised when a restaurant identifier is unknown."""


class GroupOrderNotFoundError(NotFoundError):
    """Raised when a group order cannot be located."""


class GroupOrderUnavailableError(NotFoundError):
    """Raised when a group order does not exist or no longer accepts lines."""
