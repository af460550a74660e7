"""
Domain errors raised by the inventory services.

Each error carries a short user-facing message; anything more detailed is
logged where the error is raised and never sent to the caller.
"""


class InventoryError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(InventoryError):
    """Missing or malformed field, zero/non-numeric quantity, unknown type."""


class ReferentialError(InventoryError):
    """The referenced subject (ingredient, product variant) does not exist."""


class ImmutableFieldError(InventoryError):
    """Attempt to change quantity, type or subject of a ledger record."""


class NotFoundError(InventoryError):
    status_code = 404


class TransactionFailure(InventoryError):
    """A multi-step write failed in storage and was rolled back."""

    status_code = 500

    def __init__(self, message: str = "The operation could not be completed, please retry"):
        super().__init__(message)
