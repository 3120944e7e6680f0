# Overview: Domain error taxonomy raised by the stock services and rendered by the routes.

"""
Stockroom domain errors.

Every error a caller can act on derives from StockroomError and carries the
HTTP status the API layer answers with. Anything that is not a StockroomError
(storage unavailable, programming errors) is an internal failure and is
reported as a generic 500 by the routes.
"""


class StockroomError(Exception):
    """Base class for business rule failures."""

    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(StockroomError):
    """Transaction (or other record) does not exist."""

    status_code = 404


class ItemNotFoundError(NotFoundError):
    """An item referenced by a transaction line does not exist."""


class InvalidStateError(StockroomError):
    """Transition not permitted from the current status."""

    status_code = 409


class InvalidInputError(StockroomError):
    """Missing or empty lines, non-positive quantity, missing header field."""

    status_code = 400


class InsufficientStockError(StockroomError):
    """Demand on an item exceeds its current stock."""

    status_code = 409


class NoApprovableItemsError(StockroomError):
    """Every line of the transaction was rejected during approval."""

    status_code = 422


class ConflictError(StockroomError):
    """A generated identifier could not be made unique."""

    status_code = 409
