"""Error taxonomy shared by the ledger, the sync bridge and the API layer.

Error code ranges:
  1xxx: Request validation / identity
  2xxx: Bid lifecycle
  9xxx: Store / infrastructure
"""

from __future__ import annotations


class BarterError(Exception):
    """Base application error."""

    def __init__(self, code: int, message: str, http_status: int = 500) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


class ValidationError(BarterError):
    """Malformed or incomplete request; correctable by the user."""

    def __init__(self, message: str) -> None:
        super().__init__(1001, message, 422)


class AuthError(BarterError):
    def __init__(self, message: str = "No authenticated user") -> None:
        super().__init__(1002, message, 401)


class UnauthorizedError(BarterError):
    def __init__(self, message: str = "Not allowed to perform this action") -> None:
        super().__init__(1003, message, 403)


class NotFoundError(BarterError):
    def __init__(self, kind: str, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(2001, f"{kind} not found: {entity_id}", 404)


class StateConflictError(BarterError):
    """The bid was already handled by someone else."""

    def __init__(self, bid_id: str, status: str | None = None) -> None:
        self.bid_id = bid_id
        self.status = status
        detail = f" (status={status})" if status else ""
        super().__init__(2002, f"Bid {bid_id} was already handled{detail}", 409)


class TransientNetworkError(BarterError):
    def __init__(self, message: str = "Document store unreachable") -> None:
        super().__init__(9001, message, 503)


class PartialConsistencyError(BarterError):
    """The bidder and owner indices disagree about a bid.

    Never surfaced to callers; logged and repaired by readers.
    """

    def __init__(self, bid_id: str, detail: str) -> None:
        self.bid_id = bid_id
        super().__init__(9002, f"Bid {bid_id} indices diverged: {detail}", 500)


class DecodeWarning(UserWarning):
    """Category used when a remote document is dropped during decoding."""
