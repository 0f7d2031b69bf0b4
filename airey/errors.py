"""Error taxonomy for the recommendation bridge.

Faults are exceptions; policy denials and failed vault calls are not (see
``airey.models.SkipReason``). Each exception carries a stable ``code`` so
the HTTP layer and dashboards can tell rejections apart.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all rejected bridge operations."""

    code = "bridge_error"

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, object]:
        return {"error": self.code, "message": self.message, **self.context}


class ConflictError(BridgeError):
    """A Pending request already exists for the vault."""

    code = "conflict"


class UnknownRequestError(BridgeError):
    """The request id does not exist or is no longer Pending."""

    code = "unknown_request"


class ValidationError(BridgeError):
    """A fulfillment payload failed validation; the request was terminated."""

    code = "validation_error"
