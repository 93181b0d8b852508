"""Domain-specific exception classes for negotiation handling."""

from dealroom.domain.types import NegotiationStatus


class NegotiationError(Exception):
    """Base class for all domain errors in the negotiation service."""


class NotFoundError(NegotiationError):
    """Raised when a negotiation or one of its parts does not exist."""


class NegotiationNotFoundError(NotFoundError):
    """Raised when no negotiation exists for an id.

    Attributes:
        negotiation_id: The id that was looked up.
    """

    def __init__(self, negotiation_id: str) -> None:
        self.negotiation_id = negotiation_id
        super().__init__(f"Negotiation '{negotiation_id}' not found")


class OfferNotFoundError(NotFoundError):
    """Raised when an offer id is not part of a negotiation.

    Attributes:
        negotiation_id: The negotiation that was searched.
        offer_id: The missing offer id.
    """

    def __init__(self, negotiation_id: str, offer_id: str) -> None:
        self.negotiation_id = negotiation_id
        self.offer_id = offer_id
        super().__init__(f"Offer '{offer_id}' not found in negotiation '{negotiation_id}'")


class PropertyNotFoundError(NotFoundError):
    """Raised when the property catalog has no record of a property.

    Attributes:
        property_id: The missing property id.
    """

    def __init__(self, property_id: str) -> None:
        self.property_id = property_id
        super().__init__(f"Property '{property_id}' not found")


class ForbiddenError(NegotiationError):
    """Raised when an actor lacks the role required for an operation.

    Attributes:
        actor_id: The actor who attempted the operation.
        operation: The operation name.
    """

    def __init__(self, actor_id: str, operation: str, reason: str | None = None) -> None:
        self.actor_id = actor_id
        self.operation = operation
        message = f"Actor '{actor_id}' may not {operation}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DuplicateActiveNegotiationError(NegotiationError):
    """Raised when a buyer already has an open negotiation on a property.

    Attributes:
        property_id: The property being negotiated.
        buyer_id: The buyer who already has an open negotiation.
        existing_id: The id of the open negotiation.
    """

    def __init__(self, property_id: str, buyer_id: str, existing_id: str) -> None:
        self.property_id = property_id
        self.buyer_id = buyer_id
        self.existing_id = existing_id
        super().__init__(
            f"Active negotiation '{existing_id}' already exists for "
            f"property '{property_id}' and buyer '{buyer_id}'"
        )


class InvalidActionError(NegotiationError):
    """Raised when an offer response action is unknown or not applicable.

    Attributes:
        action: The rejected action value.
    """

    def __init__(self, action: str, reason: str | None = None) -> None:
        self.action = action
        message = f"Invalid action '{action}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class NegotiationValidationError(NegotiationError):
    """Raised when an offer or message payload is malformed.

    Attributes:
        errors: Structured error details, one dict per problem.
    """

    def __init__(self, message: str, errors: list[dict[str, object]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class NegotiationClosedError(NegotiationError):
    """Raised when a mutation is attempted on a negotiation in a terminal state.

    Attributes:
        negotiation_id: The closed negotiation.
        status: Its terminal status.
    """

    def __init__(self, negotiation_id: str, status: NegotiationStatus) -> None:
        self.negotiation_id = negotiation_id
        self.status = status
        super().__init__(f"Negotiation '{negotiation_id}' is {status} and can no longer change")


class ConcurrentModificationError(NegotiationError):
    """Raised when a save loses an optimistic version check.

    Attributes:
        negotiation_id: The negotiation that was modified concurrently.
        expected_version: The version the writer started from.
    """

    def __init__(self, negotiation_id: str, expected_version: int) -> None:
        self.negotiation_id = negotiation_id
        self.expected_version = expected_version
        super().__init__(
            f"Negotiation '{negotiation_id}' changed since version {expected_version}"
        )
