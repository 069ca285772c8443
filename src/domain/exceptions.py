class BackOfficeError(Exception):
    """
    Base exception for all domain-level errors
    inside the back office.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthorizationError(BackOfficeError):
    """
    Raised when the caller lacks the permission or role an action requires.
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        required_permission: str = "",
        required_role: str = "",
        status_code: int = 403,
    ):
        self.required_permission = required_permission
        self.required_role = required_role
        self.status_code = status_code
        super().__init__(message)


class InputValidationError(BackOfficeError):
    """
    Raised when submitted input fails shape or constraint checks.

    `errors` maps a field name to the list of messages for that field.
    """

    def __init__(
        self,
        errors: dict[str, list[str]],
        message: str = "Validation failed",
        submitted_input: dict | None = None,
    ):
        self.errors = errors
        self.submitted_input = submitted_input or {}
        super().__init__(message)


class BusinessLogicError(BackOfficeError):
    """
    Raised when a domain rule is violated.
    """

    def __init__(
        self,
        message: str = "A business logic error occurred",
        error_code: str = "BUSINESS_LOGIC_ERROR",
        context: dict | None = None,
        status_code: int = 400,
    ):
        self.error_code = error_code
        self.context = context or {}
        self.status_code = status_code
        super().__init__(message)


class InvalidStateTransitionError(BusinessLogicError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(
            message,
            error_code="INVALID_STATUS_TRANSITION",
            context={"from_status": from_state, "to_status": to_state},
        )


class InsufficientCapacityError(BusinessLogicError):
    """Raised when an event has fewer seats left than requested."""

    def __init__(self, available: int, requested: int):
        super().__init__(
            f"Not enough seats available. Only {max(available, 0)} seats remaining.",
            error_code="INSUFFICIENT_CAPACITY",
            context={"available": available, "requested": requested},
        )


class PaymentExceedsBalanceError(BusinessLogicError):
    """Raised when a payment is larger than the booking's remaining balance."""

    def __init__(self, remaining_amount: int, amount: int):
        super().__init__(
            "Payment amount exceeds remaining balance",
            error_code="AMOUNT_EXCEEDS_REMAINING_BALANCE",
            context={"remaining_amount": remaining_amount, "amount": amount},
        )


class ConcurrentModificationError(BusinessLogicError):
    """Raised when a booking's balance changed underneath a payment."""

    def __init__(self, booking_id: str):
        super().__init__(
            "The booking was updated by another request. Please retry.",
            error_code="CONCURRENT_UPDATE",
            context={"booking_id": booking_id},
            status_code=409,
        )


class HttpStatusError(BackOfficeError):
    """
    Transport-level failure carrying an explicit HTTP status code.
    """

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(HttpStatusError):
    """Raised when a resource does not exist or is not available for this purpose."""

    def __init__(self, message: str = "The requested resource was not found."):
        super().__init__(404, message)
