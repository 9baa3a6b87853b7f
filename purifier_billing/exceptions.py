"""
Exception Classes - Strongly typed exception hierarchy.

Every exception carries the identifiers it concerns as typed attributes so
callers can render their own messages.
"""

from uuid import UUID


class AccountingError(Exception):
    """Base exception for all subscription accounting errors."""

    pass


class ValidationError(AccountingError):
    """Raised when a required input field is missing or malformed."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"Invalid {field}: {message}")


class NotFoundError(AccountingError):
    """Raised when a referenced record does not exist."""

    pass


class CustomerNotFoundError(NotFoundError):
    """Raised when a customer doesn't exist."""

    def __init__(self, customer_id: str) -> None:
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class PlanNotFoundError(NotFoundError):
    """Raised when a plan doesn't exist."""

    def __init__(self, plan_id: str) -> None:
        self.plan_id = plan_id
        super().__init__(f"Plan not found: {plan_id}")


class ServiceJobNotFoundError(NotFoundError):
    """Raised when a service job doesn't exist."""

    def __init__(self, job_id: UUID) -> None:
        self.job_id = job_id
        super().__init__(f"Service job not found: {job_id}")


class InactiveError(AccountingError):
    """Raised when a referenced record exists but is not active."""

    pass


class PlanInactiveError(InactiveError):
    """Raised when a plan exists but has been deactivated."""

    def __init__(self, plan_id: str) -> None:
        self.plan_id = plan_id
        super().__init__(f"Plan {plan_id} is inactive")


class DuplicateCustomerError(AccountingError):
    """Raised when a generated customer ID is already registered."""

    def __init__(self, customer_id: str) -> None:
        self.customer_id = customer_id
        super().__init__(f"Customer already registered: {customer_id}")


class StorageError(AccountingError):
    """Raised when the database operation fails unexpectedly."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Storage error: {message}")


# Plan lookups fail with either of these; callers treat both as "plan unavailable".
PlanUnavailableError = (PlanNotFoundError, PlanInactiveError)
