"""Domain exceptions raised by repositories and services."""


class DomainError(Exception):
    """Base exception for budget engine operations."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Invalid input: amount, category, period type, status..."""
    status_code = 400


class NotFoundError(DomainError):
    """Record does not exist."""
    status_code = 404


class ForbiddenError(DomainError):
    """Record exists but the caller may not touch it."""
    status_code = 403


class OverAllocationError(DomainError):
    """A payment would push a limited category past its allocation."""
    status_code = 409

    def __init__(self, category_id: int, allocation: float, current: float, attempted: float):
        super().__init__(
            f"Payment of {attempted:.2f} would exceed category allocation "
            f"({current:.2f} of {allocation:.2f} already scheduled)"
        )
        self.category_id = category_id
        self.allocation = allocation
        self.current = current
        self.attempted = attempted
