class WalletServiceError(Exception):
    pass


class InvalidInputError(WalletServiceError):
    pass


class NotFoundError(WalletServiceError):
    pass


class UserNotFoundError(NotFoundError):
    pass


class TransactionNotFoundError(NotFoundError):
    pass


class PaymentMethodNotFoundError(NotFoundError):
    pass


class UserAlreadyExistsError(WalletServiceError):
    pass


class PriceNotConfiguredError(WalletServiceError):
    pass


class InvalidStateTransitionError(WalletServiceError):
    pass


class InsufficientBalanceError(WalletServiceError):
    def __init__(self, message: str, available=None, requested=None):
        super().__init__(message)
        self.available = available
        self.requested = requested


class ConcurrencyConflictError(WalletServiceError):
    """Raised when a concurrent write got there first; the caller should retry."""


class PermissionDeniedError(WalletServiceError):
    pass
