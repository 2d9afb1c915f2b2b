class DomainError(Exception):
    """Base class for ledger domain failures."""


class InvalidCurrency(DomainError):
    def __init__(self, currency: str):
        super().__init__(f"Unsupported currency: {currency}")
        self.currency = currency


class InvalidRates(DomainError):
    pass


class ConfigurationMissing(DomainError):
    """Remote backend is not configured or cannot be opened."""


class AuthFailure(DomainError):
    pass


class RemoteWriteFailure(DomainError):
    def __init__(self, message: str, *, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class PartialImportFailure(RemoteWriteFailure):
    def __init__(self, imported: int, total: int, cause: Exception | None = None):
        message = f"Backup import interrupted: imported {imported} of {total} transactions"
        if cause is not None:
            message = f"{message} ({cause})"
        super().__init__(message, retryable=False)
        self.imported = imported
        self.total = total


class InvalidBackup(DomainError):
    pass


class SessionStateError(DomainError):
    pass


class SessionNotReady(DomainError):
    pass
