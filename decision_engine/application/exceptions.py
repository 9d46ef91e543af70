"""Application-layer exceptions. Do not reuse domain exceptions."""


class ApplicationError(Exception):
    """Base for all application-layer errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AdvisoryUnavailableError(ApplicationError):
    """Raised by advisory adapters when the scoring service cannot answer."""


class CircuitOpenError(ApplicationError):
    """Raised by CircuitBreaker.call while the circuit is open. The call is not attempted."""
