"""Error taxonomy for provider calls and pipeline stages."""


class ProviderError(Exception):
    """Base class for failures raised at the model provider boundary."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class TransientProviderError(ProviderError):
    """Network, timeout, overload or rate-limit failure. Retryable."""


class QuotaExceededError(ProviderError):
    """Provider is out of quota for today. Not retryable on the same provider."""


class MalformedOutputError(Exception):
    """Response text could not be parsed as structured data."""


class SchemaValidationError(Exception):
    """Parsed data does not satisfy the expected shape."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


class RetryExhaustedError(ProviderError):
    """Every attempt on every configured provider failed."""

    def __init__(self, attempts: int, last_error: BaseException | None, provider: str | None = None):
        super().__init__(
            f"Gave up after {attempts} attempts: {last_error!s}", provider=provider
        )
        self.attempts = attempts
        self.last_error = last_error


class TerminalStageError(Exception):
    """A pipeline stage ran out of attempts and repair strategies."""

    def __init__(
        self,
        stage: str,
        attempts: int,
        last_error: str | None,
        raw_response: str | None = None,
    ):
        super().__init__(f"Stage '{stage}' failed after {attempts} attempts: {last_error}")
        self.stage = stage
        self.attempts = attempts
        self.last_error = last_error
        self.raw_response = raw_response


class InvalidRequestError(ValueError):
    """Request carries no analyzable content."""
