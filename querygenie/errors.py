"""
Error taxonomy for the query pipeline.

Only ValidationError and ServiceUnavailableError abort a request with a
non-2xx status. Translation and execution failures are turned into normal
assistant messages, and persistence failures are logged and dropped.
"""


class QueryGenieError(Exception):
    """Base class for all pipeline errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(QueryGenieError):
    """The user question is empty, malformed or too long."""

    status_code = 400


class ServiceUnavailableError(QueryGenieError):
    """No model credential is configured."""

    status_code = 503


class TranslationError(QueryGenieError):
    """The model could not be reached or returned unusable content."""

    status_code = 200


class ExecutionError(QueryGenieError):
    """The generated query could not be parsed or executed."""

    status_code = 200


class UnsafeQueryError(ExecutionError):
    """The generated query matched the destructive-operation denylist."""


class DatabaseUnavailableError(ExecutionError, ConnectionError):
    """No live database handle exists."""


class PersistenceError(QueryGenieError):
    """A best-effort write (schema meta, query log) failed or timed out."""
