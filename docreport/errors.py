"""
Application errors.

ExternalServiceError is raised when the embedding or generation service
fails. It is not retried; the whole query is aborted.
"""


class ExternalServiceError(Exception):
    """Raised when a call to watsonx.ai (embedding, generation) fails."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")
