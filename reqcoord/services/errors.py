"""
Request coordination exceptions.
"""


class ServiceError(Exception):
    """Base exception for request coordination errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class CircuitOpenError(ServiceError):
    """Circuit breaker is open for an endpoint group, request was never attempted."""

    def __init__(self, endpoint_group: str, reset_after_seconds: float):
        self.endpoint_group = endpoint_group
        self.reset_after_seconds = reset_after_seconds
        super().__init__(
            f"Circuit breaker open for '{endpoint_group}', "
            f"retry after {reset_after_seconds:.1f}s",
            service_id=endpoint_group,
        )


class RequestTimeoutError(ServiceError):
    """Request timed out."""

    def __init__(self, service_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to '{service_id}' timed out after {timeout}s",
            service_id=service_id,
        )
