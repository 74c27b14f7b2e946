"""
Service layer exceptions.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class RequestTimeoutError(ServiceError):
    """Request timed out."""

    def __init__(self, service_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to service '{service_id}' timed out after {timeout}s",
            service_id=service_id,
        )


class WorkerError(ServiceError):
    """Base exception for analysis worker failures."""

    def __init__(self, message: str):
        super().__init__(message, service_id="analysis-worker")


class WorkerNotReadyError(WorkerError):
    """Worker did not complete the readiness handshake in time."""

    pass


class WorkerTimeoutError(WorkerError):
    """A single offloaded request exceeded its deadline."""

    def __init__(self, request_type: str, timeout: float):
        self.request_type = request_type
        self.timeout = timeout
        super().__init__(f"{request_type} request timed out after {timeout}s")


class WorkerCrashedError(WorkerError):
    """Worker process failed; every pending request is rejected."""

    pass


class WorkerResetError(WorkerError):
    """Pending request dropped because the worker was reset."""

    pass


class WorkerTerminatedError(WorkerError):
    """Pending request dropped because the worker was terminated."""

    pass
