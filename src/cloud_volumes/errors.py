"""
cloud-volumes error definitions

Standard exceptions raised by the volume lifecycle actions.
"""

from typing import Any, Dict, Optional


class VolumeError(Exception):
    """Base exception for all volume lifecycle errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "UNKNOWN"
        self.details = details or {}
        # Filled by the controller with whatever state was observed before
        # the failure, so the caller can still persist it.
        self.partial_state = None

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


class InvalidRequestError(VolumeError):
    """Invalid request parameters"""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid field '{field}': {reason}",
            error_code="INVALID_REQUEST",
            details={"field": field, "value": value},
        )
        self.field = field
        self.value = value
        self.reason = reason


class NotFoundError(VolumeError):
    """Referenced volume or snapshot does not exist"""

    def __init__(self, resource_type: str, identifier: str):
        super().__init__(
            message=f"No {resource_type} found with ID '{identifier}'",
            error_code="NOT_FOUND",
            details={"resource_type": resource_type, "identifier": identifier},
        )
        self.resource_type = resource_type
        self.identifier = identifier


class UnknownDeviceSchemeError(VolumeError):
    """Device names do not follow a recognised naming scheme"""

    def __init__(self, device: Optional[str]):
        super().__init__(
            message=f"Unknown partition/device name: {device}",
            error_code="UNKNOWN_DEVICE_SCHEME",
        )
        self.device = device


class OperationFailedError(VolumeError):
    """Remote resource reported a failed status"""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            message=f"{operation} failed: {reason}",
            error_code="OPERATION_FAILED",
        )
        self.operation = operation
        self.reason = reason


class DeadlineExceededError(VolumeError):
    """Remote resource did not reach the expected state in time"""

    def __init__(self, operation: str, timeout_sec: float, reason: Optional[str] = None):
        message = f"{operation} did not complete within {timeout_sec:g}s"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message=message, error_code="DEADLINE_EXCEEDED")
        self.operation = operation
        self.timeout_sec = timeout_sec


class RemoteAPIError(VolumeError):
    """Error response from the cloud API"""

    def __init__(
        self,
        status_code: Optional[int],
        message: str,
        method: Optional[str] = None,
        url: Optional[str] = None,
    ):
        prefix = f"HTTP {status_code}" if status_code is not None else "Request error"
        super().__init__(
            message=f"{prefix}: {message}",
            error_code=f"HTTP_{status_code}" if status_code is not None else "REQUEST_FAILED",
            details={"method": method, "url": url},
        )
        self.status_code = status_code
        self.remote_message = message
        self.method = method
        self.url = url

    @property
    def is_gateway_timeout(self) -> bool:
        return self.status_code == 504


# Error codes
ERROR_CODES = {
    # Request errors
    "INVALID_REQUEST": "Invalid request parameter",
    "NOT_FOUND": "Referenced volume or snapshot not found",

    # Device errors
    "UNKNOWN_DEVICE_SCHEME": "Device name does not match a known naming scheme",

    # Remote state errors
    "OPERATION_FAILED": "Remote resource reported a failed state",
    "DEADLINE_EXCEEDED": "Remote resource did not reach the expected state in time",

    # Transport errors (HTTP_xxx carries the provider status code)
    "REQUEST_FAILED": "Cloud API could not be reached",
}


__all__ = [
    "VolumeError",
    "InvalidRequestError",
    "NotFoundError",
    "UnknownDeviceSchemeError",
    "OperationFailedError",
    "DeadlineExceededError",
    "RemoteAPIError",
    "ERROR_CODES",
]
