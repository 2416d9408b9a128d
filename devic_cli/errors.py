from enum import IntEnum
from typing import Optional


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR = 1
    AUTH_REQUIRED = 2
    POLL_TIMEOUT = 3


class DevicApiError(Exception):
    """Non-2xx response from the platform API."""

    def __init__(
        self, status_code: int, message: str, error_type: Optional[str] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error_type = error_type

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.error_type or f"HTTP_{self.status_code}",
            "statusCode": self.status_code,
        }


class DevicCliError(Exception):
    """Failure raised by the CLI itself, mapped to a process exit code."""

    def __init__(self, message: str, code: str, exit_code: int = ExitCode.ERROR):
        super().__init__(message)
        self.message = message
        self.code = code
        self.exit_code = exit_code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class PollTimeoutError(DevicCliError):
    def __init__(self, kind: str, resource_id: str, elapsed_ms: int):
        super().__init__(
            f"Polling timed out waiting for {kind} {resource_id} "
            f"(gave up after {elapsed_ms / 1000:.1f}s)",
            "POLL_TIMEOUT",
            ExitCode.POLL_TIMEOUT,
        )
        self.kind = kind
        self.resource_id = resource_id
        self.elapsed_ms = elapsed_ms

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(
            {"kind": self.kind, "resourceId": self.resource_id, "elapsedMs": self.elapsed_ms}
        )
        return data
