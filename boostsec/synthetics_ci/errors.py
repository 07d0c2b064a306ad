"""Exception hierarchy for the synthetics CI client.

``CiError`` covers failures attributable to the user's input, ``CriticalError``
covers unexpected backend or environment failures. The CLI reports them
differently but both end the run with a non-zero exit code.
"""


class SyntheticsCiError(Exception):
    """Base exception for all synthetics CI errors."""


class CodedError(SyntheticsCiError):
    """Error carrying a machine-readable code."""

    def __init__(self, code: str, message: str = "") -> None:
        """Initialize with a code and a human-readable message."""
        super().__init__(message or code)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        """Render as ``CODE: message``."""
        return f"{self.code}: {self.message}" if self.message else self.code


class CiError(CodedError):
    """Expected, user-attributable failure."""


class CriticalError(CodedError):
    """Unexpected backend or environment failure."""


class EndpointError(SyntheticsCiError):
    """Non-successful response from the backend."""

    def __init__(self, message: str, status_code: int) -> None:
        """Initialize with the response message and status code."""
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        """Render as ``status: message``."""
        return f"{self.status_code}: {self.message}"


class InvalidAppError(CiError):
    """The uploaded binary failed backend validation."""

    def __init__(self, invalid_message: str) -> None:
        """Initialize with the backend's invalidity reason."""
        super().__init__(
            "INVALID_MOBILE_APP",
            f"Mobile application failed validation for reason: {invalid_message}",
        )


class InvalidUploadParametersError(CiError):
    """The backend rejected the upload parameters."""

    def __init__(self, user_error_message: str) -> None:
        """Initialize with the backend's parameter validation message."""
        super().__init__(
            "INVALID_MOBILE_APP_UPLOAD_PARAMETERS",
            f"Mobile application failed validation for reason: {user_error_message}",
        )


class UnknownUploadFailureError(CriticalError):
    """The upload ended in an unexpected state."""

    def __init__(self) -> None:
        """Initialize with the generic upload failure message."""
        super().__init__(
            "UNKNOWN_MOBILE_APP_UPLOAD_FAILURE",
            "Unknown mobile application upload error.",
        )
