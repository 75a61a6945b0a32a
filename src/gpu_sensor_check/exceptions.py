"""Custom exceptions for the GPU sensor check.

Every error that aborts a run inherits from ProbeError and carries the
exit code the monitoring scheduler should see. Threshold breaches are not
errors and never raise.
"""

from typing import List, Optional


class ProbeError(Exception):
    """Base exception for errors that abort a probe run.

    Attributes:
        message: Human-readable error message.
        hint: Optional troubleshooting hint.
        exit_code: Exit code reported to the monitoring scheduler.
    """

    exit_code: int = 3

    def __init__(
        self,
        message: str,
        hint: Optional[str] = None,
        exit_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.hint = hint
        if exit_code is not None:
            self.exit_code = exit_code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the exception message with optional hint."""
        if self.hint:
            return f"{self.message} (Hint: {self.hint})"
        return self.message


class ConfigurationError(ProbeError):
    """Invalid command line, threshold list, or configuration file.

    This typically occurs when:
    - No device selector or both selectors are given
    - A threshold list has too many positions or a non-numeric value
    - The YAML configuration file is missing or malformed
    """


class CollectionError(ProbeError):
    """The hardware management layer could not be used.

    This typically occurs when:
    - The NVIDIA driver is not loaded (NVML initialization fails)
    - No GPU is present on the host
    - The library was queried after shutdown
    """

    def __init__(
        self,
        message: str = "Cannot query the NVIDIA management library",
        hint: Optional[str] = None,
    ) -> None:
        if hint is None:
            hint = "Check that the NVIDIA driver is installed and loaded."
        super().__init__(message=message, hint=hint)


class DeviceNotFoundError(ProbeError):
    """The selected GPU does not exist on this host."""

    def __init__(
        self,
        selector: str,
        available: Optional[List[str]] = None,
    ) -> None:
        message = f"GPU {selector} not found"
        hint = None
        if available:
            hint = f"Available GPUs: {', '.join(available)}"
        super().__init__(message=message, hint=hint)
