"""
Exception hierarchy for the vault context server.

Every error raised by the package derives from VaultContextError so callers at
the tool boundary can turn any of them into a structured error response.
"""


class VaultContextError(Exception):
    """
    Base exception for all vault context errors.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(VaultContextError):
    """
    Validation errors.
    Raised when tool input is invalid or inconsistent.
    """

    pass


class InvalidContinuationTokenError(ValidationError):
    """
    Raised when a collect_context continuation token cannot be decoded
    or does not carry a supported version.
    """

    pass


class ConfigurationError(VaultContextError):
    """
    Configuration errors.
    Raised when the vault root is missing or settings are invalid.
    """

    pass


class VaultPathError(VaultContextError):
    """
    Raised when a path resolves outside the vault root.

    Reads treat such paths as unresolvable; writes raise this error.
    """

    def __init__(self, input_path: str, resolved_path: str, vault_path: str):
        super().__init__(
            "Path escapes vault boundary",
            context={
                "input_path": input_path,
                "resolved_path": resolved_path,
                "vault_path": vault_path,
            },
        )
        self.input_path = input_path
        self.resolved_path = resolved_path
        self.vault_path = vault_path
