"""Error taxonomy for k1space.

Stores raise these; the CLI layer turns them into plain-language messages.
"""


class K1spaceError(Exception):
    """Base class for all k1space errors."""

    def __init__(self, message: str, remediation: str = None):
        super().__init__(message)
        self.message = message
        self.remediation = remediation

    def __str__(self) -> str:
        return self.message


class ParseError(K1spaceError):
    """A persisted document exists but cannot be read or fails its schema."""


class ValidationError(K1spaceError):
    """Malformed input such as a configuration key with the wrong shape."""


class ProviderAPIError(K1spaceError):
    """Network, credential or timeout failure talking to a cloud provider."""


class NotFoundError(K1spaceError):
    """The requested configuration is not in the registry."""


class CommandError(K1spaceError):
    """An external command (kubefirst, bash script) failed or timed out."""
