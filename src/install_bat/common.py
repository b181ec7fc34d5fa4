"""Common error types and helpers for install-bat generation."""

from typing import Any, Optional

# Exit codes
EXIT_SUCCESS = 0
EXIT_CLIENT_ERROR = 1  # Missing args, invalid config
EXIT_SERVER_ERROR = 2  # Network, HTTP, credentials
EXIT_MANIFEST_ERROR = 3  # No deployment, bad manifest, missing field
EXIT_FILESYSTEM_ERROR = 4  # Cannot write output


class InstallBatError(Exception):
    """Base exception for install-bat errors."""

    def __init__(self, code: str, message: str, exit_code: int = EXIT_CLIENT_ERROR):
        self.code = code
        self.message = message
        self.exit_code = exit_code
        super().__init__(f"{code}: {message}")


class ConfigError(InstallBatError):
    """Invalid or incomplete run configuration."""

    def __init__(self, message: str):
        super().__init__("E100", message, EXIT_CLIENT_ERROR)


class ValidationError(InstallBatError):
    """Operator-supplied value rejected before rendering."""

    def __init__(self, message: str):
        super().__init__("E101", message, EXIT_CLIENT_ERROR)


class TransportError(InstallBatError):
    """Network, TLS or unexpected HTTP failure talking to the director."""

    def __init__(self, message: str):
        super().__init__("E501", message, EXIT_SERVER_ERROR)


class AuthenticationError(InstallBatError):
    """Director rejected the supplied credentials."""

    def __init__(self, message: str = "Director rejected credentials"):
        super().__init__("E401", message, EXIT_SERVER_ERROR)


class DeploymentNotFoundError(InstallBatError):
    """No deployment carries all of the required releases."""

    def __init__(self, required: set):
        self.required = required
        names = ", ".join(sorted(required))
        super().__init__(
            "E404",
            f"No deployment containing releases: {names}",
            EXIT_MANIFEST_ERROR,
        )


class ParseError(InstallBatError):
    """Manifest text is not valid structured data."""

    def __init__(self, message: str):
        super().__init__("E422", message, EXIT_MANIFEST_ERROR)


class MissingFieldError(InstallBatError):
    """A required manifest path is absent."""

    def __init__(self, path: str):
        self.path = path
        super().__init__("E423", f"Missing required field: {path}", EXIT_MANIFEST_ERROR)


class FilesystemError(InstallBatError):
    """Output directory or file could not be written."""

    def __init__(self, message: str):
        super().__init__("E500", message, EXIT_FILESYSTEM_ERROR)


def get_in(obj: Any, *path) -> Optional[Any]:
    """Walk a parsed YAML/JSON structure, returning None on any miss.

    String path elements index mappings, integer elements index lists.

    Example:
        get_in(manifest, 'properties', 'etcd', 'machines', 0)
    """
    for key in path:
        if isinstance(obj, dict):
            obj = obj.get(key)
        elif isinstance(obj, list) and isinstance(key, int):
            if not -len(obj) <= key < len(obj):
                return None
            obj = obj[key]
        else:
            return None
        if obj is None:
            return None
    return obj
