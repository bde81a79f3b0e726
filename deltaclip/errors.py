from collections.abc import Mapping


class DeltaclipError(Exception):
    """Base class for every fatal bootstrap error."""

    exit_code = 1

    def __init__(self, message: str, context: Mapping[str, str] | None = None):
        super().__init__(message)
        self.context = dict(context or {})

    def __str__(self):
        parts = [super().__str__()]
        parts.extend(f"  {k}: {v}" for k, v in self.context.items() if v)
        return "\n".join(parts)


class ConfigError(DeltaclipError):
    """Raised when the patch descriptor is missing or malformed."""

    exit_code = 2


class FetchError(DeltaclipError):
    """Raised when a remote or local resource could not be retrieved."""

    exit_code = 3


class IntegrityError(DeltaclipError):
    """Raised when an artifact does not match its expected digest."""

    exit_code = 4


class PatchError(DeltaclipError):
    """Raised when the binary patch could not be applied."""

    exit_code = 5


class FilesystemError(DeltaclipError):
    """Raised when the cache directory or a cache file cannot be managed."""

    exit_code = 6


class LoaderError(DeltaclipError):
    """Raised when the entry point of the derived artifact cannot be run."""

    exit_code = 7
