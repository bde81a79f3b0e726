"""SHA-256 digests for cache slots

A slot is trusted only by its digest, never by its presence.
Files are hashed in memory; artifacts are bounded to tens of MB.
"""
from hashlib import sha256
from pathlib import Path

from deltaclip.errors import FilesystemError

DIGEST_SIZE = 32


def digest_of(data: bytes) -> bytes:
    return sha256(data).digest()


def file_digest(path: Path) -> bytes | None:
    """Return the digest of the file at `path`, or None if it does not exist"""
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise FilesystemError(
            f"Failed to read all of the data from {path}", {"path": str(path)}
        ) from e
    return digest_of(data)


def is_valid(path: Path, expected: bytes) -> bool:
    """True when `path` exists and its content hashes to `expected`"""
    return file_digest(path) == expected
