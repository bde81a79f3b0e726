import logging
import os
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from uuid import uuid4

from deltaclip import digest
from deltaclip.errors import FilesystemError, IntegrityError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    BASE = "base"
    DERIVED = "derived"


class CacheStore:
    """On-disk cache holding one base and one derived artifact per version.

    Slots are only ever written through `atomic_write`, so a reader sees either
    no file or a complete one, also when several processes share the root.
    """

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def slot(self, role: Role, version: str) -> Path:
        return self.root / f"{Role(role).value}_{version}.bin"

    def is_valid(self, role: Role, version: str, expected: bytes) -> bool:
        return digest.is_valid(self.slot(role, version), expected)

    def ensure_root(self):
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(
                "Failed to setup cache directory", {"path": str(self.root)}
            ) from e

    def clear(self, path: Path):
        """Remove whatever is at `path`, a missing file is not an error"""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise FilesystemError(
                f"Failed to delete invalid file {path.absolute()}", {"path": str(path)}
            ) from e

    def read(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise FilesystemError(
                f"Failed to read all of the data from {path.absolute()}",
                {"path": str(path)},
            ) from e

    def atomic_write(
        self, path: Path, chunks: Iterable[bytes], expected: bytes | None = None
    ) -> Path:
        """Write `chunks` to a temp file next to `path` and move it into place

        When `expected` is given the temp file must hash to it, otherwise it is
        discarded with an `IntegrityError`. On any failure the temp file is
        removed and `path` is left untouched.
        """
        self.ensure_root()
        temp_path = path.with_name(f".{path.name}.{uuid4().hex}.tmp")
        try:
            with temp_path.open("wb") as f:
                for chunk in chunks:
                    f.write(chunk)
                f.flush()
                os.fsync(f.fileno())
            if expected is not None:
                actual = digest.file_digest(temp_path)
                if actual != expected:
                    raise IntegrityError(
                        f"{path.name} does not match its expected digest",
                        {
                            "slot": str(path),
                            "expected": expected.hex(),
                            "actual": actual.hex() if actual else "<missing>",
                        },
                    )
            os.replace(temp_path, path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise FilesystemError(
                f"Failed to write {path.absolute()}", {"path": str(path)}
            ) from e
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise
        logger.debug("Wrote %s", path)
        return path
