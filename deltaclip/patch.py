"""Binary patch application

The delta format itself is handled by an external decoder, `bsdiff4` by
default. Any callable with the same signature can be swapped in.
"""
import logging
from collections.abc import Callable
from pathlib import Path

import bsdiff4

from deltaclip.cache import CacheStore
from deltaclip.errors import PatchError

logger = logging.getLogger(__name__)

DeltaDecoder = Callable[[bytes, bytes], bytes]


class PatchApplier:
    def __init__(self, decode: DeltaDecoder = bsdiff4.patch):
        self.decode = decode

    def apply(self, base: bytes, patch: bytes) -> bytes:
        try:
            return self.decode(base, patch)
        # bsdiff4 reports bad headers and corrupt control data as ValueError,
        # the bz2 streams inside the patch as OSError/EOFError and absurd
        # declared lengths in the header as MemoryError
        except (ValueError, OSError, EOFError, MemoryError) as e:
            raise PatchError(
                f"Failed to patch base artifact: {e}",
                {"base_size": str(len(base)), "patch_size": str(len(patch))},
            ) from e

    def apply_to(
        self,
        base: bytes,
        patch: bytes,
        destination: Path,
        store: CacheStore,
        expected: bytes | None = None,
    ) -> Path:
        derived = self.apply(base, patch)
        logger.debug("Patched %d bytes into %d bytes", len(base), len(derived))
        return store.atomic_write(destination, [derived], expected=expected)
