import logging
import runpy
import sys
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from deltaclip.errors import LoaderError

logger = logging.getLogger(__name__)

MAIN_MODULE = "__main__.py"


@dataclass(frozen=True, slots=True)
class EntryPoint:
    artifact: Path
    name: str


class Loader(Protocol):
    """Hands control to the derived artifact"""

    def locate_entry_point(self, artifact: Path) -> EntryPoint:
        ...

    def invoke(self, entry_point: EntryPoint, args: Sequence[str]) -> None:
        ...


class ZipAppLoader:
    """Runs a zip archive with a top-level `__main__.py`, like `python app.pyz`"""

    def locate_entry_point(self, artifact: Path) -> EntryPoint:
        try:
            with zipfile.ZipFile(artifact) as archive:
                names = archive.namelist()
        except (OSError, zipfile.BadZipFile) as e:
            raise LoaderError(
                "Error reading from patched artifact", {"artifact": str(artifact)}
            ) from e
        if MAIN_MODULE not in names:
            raise LoaderError(
                "Failed to find an entry point in patched artifact",
                {"artifact": str(artifact), "expected": MAIN_MODULE},
            )
        return EntryPoint(artifact=artifact, name=MAIN_MODULE)

    def invoke(self, entry_point: EntryPoint, args: Sequence[str]) -> None:
        logger.debug("Running %s from %s", entry_point.name, entry_point.artifact)
        argv = sys.argv
        sys.argv = [str(entry_point.artifact), *args]
        try:
            runpy.run_path(str(entry_point.artifact), run_name="__main__")
        except SystemExit:
            raise
        except Exception as e:
            raise LoaderError(
                "Error while running patched artifact",
                {"artifact": str(entry_point.artifact)},
            ) from e
        finally:
            sys.argv = argv
