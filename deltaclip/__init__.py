"""Delta bootstrapper

Builds a verified artifact from a downloaded base artifact and a bundled
binary patch, then runs it.

    from deltaclip import Settings, run

    run(Settings(patch_only=True))
"""
from deltaclip.bootstrap import Bootstrap, State, bootstrap, run
from deltaclip.cache import CacheStore, Role
from deltaclip.client import Client
from deltaclip.config import Settings
from deltaclip.descriptor import Descriptor, load_descriptor
from deltaclip.errors import (
    ConfigError,
    DeltaclipError,
    FetchError,
    FilesystemError,
    IntegrityError,
    LoaderError,
    PatchError,
)
from deltaclip.loader import EntryPoint, Loader, ZipAppLoader
from deltaclip.patch import PatchApplier

__all__ = [
    "Bootstrap",
    "CacheStore",
    "Client",
    "ConfigError",
    "DeltaclipError",
    "Descriptor",
    "EntryPoint",
    "FetchError",
    "FilesystemError",
    "IntegrityError",
    "Loader",
    "LoaderError",
    "PatchApplier",
    "PatchError",
    "Role",
    "Settings",
    "State",
    "ZipAppLoader",
    "bootstrap",
    "load_descriptor",
    "run",
]
