"""Bootstrap pipeline

    START -> CHECK_DERIVED -> DONE
                           -> CHECK_BASE -> APPLY_PATCH
                                         -> FETCH_BASE -> APPLY_PATCH
             APPLY_PATCH -> VERIFY_DERIVED -> DONE

Every failure ends in FATAL by raising one of the `deltaclip.errors` types.
A cache slot is only trusted after its digest was checked.
"""
import logging
from collections.abc import Sequence
from enum import Enum
from pathlib import Path

from deltaclip import digest
from deltaclip.cache import CacheStore, Role
from deltaclip.client import Client
from deltaclip.config import Settings
from deltaclip.descriptor import Descriptor, load_descriptor
from deltaclip.errors import DeltaclipError, IntegrityError
from deltaclip.loader import Loader, ZipAppLoader
from deltaclip.patch import PatchApplier

logger = logging.getLogger(__name__)


class State(Enum):
    START = "start"
    CHECK_DERIVED = "check_derived"
    CHECK_BASE = "check_base"
    FETCH_BASE = "fetch_base"
    APPLY_PATCH = "apply_patch"
    VERIFY_DERIVED = "verify_derived"
    DONE = "done"
    FATAL = "fatal"


def _hex(value: bytes | None) -> str:
    return value.hex() if value is not None else "<missing>"


class Bootstrap:
    def __init__(
        self,
        descriptor: Descriptor,
        store: CacheStore,
        client: Client,
        applier: PatchApplier | None = None,
    ):
        self.descriptor = descriptor
        self.store = store
        self.client = client
        self.applier = applier or PatchApplier()
        self.state = State.START
        self.base_path = store.slot(Role.BASE, descriptor.version)
        self.derived_path = store.slot(Role.DERIVED, descriptor.version)

    def _enter(self, state: State):
        logger.debug("%s -> %s", self.state.name, state.name)
        self.state = state

    def run(self) -> Path:
        """Return the path of a derived artifact matching `derived_digest`"""
        try:
            self._run()
        except DeltaclipError:
            self._enter(State.FATAL)
            raise
        self._enter(State.DONE)
        return self.derived_path

    def _run(self):
        descriptor = self.descriptor
        self._enter(State.CHECK_DERIVED)
        if self.store.is_valid(Role.DERIVED, descriptor.version, descriptor.derived_digest):
            logger.debug("Using cached %s", self.derived_path)
            return

        self._enter(State.CHECK_BASE)
        if not self.store.is_valid(Role.BASE, descriptor.version, descriptor.base_digest):
            self._enter(State.FETCH_BASE)
            self._fetch_base()

        self._enter(State.APPLY_PATCH)
        self._apply_patch()

        self._enter(State.VERIFY_DERIVED)
        self._verify(self.derived_path, Role.DERIVED, descriptor.derived_digest)

    def _fetch_base(self):
        logger.info("Downloading base artifact...")
        self.client.fetch(
            self.descriptor.source_url,
            self.base_path,
            self.store,
            expected=self.descriptor.base_digest,
        )
        # Only continue from here if the downloaded file is correct
        self._verify(self.base_path, Role.BASE, self.descriptor.base_digest)

    def _apply_patch(self):
        self.store.clear(self.derived_path)
        logger.info("Patching base artifact...")
        base = self.store.read(self.base_path)
        patch = self.client.read(self.descriptor.patch_source)
        self.applier.apply_to(
            base,
            patch,
            self.derived_path,
            self.store,
            expected=self.descriptor.derived_digest,
        )

    def _verify(self, path: Path, role: Role, expected: bytes):
        actual = digest.file_digest(path)
        if actual == expected:
            return
        self.store.clear(path)
        raise IntegrityError(
            f"{role.value.capitalize()} artifact does not match its expected digest",
            {
                "slot": str(path),
                "version": self.descriptor.version,
                "expected": expected.hex(),
                "actual": _hex(actual),
            },
        )


def bootstrap(
    descriptor: Descriptor,
    store: CacheStore,
    client: Client,
    applier: PatchApplier | None = None,
) -> Path:
    return Bootstrap(descriptor, store, client, applier).run()


def run(
    settings: Settings,
    args: Sequence[str] = (),
    loader: Loader | None = None,
    client: Client | None = None,
) -> int:
    """Produce the derived artifact and hand over to its entry point

    Returns the process exit code. Errors are logged, not raised.
    """
    loader = loader or ZipAppLoader()
    try:
        descriptor = load_descriptor(
            override=settings.override_file, defaults=settings.defaults_file
        )
        logger.debug("Descriptor: %s", descriptor)
        with client or Client(timeout=settings.fetch_timeout) as c:
            artifact = bootstrap(descriptor, CacheStore(settings.cache_dir), c)
        if settings.patch_only:
            logger.info("Patch only mode, not running %s", artifact)
            return 0
        entry_point = loader.locate_entry_point(artifact)
        loader.invoke(entry_point, args)
    except DeltaclipError as e:
        logger.error("%s: %s", type(e).__name__, e)
        logger.debug("Traceback", exc_info=e)
        return e.exit_code
    return 0
