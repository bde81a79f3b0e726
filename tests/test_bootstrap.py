from hashlib import sha256

import bsdiff4
import httpx
import pytest

from conftest import BASE, DERIVED, FakeServer
from deltaclip.bootstrap import Bootstrap, State, bootstrap
from deltaclip.cache import Role
from deltaclip.client import Client
from deltaclip.errors import FetchError, IntegrityError, PatchError
from deltaclip.patch import PatchApplier


class CountingDecoder:
    """bsdiff4.patch, counting its calls"""

    def __init__(self):
        self.calls = 0

    def __call__(self, base, patch):
        self.calls += 1
        return bsdiff4.patch(base, patch)


@pytest.fixture
def decoder():
    return CountingDecoder()


@pytest.fixture
def pipeline(descriptor, store, client, decoder):
    def run():
        return bootstrap(descriptor, store, client, PatchApplier(decoder))

    return run


def test_first_run(pipeline, server, store):
    path = pipeline()
    assert path == store.slot(Role.DERIVED, "1.0")
    assert path.read_bytes() == DERIVED
    assert store.slot(Role.BASE, "1.0").read_bytes() == BASE
    assert len(server.requests) == 1


def test_second_run_uses_cache(pipeline, server, decoder):
    first = pipeline()
    second = pipeline()
    assert first == second
    assert len(server.requests) == 1
    assert decoder.calls == 1


def test_states(descriptor, store, client):
    runner = Bootstrap(descriptor, store, client)
    assert runner.state is State.START
    runner.run()
    assert runner.state is State.DONE


def _truncate(data: bytes) -> bytes:
    return data[: len(data) // 2]


def _flip(data: bytes) -> bytes:
    return data[:10] + bytes([data[10] ^ 0xFF]) + data[11:]


@pytest.mark.parametrize("mutate", [_truncate, _flip, lambda data: b""])
def test_heals_corrupt_base(pipeline, server, store, mutate):
    base = store.slot(Role.BASE, "1.0")
    store.atomic_write(base, [mutate(BASE)])

    assert pipeline().read_bytes() == DERIVED
    assert base.read_bytes() == BASE
    assert len(server.requests) == 1


@pytest.mark.parametrize("mutate", [_truncate, _flip])
def test_heals_corrupt_derived(pipeline, server, store, mutate):
    pipeline()
    derived = store.slot(Role.DERIVED, "1.0")
    store.atomic_write(derived, [mutate(DERIVED)])

    assert pipeline().read_bytes() == DERIVED
    # The valid base is reused
    assert len(server.requests) == 1


@pytest.mark.parametrize("role", [Role.BASE, Role.DERIVED])
def test_heals_missing_file(pipeline, store, role):
    pipeline()
    store.slot(role, "1.0").unlink()
    assert pipeline().read_bytes() == DERIVED


def test_tampered_download(descriptor, store):
    tampered = FakeServer(content=_flip(BASE))
    with Client(transport=httpx.MockTransport(tampered)) as client:
        runner = Bootstrap(descriptor, store, client)
        with pytest.raises(IntegrityError) as exc_info:
            runner.run()

    assert runner.state is State.FATAL
    error = exc_info.value
    assert error.context["expected"] == descriptor.base_digest.hex()
    assert error.context["actual"] == sha256(_flip(BASE)).hexdigest()
    assert not store.slot(Role.DERIVED, "1.0").exists()
    assert not store.slot(Role.BASE, "1.0").exists()


def test_tampered_download_leaves_derived_alone(descriptor, store):
    derived = store.atomic_write(store.slot(Role.DERIVED, "1.0"), [b"stale"])
    with Client(transport=httpx.MockTransport(FakeServer(content=b"evil"))) as client:
        with pytest.raises(IntegrityError):
            bootstrap(descriptor, store, client)
    assert derived.read_bytes() == b"stale"
    assert not store.is_valid(Role.DERIVED, "1.0", descriptor.derived_digest)


def test_wrong_patch(descriptor, store, client, patch_file):
    patch_file.write_bytes(bsdiff4.diff(BASE, DERIVED + b"extra"))
    with pytest.raises(IntegrityError) as exc_info:
        bootstrap(descriptor, store, client)

    assert exc_info.value.context["slot"] == str(store.slot(Role.DERIVED, "1.0"))
    assert not store.slot(Role.DERIVED, "1.0").exists()


def test_malformed_patch(descriptor, store, client, patch_file):
    patch_file.write_bytes(b"garbage")
    with pytest.raises(PatchError):
        bootstrap(descriptor, store, client)
    assert not store.slot(Role.DERIVED, "1.0").exists()


def test_round_trip_with_cached_base(pipeline, server, store):
    store.atomic_write(store.slot(Role.BASE, "1.0"), [BASE])
    assert pipeline().read_bytes() == DERIVED
    assert server.requests == []


def test_fetch_failure(descriptor, store):
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    with Client(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(FetchError):
            bootstrap(descriptor, store, client)
    assert list(store.root.iterdir()) == []


def test_new_version_keeps_old_slots(pipeline, descriptor, store, client):
    pipeline()
    newer = descriptor.model_copy(update={"version": "1.1"})
    assert bootstrap(newer, store, client).read_bytes() == DERIVED
    assert store.slot(Role.DERIVED, "1.0").read_bytes() == DERIVED
    assert sorted(p.name for p in store.root.iterdir()) == [
        "base_1.0.bin",
        "base_1.1.bin",
        "derived_1.0.bin",
        "derived_1.1.bin",
    ]
