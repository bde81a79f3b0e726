from hashlib import sha256
from pathlib import Path

import bsdiff4
import httpx
import pytest

from deltaclip.cache import CacheStore
from deltaclip.client import Client
from deltaclip.descriptor import Descriptor

BASE_URL = "https://example.com/base-1.0.bin"
BASE = bytes(range(256)) * 64
DERIVED = BASE[:1000] + b"patched" + BASE[1200:] + b"trailer"


class FakeServer:
    """Serves `content` for every GET and records the requested URLs"""

    def __init__(self, content: bytes = BASE):
        self.content = content
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        return httpx.Response(200, content=self.content)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def client(server) -> Client:
    with Client(transport=httpx.MockTransport(server)) as client:
        yield client


@pytest.fixture
def store(tmp_path) -> CacheStore:
    return CacheStore(tmp_path / "cache")


@pytest.fixture
def patch_file(tmp_path) -> Path:
    path = tmp_path / "patch.bsdiff"
    path.write_bytes(bsdiff4.diff(BASE, DERIVED))
    return path


@pytest.fixture
def descriptor(patch_file) -> Descriptor:
    return Descriptor(
        version="1.0",
        source_url=BASE_URL,
        base_digest=sha256(BASE).digest(),
        derived_digest=sha256(DERIVED).digest(),
        patch_source=str(patch_file),
    )


@pytest.fixture
def properties(descriptor) -> str:
    """The descriptor fixture in properties format"""
    return "\n".join(
        [
            f"version={descriptor.version}",
            f"sourceUrl={descriptor.source_url}",
            f"originalHash={descriptor.base_digest.hex()}",
            f"patchedHash={descriptor.derived_digest.hex()}",
            f"patch={descriptor.patch_source}",
        ]
    )
