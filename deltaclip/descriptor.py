"""Patch descriptor

The descriptor is built from a bundled `patch.properties` and an optional
user supplied override file, in that order. Override values win key by key.

    version=1.20.4
    sourceUrl=https://example.com/base-1.20.4.bin
    originalHash=<sha256 hex of the base artifact>
    patchedHash=<sha256 hex of the patched artifact>
    patch=patch.bsdiff
"""
import logging
from pathlib import Path
import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from deltaclip.digest import DIGEST_SIZE
from deltaclip.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).parent / "data" / "patch.properties"
URL_SCHEMES = ("http", "https", "file")


def url_scheme(value: str) -> str:
    """Scheme of `value`, empty for plain paths"""
    scheme, sep, _ = value.partition(":")
    return scheme.lower() if sep and scheme.isalpha() and len(scheme) > 1 else ""


def is_url(value: str) -> bool:
    return url_scheme(value) in URL_SCHEMES


def _check_http_url(value: str) -> str:
    if url_scheme(value) not in ("http", "https"):
        raise ValueError(f"expected an http(s) URL, got {value!r}")
    try:
        httpx.URL(value)
    except httpx.InvalidURL as e:
        raise ValueError(f"invalid URL {value!r}: {e}") from None
    return value


class Descriptor(BaseModel):
    """Everything needed to build one derived artifact"""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: str = Field(min_length=1)
    source_url: str = Field(alias="sourceUrl", min_length=1)
    base_digest: bytes = Field(alias="originalHash")
    derived_digest: bytes = Field(alias="patchedHash")
    patch_source: str = Field(alias="patch", min_length=1)

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str) -> str:
        # The version is used as part of a file name in the cache
        if value in (".", "..") or "/" in value or "\\" in value:
            raise ValueError(f"not usable as a cache file name: {value!r}")
        return value

    @field_validator("source_url")
    @classmethod
    def _check_source_url(cls, value: str) -> str:
        return _check_http_url(value)

    @field_validator("patch_source")
    @classmethod
    def _check_patch_source(cls, value: str) -> str:
        if url_scheme(value) in ("http", "https"):
            return _check_http_url(value)
        return value

    @field_validator("base_digest", "derived_digest", mode="before")
    @classmethod
    def _parse_digest(cls, value):
        if isinstance(value, str):
            try:
                value = bytes.fromhex(value)
            except ValueError:
                raise ValueError("digest is not a hex string") from None
        if len(value) != DIGEST_SIZE:
            raise ValueError(f"digest should be {DIGEST_SIZE} bytes, got {len(value)}")
        return value

    def __str__(self):
        return f"{self.version} ({self.source_url})"


def parse_properties(text: str, origin: str = "<string>") -> dict[str, str]:
    """Parse the `key=value` properties format

    Blank lines and lines starting with `#` or `!` are skipped.
    Both `=` and `:` are accepted as separator.
    """
    result = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line[0] in "#!":
            continue
        positions = [i for i in (line.find("="), line.find(":")) if i > 0]
        if not positions:
            raise ConfigError(
                "Invalid patch file",
                {"file": origin, "line": str(lineno), "content": raw},
            )
        sep = min(positions)
        result[line[:sep].strip()] = line[sep + 1 :].strip()
    return result


def read_properties(path: Path) -> dict[str, str]:
    """Read a properties file, resolving a relative `patch` against its directory"""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError("Error reading patch file", {"file": str(path)}) from e
    properties = parse_properties(text, origin=str(path))
    patch = properties.get("patch")
    if patch and not is_url(patch) and not Path(patch).is_absolute():
        properties["patch"] = str(path.parent / patch)
    return properties


def merge(defaults: dict[str, str], override: dict[str, str] | None) -> Descriptor:
    data = {k: v for k, v in defaults.items() if v}
    if override:
        data |= {k: v for k, v in override.items() if v}
    try:
        return Descriptor.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            "Invalid patch file",
            {
                str(err["loc"][0]) if err["loc"] else "descriptor": err["msg"]
                for err in e.errors()
            },
        ) from e


def load_descriptor(
    override: Path | None = None, defaults: Path = DEFAULTS_PATH
) -> Descriptor:
    """Load the bundled descriptor and apply `override` if the file exists"""
    override_properties = None
    if override is not None and override.is_file():
        logger.info("Using patch overrides from %s", override)
        override_properties = read_properties(override)
    return merge(read_properties(defaults), override_properties)
