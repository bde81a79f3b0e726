from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from deltaclip.descriptor import DEFAULTS_PATH


class Settings(BaseSettings):
    """Runtime settings, overridable with DELTACLIP_* environment variables

        export DELTACLIP_PATCH_ONLY=true
        export DELTACLIP_CACHE_DIR=/var/cache/app
    """

    model_config = SettingsConfigDict(env_prefix="DELTACLIP_")

    cache_dir: Path = Path("cache")
    defaults_file: Path = DEFAULTS_PATH
    override_file: Path = Path("deltaclip.properties")
    # Stop once the derived artifact is valid, without running it
    patch_only: bool = False
    fetch_timeout: float = 60.0
    debug: bool = False
