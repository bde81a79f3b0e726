import logging.config
import sys
from pathlib import Path

import click

from deltaclip.bootstrap import run
from deltaclip.config import Settings

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(message)s",
        },
        "debug": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "deltaclip": {"handlers": ["default"], "level": "INFO", "propagate": False},
    },
}


def configure_logging(debug: bool = False):
    config = LOGGING_CONFIG
    if debug:
        config = LOGGING_CONFIG | {
            "handlers": {
                "default": LOGGING_CONFIG["handlers"]["default"] | {"formatter": "debug"}
            },
            "loggers": {
                "deltaclip": LOGGING_CONFIG["loggers"]["deltaclip"] | {"level": "DEBUG"}
            },
        }
    logging.config.dictConfig(config)


@click.command(
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False}
)
@click.option(
    "--cache-dir",
    help="Directory holding the base and patched artifacts",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
)
@click.option(
    "--override",
    help="Properties file overriding the bundled patch descriptor",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
)
@click.option("--patch-only", help="Stop after patching", is_flag=True)
@click.option("--timeout", help="Download timeout in seconds", type=float, default=None)
@click.option("-d", "--debug", help="Debug output", is_flag=True)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def cli(cache_dir, override, patch_only, timeout, debug, args):
    """Build the patched artifact and run it with ARGS."""
    overrides = {
        "cache_dir": cache_dir,
        "override_file": override,
        "fetch_timeout": timeout,
    }
    if patch_only:
        overrides["patch_only"] = True
    if debug:
        overrides["debug"] = True
    settings = Settings(**{k: v for k, v in overrides.items() if v is not None})
    configure_logging(settings.debug)
    sys.exit(run(settings, args))


if __name__ == "__main__":
    cli()
