"""
treasury_config -- single public entrypoint for treasury configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains settings:
    aggregator cutoffs and priority, retry budget, expense mirroring
    defaults, and the database connection.  The kernel never reads YAML or
    environment variables for these itself; ``treasury_config.bridges``
    turns the result into kernel policy objects.

Invariants enforced:
    - The returned configuration is frozen and fully parsed.
    - ``DATABASE_URL`` in the environment overrides the configured URL.

Audit relevance:
    Every successful call logs ``TREASURY_CONFIG_TRACE`` with the config id,
    version and checksum, so a run can be tied to the exact settings used.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from treasury_config.loader import load_yaml_file, parse_configuration
from treasury_config.schema import TreasuryConfiguration

_logger = logging.getLogger("treasury_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> TreasuryConfiguration:
    """
    Load and parse the active configuration set.

    Args:
        path: YAML file to load.  Defaults to ``treasury_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        KeyError / ValueError: If the file is structurally invalid.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    config = parse_configuration(load_yaml_file(config_path))

    env_url = os.environ.get("DATABASE_URL")
    if env_url:
        config = replace(config, database=replace(config.database, url=env_url))

    _logger.info(
        "TREASURY_CONFIG_TRACE",
        extra={
            "trace_type": "TREASURY_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(config_path),
        },
    )
    return config


__all__ = ["TreasuryConfiguration", "get_active_config"]
