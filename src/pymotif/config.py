"""Load configuration from toml file and make available."""

import logging
import os
import warnings
from pathlib import Path

from typing import Any
import toml

CWD: Path = Path(os.getcwd())
SRC_BASE_DIR: Path = Path(__file__).parent.parent

config_file: Path = Path(__file__).parent / "config" / "config.toml"
with open(config_file, "r", encoding="utf8") as f:
    config: dict[Any, Any] = toml.load(f)

for key, value in config["global"].items():
    globals()[key] = value

# The environment wins over the packaged default when it names a real level.
if "PYMOTIF_LOGGING_LEVEL" in os.environ:
    level = os.environ["PYMOTIF_LOGGING_LEVEL"].upper()
    if isinstance(logging.getLevelName(level), int):
        globals()["LOGGING_LEVEL"] = level
    else:
        warnings.warn(
            f"Ignoring PYMOTIF_LOGGING_LEVEL={level!r}: not a logging level; "
            f"using {globals()['LOGGING_LEVEL']!r}"
        )

globals()["SRC_BASE_DIR"] = SRC_BASE_DIR
globals()["CWD"] = CWD
