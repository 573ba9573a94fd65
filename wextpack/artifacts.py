from __future__ import annotations

import logging
import os
from pathlib import Path

from .errors import UsageError, WextError

log = logging.getLogger(__name__)


def prepare_artifacts_dir(artifacts_dir: str | Path) -> Path:
    """Make sure the artifacts directory exists and can be written to."""
    path = Path(artifacts_dir)
    if path.exists():
        if not path.is_dir():
            raise UsageError(f"{path} is not a directory")
        if not os.access(path, os.W_OK):
            raise UsageError(f"{path} is not writable")
        return path

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WextError(f"Could not create artifacts directory {path}: {e}") from e
    log.debug("Created artifacts directory: %s", path)
    return path
