from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path

from .errors import WextError
from .file_utils import iter_wanted_files

log = logging.getLogger(__name__)


def zip_dir(source_dir: str | Path, want_file=None,
            compression: int = zipfile.ZIP_DEFLATED) -> bytes:
    """
    Zip `source_dir` into an in-memory buffer.

    `want_file(abs_path)` is asked for every directory and file; a rejected
    directory is not descended into. Files dated before 1980 are stored with
    the earliest timestamp zip can hold.
    """
    buffer = io.BytesIO()
    count = 0
    with zipfile.ZipFile(buffer, "w", compression, strict_timestamps=False) as zf:
        for abs_path, rel_posix in iter_wanted_files(source_dir, want_file):
            try:
                zf.write(abs_path, arcname=rel_posix)
            except OSError as e:
                raise WextError(f"Could not add {abs_path} to the archive: {e}") from e
            count += 1
    log.debug("Zipped %d files from %s", count, source_dir)
    return buffer.getvalue()


def list_archive(blob: bytes) -> list[str]:
    with zipfile.ZipFile(io.BytesIO(blob)) as zf:
        return zf.namelist()
