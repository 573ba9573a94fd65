from __future__ import annotations

import logging
import os
from pathlib import Path

from .constants import DEFAULT_IGNORED_PATTERNS, IGNORE_FILE_NAME
from .file_utils import GlobPattern, compile_glob, escape_glob, is_sub_path

log = logging.getLogger(__name__)


class FileFilter:
    """
    Allows or ignores files below a source directory.

    Every ignore pattern is stored as an absolute glob: relative patterns are
    joined onto `source_dir` when they are added. Patterns come from, in order,
    the `.wextignore` file at the source root, the base patterns and the
    caller's `ignore_files`. An artifacts directory living inside the source
    tree is always ignored so a build never packs its own output.
    """

    def __init__(self, source_dir: str | Path,
                 base_ignored_patterns: list[str] | None = None,
                 ignore_files: list[str] | None = None,
                 artifacts_dir: str | Path | None = None):
        self.source_dir = os.path.abspath(source_dir)
        self.files_to_ignore: list[str] = []
        self._patterns: list[GlobPattern] = []

        self.add_to_ignore_list(self._read_ignore_file())

        if base_ignored_patterns is None:
            base_ignored_patterns = DEFAULT_IGNORED_PATTERNS
        self.add_to_ignore_list(base_ignored_patterns)

        if ignore_files:
            self.add_to_ignore_list(ignore_files)

        if artifacts_dir and is_sub_path(self.source_dir, artifacts_dir):
            artifacts_dir = os.path.abspath(artifacts_dir)
            log.debug(
                'Ignoring artifacts directory "%s" and all its subdirectories',
                artifacts_dir,
            )
            literal = escape_glob(artifacts_dir)
            self._add_pattern(literal)
            self._add_pattern(os.path.join(literal, "**", "*"))

    def _read_ignore_file(self) -> list[str]:
        ignore_file = Path(self.source_dir) / IGNORE_FILE_NAME
        try:
            text = ignore_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as e:
            # Local overrides are best effort.
            log.debug("failed to read ignore file: %s (%s)", ignore_file, e)
            return []
        patterns = []
        for line in text.split("\n"):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            patterns.append(line)
        return patterns

    def resolve_with_source_dir(self, file: str | Path) -> str:
        """Resolve a relative path against source_dir; absolute paths pass through."""
        return os.path.abspath(os.path.join(self.source_dir, os.fspath(file)))

    def resolve_pattern(self, pattern: str | Path) -> str:
        """
        Resolve a relative ignore pattern against source_dir.

        Glob characters in the source_dir part are escaped so only the
        caller's pattern acts as a glob.
        """
        resolved = self.resolve_with_source_dir(pattern)
        if resolved == self.source_dir or is_sub_path(self.source_dir, resolved):
            return escape_glob(self.source_dir) + resolved[len(self.source_dir):]
        return resolved

    def add_to_ignore_list(self, files) -> None:
        for file in files:
            self._add_pattern(self.resolve_pattern(file))

    def _add_pattern(self, pattern: str) -> None:
        self.files_to_ignore.append(pattern)
        self._patterns.append(compile_glob(pattern))

    def want_file(self, file_path: str | Path) -> bool:
        """
        Return True if the file should be packaged (or watched).

        A relative `file_path` is treated as relative to source_dir. The first
        matching ignore pattern wins and is reported at debug level.
        """
        resolved = self.resolve_with_source_dir(file_path)
        for pattern in self._patterns:
            if pattern.match(resolved):
                log.debug("FileFilter: ignoring file %s (it matched %s)", resolved, pattern.pattern)
                return False
        return True


def create_file_filter(**params) -> FileFilter:
    return FileFilter(**params)
