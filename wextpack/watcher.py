from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path

from .constants import DEFAULT_DEBOUNCE, DEFAULT_POLL_INTERVAL
from .file_utils import is_sub_path, iter_wanted_files

log = logging.getLogger(__name__)


def diff_snapshots(before: dict[str, tuple[int, int]],
                   after: dict[str, tuple[int, int]]) -> dict[str, list[str]]:
    added = [path for path in after if path not in before]
    changed = [path for path, sig in after.items() if path in before and before[path] != sig]
    removed = [path for path in before if path not in after]
    return {"added": added, "changed": changed, "removed": removed}


class SourceWatcher:
    """
    Polls a source tree and calls `on_change()` once per batch of changes.

    A snapshot maps each watched file to `(size, mtime_ns)`. Only files
    accepted by `should_watch_file` are snapshotted, and the artifacts
    directory is never looked at, so writing a build output does not
    trigger another build.
    """

    def __init__(self, source_dir: str | Path, on_change,
                 should_watch_file=None,
                 artifacts_dir: str | Path | None = None,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 debounce: float = DEFAULT_DEBOUNCE):
        self.source_dir = os.path.abspath(source_dir)
        self.artifacts_dir = os.path.abspath(artifacts_dir) if artifacts_dir else None
        self.on_change = on_change
        self.should_watch_file = should_watch_file
        self.poll_interval = poll_interval
        self.debounce = debounce
        self._pending = False
        self._last_fire: float | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._snapshot = self.snapshot()

    def _wants(self, path: str) -> bool:
        if self.artifacts_dir and (path == self.artifacts_dir or is_sub_path(self.artifacts_dir, path)):
            return False
        if self.should_watch_file is None:
            return True
        return self.should_watch_file(path)

    def snapshot(self) -> dict[str, tuple[int, int]]:
        snap: dict[str, tuple[int, int]] = {}
        for abs_path, _rel in iter_wanted_files(self.source_dir, self._wants):
            try:
                st = os.stat(abs_path)
            except OSError:
                # Removed between listing and stat; the next poll settles it.
                continue
            snap[abs_path] = (int(st.st_size), int(st.st_mtime_ns))
        return snap

    def poll_once(self) -> bool:
        """Take one snapshot, and fire `on_change` if a batch is due. Returns True if it fired."""
        current = self.snapshot()
        changes = diff_snapshots(self._snapshot, current)
        self._snapshot = current
        if any(changes.values()):
            log.debug(
                "Detected changes in %s: added=%d, changed=%d, removed=%d",
                self.source_dir,
                len(changes["added"]),
                len(changes["changed"]),
                len(changes["removed"]),
            )
            self._pending = True

        if not self._pending:
            return False
        now = time.monotonic()
        if self._last_fire is not None and (now - self._last_fire) < self.debounce:
            return False

        self._pending = False
        self._last_fire = now
        self._fire()
        return True

    def _fire(self) -> None:
        try:
            self.on_change()
        except Exception as e:
            # The change handler already logged the details; keep watching.
            log.warning("Change handler failed (%s); still watching %s", e, self.source_dir)

    def _run(self) -> None:
        while not self._stop_event.wait(self.poll_interval):
            self.poll_once()

    def start(self) -> SourceWatcher:
        if self._thread is not None:
            return self
        self._thread = threading.Thread(
            target=self._run, name=f"wextpack-watch:{self.source_dir}", daemon=True
        )
        self._thread.start()
        log.debug("Watching %s every %.2fs", self.source_dir, self.poll_interval)
        return self

    def stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()


def on_source_change(source_dir: str | Path, artifacts_dir: str | Path | None,
                     on_change, should_watch_file,
                     poll_interval: float = DEFAULT_POLL_INTERVAL,
                     debounce: float = DEFAULT_DEBOUNCE) -> SourceWatcher:
    """Start watching `source_dir` in the background and return the watcher."""
    watcher = SourceWatcher(
        source_dir,
        on_change,
        should_watch_file=should_watch_file,
        artifacts_dir=artifacts_dir,
        poll_interval=poll_interval,
        debounce=debounce,
    )
    return watcher.start()
