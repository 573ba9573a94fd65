from __future__ import annotations

import logging
import os
import re
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path

from .artifacts import prepare_artifacts_dir
from .constants import ARCHIVE_SUFFIX, DEFAULT_POLL_INTERVAL
from .errors import WextError
from .file_filter import FileFilter
from .localization import default_messages_file, get_default_localized_name
from .manifest import get_manifest_id, get_validated_manifest
from .watcher import on_source_change as default_source_watcher
from .zip_dir import zip_dir

log = logging.getLogger(__name__)

_UNSAFE_NAME_RE = re.compile(r"[^a-z0-9.-]+")


def safe_file_name(name: str) -> str:
    """Lower-case `name` and collapse every run outside `[a-z0-9.-]` to one `_`."""
    return _UNSAFE_NAME_RE.sub("_", name.lower())


@dataclass(frozen=True)
class ExtensionBuildResult:
    extension_path: Path


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def _write_file_atomic(path: Path, blob: bytes) -> None:
    try:
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        raise WextError(f"Could not write extension archive to {path}: {e}") from e
    try:
        with os.fdopen(fd, "wb") as f:
            # mkstemp creates the file owner-only; give it the mode a plain open() would.
            os.chmod(tmp_name, _default_file_mode())
            f.write(blob)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise WextError(f"Could not write extension archive to {path}: {e}") from e


def default_package_creator(*, source_dir: str | Path, file_filter: FileFilter,
                            artifacts_dir: str | Path,
                            manifest_data: dict | None = None,
                            show_ready_message: bool = True) -> ExtensionBuildResult:
    """
    Zip the extension and write it to `<artifacts_dir>/<name>-<version>.zip`.

    The name is localized through the default locale's messages.json when the
    manifest declares `default_locale`. The archive only appears under its
    final name once it is completely written.
    """
    source_dir = Path(source_dir)
    if manifest_data:
        ext_id = get_manifest_id(manifest_data)
        log.debug("Using manifest id=%s", ext_id or "[not specified]")
    else:
        manifest_data = get_validated_manifest(source_dir)

    blob = zip_dir(source_dir, file_filter.want_file)

    extension_name = manifest_data["name"]
    default_locale = manifest_data.get("default_locale")
    if default_locale:
        message_file = default_messages_file(source_dir, default_locale)
        log.debug("Manifest declared default_locale, localizing extension name")
        extension_name = get_default_localized_name(message_file, manifest_data)

    package_name = safe_file_name(f"{extension_name}-{manifest_data['version']}{ARCHIVE_SUFFIX}")
    extension_path = Path(artifacts_dir) / package_name
    _write_file_atomic(extension_path, blob)

    if show_ready_message:
        log.info("Your web extension is ready: %s", extension_path)
    return ExtensionBuildResult(extension_path=extension_path)


class BuildOrchestrator:
    """
    Runs the package creator once, then optionally again on every source change.

    Rebuilds are single-flight: a change that arrives while a rebuild is
    running is remembered and handled by one extra rebuild afterwards, however
    many changes piled up in the meantime.
    """

    def __init__(self, source_dir: str | Path, artifacts_dir: str | Path,
                 manifest_data: dict | None = None,
                 file_filter: FileFilter | None = None,
                 on_source_change=None,
                 package_creator=None,
                 show_ready_message: bool = True,
                 poll_interval: float = DEFAULT_POLL_INTERVAL):
        self.source_dir = Path(source_dir)
        self.artifacts_dir = Path(artifacts_dir)
        self.manifest_data = manifest_data
        self.file_filter = file_filter or FileFilter(source_dir, artifacts_dir=artifacts_dir)
        self.on_source_change = on_source_change or default_source_watcher
        self.package_creator = package_creator or default_package_creator
        self.show_ready_message = show_ready_message
        self.poll_interval = poll_interval
        self.watcher = None
        self._lock = threading.Lock()
        self._building = False
        self._pending = False

    @property
    def is_building(self) -> bool:
        return self._building

    def create_package(self) -> ExtensionBuildResult:
        return self.package_creator(
            manifest_data=self.manifest_data,
            source_dir=self.source_dir,
            file_filter=self.file_filter,
            artifacts_dir=self.artifacts_dir,
            show_ready_message=self.show_ready_message,
        )

    def build(self, as_needed: bool = False) -> ExtensionBuildResult:
        """Build once and return that result; with `as_needed`, keep rebuilding on changes."""
        log.info("Building web extension from %s", self.source_dir)

        prepare_artifacts_dir(self.artifacts_dir)
        result = self.create_package()

        if as_needed:
            log.info("Rebuilding when files change...")
            self.watcher = self.on_source_change(
                source_dir=self.source_dir,
                artifacts_dir=self.artifacts_dir,
                on_change=self.rebuild,
                should_watch_file=self.file_filter.want_file,
                poll_interval=self.poll_interval,
            )
        return result

    def rebuild(self) -> ExtensionBuildResult | None:
        """
        Handle one change notification.

        Returns None when the change was queued behind a running rebuild.
        A failure is logged with its traceback and raised again for the
        watcher; the orchestrator stays ready for the next change.
        """
        with self._lock:
            if self._building:
                self._pending = True
                log.debug("Rebuild already running; queued one more")
                return None
            self._building = True

        try:
            while True:
                error = None
                result = None
                try:
                    result = self.create_package()
                except Exception as e:
                    log.exception("Rebuild of %s failed", self.source_dir)
                    error = e
                with self._lock:
                    if self._pending:
                        self._pending = False
                        continue
                if error is not None:
                    raise error
                return result
        finally:
            with self._lock:
                self._building = False

    def stop(self) -> None:
        if self.watcher is not None:
            self.watcher.stop()

    def wait(self, poll: float = 0.5) -> None:
        """Block until the watcher stops. Ctrl-C propagates to the caller."""
        if self.watcher is None:
            return
        while self.watcher.running:
            self.watcher.join(poll)


def build(source_dir: str | Path, artifacts_dir: str | Path, as_needed: bool = False,
          **options) -> ExtensionBuildResult:
    """Build the extension in `source_dir`; see `BuildOrchestrator` for the options."""
    orchestrator = BuildOrchestrator(source_dir, artifacts_dir, **options)
    return orchestrator.build(as_needed=as_needed)
