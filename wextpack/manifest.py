from __future__ import annotations

import json
import logging
from pathlib import Path

from .constants import MANIFEST_FILE_NAME
from .errors import ManifestError

log = logging.getLogger(__name__)

REQUIRED_PROPS = ("name", "version")


def get_validated_manifest(source_dir: str | Path) -> dict:
    """Load `<source_dir>/manifest.json` and check the props packaging relies on."""
    manifest_file = Path(source_dir) / MANIFEST_FILE_NAME
    log.debug("Validating manifest at %s", manifest_file)

    try:
        blob = manifest_file.read_bytes()
    except OSError as e:
        raise ManifestError(f"Could not read manifest.json file at {manifest_file}: {e}") from e

    try:
        manifest = json.loads(blob.decode("utf-8-sig"))
    except ValueError as e:
        raise ManifestError(f"Error parsing manifest.json file at {manifest_file}: {e}") from e

    if not isinstance(manifest, dict):
        raise ManifestError(f"Manifest at {manifest_file} is invalid: expected an object")

    errors = [f"missing manifest prop: {prop}" for prop in REQUIRED_PROPS if not manifest.get(prop)]
    default_locale = manifest.get("default_locale")
    if default_locale is not None and not isinstance(default_locale, str):
        errors.append("default_locale must be a string")
    if errors:
        raise ManifestError(f"Manifest at {manifest_file} is invalid: {', '.join(errors)}")

    manifest["version"] = str(manifest["version"])
    return manifest


def get_manifest_id(manifest: dict) -> str | None:
    for key in ("browser_specific_settings", "applications"):
        settings = manifest.get(key)
        if not isinstance(settings, dict):
            continue
        gecko = settings.get("gecko")
        if isinstance(gecko, dict) and gecko.get("id"):
            return gecko["id"]
    return None
